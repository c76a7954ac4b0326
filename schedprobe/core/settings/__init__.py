"""
Django settings for the schedprobe project.

Settings are split by concern; this module holds the Django core settings
and pulls in the Celery and execution guard modules.
"""
import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent.parent

SECRET_KEY = os.getenv("SCHEDPROBE_SECRET_KEY", "schedprobe-insecure-key")

DEBUG = os.getenv("SCHEDPROBE_DEBUG", "False").lower() == "true"

ALLOWED_HOSTS = os.getenv("SCHEDPROBE_ALLOWED_HOSTS", "*").split(",")

INSTALLED_APPS = [
    "django.contrib.contenttypes",
    "django.contrib.auth",
    "django_celery_beat",
    "django_celery_results",
    "core",
    "execution_guard",
]

# Default to a sqlite file next to the project; point SCHEDPROBE_DB_ENGINE
# at a server database when several hosts share the scheduler.
DATABASES = {
    "default": {
        "ENGINE": os.getenv(
            "SCHEDPROBE_DB_ENGINE", "django.db.backends.sqlite3"
        ),
        "NAME": os.getenv(
            "SCHEDPROBE_DB_NAME", str(BASE_DIR / "db.sqlite3")
        ),
        "USER": os.getenv("SCHEDPROBE_DB_USER", ""),
        "PASSWORD": os.getenv("SCHEDPROBE_DB_PASSWORD", ""),
        "HOST": os.getenv("SCHEDPROBE_DB_HOST", ""),
        "PORT": os.getenv("SCHEDPROBE_DB_PORT", ""),
    }
}

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

USE_TZ = True
TIME_ZONE = os.getenv("SCHEDPROBE_TIME_ZONE", "UTC")

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "verbose": {
            "format": (
                "%(asctime)s %(levelname)s %(process)d "
                "%(name)s: %(message)s"
            ),
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "verbose",
        },
    },
    "root": {
        "handlers": ["console"],
        "level": os.getenv("SCHEDPROBE_LOG_LEVEL", "WARNING"),
    },
    "loggers": {
        "execution_guard": {
            "handlers": ["console"],
            "level": os.getenv("SCHEDPROBE_GUARD_LOG_LEVEL", "INFO"),
            "propagate": False,
        },
    },
}

from .celery import *  # noqa: E402,F401,F403
from .guard import *  # noqa: E402,F401,F403
