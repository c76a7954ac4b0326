import logging
import os

from celery import Celery
from celery.signals import worker_process_init

# Configure logging for the application
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Django settings live in the core.settings package; Celery must load them
# before any task module is imported.
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "core.settings")

logger.debug("Creating Celery application instance with name: core")
app = Celery("core")

# Only settings prefixed with CELERY_ are picked up.
logger.info("Loading Celery configuration from Django settings")
app.config_from_object("django.conf:settings", namespace="CELERY")

# Run history goes to the Django database and the schedule is read from
# django_celery_beat, so that task instances created from the command line
# are dispatched without restarting beat.
app.conf.update(
    result_backend='django-db',
    beat_scheduler='django_celery_beat.schedulers:DatabaseScheduler'
)

# Picks up execution_guard.tasks
logger.info("Discovering tasks in registered Django applications")
app.autodiscover_tasks()


@worker_process_init.connect
def on_worker_process_init(sender=None, **kwargs):
    """
    Called when each worker process is initialized.

    Every pool process races for the same guard marker, so the pid is
    logged to tell overlapping runs apart in the worker output.
    """
    logger.info(f"Worker process {os.getpid()} initialized")
