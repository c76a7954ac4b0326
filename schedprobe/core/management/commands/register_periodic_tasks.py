"""
Discover all installed apps' periodic_tasks and register to Celery Beat.

Run at startup (e.g. in entrypoint after migrate) so that each app's
register_periodic_tasks() is called and task types are written to
django_celery_beat.
"""
import importlib
import logging
import sys

from django.apps import apps
from django.core.management.base import BaseCommand

from core.periodic_registry import TASK_REGISTRY, apply_registry

logger = logging.getLogger(__name__)


def discover_and_register():
    """
    Clear registry, discover each app's periodic_tasks, call
    register_periodic_tasks, then apply registry to django_celery_beat.

    Returns the names of entries that could not be written.
    """
    TASK_REGISTRY.clear()

    for app_config in apps.get_app_configs():
        try:
            module = importlib.import_module(
                f"{app_config.name}.periodic_tasks"
            )
        except ModuleNotFoundError:
            continue

        if hasattr(module, "register_periodic_tasks"):
            try:
                module.register_periodic_tasks()
            except Exception as e:
                logger.exception(
                    f"register_periodic_tasks failed for app "
                    f"{app_config.name}: {e}"
                )

    return apply_registry()


class Command(BaseCommand):
    help = (
        "Discover all apps' periodic_tasks.register_periodic_tasks() and "
        "register entries to django_celery_beat (idempotent)."
    )

    def handle(self, *args, **options):
        failed = discover_and_register()
        count = len(TASK_REGISTRY) - len(failed)
        self.stdout.write(
            self.style.SUCCESS(
                f"Registered {count} periodic task(s) to django_celery_beat."
            )
        )
        if failed:
            self.stderr.write(
                f"Failed to register: {', '.join(sorted(failed))}"
            )
            sys.exit(1)
