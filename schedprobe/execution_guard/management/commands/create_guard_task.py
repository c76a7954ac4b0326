"""
Create and persist a recurring single execution guard task.

Prints the new task uid on stdout. Any failure is reported on stderr and
mapped to exit status 1; nothing propagates to the caller.
"""
import sys
import traceback

from django.core.management.base import BaseCommand
from django.utils import timezone

from execution_guard.constants import DEFAULT_INTERVAL_SECONDS
from execution_guard.scheduler_task import (
    Recurrence,
    SingleExecutionGuardTask,
)
from execution_guard.services.guard import ExecutionGuard
from execution_guard.services.task_store import save_guard_task


class Command(BaseCommand):
    help = (
        "Create a recurring single execution guard task in "
        "django_celery_beat and print its uid."
    )

    def add_arguments(self, parser):
        parser.add_argument(
            "--interval",
            type=int,
            default=DEFAULT_INTERVAL_SECONDS,
            help="Seconds between runs (default: %(default)s)",
        )
        parser.add_argument(
            "--disabled",
            action="store_true",
            help="Create the task disabled",
        )

    def _create(self, options):
        task = SingleExecutionGuardTask(
            ExecutionGuard.from_settings(),
            enabled=not options["disabled"],
            recurrence=Recurrence(
                start=timezone.now(),
                interval_seconds=options["interval"],
                multiple=False,
            ),
        )
        saved = save_guard_task(task)
        if saved is None or not saved.task_uid:
            self.stderr.write("Newly created task could not be persisted.")
            return 1

        self.stdout.write(str(saved.task_uid))
        return 0

    def handle(self, *args, **options):
        try:
            status = self._create(options)
        except Exception:
            self.stderr.write(
                f"Failed due to uncaught exception: {traceback.format_exc()}"
            )
            status = 1

        if status:
            sys.exit(status)
