"""
Ways of triggering one guard run for the reproduction command, and the
run-history check done after every round.

The beat dispatch asks django_celery_beat's DatabaseScheduler, exactly as a
beat tick would, whether the guard PeriodicTask is due and sends it only if
so. Running several of those ticks at once shows whether the dispatcher
itself keeps a recurring task from being started twice.
"""
import logging

from celery import states
from django.db import connection

from ..constants import GUARD_TASK_INSTANCE_PREFIX, GUARD_TASK_NAME
from ..scheduler_task import SingleExecutionGuardTask
from ..tasks import run_single_execution_guard
from .guard import ExecutionGuard

logger = logging.getLogger(__name__)


def wait_for_outcome(result, timeout):
    """
    Wait for a dispatched guard run.

    Returns True only for a run that completed and reported success. A run
    that raised counts as failed; get() returns the exception instance in
    that case, which must not be mistaken for a truthy result.
    """
    value = result.get(timeout=timeout, propagate=False)
    return result.successful() and value is True


def broker_dispatch(queue=None, timeout=60):
    """Send the task straight to the broker, bypassing the scheduler."""
    def dispatch():
        result = run_single_execution_guard.apply_async(queue=queue)
        return wait_for_outcome(result, timeout)
    return dispatch


def eager_dispatch():
    """Run the guard in the calling thread."""
    def dispatch():
        return SingleExecutionGuardTask(
            ExecutionGuard.from_settings()
        ).execute()
    return dispatch


def beat_dispatch(periodic_task_name, timeout=60):
    """
    Run one scheduler tick for `periodic_task_name`.

    Returns None when the scheduler finds the task not due, otherwise the
    outcome of the run it started.
    """
    def dispatch():
        # Defer import to avoid circular import at module load.
        from django_celery_beat.schedulers import DatabaseScheduler

        try:
            scheduler = DatabaseScheduler(
                app=run_single_execution_guard.app, lazy=True
            )
            entry = scheduler.schedule.get(periodic_task_name)
            if entry is None:
                raise LookupError(
                    f"Periodic task {periodic_task_name} is not scheduled"
                )
            is_due, _ = entry.is_due()
            if not is_due:
                return None
            result = scheduler.apply_async(entry, advance=True)
            scheduler.sync()
            return wait_for_outcome(result, timeout)
        finally:
            # Each burst thread opened its own connection.
            connection.close()
    return dispatch


def find_guard_task(task_uid=None):
    """
    Return the enabled guard PeriodicTask to tick.

    Without a uid the most recently created guard instance is used.
    """
    from django_celery_beat.models import PeriodicTask

    tasks = PeriodicTask.objects.filter(task=GUARD_TASK_NAME, enabled=True)
    if task_uid is not None:
        return tasks.filter(pk=task_uid).first()
    return tasks.filter(
        name__startswith=GUARD_TASK_INSTANCE_PREFIX
    ).order_by("-id").first()


def find_unfinished_runs(since):
    """
    Check the run history for guard runs since `since` that did not end
    cleanly: runs still marked as started after every dispatch returned,
    and runs that failed with an error.
    """
    from django_celery_results.models import TaskResult

    findings = []
    results = TaskResult.objects.filter(
        task_name=GUARD_TASK_NAME,
        date_created__gte=since,
        status__in=[states.STARTED, states.FAILURE],
    ).order_by("date_created")
    for task_result in results:
        if task_result.status == states.STARTED:
            findings.append(
                f"Found task that is still being executed: "
                f"{task_result.task_id}"
            )
        else:
            findings.append(
                f"Found task that failed with an error: "
                f"{task_result.task_id}"
            )
    if findings:
        logger.warning(
            f"Run history has {len(findings)} unfinished guard run(s)"
        )
    return findings
