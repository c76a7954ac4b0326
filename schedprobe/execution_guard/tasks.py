"""
Celery tasks for the single execution guard.
"""
import logging

from celery import current_task
from celery import shared_task

from .constants import GUARD_TASK_NAME
from .scheduler_task import SingleExecutionGuardTask
from .services.guard import ExecutionGuard

logger = logging.getLogger(__name__)


@shared_task(name=GUARD_TASK_NAME)
def run_single_execution_guard():
    """
    Run one guard check for a scheduler tick.

    Returns:
        True when this run held the guard alone, False otherwise. The
        result backend records it as the run's result; a False does not
        stop the schedule.
    """
    request = getattr(current_task, 'request', None)
    task_id = getattr(request, 'id', None)
    task = SingleExecutionGuardTask(ExecutionGuard.from_settings())

    ok = task.execute()
    if ok:
        logger.debug(f"Guard run {task_id} completed")
    else:
        logger.warning(f"Guard run {task_id} failed")
    return ok
