"""
Persist guard task instances to django_celery_beat.

Beat's DatabaseScheduler picks new rows up on its next sync, so a task
created here starts running without restarting beat.
"""
import logging
import uuid
from typing import Optional

from django.db import transaction

from core.periodic_registry import get_or_create_interval_seconds

from ..constants import GUARD_TASK_INSTANCE_PREFIX, GUARD_TASK_NAME
from ..periodic_tasks import task_type_description
from ..scheduler_task import SingleExecutionGuardTask

logger = logging.getLogger(__name__)


def save_guard_task(
    task: SingleExecutionGuardTask,
) -> Optional[SingleExecutionGuardTask]:
    """
    Store a new recurring PeriodicTask for `task`.

    Returns:
        A copy of `task` carrying the assigned task uid, or None when the
        row did not get a primary key.
    """
    # Defer import to avoid circular import at module load.
    from django_celery_beat.models import PeriodicTask, PeriodicTasks

    recurrence = task.recurrence
    with transaction.atomic():
        periodic_task = PeriodicTask.objects.create(
            name=f"{GUARD_TASK_INSTANCE_PREFIX}{uuid.uuid4().hex}",
            task=GUARD_TASK_NAME,
            interval=get_or_create_interval_seconds(
                recurrence.interval_seconds
            ),
            start_time=recurrence.start,
            enabled=task.is_enabled(),
            description=task_type_description(),
        )
        PeriodicTasks.update_changed()

    if not periodic_task.pk:
        logger.error(
            f"Guard task {periodic_task.name} was not assigned a primary key"
        )
        return None

    logger.info(
        f"Created guard task {periodic_task.name} "
        f"(uid={periodic_task.pk}, every {recurrence.interval_seconds}s)"
    )
    return task.with_uid(periodic_task.pk)
