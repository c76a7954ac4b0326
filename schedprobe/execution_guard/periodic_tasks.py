"""
Register this app's periodic task type with the scheduler registry.

Called by the project's register_periodic_tasks management command. The
entry is created disabled; create_guard_task adds the enabled instances.
"""
from core.periodic_registry import TASK_REGISTRY

from .constants import (
    DEFAULT_INTERVAL_SECONDS,
    GUARD_TASK_DESCRIPTION,
    GUARD_TASK_NAME,
    GUARD_TASK_TITLE,
    GUARD_TASK_TYPE_ENTRY,
)


def task_type_description():
    """Title and description as stored on the PeriodicTask row."""
    if GUARD_TASK_DESCRIPTION:
        return f"{GUARD_TASK_TITLE}: {GUARD_TASK_DESCRIPTION}"
    return GUARD_TASK_TITLE


def register_periodic_tasks():
    TASK_REGISTRY.add(
        name=GUARD_TASK_TYPE_ENTRY,
        task=GUARD_TASK_NAME,
        schedule=DEFAULT_INTERVAL_SECONDS,
        args=(),
        kwargs=None,
        queue=None,
        enabled=False,
        description=task_type_description(),
    )
