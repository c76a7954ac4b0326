"""
Schedulable guard task.

The unit of work the scheduler runs once per tick. It hands straight over
to the execution guard and reports the outcome as a plain boolean.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from django.utils import timezone

from .constants import DEFAULT_INTERVAL_SECONDS
from .services.guard import ExecutionGuard


@dataclass(frozen=True)
class Recurrence:
    """
    Recurrence metadata of a scheduled task instance.

    multiple=False states the expectation under test: the scheduler should
    never start a run while another run of the same instance is still
    going. It is informational only. Celery beat has no such setting, so
    it is neither persisted nor enforced; the guard checks it instead.
    """
    start: datetime = field(default_factory=timezone.now)
    interval_seconds: int = DEFAULT_INTERVAL_SECONDS
    multiple: bool = False

    def __post_init__(self):
        if self.interval_seconds < 1:
            raise ValueError("interval_seconds must be at least 1")


class SingleExecutionGuardTask:
    """
    Scheduled task that runs one execution guard check per invocation.

    Enabled flag, recurrence and task uid are fixed when the instance is
    created; each execute() call is independent of the previous ones.
    """

    def __init__(
        self,
        guard: ExecutionGuard,
        task_uid: Optional[int] = None,
        enabled: bool = True,
        recurrence: Optional[Recurrence] = None,
    ):
        self._guard = guard
        self._task_uid = task_uid
        self._enabled = enabled
        self._recurrence = recurrence or Recurrence()

    @property
    def task_uid(self) -> Optional[int]:
        """Identifier assigned by the scheduler store, None until saved."""
        return self._task_uid

    @property
    def recurrence(self) -> Recurrence:
        return self._recurrence

    def is_enabled(self) -> bool:
        return self._enabled

    def with_uid(self, task_uid: int) -> "SingleExecutionGuardTask":
        """Return the same task as registered under `task_uid`."""
        return SingleExecutionGuardTask(
            self._guard,
            task_uid=task_uid,
            enabled=self._enabled,
            recurrence=self._recurrence,
        )

    def execute(self) -> bool:
        return bool(self._guard.check())

    def __repr__(self):
        return (
            f"<SingleExecutionGuardTask uid={self._task_uid} "
            f"enabled={self._enabled} "
            f"every={self._recurrence.interval_seconds}s>"
        )
