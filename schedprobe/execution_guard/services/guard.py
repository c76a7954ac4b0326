"""
Single execution guard.

Claims a marker file with an exclusive create, holds it for a while and
removes it again. Two runs that overlap in time cannot both create the
marker, so an overlapping run is reported as a failed claim.

This is a diagnostic, not a lock: nothing is retried and a marker left
behind by a failed run is kept on disk so the failure stays visible.
"""
import enum
import logging
import os
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, NamedTuple, Optional

from .. import conf

logger = logging.getLogger(__name__)

UNKNOWN_ERROR = "unknown"


class GuardFailure(enum.Enum):
    """
    Reason a guard run failed. The value is the step named in the log.
    """
    CLAIM_FAILED = "create single execution guard"
    RELEASE_PREP_FAILED = "close single execution guard file descriptor"
    RELEASE_FAILED = "unlink single execution guard file after pause"

    @property
    def step(self):
        return self.value


@dataclass(frozen=True)
class ExecutionOutcome:
    """
    Result of one ExecutionGuard.check() call.

    Truthy only for a run that held the marker for the whole hold window
    and removed it afterwards.
    """
    success: bool
    reason: Optional[GuardFailure] = None
    message: Optional[str] = None

    @classmethod
    def succeeded(cls) -> "ExecutionOutcome":
        return cls(success=True)

    @classmethod
    def failed(cls, reason: GuardFailure, message: str) -> "ExecutionOutcome":
        return cls(success=False, reason=reason, message=message)

    def __bool__(self):
        return self.success


class FsResult(NamedTuple):
    """
    Value or error description returned by the filesystem primitives.
    """
    value: Optional[int] = None
    error: Optional[str] = None

    @property
    def ok(self):
        return self.error is None


def _describe(exc: OSError) -> str:
    return str(exc) or UNKNOWN_ERROR


def create_exclusive(path: Path) -> FsResult:
    """
    Create `path` only if it does not exist yet.

    O_CREAT | O_EXCL is atomic on the filesystem: of several concurrent
    callers exactly one gets a descriptor.
    """
    try:
        fd = os.open(path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
    except OSError as exc:
        return FsResult(error=_describe(exc))
    return FsResult(value=fd)


def close_descriptor(fd: int) -> FsResult:
    try:
        os.close(fd)
    except OSError as exc:
        return FsResult(error=_describe(exc))
    return FsResult()


def remove_file(path: Path) -> FsResult:
    try:
        os.unlink(path)
    except OSError as exc:
        return FsResult(error=_describe(exc))
    return FsResult()


class ExecutionGuard:
    """
    Claim, hold and release the single execution marker.

    Args:
        root: Directory holding the marker. Fixed for the guard's lifetime;
            every process that must collide needs the same root.
        hold_seconds: How long a successful claim keeps the marker.
        marker_name: File name of the marker inside root.
        log: Logger receiving the failure records.
        sleep: Blocking sleep used for the hold window.
    """

    def __init__(
        self,
        root,
        hold_seconds: float = conf.DEFAULT_HOLD_SECONDS,
        marker_name: str = conf.DEFAULT_MARKER_NAME,
        log: Optional[logging.Logger] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if hold_seconds < 0:
            raise ValueError("hold_seconds must not be negative")
        self.marker_path = Path(root) / marker_name
        self.hold_seconds = hold_seconds
        self.log = log or logger
        self._sleep = sleep

    @classmethod
    def from_settings(cls, **overrides) -> "ExecutionGuard":
        """Build a guard from the EXECUTION_GUARD_* Django settings."""
        options = {
            "root": conf.get_guard_root(),
            "hold_seconds": conf.get_hold_seconds(),
            "marker_name": conf.get_marker_name(),
        }
        options.update(overrides)
        return cls(**options)

    def _fail(self, reason: GuardFailure, error: Optional[str]):
        message = error or UNKNOWN_ERROR
        self.log.critical(
            f"Failed to {reason.step}: {message}",
            extra={
                "guard_step": reason.name,
                "guard_error": message,
                "guard_marker": str(self.marker_path),
            },
        )
        return ExecutionOutcome.failed(reason, message)

    def check(self) -> ExecutionOutcome:
        """
        Run one claim / hold / release cycle.

        Every step is attempted once. A failed claim leaves an existing
        marker alone; a failed close or unlink leaves ours in place.
        """
        claim = create_exclusive(self.marker_path)
        if not claim.ok:
            return self._fail(GuardFailure.CLAIM_FAILED, claim.error)

        closed = close_descriptor(claim.value)
        if not closed.ok:
            return self._fail(GuardFailure.RELEASE_PREP_FAILED, closed.error)

        self._sleep(self.hold_seconds)

        removed = remove_file(self.marker_path)
        if not removed.ok:
            return self._fail(GuardFailure.RELEASE_FAILED, removed.error)

        self.log.debug(
            f"Held single execution guard {self.marker_path} for "
            f"{self.hold_seconds}s"
        )
        return ExecutionOutcome.succeeded()
