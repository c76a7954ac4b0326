"""
Execution guard app configuration. Reads from Django settings.
"""
from pathlib import Path

from django.conf import settings

DEFAULT_MARKER_NAME = "single-execution-guard"
DEFAULT_HOLD_SECONDS = 0.8


def get_guard_root():
    """
    Return the directory holding the guard marker.

    Falls back to the project root so that every worker process of the
    project resolves the same path.
    """
    root = getattr(settings, "EXECUTION_GUARD_ROOT", "") or getattr(
        settings, "BASE_DIR", None
    )
    if not root:
        raise RuntimeError(
            "EXECUTION_GUARD_ROOT or BASE_DIR must be set to locate the "
            "single execution guard marker"
        )
    return Path(root)


def get_marker_name():
    return getattr(
        settings, "EXECUTION_GUARD_MARKER_NAME", DEFAULT_MARKER_NAME
    )


def get_hold_seconds():
    return float(
        getattr(settings, "EXECUTION_GUARD_HOLD_SECONDS", DEFAULT_HOLD_SECONDS)
    )
