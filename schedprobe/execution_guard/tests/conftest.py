"""
Pytest fixtures for execution_guard tests.
"""
import os
import sys
from pathlib import Path

os.environ.setdefault(
    "DJANGO_SETTINGS_MODULE", "execution_guard.tests.settings"
)

project_root = Path(__file__).resolve().parent.parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

import django
django.setup()

import pytest

from execution_guard.services.guard import ExecutionGuard


@pytest.fixture
def guard_root(tmp_path, settings):
    """
    Point the guard at a private directory with a short hold window.
    """
    settings.EXECUTION_GUARD_ROOT = str(tmp_path)
    settings.EXECUTION_GUARD_HOLD_SECONDS = 0.05
    return tmp_path


@pytest.fixture
def marker_path(guard_root):
    return guard_root / "single-execution-guard"


@pytest.fixture
def recorded_sleeps():
    return []


@pytest.fixture
def guard(tmp_path, recorded_sleeps):
    """
    Guard whose hold window only records the requested duration.
    """
    return ExecutionGuard(
        tmp_path,
        hold_seconds=0.8,
        sleep=recorded_sleeps.append,
    )
