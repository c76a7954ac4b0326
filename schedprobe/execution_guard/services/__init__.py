"""
Services for execution_guard app.
"""
from .guard import ExecutionGuard, ExecutionOutcome, GuardFailure

__all__ = [
    'ExecutionGuard',
    'ExecutionOutcome',
    'GuardFailure',
]
