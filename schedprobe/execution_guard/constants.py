"""
Constants for the single execution guard task type.
"""

# Celery task name; also the identifier of the task type in the registry
GUARD_TASK_NAME = 'execution_guard.tasks.run_single_execution_guard'

# Human readable title and description shown for the task type
GUARD_TASK_TITLE = 'Test Task'
GUARD_TASK_DESCRIPTION = ''

# Name of the disabled task type entry written by register_periodic_tasks
GUARD_TASK_TYPE_ENTRY = 'single_execution_guard'

# Prefix for task instances created by create_guard_task
GUARD_TASK_INSTANCE_PREFIX = 'single-execution-guard-'

# Recur every second: the shortest interval beat supports, so ticks pile
# up behind a run that is still holding the marker.
DEFAULT_INTERVAL_SECONDS = 1
