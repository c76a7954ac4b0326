"""
App configuration for execution_guard.
"""
from django.apps import AppConfig


class ExecutionGuardConfig(AppConfig):
    """
    Configuration for execution_guard app.
    """

    default_auto_field = "django.db.models.BigAutoField"
    name = "execution_guard"
    verbose_name = "Single Execution Guard"
