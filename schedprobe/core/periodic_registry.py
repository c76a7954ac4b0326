"""
Registry for periodic task types. Apps register entries via
register_periodic_tasks(); apply_registry() writes them to
django_celery_beat (idempotent).

No Django signals; intended to be called from a management command so the
flow stays explicit.
"""
import json
import logging

logger = logging.getLogger(__name__)


def _is_crontab_schedule(schedule):
    return hasattr(schedule, "_orig_minute")


def _get_or_create_crontab(schedule):
    from django_celery_beat.models import CrontabSchedule

    obj, _ = CrontabSchedule.objects.get_or_create(
        minute=schedule._orig_minute,
        hour=schedule._orig_hour,
        day_of_week=schedule._orig_day_of_week,
        day_of_month=schedule._orig_day_of_month,
        month_of_year=schedule._orig_month_of_year,
    )
    return obj


def get_or_create_interval_seconds(seconds):
    """Return the IntervalSchedule running every `seconds` (at least 1)."""
    from django_celery_beat.models import IntervalSchedule

    every = max(int(seconds), 1)
    obj, _ = IntervalSchedule.objects.get_or_create(
        every=every,
        period=IntervalSchedule.SECONDS,
    )
    return obj


def _resolve_schedule(schedule):
    """
    Map a registry schedule to (crontab, interval); exactly one is set.

    Numbers are seconds; objects with run_every are celery.schedules
    intervals; anything else must be a crontab.
    """
    if _is_crontab_schedule(schedule):
        return _get_or_create_crontab(schedule), None
    if isinstance(schedule, (int, float)):
        return None, get_or_create_interval_seconds(schedule)
    run_every = getattr(schedule, "run_every", None)
    if run_every is not None:
        return None, get_or_create_interval_seconds(
            run_every.total_seconds()
        )
    raise TypeError(f"Unsupported schedule type: {type(schedule)!r}")


class TaskRegistry:
    """
    In-memory registry of periodic task definitions.

    New tasks are created with full defaults. Existing tasks are updated only
    on code-owned fields (task, args, kwargs, description); schedule, queue
    and enabled are left as in the DB so operator changes are kept.
    """

    def __init__(self):
        self._entries = {}

    def clear(self):
        self._entries.clear()

    def __len__(self):
        return len(self._entries)

    def get(self, name):
        return self._entries.get(name)

    def add(
        self,
        name,
        task,
        schedule,
        args=(),
        kwargs=None,
        queue=None,
        enabled=True,
        description="",
    ):
        """
        Register a periodic task.

        name: unique identifier of the PeriodicTask row
        task: Celery task name
        schedule: celery.schedules.crontab, number (seconds), or schedule
        args, kwargs: passed to the task
        queue: optional queue name
        enabled: whether the PeriodicTask is enabled when first created
        description: shown next to the task in the admin
        """
        self._entries[name] = {
            "task": task,
            "schedule": schedule,
            "args": tuple(args) if args else (),
            "kwargs": dict(kwargs) if kwargs else {},
            "queue": queue,
            "enabled": enabled,
            "description": description or "",
        }

    def _apply_one(self, name, entry):
        from django_celery_beat.models import PeriodicTask, PeriodicTasks

        crontab_schedule, interval_schedule = _resolve_schedule(
            entry["schedule"]
        )
        args = json.dumps(list(entry["args"]))
        kwargs = json.dumps(entry["kwargs"])

        obj, created = PeriodicTask.objects.get_or_create(
            name=name,
            defaults={
                "task": entry["task"],
                "args": args,
                "kwargs": kwargs,
                "queue": entry["queue"],
                "enabled": entry["enabled"],
                "description": entry["description"],
                "crontab": crontab_schedule,
                "interval": interval_schedule,
            },
        )
        if not created:
            obj.task = entry["task"]
            obj.args = args
            obj.kwargs = kwargs
            obj.description = entry["description"]
            obj.save(update_fields=["task", "args", "kwargs", "description"])
        PeriodicTasks.update_changed()
        return created

    def apply(self):
        """
        Write all registered entries to django_celery_beat (idempotent).

        Returns the names of entries that failed to apply.
        """
        failed = []
        for name, entry in self._entries.items():
            try:
                created = self._apply_one(name, entry)
                logger.debug(
                    f"Registered periodic task: {name} (created={created})"
                )
            except Exception as e:
                failed.append(name)
                logger.exception(
                    f"Failed to register periodic task {name}: {e}"
                )
        return failed


TASK_REGISTRY = TaskRegistry()


def apply_registry():
    """Apply the global TASK_REGISTRY to django_celery_beat."""
    return TASK_REGISTRY.apply()
