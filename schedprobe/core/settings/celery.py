import os

# The broker carries scheduler ticks from beat to the workers.
CELERY_BROKER_URL = os.getenv("CELERY_BROKER_URL",
                              "redis://localhost:6379")

# Run history (success/failure of every guard run) is kept by
# django_celery_results in the Django database.
CELERY_RESULT_BACKEND = 'django-db'

# Beat reads recurring tasks from django_celery_beat. The guard task
# instances created by create_guard_task live there.
CELERY_BEAT_SCHEDULER = 'django_celery_beat.schedulers:DatabaseScheduler'

CELERY_TIMEZONE = os.getenv('CELERY_TIMEZONE', 'UTC')
CELERY_ENABLE_UTC = True

# Only JSON is accepted on the wire; the guard task takes no arguments and
# returns a boolean, so nothing richer is needed.
CELERY_ACCEPT_CONTENT = ['json']
CELERY_TASK_SERIALIZER = 'json'
CELERY_RESULT_SERIALIZER = 'json'

# Prevent task loss in Redis
CELERY_BROKER_TRANSPORT_OPTIONS = {
    'visibility_timeout': 43200,
    'fanout_prefix': True,
    'fanout_patterns': True,
}

# A guard run sleeps for its hold window and nothing else, so short limits
# are plenty.
CELERY_TASK_TIME_LIMIT = 60
CELERY_TASK_SOFT_TIME_LIMIT = 30

# Keep results for 7 days
CELERY_RESULT_EXPIRES = 604800

# Acknowledge after the run so a crashed worker does not silently drop a
# tick that was holding the marker.
CELERY_TASK_ACKS_LATE = True

# Record STARTED in the result backend so that the reproduction command can
# tell runs still in progress from finished ones.
CELERY_TASK_TRACK_STARTED = True

# One message per worker process at a time. Prefetching would queue ticks
# behind a run that is holding the marker and hide overlaps.
CELERY_WORKER_PREFETCH_MULTIPLIER = int(
    os.getenv('CELERY_WORKER_PREFETCH_MULTIPLIER', 1)
)

# Recurring tasks are registered via: python manage.py
# register_periodic_tasks (task types) and python manage.py
# create_guard_task (enabled instances). No hardcode here.
CELERY_BEAT_SCHEDULE = {}
