"""Celery tasks for Courtside.

This module configures Celery and registers the periodic tasks.
"""

from celery import Celery

from courtside.config import get_settings

settings = get_settings()

# Create Celery application
celery_app = Celery(
    "courtside",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=[
        "courtside.tasks.backtest",
        "courtside.tasks.maintenance",
    ],
)

# Celery configuration
celery_app.conf.update(
    # Serialization
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    # Timezone
    timezone="UTC",
    enable_utc=True,
    # Task behavior
    task_track_started=True,
    task_time_limit=1800,  # 30 minute hard limit (large corpora)
    task_soft_time_limit=1740,
    # Result expiration
    result_expires=86400,  # 1 day
    # Worker settings
    worker_prefetch_multiplier=1,
    worker_concurrency=2,
)

# Beat schedule for periodic tasks
celery_app.conf.beat_schedule = {
    # Drop finished games and their resolved signal slots from live state
    "prune-finished-games": {
        "task": "courtside.tasks.maintenance.prune_finished_games_task",
        "schedule": 3600.0,  # hourly
        "options": {"expires": 3540},
    },
}
