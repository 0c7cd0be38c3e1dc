"""Celery application configuration"""

from celery import Celery
from callsync.config import settings
from callsync.logging_config import configure_logging

configure_logging()

# Create Celery app
celery_app = Celery(
    "callsync",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=[
        "callsync.jobs.tasks",
    ],
)

# Configure Celery
celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=600,  # 10 minutes
    worker_prefetch_multiplier=1,
    task_acks_late=True,
    task_reject_on_worker_lost=True,

    # Beat schedule for periodic tasks
    beat_schedule={
        "sync-provider-calls": {
            "task": "sync_provider_calls",
            "schedule": settings.sync_interval_seconds,
            # A sweep that is still queued when the next one is due is redundant
            "options": {"expires": settings.sync_interval_seconds},
        },
    },
)
