"""
Celery application configuration.

Beat schedule:
- Onboarding stats refresh: every `stats_interval_hours` (default 6)
"""
from celery import Celery
from celery.schedules import crontab

from questline.core.config import settings

celery_app = Celery(
    "questline",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=[
        "questline.tasks.onboarding_stats",
    ],
)

# Celery configuration
celery_app.conf.update(
    # Task settings
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,

    # Task execution settings
    task_acks_late=True,
    task_reject_on_worker_lost=True,

    # Result settings
    result_expires=3600,  # Results expire after 1 hour

    # Worker settings
    worker_prefetch_multiplier=1,
    worker_concurrency=2,

    beat_schedule={
        # Aggregate completion/skip statistics across all users' progress
        "onboarding-stats-refresh": {
            "task": "refresh_onboarding_stats",
            "schedule": crontab(minute=0, hour=f"*/{settings.stats_interval_hours}"),
        },
    },

    task_routes={
        "refresh_onboarding_stats": {"queue": "analytics"},
    },

    # Default queue
    task_default_queue="default",
)
