"""
Celery tasks for background job processing.

Includes:
- Onboarding stats: periodic aggregation of progress records
"""
from questline.tasks.celery_app import celery_app
from questline.tasks.onboarding_stats import refresh_stats

__all__ = [
    "celery_app",
    "refresh_stats",
]
