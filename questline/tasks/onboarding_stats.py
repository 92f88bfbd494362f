"""
Onboarding statistics task.

Periodically aggregates every user's progress into an
OnboardingStatsSnapshot row that the stats endpoint serves.
"""
from typing import Any

import structlog
from celery import shared_task
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from questline.db.transaction import atomic
from questline.models.onboarding_event import OnboardingStatsSnapshot
from questline.repositories.progress_repo import SqlProgressRepository
from questline.schemas.progress import OnboardingStats
from questline.services.stats import compute_onboarding_stats
from questline.tasks.utils import create_task_session_maker, run_async

logger = structlog.get_logger()


@shared_task(name="refresh_onboarding_stats")
def refresh_stats() -> dict[str, Any]:
    """
    Recompute onboarding statistics and store a snapshot.

    Runs every `stats_interval_hours` via celery beat.
    """
    return run_async(_refresh_stats_async())


async def store_stats_snapshot(db: AsyncSession) -> OnboardingStats:
    """Compute stats from all progress records and persist a snapshot."""
    records = await SqlProgressRepository(db).list_all()
    stats = compute_onboarding_stats(records)

    async with atomic(db):
        db.add(OnboardingStatsSnapshot(stats=stats.model_dump(mode="json")))

    logger.info(
        "Onboarding stats refreshed",
        total_users=stats.total_users,
        completed_users=stats.completed_users,
        completion_rate=stats.completion_rate,
    )
    return stats


async def _refresh_stats_async(
    session_maker: async_sessionmaker[AsyncSession] | None = None,
) -> dict[str, Any]:
    engine = None
    if session_maker is None:
        session_maker, engine = create_task_session_maker()

    try:
        async with session_maker() as db:
            stats = await store_stats_snapshot(db)
        return {
            "total_users": stats.total_users,
            "completed_users": stats.completed_users,
            "completion_rate": stats.completion_rate,
        }
    except Exception as e:
        logger.error("Onboarding stats refresh failed", error=str(e), error_type=type(e).__name__)
        raise
    finally:
        if engine is not None:
            await engine.dispose()
