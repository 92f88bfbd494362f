"""
Onboarding progress API routes.

The caller's identity comes from the X-User-Id header; every route acts on
the caller's own progress.
"""
from typing import Annotated, Optional

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from questline.api.deps import CurrentUserId, Tracker, get_current_user_id, get_progress_repository
from questline.core.exceptions import ProgressNotFound
from questline.core.utils import ensure_utc
from questline.db.session import get_db
from questline.models.onboarding_event import OnboardingStatsSnapshot
from questline.repositories.progress_repo import SqlProgressRepository
from questline.schemas.progress import (
    NextStepResponse,
    OnboardingProgress,
    OnboardingStats,
    ProgressView,
)
from questline.schemas.quest import InitializeRequest, StepProgressRequest
from questline.services.stats import compute_onboarding_stats

router = APIRouter()


@router.get("/me", response_model=ProgressView)
async def get_my_progress(user_id: CurrentUserId, tracker: Tracker) -> ProgressView:
    """Current user's progress with its derived view fields."""
    view = await tracker.get_view(user_id)
    if view is None:
        raise ProgressNotFound(user_id)
    return view


@router.post("/me/initialize", response_model=OnboardingProgress)
async def initialize_onboarding(
    user_id: CurrentUserId,
    tracker: Tracker,
    payload: Optional[InitializeRequest] = None,
) -> OnboardingProgress:
    """Start onboarding; returns the existing progress if already started."""
    template_id = payload.template_id if payload else None
    return await tracker.initialize(user_id, template_id)


@router.post("/me/steps/{step_id}/complete", response_model=OnboardingProgress)
async def complete_step(step_id: str, user_id: CurrentUserId, tracker: Tracker) -> OnboardingProgress:
    return await tracker.complete_step(user_id, step_id)


@router.post("/me/steps/{step_id}/skip", response_model=OnboardingProgress)
async def skip_step(step_id: str, user_id: CurrentUserId, tracker: Tracker) -> OnboardingProgress:
    return await tracker.skip_step(user_id, step_id)


@router.post("/me/steps/{step_id}/progress", response_model=OnboardingProgress)
async def update_step_progress(
    step_id: str,
    payload: StepProgressRequest,
    user_id: CurrentUserId,
    tracker: Tracker,
) -> OnboardingProgress:
    """Record partial progress; reaching the step's target completes it."""
    return await tracker.update_step_progress(user_id, step_id, payload.value)


@router.get("/me/next-step", response_model=NextStepResponse)
async def get_next_step(user_id: CurrentUserId, tracker: Tracker) -> NextStepResponse:
    progress = await tracker.get_progress(user_id)
    if progress is None:
        raise ProgressNotFound(user_id)
    return NextStepResponse(
        step=await tracker.next_step(progress),
        is_completed=progress.is_completed,
        completion_percentage=progress.completion_percentage,
    )


@router.get("/stats", response_model=OnboardingStats, dependencies=[Depends(get_current_user_id)])
async def get_onboarding_stats(
    db: Annotated[AsyncSession, Depends(get_db)],
    progress_repo: Annotated[SqlProgressRepository, Depends(get_progress_repository)],
) -> OnboardingStats:
    """
    Latest onboarding statistics.

    Served from the most recent snapshot written by the stats task, or
    computed on the fly when no snapshot exists yet.
    """
    result = await db.execute(
        select(OnboardingStatsSnapshot)
        .order_by(OnboardingStatsSnapshot.id.desc())
        .limit(1)
    )
    snapshot = result.scalar_one_or_none()
    if snapshot is not None:
        stats = OnboardingStats.model_validate(snapshot.stats)
        stats.last_updated = ensure_utc(stats.last_updated)
        return stats

    return compute_onboarding_stats(await progress_repo.list_all())
