"""
SQLAlchemy repository for onboarding progress.

Each progress record is a single row; transitions are written with a
conditional UPDATE on the version column so a concurrent writer can never
silently overwrite another's step.
"""
from typing import Any, Optional

import structlog
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from questline.core.exceptions import ConcurrentModification
from questline.core.retry import retry_with_backoff
from questline.core.utils import ensure_utc
from questline.db.transaction import atomic
from questline.models.onboarding_progress import OnboardingProgressRecord
from questline.repositories.base import ProgressRepository
from questline.schemas.progress import OnboardingProgress

logger = structlog.get_logger()


def progress_from_record(record: OnboardingProgressRecord) -> OnboardingProgress:
    progress = OnboardingProgress(
        user_id=record.user_id,
        template_id=record.template_id,
        started_at=ensure_utc(record.started_at),
        completed_at=ensure_utc(record.completed_at),
        step_states=record.step_states,
        current_step_id=record.current_step_id,
        total_points_earned=record.total_points_earned,
        completion_percentage=record.completion_percentage,
        badges_earned=list(record.badges_earned or []),
        is_completed=record.is_completed,
        version=record.version,
    )
    for state in progress.step_states.values():
        state.completed_at = ensure_utc(state.completed_at)
    return progress


def progress_columns(progress: OnboardingProgress) -> dict[str, Any]:
    """Column values for a progress row, excluding the version."""
    return {
        "template_id": progress.template_id,
        "started_at": progress.started_at,
        "completed_at": progress.completed_at,
        "step_states": {
            step_id: state.model_dump(mode="json")
            for step_id, state in progress.step_states.items()
        },
        "current_step_id": progress.current_step_id,
        "total_points_earned": progress.total_points_earned,
        "completion_percentage": progress.completion_percentage,
        "badges_earned": list(progress.badges_earned),
        "is_completed": progress.is_completed,
    }


class SqlProgressRepository(ProgressRepository):
    """Progress storage backed by the onboarding_progress table."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, user_id: str) -> Optional[OnboardingProgress]:
        async def _query():
            result = await self.db.execute(
                select(OnboardingProgressRecord)
                .where(OnboardingProgressRecord.user_id == user_id)
                .execution_options(populate_existing=True)
            )
            return result.scalar_one_or_none()

        record = await retry_with_backoff(
            _query,
            operation_name="progress.get",
            on_retry=self.db.rollback,
        )
        return progress_from_record(record) if record else None

    async def create(self, progress: OnboardingProgress) -> tuple[OnboardingProgress, bool]:
        async def _insert():
            async with atomic(self.db):
                record = OnboardingProgressRecord(
                    user_id=progress.user_id,
                    version=progress.version,
                    **progress_columns(progress),
                )
                self.db.add(record)
                await self.db.flush()

        try:
            await retry_with_backoff(
                _insert,
                operation_name="progress.create",
                on_retry=self.db.rollback,
            )
        except IntegrityError:
            # Another request initialized this user first; theirs wins
            logger.info("Progress already initialized concurrently", user_id=progress.user_id)
            existing = await self.get(progress.user_id)
            if existing is None:
                raise
            return existing, False

        return progress.model_copy(deep=True), True

    async def save(self, progress: OnboardingProgress, expected_version: int) -> OnboardingProgress:
        stmt = (
            update(OnboardingProgressRecord)
            .where(
                OnboardingProgressRecord.user_id == progress.user_id,
                OnboardingProgressRecord.version == expected_version,
            )
            .values(version=expected_version + 1, **progress_columns(progress))
            .execution_options(synchronize_session=False)
        )

        async def _write() -> int:
            async with atomic(self.db):
                result = await self.db.execute(stmt)
            return result.rowcount

        rowcount = await retry_with_backoff(
            _write,
            operation_name="progress.save",
            on_retry=self.db.rollback,
        )
        if rowcount == 0:
            raise ConcurrentModification(progress.user_id, expected_version)

        return progress.model_copy(deep=True, update={"version": expected_version + 1})

    async def list_all(self) -> list[OnboardingProgress]:
        async def _query():
            result = await self.db.execute(
                select(OnboardingProgressRecord).order_by(OnboardingProgressRecord.id)
            )
            return result.scalars().all()

        records = await retry_with_backoff(
            _query,
            operation_name="progress.list_all",
            on_retry=self.db.rollback,
        )
        return [progress_from_record(record) for record in records]
