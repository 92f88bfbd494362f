"""
SQLAlchemy repository for user badge unlocks.

The (user_id, badge_id) unique constraint makes unlocks idempotent even when
two requests race to award the same badge.
"""
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from questline.core.retry import retry_with_backoff
from questline.core.utils import ensure_utc
from questline.db.transaction import atomic
from questline.models.user_badge import UserBadge
from questline.repositories.base import BadgeRepository
from questline.schemas.badge import BadgeUnlock, UserBadges


class SqlBadgeRepository(BadgeRepository):

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _exists(self, user_id: str, badge_id: str) -> bool:
        result = await self.db.execute(
            select(UserBadge.id).where(
                UserBadge.user_id == user_id,
                UserBadge.badge_id == badge_id,
            )
        )
        return result.scalar_one_or_none() is not None

    async def add(self, user_id: str, badge_id: str, unlocked_at: datetime) -> bool:
        async def _insert() -> bool:
            if await self._exists(user_id, badge_id):
                return False
            async with atomic(self.db):
                self.db.add(UserBadge(user_id=user_id, badge_id=badge_id, unlocked_at=unlocked_at))
                await self.db.flush()
            return True

        try:
            return await retry_with_backoff(
                _insert,
                operation_name="badges.add",
                on_retry=self.db.rollback,
            )
        except IntegrityError:
            # Lost a race against a concurrent unlock of the same badge
            return False

    async def get(self, user_id: str) -> UserBadges:
        async def _query():
            result = await self.db.execute(
                select(UserBadge)
                .where(UserBadge.user_id == user_id)
                .order_by(UserBadge.unlocked_at, UserBadge.id)
            )
            return result.scalars().all()

        rows = await retry_with_backoff(
            _query,
            operation_name="badges.get",
            on_retry=self.db.rollback,
        )
        return UserBadges(
            user_id=user_id,
            badges=[
                BadgeUnlock(badge_id=row.badge_id, unlocked_at=ensure_utc(row.unlocked_at))
                for row in rows
            ],
        )
