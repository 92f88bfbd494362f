"""
Badge unlock service.

Records badge unlocks exactly once per user and answers "already unlocked"
questions. Unlocks are append-only.
"""
from datetime import datetime
from typing import Callable

import structlog

from questline.core.exceptions import UnknownBadge
from questline.core.utils import utc_now
from questline.repositories.base import BadgeRepository
from questline.schemas.badge import Badge, UserBadges
from questline.services.badge_catalog import BadgeCatalog

logger = structlog.get_logger()


class BadgeUnlockService:
    """Service for awarding and reading user badges."""

    def __init__(
        self,
        repository: BadgeRepository,
        catalog: BadgeCatalog,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.repository = repository
        self.catalog = catalog
        self._clock = clock

    def _require(self, badge_id: str) -> Badge:
        badge = self.catalog.get(badge_id)
        if badge is None:
            raise UnknownBadge(badge_id)
        return badge

    async def unlock(self, user_id: str, badge_id: str) -> bool:
        """
        Unlock a badge for a user.

        Returns:
            True if this call unlocked the badge, False if the user already had it

        Raises:
            UnknownBadge: If badge_id is not in the catalog
        """
        self._require(badge_id)
        unlocked = await self.repository.add(user_id, badge_id, self._clock())

        if unlocked:
            logger.info("Badge unlocked", user_id=user_id, badge_id=badge_id)
        else:
            logger.debug("Badge already unlocked", user_id=user_id, badge_id=badge_id)
        return unlocked

    async def has_badge(self, user_id: str, badge_id: str) -> bool:
        unlocks = await self.repository.get(user_id)
        return badge_id in unlocks.badge_ids

    async def list_badges(self, user_id: str) -> list[Badge]:
        """
        Badges a user has unlocked, in unlock order.

        Unlocks whose badge has since been removed from the catalog are
        left out.
        """
        unlocks = await self.repository.get(user_id)
        return [self.catalog[bid] for bid in unlocks.badge_ids if bid in self.catalog]

    async def list_unlocks(self, user_id: str) -> UserBadges:
        return await self.repository.get(user_id)

    def available_badges(self) -> list[Badge]:
        return self.catalog.all()
