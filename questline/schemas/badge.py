"""
Badge-related Pydantic schemas.
"""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from questline.core.constants import BadgeRarity


class Badge(BaseModel):
    """Catalog entry for an unlockable badge."""
    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    title: str
    description: str = ""
    rarity: BadgeRarity = BadgeRarity.COMMON
    icon: Optional[str] = None
    requirements: tuple[str, ...] = ()


class BadgeUnlock(BaseModel):
    badge_id: str
    unlocked_at: datetime


class UserBadges(BaseModel):
    """A user's unlocked badges, in unlock order."""
    user_id: str
    badges: list[BadgeUnlock] = Field(default_factory=list)

    @property
    def badge_ids(self) -> list[str]:
        return [unlock.badge_id for unlock in self.badges]


class UserBadgeResponse(BaseModel):
    badge: Badge
    unlocked_at: datetime


class UserBadgesResponse(BaseModel):
    user_id: str
    badges: list[UserBadgeResponse]
    total_badges: int
