"""
Badge endpoints.
"""
from typing import Annotated

from fastapi import APIRouter, Depends

from questline.api.deps import CurrentUserId, get_badge_service
from questline.schemas.badge import Badge, UserBadgeResponse, UserBadgesResponse
from questline.services.badges import BadgeUnlockService

router = APIRouter()

Badges = Annotated[BadgeUnlockService, Depends(get_badge_service)]


@router.get("", response_model=list[Badge])
async def list_badge_catalog(badges: Badges) -> list[Badge]:
    """Every badge that can be unlocked."""
    return badges.available_badges()


@router.get("/me", response_model=UserBadgesResponse)
async def get_my_badges(user_id: CurrentUserId, badges: Badges) -> UserBadgesResponse:
    """The current user's unlocked badges, in unlock order."""
    unlocks = await badges.list_unlocks(user_id)
    items = [
        UserBadgeResponse(badge=badges.catalog[unlock.badge_id], unlocked_at=unlock.unlocked_at)
        for unlock in unlocks.badges
        if unlock.badge_id in badges.catalog
    ]
    return UserBadgesResponse(user_id=user_id, badges=items, total_badges=len(items))
