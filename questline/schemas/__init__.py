"""
Pydantic schemas for quest templates, progress and badges.
"""
from questline.schemas.badge import Badge, BadgeUnlock, UserBadgeResponse, UserBadges, UserBadgesResponse
from questline.schemas.progress import (
    NextStepResponse,
    OnboardingProgress,
    OnboardingStats,
    ProgressView,
    StepState,
)
from questline.schemas.quest import (
    InitializeRequest,
    QuestTemplate,
    StepDefinition,
    StepProgressRequest,
    ensure_compatible_revision,
)

__all__ = [
    "Badge",
    "BadgeUnlock",
    "UserBadges",
    "UserBadgeResponse",
    "UserBadgesResponse",
    "OnboardingProgress",
    "StepState",
    "ProgressView",
    "OnboardingStats",
    "NextStepResponse",
    "QuestTemplate",
    "StepDefinition",
    "InitializeRequest",
    "StepProgressRequest",
    "ensure_compatible_revision",
]
