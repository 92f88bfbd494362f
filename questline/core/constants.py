"""
Core enums shared by the quest engine, the persistence layer and the API.
"""
from enum import Enum


class StepStatus(str, Enum):
    """Status of a single step within a user's progress."""
    PENDING = "pending"
    COMPLETED = "completed"
    SKIPPED = "skipped"

    @property
    def is_terminal(self) -> bool:
        return self is not StepStatus.PENDING


class StepCategory(str, Enum):
    """Thematic grouping of onboarding steps."""
    SETUP = "setup"
    EXPLORATION = "exploration"
    NETWORKING = "networking"
    CONTENT = "content"
    MASTERY = "mastery"


class TemplateCategory(str, Enum):
    STANDARD = "standard"
    ADVANCED = "advanced"
    COMMUNITY_FOCUSED = "community_focused"
    CONTENT_CREATOR = "content_creator"


class BadgeRarity(str, Enum):
    COMMON = "common"
    RARE = "rare"
    EPIC = "epic"
    LEGENDARY = "legendary"


class OnboardingEventType(str, Enum):
    """Lifecycle events recorded by the analytics log."""
    ONBOARDING_STARTED = "onboarding_started"
    STEP_COMPLETED = "step_completed"
    STEP_SKIPPED = "step_skipped"
    QUEST_COMPLETED = "quest_completed"
    BADGE_UNLOCK_FAILED = "badge_unlock_failed"


# Redis pub/sub channel carrying progress snapshots, one per user
PROGRESS_CHANNEL_PREFIX = "channel:onboarding:user:"


def progress_channel(user_id: str) -> str:
    return f"{PROGRESS_CHANNEL_PREFIX}{user_id}"
