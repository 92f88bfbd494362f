"""
SQLAlchemy models for the quest engine.
"""
from questline.models.quest_template import QuestTemplateRecord
from questline.models.onboarding_progress import OnboardingProgressRecord
from questline.models.user_badge import UserBadge
from questline.models.onboarding_event import OnboardingEventRecord, OnboardingStatsSnapshot

__all__ = [
    "QuestTemplateRecord",
    "OnboardingProgressRecord",
    "UserBadge",
    "OnboardingEventRecord",
    "OnboardingStatsSnapshot",
]
