"""
Core module containing configuration and shared utilities.
"""
from questline.core.config import settings
from questline.core.constants import (
    BadgeRarity,
    OnboardingEventType,
    StepCategory,
    StepStatus,
    TemplateCategory,
)

__all__ = [
    "settings",
    "BadgeRarity",
    "OnboardingEventType",
    "StepCategory",
    "StepStatus",
    "TemplateCategory",
]
