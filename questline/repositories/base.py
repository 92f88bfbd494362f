"""
Repository ports for the quest engine.

The progress tracker, template store and badge service only depend on these
abstract interfaces. SQLAlchemy implementations live in the
template_repo, progress_repo and badge_repo modules; in-memory ones in
questline.repositories.memory.
"""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional

from questline.schemas.badge import UserBadges
from questline.schemas.progress import OnboardingProgress
from questline.schemas.quest import QuestTemplate


class TemplateRepository(ABC):
    """Storage for quest template definitions."""

    @abstractmethod
    async def get(self, template_id: str) -> Optional[QuestTemplate]:
        """
        Get a template by id, active or not.

        Returns:
            The template or None if it does not exist
        """

    @abstractmethod
    async def list_active(self) -> list[QuestTemplate]:
        """Active templates, newest first (created_at descending)."""

    @abstractmethod
    async def save(self, template: QuestTemplate) -> QuestTemplate:
        """
        Create or revise a template.

        Revisions must satisfy ensure_compatible_revision against the stored
        version.

        Raises:
            TemplateValidationError: If the revision removes or reorders steps
        """


class ProgressRepository(ABC):
    """Storage for per-user onboarding progress."""

    @abstractmethod
    async def get(self, user_id: str) -> Optional[OnboardingProgress]:
        """Get a user's progress, or None if never initialized."""

    @abstractmethod
    async def create(self, progress: OnboardingProgress) -> tuple[OnboardingProgress, bool]:
        """
        Insert progress unless the user already has a record.

        Returns:
            Tuple of (stored record, created). When another writer
            initialized the user first, their record is returned with
            created=False
        """

    @abstractmethod
    async def save(self, progress: OnboardingProgress, expected_version: int) -> OnboardingProgress:
        """
        Replace a user's progress if it is still at `expected_version`.

        Returns:
            The stored progress with its version bumped

        Raises:
            ConcurrentModification: The stored version moved on
        """

    @abstractmethod
    async def list_all(self) -> list[OnboardingProgress]:
        """Every progress record (statistics)."""


class BadgeRepository(ABC):
    """Append-only storage of user badge unlocks."""

    @abstractmethod
    async def add(self, user_id: str, badge_id: str, unlocked_at: datetime) -> bool:
        """
        Record an unlock.

        Returns:
            True if the badge was newly added, False if the user already had it
        """

    @abstractmethod
    async def get(self, user_id: str) -> UserBadges:
        """All unlocks for a user in unlock order (empty if none)."""
