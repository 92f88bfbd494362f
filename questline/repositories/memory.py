"""
In-memory repository implementations.

Used by tests and by single-process deployments that do not need
durability. Records are copied on the way in and out so callers can never
mutate stored state, and every method yields to the event loop to behave
like real I/O under concurrency.
"""
import asyncio
from datetime import datetime
from typing import Optional

from questline.core.exceptions import ConcurrentModification
from questline.repositories.base import BadgeRepository, ProgressRepository, TemplateRepository
from questline.schemas.badge import BadgeUnlock, UserBadges
from questline.schemas.progress import OnboardingProgress
from questline.schemas.quest import QuestTemplate, ensure_compatible_revision


class InMemoryTemplateRepository(TemplateRepository):

    def __init__(self, templates: Optional[list[QuestTemplate]] = None):
        self._templates: dict[str, QuestTemplate] = {}
        for template in templates or []:
            self._templates[template.id] = template

    async def get(self, template_id: str) -> Optional[QuestTemplate]:
        await asyncio.sleep(0)
        return self._templates.get(template_id)

    async def list_active(self) -> list[QuestTemplate]:
        await asyncio.sleep(0)
        active = [t for t in self._templates.values() if t.is_active]
        return sorted(active, key=lambda t: t.created_at, reverse=True)

    async def save(self, template: QuestTemplate) -> QuestTemplate:
        await asyncio.sleep(0)
        current = self._templates.get(template.id)
        if current is not None:
            ensure_compatible_revision(current, template)
        self._templates[template.id] = template
        return template


class InMemoryProgressRepository(ProgressRepository):

    def __init__(self):
        self._records: dict[str, OnboardingProgress] = {}
        self._lock = asyncio.Lock()

    async def get(self, user_id: str) -> Optional[OnboardingProgress]:
        await asyncio.sleep(0)
        record = self._records.get(user_id)
        return record.model_copy(deep=True) if record else None

    async def create(self, progress: OnboardingProgress) -> tuple[OnboardingProgress, bool]:
        await asyncio.sleep(0)
        async with self._lock:
            existing = self._records.get(progress.user_id)
            if existing is not None:
                return existing.model_copy(deep=True), False
            self._records[progress.user_id] = progress.model_copy(deep=True)
            return progress.model_copy(deep=True), True

    async def save(self, progress: OnboardingProgress, expected_version: int) -> OnboardingProgress:
        await asyncio.sleep(0)
        async with self._lock:
            current = self._records.get(progress.user_id)
            if current is None or current.version != expected_version:
                raise ConcurrentModification(progress.user_id, expected_version)
            stored = progress.model_copy(deep=True, update={"version": expected_version + 1})
            self._records[progress.user_id] = stored
            return stored.model_copy(deep=True)

    async def list_all(self) -> list[OnboardingProgress]:
        await asyncio.sleep(0)
        return [record.model_copy(deep=True) for record in self._records.values()]


class InMemoryBadgeRepository(BadgeRepository):

    def __init__(self):
        self._unlocks: dict[str, list[BadgeUnlock]] = {}
        self._lock = asyncio.Lock()

    async def add(self, user_id: str, badge_id: str, unlocked_at: datetime) -> bool:
        await asyncio.sleep(0)
        async with self._lock:
            unlocks = self._unlocks.setdefault(user_id, [])
            if any(unlock.badge_id == badge_id for unlock in unlocks):
                return False
            unlocks.append(BadgeUnlock(badge_id=badge_id, unlocked_at=unlocked_at))
            return True

    async def get(self, user_id: str) -> UserBadges:
        await asyncio.sleep(0)
        return UserBadges(
            user_id=user_id,
            badges=[unlock.model_copy() for unlock in self._unlocks.get(user_id, [])],
        )
