"""
Template store.

Read-only access to quest templates for the progress tracker. Templates
change rarely, so reads go through a TTL cache shared across requests.
A built-in welcome quest backs the default template id when the repository
has not been seeded.
"""
from datetime import datetime, timezone
from typing import Optional

import structlog

from questline.core.cache import SimpleCache
from questline.core.config import settings
from questline.core.constants import StepCategory, TemplateCategory
from questline.core.exceptions import TemplateNotFound
from questline.repositories.base import TemplateRepository
from questline.schemas.quest import QuestTemplate, StepDefinition

logger = structlog.get_logger()

_BUILTIN_CREATED_AT = datetime(2024, 1, 1, tzinfo=timezone.utc)

DEFAULT_TEMPLATE = QuestTemplate(
    id="default",
    name="Welcome aboard",
    description="Complete these quests to start your adventure on the platform",
    is_active=True,
    category=TemplateCategory.STANDARD,
    estimated_time_minutes=15,
    created_at=_BUILTIN_CREATED_AT,
    updated_at=_BUILTIN_CREATED_AT,
    steps=(
        StepDefinition(
            id="1",
            title="Complete your profile",
            description="Add your personal details and a profile photo",
            order=1,
            points=50,
            is_required=True,
            category=StepCategory.SETUP,
            badge_id="starter",
            target_value=100,
            action_type="complete_profile",
        ),
        StepDefinition(
            id="2",
            title="Join your first community",
            description="Explore and join a community that interests you",
            order=2,
            points=75,
            is_required=True,
            category=StepCategory.NETWORKING,
            badge_id="connector",
            target_value=1,
            action_type="join_community",
        ),
        StepDefinition(
            id="3",
            title="Publish your first post",
            description="Share something interesting with the community",
            order=3,
            points=100,
            is_required=True,
            category=StepCategory.CONTENT,
            badge_id="first_voice",
            target_value=1,
            action_type="create_post",
        ),
    ),
)

BUILTIN_TEMPLATES: dict[str, QuestTemplate] = {DEFAULT_TEMPLATE.id: DEFAULT_TEMPLATE}

_template_cache = SimpleCache(max_size=200, default_ttl=settings.template_cache_ttl)


def get_template_cache() -> SimpleCache:
    """Get the process-wide template cache."""
    return _template_cache


class TemplateStore:
    """Pure reads over the quest template catalog."""

    def __init__(
        self,
        repository: TemplateRepository,
        cache: Optional[SimpleCache] = None,
        default_template_id: Optional[str] = None,
        builtin_templates: Optional[dict[str, QuestTemplate]] = None,
    ):
        self.repository = repository
        self.cache = cache if cache is not None else SimpleCache(default_ttl=settings.template_cache_ttl)
        self.default_template_id = default_template_id or settings.default_template_id
        self.builtin_templates = BUILTIN_TEMPLATES if builtin_templates is None else builtin_templates

    async def _lookup(self, template_id: str) -> Optional[QuestTemplate]:
        key = f"template:{template_id}"
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        template = await self.repository.get(template_id)
        if template is None:
            template = self.builtin_templates.get(template_id)
        if template is not None:
            self.cache.set(key, template)
        return template

    async def get_active_template(self, template_id: Optional[str] = None) -> QuestTemplate:
        """
        Resolve the template a new progress record should use.

        Args:
            template_id: Explicit template id, or None for the default template

        Raises:
            TemplateNotFound: If the template does not exist or is inactive
        """
        resolved_id = template_id or self.default_template_id
        template = await self._lookup(resolved_id)

        if template is None or not template.is_active:
            logger.warning(
                "Quest template unavailable",
                template_id=resolved_id,
                exists=template is not None,
            )
            raise TemplateNotFound(resolved_id)
        return template

    async def get_template(self, template_id: str) -> QuestTemplate:
        """
        Resolve a template by id whether or not it is still active.

        Deactivated templates keep serving users who started on them.

        Raises:
            TemplateNotFound: If no such template exists
        """
        template = await self._lookup(template_id)
        if template is None:
            raise TemplateNotFound(template_id)
        return template

    async def list_active_templates(self) -> list[QuestTemplate]:
        """Active templates, newest first."""
        cached = self.cache.get("templates:active")
        if cached is not None:
            return list(cached)

        templates = list(await self.repository.list_active())
        stored_ids = {template.id for template in templates}
        templates.extend(
            builtin
            for builtin in self.builtin_templates.values()
            if builtin.is_active and builtin.id not in stored_ids
        )
        templates.sort(key=lambda t: t.created_at, reverse=True)

        self.cache.set("templates:active", tuple(templates))
        return templates

    def invalidate(self, template_id: Optional[str] = None) -> None:
        """Drop cached templates after an authoring change."""
        if template_id is None:
            self.cache.clear()
            return
        self.cache.delete(f"template:{template_id}")
        self.cache.delete("templates:active")
