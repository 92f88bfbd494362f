"""
Seed the built-in quest templates.

Creates the tables if needed and upserts every built-in template. Stored
templates are only revised when the revision keeps in-flight progress valid
(steps appended, never removed or reordered).

Usage:
    python -m questline.scripts.seed_templates
"""
import asyncio

import structlog
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from questline.core.exceptions import TemplateValidationError
from questline.core.logging import setup_logging
from questline.db.base import Base
from questline.db.session import async_session_maker, engine
from questline.models import QuestTemplateRecord  # noqa: F401  (registers tables)
from questline.repositories.template_repo import SqlTemplateRepository
from questline.schemas.quest import QuestTemplate
from questline.services.templates import BUILTIN_TEMPLATES

logger = structlog.get_logger()


async def create_tables(bind: AsyncEngine) -> None:
    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def seed_templates(
    db: AsyncSession,
    templates: list[QuestTemplate] | None = None,
) -> tuple[int, int, int]:
    """
    Upsert quest templates.

    Returns:
        Tuple of (added, revised, skipped)
    """
    repo = SqlTemplateRepository(db)
    added = revised = skipped = 0

    for template in templates if templates is not None else list(BUILTIN_TEMPLATES.values()):
        existing = await repo.get(template.id)
        try:
            await repo.save(template)
        except TemplateValidationError as e:
            logger.warning(
                "Template revision rejected",
                template_id=template.id,
                error=e.message,
            )
            skipped += 1
            continue

        if existing is None:
            added += 1
            logger.info("Created template", template_id=template.id, steps=len(template.steps))
        else:
            revised += 1
            logger.info("Revised template", template_id=template.id, steps=len(template.steps))

    return added, revised, skipped


async def main():
    """Main seed function."""
    setup_logging()
    logger.info("Starting quest template seed")

    await create_tables(engine)

    async with async_session_maker() as db:
        added, revised, skipped = await seed_templates(db)

    logger.info(
        "Template seed completed",
        added=added,
        revised=revised,
        skipped=skipped,
        total_templates=len(BUILTIN_TEMPLATES),
    )
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
