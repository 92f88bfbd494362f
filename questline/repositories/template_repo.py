"""
SQLAlchemy repository for quest templates.
"""
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from questline.core.retry import retry_with_backoff
from questline.core.utils import ensure_utc
from questline.db.transaction import atomic
from questline.models.quest_template import QuestTemplateRecord
from questline.repositories.base import TemplateRepository
from questline.schemas.quest import QuestTemplate, ensure_compatible_revision


def template_from_record(record: QuestTemplateRecord) -> QuestTemplate:
    """Build a validated QuestTemplate from its database row."""
    return QuestTemplate(
        id=record.template_id,
        name=record.name,
        description=record.description or "",
        is_active=record.is_active,
        steps=record.steps,
        category=record.category,
        estimated_time_minutes=record.estimated_time_minutes,
        created_at=ensure_utc(record.created_at),
        updated_at=ensure_utc(record.updated_at),
    )


class SqlTemplateRepository(TemplateRepository):
    """
    Template storage backed by the quest_templates table.

    Steps are serialized as a JSON document on the template row.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _fetch(self, template_id: str) -> Optional[QuestTemplateRecord]:
        result = await self.db.execute(
            select(QuestTemplateRecord)
            .where(QuestTemplateRecord.template_id == template_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get(self, template_id: str) -> Optional[QuestTemplate]:
        record = await retry_with_backoff(
            lambda: self._fetch(template_id),
            operation_name="templates.get",
            on_retry=self.db.rollback,
        )
        return template_from_record(record) if record else None

    async def list_active(self) -> list[QuestTemplate]:
        async def _query():
            result = await self.db.execute(
                select(QuestTemplateRecord)
                .where(QuestTemplateRecord.is_active.is_(True))
                .order_by(QuestTemplateRecord.created_at.desc(), QuestTemplateRecord.id.desc())
            )
            return result.scalars().all()

        records = await retry_with_backoff(
            _query,
            operation_name="templates.list_active",
            on_retry=self.db.rollback,
        )
        return [template_from_record(record) for record in records]

    async def save(self, template: QuestTemplate) -> QuestTemplate:
        steps = [step.model_dump(mode="json") for step in template.ordered_steps()]

        async def _write():
            async with atomic(self.db):
                record = await self._fetch(template.id)
                if record is None:
                    record = QuestTemplateRecord(
                        template_id=template.id,
                        created_at=template.created_at,
                    )
                    self.db.add(record)
                else:
                    ensure_compatible_revision(template_from_record(record), template)

                record.name = template.name
                record.description = template.description
                record.is_active = template.is_active
                record.category = template.category.value
                record.estimated_time_minutes = template.estimated_time_minutes
                record.steps = steps
                record.updated_at = template.updated_at
                await self.db.flush()
            return template

        return await retry_with_backoff(
            _write,
            operation_name="templates.save",
            on_retry=self.db.rollback,
        )
