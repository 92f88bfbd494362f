"""
Quest template model.

Steps are stored as a JSON list on the template row; a template is read and
written as one document.
"""
from typing import Any, Optional

from sqlalchemy import Boolean, Integer, JSON, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from questline.db.base import Base


class QuestTemplateRecord(Base):
    """Persisted quest template definition."""

    __tablename__ = "quest_templates"

    # Stable public identifier ("default", "creator-track", ...)
    template_id: Mapped[str] = mapped_column(
        String(64),
        unique=True,
        nullable=False,
        index=True,
    )

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
        index=True,
    )

    category: Mapped[str] = mapped_column(
        String(30),
        default="standard",
        nullable=False,
    )  # standard, advanced, community_focused, content_creator

    estimated_time_minutes: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    # Ordered step definitions, see questline.schemas.quest.StepDefinition
    steps: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False)

    def __repr__(self) -> str:
        status = "active" if self.is_active else "inactive"
        return f"<QuestTemplateRecord template_id={self.template_id} {status}>"
