"""
Onboarding progress model.

One row per user. Every transition rewrites the row with a
compare-and-swap on `version`, so concurrent transitions for the same user
never overwrite each other.
"""
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import Boolean, DateTime, Index, Integer, JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from questline.db.base import Base


class OnboardingProgressRecord(Base):
    """Persisted per-user onboarding progress."""

    __tablename__ = "onboarding_progress"

    # Supplied by the external identity provider
    user_id: Mapped[str] = mapped_column(
        String(128),
        unique=True,
        nullable=False,
        index=True,
    )
    template_id: Mapped[str] = mapped_column(String(64), nullable=False)

    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    completed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    # {step_id: {"status": ..., "current_value": ..., "completed_at": ...}}
    step_states: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)

    current_step_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    total_points_earned: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    completion_percentage: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # Badge ids in unlock order
    badges_earned: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)

    is_completed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)

    __table_args__ = (
        Index("ix_onboarding_progress_template_completed", "template_id", "is_completed"),
    )

    def __repr__(self) -> str:
        return (
            f"<OnboardingProgressRecord user_id={self.user_id} "
            f"percent={self.completion_percentage} version={self.version}>"
        )
