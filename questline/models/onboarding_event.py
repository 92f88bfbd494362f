"""
Analytics models: lifecycle events and periodic statistics snapshots.
"""
from typing import Any

from sqlalchemy import Index, JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from questline.db.base import Base


class OnboardingEventRecord(Base):
    """A lifecycle event (onboarding_started, step_completed, ...)."""

    __tablename__ = "onboarding_events"

    user_id: Mapped[str] = mapped_column(String(128), nullable=False)
    event_type: Mapped[str] = mapped_column(String(40), nullable=False, index=True)
    payload: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    __table_args__ = (
        Index("ix_onboarding_events_user_type", "user_id", "event_type"),
    )

    def __repr__(self) -> str:
        return f"<OnboardingEventRecord user_id={self.user_id} type={self.event_type}>"


class OnboardingStatsSnapshot(Base):
    """Aggregate statistics computed by the scheduled stats task."""

    __tablename__ = "onboarding_stats_snapshots"

    # Serialized questline.schemas.progress.OnboardingStats
    stats: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)

    def __repr__(self) -> str:
        return f"<OnboardingStatsSnapshot id={self.id}>"
