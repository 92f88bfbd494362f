"""UserBadge model for append-only badge unlocks."""
from datetime import datetime

from sqlalchemy import DateTime, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from questline.db.base import Base


class UserBadge(Base):
    """One unlocked badge for one user."""

    __tablename__ = "user_badges"

    user_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    badge_id: Mapped[str] = mapped_column(String(64), nullable=False)
    unlocked_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "badge_id", name="uq_user_badge"),
    )

    def __repr__(self) -> str:
        return f"<UserBadge user_id={self.user_id} badge_id={self.badge_id}>"
