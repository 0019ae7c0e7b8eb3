"""
OwnerSettings Model

Per-owner engine preferences. A missing row means "all defaults".
"""

from datetime import datetime

from sqlalchemy import DateTime, Integer
from sqlalchemy.orm import Mapped, mapped_column

from notetree.core.clock import utcnow
from notetree.models.base import Base

AUTO_DELETE_DAYS_MIN = 1
AUTO_DELETE_DAYS_MAX = 365


class OwnerSettings(Base):
    """Trash retention threshold, keyed by owner."""

    __tablename__ = "owner_settings"

    owner_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    auto_delete_days: Mapped[int] = mapped_column(Integer, default=30)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    def __repr__(self) -> str:
        return f"<OwnerSettings(owner={self.owner_id}, days={self.auto_delete_days})>"
