"""
NoteVersion Model

Immutable point-in-time snapshot of a note's title and content.
"""

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from notetree.core.clock import utcnow
from notetree.models.base import Base


class NoteVersion(Base):
    """
    Snapshot of a note taken just before its content changed.

    Attributes:
        id: Primary key.
        note_id: Owning note (CASCADE delete).
        owner_id: Denormalized owner for scoped lookups.
        title: Title at snapshot time.
        content: Content at snapshot time.
        content_hash: SHA-256 hex digest of content, used for dedup.
        version_number: 1-based, monotonic per note.
        created_at: Snapshot time; drives the minimum-interval throttle.
    """

    __tablename__ = "note_versions"
    __table_args__ = (
        # Primary query pattern: WHERE note_id = ? ORDER BY version_number DESC
        Index(
            "ix_note_versions_note_id_version",
            "note_id",
            "version_number",
            unique=True,
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    note_id: Mapped[int] = mapped_column(
        ForeignKey("notes.id", ondelete="CASCADE"), index=True
    )
    owner_id: Mapped[int] = mapped_column(Integer, index=True)
    title: Mapped[str] = mapped_column(String(500))
    content: Mapped[str] = mapped_column(Text)
    content_hash: Mapped[str] = mapped_column(String(64))
    version_number: Mapped[int] = mapped_column(Integer)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<NoteVersion(note={self.note_id}, v={self.version_number})>"
