"""
NoteVersion Repository

Data access for version snapshots: latest-version lookup for the
dedup/throttle check, summaries for history listings, and retention pruning.
"""

from collections.abc import Sequence

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from notetree.models import NoteVersion
from notetree.repositories.base import BaseRepository


class NoteVersionRepository(BaseRepository[NoteVersion]):
    """Repository for NoteVersion rows; ordering is always by version_number."""

    def __init__(self) -> None:
        super().__init__(NoteVersion)

    async def get_latest(
        self,
        session: AsyncSession,
        note_id: int,
    ) -> NoteVersion | None:
        result = await session.execute(
            select(NoteVersion)
            .where(NoteVersion.note_id == note_id)
            .order_by(NoteVersion.version_number.desc())
            .limit(1)
        )
        return result.scalars().first()

    async def get_for_note(
        self,
        session: AsyncSession,
        note_id: int,
        version_id: int,
    ) -> NoteVersion | None:
        """Get a version only if it belongs to note_id."""
        result = await session.execute(
            select(NoteVersion).where(
                NoteVersion.id == version_id,
                NoteVersion.note_id == note_id,
            )
        )
        return result.scalars().first()

    async def list_for_note(
        self,
        session: AsyncSession,
        note_id: int,
    ) -> Sequence[NoteVersion]:
        """All versions of a note, newest first."""
        result = await session.execute(
            select(NoteVersion)
            .where(NoteVersion.note_id == note_id)
            .order_by(NoteVersion.version_number.desc())
        )
        return result.scalars().all()

    async def prune(self, session: AsyncSession, note_id: int, keep: int) -> int:
        """
        Delete every version of note_id beyond the ``keep`` newest.

        Returns:
            Number of rows removed.
        """
        retained = (
            select(NoteVersion.id)
            .where(NoteVersion.note_id == note_id)
            .order_by(NoteVersion.version_number.desc())
            .limit(keep)
        )
        stmt = delete(NoteVersion).where(
            NoteVersion.note_id == note_id,
            NoteVersion.id.not_in(retained),
        )
        result = await session.execute(stmt, execution_options={"synchronize_session": False})
        await session.commit()
        return result.rowcount


version_repository = NoteVersionRepository()
