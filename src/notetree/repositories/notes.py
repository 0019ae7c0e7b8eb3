"""
Note Repository

Data access layer for Note entities: owner-scoped point lookups, tree scans,
the recursive descendants primitive, trash bookkeeping and the two search
passes (keyword LIKE and pgvector similarity).
"""

from collections.abc import Iterable, Sequence
from datetime import datetime

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from notetree.models import Note, NoteVersion
from notetree.repositories.base import BaseRepository


class NoteRepository(BaseRepository[Note]):
    """
    Repository for Note entities.

    Inherits standard CRUD from BaseRepository and adds:
        - get_owned / get_active: ownership-checked point lookups
        - descendant_ids: transitive closure under parent_id (recursive CTE)
        - next_sort_order: append position among siblings
        - mark_deleted / clear_deleted / purge: trash lifecycle writes
        - search_keyword / search_similar / list_embedded: hybrid search passes
        - update_embedding: targeted embedding writes for background tasks
    """

    def __init__(self) -> None:
        super().__init__(Note)

    # ------------------------------------------------------------------
    # Point lookups
    # ------------------------------------------------------------------

    async def get_owned(
        self,
        session: AsyncSession,
        owner_id: int,
        note_id: int,
    ) -> Note | None:
        """Get a note of any lifecycle state if it belongs to owner_id."""
        result = await session.execute(
            select(Note).where(Note.id == note_id, Note.owner_id == owner_id)
        )
        return result.scalars().first()

    async def get_active(
        self,
        session: AsyncSession,
        owner_id: int,
        note_id: int,
    ) -> Note | None:
        """Get a note only if it belongs to owner_id and is not trashed."""
        result = await session.execute(
            select(Note).where(
                Note.id == note_id,
                Note.owner_id == owner_id,
                Note.deleted_at.is_(None),
            )
        )
        return result.scalars().first()

    # ------------------------------------------------------------------
    # Tree scans
    # ------------------------------------------------------------------

    async def list_active(self, session: AsyncSession, owner_id: int) -> Sequence[Note]:
        """All non-deleted notes of an owner in one scan (tree assembly input)."""
        result = await session.execute(
            select(Note)
            .where(Note.owner_id == owner_id, Note.deleted_at.is_(None))
            .order_by(Note.sort_order, Note.id)
        )
        return result.scalars().all()

    async def descendant_ids(
        self,
        session: AsyncSession,
        owner_id: int,
        note_id: int,
    ) -> list[int]:
        """
        Transitive children of note_id, regardless of lifecycle state.

        UNION (not UNION ALL) deduplicates rows between iterations, so the
        walk terminates even if concurrent moves ever left a cycle behind.
        """
        descendants = (
            select(Note.id)
            .where(Note.owner_id == owner_id, Note.parent_id == note_id)
            .cte("descendants", recursive=True)
        )
        child = aliased(Note)
        descendants = descendants.union(
            select(child.id).where(
                child.owner_id == owner_id,
                child.parent_id == descendants.c.id,
            )
        )
        result = await session.execute(select(descendants.c.id))
        return [row_id for row_id in result.scalars().all() if row_id != note_id]

    async def next_sort_order(
        self,
        session: AsyncSession,
        owner_id: int,
        parent_id: int | None,
    ) -> int:
        """1 + max sort_order among the siblings under parent_id (0 if none)."""
        sibling_filter = (
            Note.parent_id.is_(None) if parent_id is None else Note.parent_id == parent_id
        )
        result = await session.execute(
            select(func.max(Note.sort_order)).where(
                Note.owner_id == owner_id, sibling_filter
            )
        )
        max_order = result.scalar()
        return 0 if max_order is None else max_order + 1

    async def list_favorites(self, session: AsyncSession, owner_id: int) -> Sequence[Note]:
        result = await session.execute(
            select(Note)
            .where(
                Note.owner_id == owner_id,
                Note.deleted_at.is_(None),
                Note.is_favorite.is_(True),
            )
            .order_by(Note.title, Note.id)
        )
        return result.scalars().all()

    async def list_recent(
        self,
        session: AsyncSession,
        owner_id: int,
        limit: int,
    ) -> Sequence[Note]:
        result = await session.execute(
            select(Note)
            .where(Note.owner_id == owner_id, Note.deleted_at.is_(None))
            .order_by(Note.updated_at.desc(), Note.id.desc())
            .limit(limit)
        )
        return result.scalars().all()

    # ------------------------------------------------------------------
    # Trash lifecycle
    # ------------------------------------------------------------------

    async def list_trash(self, session: AsyncSession, owner_id: int) -> Sequence[Note]:
        """Every trashed note of an owner, newest deletion first."""
        result = await session.execute(
            select(Note)
            .where(Note.owner_id == owner_id, Note.deleted_at.isnot(None))
            .order_by(Note.deleted_at.desc(), Note.id.desc())
        )
        return result.scalars().all()

    async def trashed_ids(self, session: AsyncSession, owner_id: int) -> list[int]:
        result = await session.execute(
            select(Note.id).where(Note.owner_id == owner_id, Note.deleted_at.isnot(None))
        )
        return list(result.scalars().all())

    async def expired_trash_ids(
        self,
        session: AsyncSession,
        owner_id: int,
        cutoff: datetime,
    ) -> list[int]:
        """Trashed notes whose deleted_at is strictly older than cutoff."""
        result = await session.execute(
            select(Note.id).where(
                Note.owner_id == owner_id,
                Note.deleted_at.isnot(None),
                Note.deleted_at < cutoff,
            )
        )
        return list(result.scalars().all())

    async def owners_with_trash(self, session: AsyncSession) -> list[int]:
        result = await session.execute(
            select(Note.owner_id).where(Note.deleted_at.isnot(None)).distinct()
        )
        return list(result.scalars().all())

    async def mark_deleted(
        self,
        session: AsyncSession,
        note_ids: Iterable[int],
        deleted_at: datetime,
    ) -> int:
        """
        Set deleted_at on every listed note that is still active.

        Notes already in trash keep their original deletion time so their
        retention countdown is not reset by a later cascade.
        """
        stmt = (
            update(Note)
            .where(Note.id.in_(list(note_ids)), Note.deleted_at.is_(None))
            .values(deleted_at=deleted_at)
        )
        result = await session.execute(stmt)
        await session.commit()
        return result.rowcount

    async def clear_deleted(self, session: AsyncSession, note_ids: Iterable[int]) -> int:
        stmt = (
            update(Note)
            .where(Note.id.in_(list(note_ids)), Note.deleted_at.isnot(None))
            .values(deleted_at=None)
        )
        result = await session.execute(stmt)
        await session.commit()
        return result.rowcount

    async def purge(self, session: AsyncSession, note_ids: Iterable[int]) -> int:
        """
        Hard delete notes and their versions in one transaction.

        Callers pass the full subtree; the explicit sweep does not rely on
        the store enforcing ON DELETE CASCADE.
        """
        ids = list(note_ids)
        if not ids:
            return 0
        await session.execute(delete(NoteVersion).where(NoteVersion.note_id.in_(ids)))
        result = await session.execute(delete(Note).where(Note.id.in_(ids)))
        await session.commit()
        return result.rowcount

    # ------------------------------------------------------------------
    # Search & indexing
    # ------------------------------------------------------------------

    async def search_keyword(
        self,
        session: AsyncSession,
        owner_id: int,
        query: str,
        limit: int = 20,
    ) -> Sequence[Note]:
        """
        Case-insensitive substring match on title or content.

        autoescape=True escapes LIKE wildcards typed by the user.
        """
        stmt = (
            select(Note)
            .where(
                Note.owner_id == owner_id,
                Note.deleted_at.is_(None),
                or_(
                    Note.title.icontains(query, autoescape=True),
                    Note.content.icontains(query, autoescape=True),
                ),
            )
            .order_by(Note.updated_at.desc(), Note.id.desc())
            .limit(limit)
        )
        result = await session.execute(stmt)
        return result.scalars().all()

    async def list_embedded(self, session: AsyncSession, owner_id: int) -> Sequence[Note]:
        """Active notes that already carry an embedding (in-process scan input)."""
        stmt = select(Note).where(
            Note.owner_id == owner_id,
            Note.deleted_at.is_(None),
            Note.embedding.isnot(None),  # Exclude notes pending embedding
        )
        result = await session.execute(stmt)
        return result.scalars().all()

    async def search_similar(
        self,
        session: AsyncSession,
        owner_id: int,
        embedding: list[float],
        threshold: float,
        limit: int = 15,
    ) -> list[tuple[Note, float]]:
        """
        Rank an owner's active notes by cosine similarity to a query vector.

        Uses pgvector's ``cosine_distance`` operator, so the HNSW index on
        ``notes.embedding`` serves the ordering. The distance is converted to
        a similarity score: ``score = 1 - distance``.

        Args:
            session: Active async database session (PostgreSQL only).
            owner_id: Owner whose notes are searched.
            embedding: Query vector.
            threshold: Only notes scoring strictly above it are returned.
            limit: Maximum number of results to return.

        Returns:
            List of (Note, similarity_score) tuples, highest score first.
        """
        distance_expr = Note.embedding.cosine_distance(embedding)
        distance = distance_expr.label("distance")

        stmt = (
            select(Note, distance)
            .where(
                Note.owner_id == owner_id,
                Note.deleted_at.is_(None),
                Note.embedding.isnot(None),
                # Vectors from a previous provider/model can have another size
                func.vector_dims(Note.embedding) == len(embedding),
                distance_expr < 1.0 - threshold,
            )
            .order_by(distance, Note.id)
            .limit(limit)
        )
        result = await session.execute(stmt)
        return [(row[0], 1.0 - float(row[1])) for row in result.all()]

    async def list_unindexed_ids(self, session: AsyncSession, owner_id: int) -> list[int]:
        result = await session.execute(
            select(Note.id).where(
                Note.owner_id == owner_id,
                Note.deleted_at.is_(None),
                Note.embedding.is_(None),
            )
        )
        return list(result.scalars().all())

    async def list_active_ids(self, session: AsyncSession, owner_id: int) -> list[int]:
        result = await session.execute(
            select(Note.id).where(Note.owner_id == owner_id, Note.deleted_at.is_(None))
        )
        return list(result.scalars().all())

    async def count_index_status(
        self,
        session: AsyncSession,
        owner_id: int,
    ) -> tuple[int, int]:
        """Return (active notes, active notes with an embedding)."""
        result = await session.execute(
            select(func.count(Note.id), func.count(Note.embedding)).where(
                Note.owner_id == owner_id, Note.deleted_at.is_(None)
            )
        )
        total, indexed = result.one()
        return int(total), int(indexed)

    async def update_embedding(
        self,
        session: AsyncSession,
        note_id: int,
        embedding: list[float],
    ) -> None:
        """
        Update only the embedding field of a note.

        Used by background tasks to avoid full entity reload.
        Uses bulk UPDATE (no SELECT required) and leaves updated_at alone.
        """
        stmt = update(Note).where(Note.id == note_id).values(embedding=embedding)
        await session.execute(stmt)
        await session.commit()


# Module-level instance for convenience imports
note_repository = NoteRepository()
