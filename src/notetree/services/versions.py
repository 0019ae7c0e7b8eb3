"""
Version Service

Content history for notes.

Snapshot rules (checked in order):
    1. No previous version          -> snapshot.
    2. Same content hash as latest  -> skip (dedup).
    3. Latest is younger than the minimum interval -> skip (throttle).
    4. Otherwise snapshot, then prune to the newest ``retention`` versions.

Two saves racing for the same next version number both pass the checks;
the loser skips its snapshot and still applies its edit.

The live note is never stored as a version row: clients present its current
content as an implicit "current" entry on top of the history.
"""

import logging
from collections.abc import Sequence
from datetime import timedelta

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from notetree.core.clock import Clock, ensure_utc, utcnow
from notetree.core.exceptions import NotFoundError
from notetree.models import Note, NoteVersion
from notetree.repositories import note_repository, version_repository
from notetree.services.embeddings import EmbeddingIndexer
from notetree.services.text import content_hash

logger = logging.getLogger(__name__)

MIN_INTERVAL_SECONDS = 30
RETENTION = 50


class VersionService:
    def __init__(
        self,
        indexer: EmbeddingIndexer | None = None,
        clock: Clock = utcnow,
        min_interval_seconds: int = MIN_INTERVAL_SECONDS,
        retention: int = RETENTION,
    ) -> None:
        self._indexer = indexer
        self._clock = clock
        self._min_interval = timedelta(seconds=min_interval_seconds)
        self._retention = retention

    async def maybe_snapshot(
        self,
        session: AsyncSession,
        note_id: int,
        owner_id: int,
        title: str,
        content: str,
    ) -> bool:
        """
        Record ``title``/``content`` as the next version of a note if allowed.

        Callers pass the note's state *before* the change they are about to
        apply.

        Returns:
            True if a version row was inserted.
        """
        digest = content_hash(content)
        latest = await version_repository.get_latest(session, note_id)
        now = self._clock()

        if latest is not None:
            if latest.content_hash == digest:
                return False
            if now - ensure_utc(latest.created_at) < self._min_interval:
                return False

        version_number = 1 if latest is None else latest.version_number + 1
        try:
            await version_repository.create(
                session,
                {
                    "note_id": note_id,
                    "owner_id": owner_id,
                    "title": title,
                    "content": content,
                    "content_hash": digest,
                    "version_number": version_number,
                    "created_at": now,
                },
            )
        except IntegrityError:
            # A concurrent save took this version number first
            await session.rollback()
            logger.debug(
                "Skipped snapshot v%d of note %s: number already taken",
                version_number,
                note_id,
            )
            return False
        pruned = await version_repository.prune(session, note_id, self._retention)
        logger.debug(
            "Snapshot v%d of note %s (pruned %d)", version_number, note_id, pruned
        )
        return True

    async def _get_active_note(
        self, session: AsyncSession, owner_id: int, note_id: int
    ) -> Note:
        note = await note_repository.get_active(session, owner_id, note_id)
        if note is None:
            raise NotFoundError.note(note_id)
        return note

    async def list_versions(
        self, session: AsyncSession, owner_id: int, note_id: int
    ) -> Sequence[NoteVersion]:
        """Version history of a note, newest first."""
        await self._get_active_note(session, owner_id, note_id)
        return await version_repository.list_for_note(session, note_id)

    async def get_version(
        self,
        session: AsyncSession,
        owner_id: int,
        note_id: int,
        version_id: int,
    ) -> NoteVersion:
        await self._get_active_note(session, owner_id, note_id)
        version = await version_repository.get_for_note(session, note_id, version_id)
        if version is None:
            raise NotFoundError.version(note_id, version_id)
        return version

    async def restore_version(
        self,
        session: AsyncSession,
        owner_id: int,
        note_id: int,
        version_id: int,
    ) -> Note:
        """
        Overwrite a note's title and content with a stored version.

        The current state is snapshotted first under the normal rules, so a
        restore inside the throttle window does not record the outgoing text.
        """
        note = await self._get_active_note(session, owner_id, note_id)
        version = await version_repository.get_for_note(session, note_id, version_id)
        if version is None:
            raise NotFoundError.version(note_id, version_id)

        # A lost snapshot race rolls back, which expires loaded rows
        restored = {"title": version.title, "content": version.content}
        version_number = version.version_number

        await self.maybe_snapshot(session, note_id, owner_id, note.title, note.content)
        restored["updated_at"] = self._clock()
        note = await note_repository.update(session, note, restored)
        logger.info("Restored note %s to version %d", note_id, version_number)

        if self._indexer is not None:
            self._indexer.schedule(note.id)
        return note
