"""
Trash Service

Soft-delete lifecycle of notes:

    Active --soft_delete--> Deleted --purge / empty / age sweep--> Purged
       ^                       |
       +-------restore---------+

Deleting or restoring a note applies to its whole subtree. Purging removes
the subtree and every version row explicitly, so the outcome does not depend
on the database enforcing ON DELETE CASCADE.

The age sweep is eager: it runs when the owner changes auto_delete_days and
whenever an external trigger calls sweep_expired / sweep_all. Nothing here
schedules timers.
"""

import logging
from collections.abc import Iterable
from datetime import timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from notetree.core.clock import Clock, ensure_utc, utcnow
from notetree.core.exceptions import InvalidOperationError, NotFoundError
from notetree.models import AUTO_DELETE_DAYS_MAX, AUTO_DELETE_DAYS_MIN, Note
from notetree.repositories import note_repository, settings_repository
from notetree.schemas.trash import TrashItem

logger = logging.getLogger(__name__)

AUTO_DELETE_DAYS_DEFAULT = 30


class TrashService:
    def __init__(
        self,
        clock: Clock = utcnow,
        default_auto_delete_days: int = AUTO_DELETE_DAYS_DEFAULT,
    ) -> None:
        self._clock = clock
        self._default_days = default_auto_delete_days

    async def _get_owned(self, session: AsyncSession, owner_id: int, note_id: int) -> Note:
        note = await note_repository.get_owned(session, owner_id, note_id)
        if note is None:
            raise NotFoundError.note(note_id)
        return note

    async def _get_trashed(self, session: AsyncSession, owner_id: int, note_id: int) -> Note:
        note = await self._get_owned(session, owner_id, note_id)
        if not note.is_deleted:
            raise InvalidOperationError("Note is not in trash", {"note_id": note_id})
        return note

    async def _with_subtrees(
        self, session: AsyncSession, owner_id: int, note_ids: Iterable[int]
    ) -> list[int]:
        collected: dict[int, None] = {}
        for note_id in note_ids:
            if note_id in collected:
                continue
            collected[note_id] = None
            for descendant_id in await note_repository.descendant_ids(
                session, owner_id, note_id
            ):
                collected.setdefault(descendant_id, None)
        return list(collected)

    async def soft_delete(self, session: AsyncSession, owner_id: int, note_id: int) -> int:
        """
        Move a note and its whole subtree to trash.

        Descendants that were already in trash keep their own deleted_at.

        Returns:
            Number of notes moved to trash.

        Raises:
            NotFoundError: note is not owned by owner_id.
            InvalidOperationError: note is already in trash.
        """
        note = await self._get_owned(session, owner_id, note_id)
        if note.is_deleted:
            raise InvalidOperationError("Note is already in trash", {"note_id": note_id})

        subtree = await self._with_subtrees(session, owner_id, [note_id])
        count = await note_repository.mark_deleted(session, subtree, self._clock())
        logger.info("Trashed note %s (%d notes incl. descendants)", note_id, count)
        return count

    async def restore(
        self, session: AsyncSession, owner_id: int, note_ids: Iterable[int]
    ) -> int:
        """
        Bring notes and their subtrees back from trash.

        Every id is validated before anything is written.

        Raises:
            NotFoundError: an id is not owned by owner_id.
            InvalidOperationError: an id is not in trash.
        """
        ids = list(dict.fromkeys(note_ids))
        for note_id in ids:
            await self._get_trashed(session, owner_id, note_id)

        subtree = await self._with_subtrees(session, owner_id, ids)
        count = await note_repository.clear_deleted(session, subtree)
        logger.info("Restored %d notes for owner %s", count, owner_id)
        return count

    async def list_trash(self, session: AsyncSession, owner_id: int) -> list[TrashItem]:
        """Trashed notes, newest deletion first, each with its purge deadline."""
        retention = timedelta(days=await self.get_auto_delete_days(session, owner_id))
        items = []
        for note in await note_repository.list_trash(session, owner_id):
            deleted_at = ensure_utc(note.deleted_at)
            items.append(
                TrashItem(
                    id=note.id,
                    parent_id=note.parent_id,
                    title=note.title,
                    title_emoji=note.title_emoji,
                    deleted_at=deleted_at,
                    purge_at=deleted_at + retention,
                )
            )
        return items

    async def purge(
        self, session: AsyncSession, owner_id: int, note_ids: Iterable[int]
    ) -> int:
        """
        Permanently delete trashed notes with their subtrees and versions.

        Every id is validated before anything is deleted.

        Returns:
            Number of notes removed.
        """
        ids = list(dict.fromkeys(note_ids))
        for note_id in ids:
            await self._get_trashed(session, owner_id, note_id)

        subtree = await self._with_subtrees(session, owner_id, ids)
        count = await note_repository.purge(session, subtree)
        logger.info("Permanently deleted %d notes for owner %s", count, owner_id)
        return count

    async def empty_trash(self, session: AsyncSession, owner_id: int) -> int:
        trashed = await note_repository.trashed_ids(session, owner_id)
        if not trashed:
            return 0
        subtree = await self._with_subtrees(session, owner_id, trashed)
        count = await note_repository.purge(session, subtree)
        logger.info("Emptied trash for owner %s (%d notes)", owner_id, count)
        return count

    async def get_auto_delete_days(self, session: AsyncSession, owner_id: int) -> int:
        owner_settings = await settings_repository.get_for_owner(session, owner_id)
        if owner_settings is None:
            return self._default_days
        return owner_settings.auto_delete_days

    async def set_auto_delete_days(
        self, session: AsyncSession, owner_id: int, days: int
    ) -> int:
        """
        Store a new retention threshold and immediately sweep against it.

        Returns:
            Number of notes purged by the sweep.

        Raises:
            InvalidOperationError: days is outside [1, 365].
        """
        if not AUTO_DELETE_DAYS_MIN <= days <= AUTO_DELETE_DAYS_MAX:
            raise InvalidOperationError(
                f"auto_delete_days must be between {AUTO_DELETE_DAYS_MIN} "
                f"and {AUTO_DELETE_DAYS_MAX}",
                {"auto_delete_days": days},
            )
        await settings_repository.upsert_auto_delete_days(
            session, owner_id, days, self._clock()
        )
        return await self.sweep_expired(session, owner_id)

    async def sweep_expired(self, session: AsyncSession, owner_id: int) -> int:
        """Purge trashed notes whose deleted_at is older than the owner's threshold."""
        days = await self.get_auto_delete_days(session, owner_id)
        cutoff = self._clock() - timedelta(days=days)
        expired = await note_repository.expired_trash_ids(session, owner_id, cutoff)
        if not expired:
            return 0

        subtree = await self._with_subtrees(session, owner_id, expired)
        count = await note_repository.purge(session, subtree)
        logger.info(
            "Auto-deleted %d notes for owner %s (older than %d days)", count, owner_id, days
        )
        return count

    async def sweep_all(self, session: AsyncSession) -> int:
        """Run sweep_expired for every owner with something in trash."""
        total = 0
        for owner_id in await note_repository.owners_with_trash(session):
            total += await self.sweep_expired(session, owner_id)
        return total
