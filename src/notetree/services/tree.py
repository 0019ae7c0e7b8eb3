"""
Tree Service

Owner-scoped hierarchy operations: create, edit, move, reorder, duplicate
and tree assembly.

Tree invariants enforced here:
    - A parent is always an active note of the same owner.
    - A note is never moved under itself or one of its descendants.
    - New, moved and duplicated notes are appended after their siblings.

The cycle check reads the descendant closure, then writes. Two concurrent
moves can interleave between those steps (last write wins); the recursive
descendant query still terminates if that ever leaves a cycle behind, and
build_tree reports and surfaces the stranded notes.
"""

import logging
from collections.abc import Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from notetree.core.clock import Clock, utcnow
from notetree.core.exceptions import InvalidOperationError, NotFoundError
from notetree.models import Note
from notetree.repositories import note_repository
from notetree.schemas.notes import NoteTreeNode, NoteUpdate
from notetree.services.embeddings import EmbeddingIndexer
from notetree.services.versions import VersionService

logger = logging.getLogger(__name__)

COPY_SUFFIX = " (Copy)"
RECENT_LIMIT = 10


def build_tree(notes: Sequence[Note]) -> list[NoteTreeNode]:
    """
    Assemble a forest from a flat list of notes.

    Each sibling group is ordered by (sort_order, id). A note whose parent
    is not in ``notes`` (missing, foreign or trashed) becomes a root.

    Notes caught in a parent cycle are unreachable from any root. They are
    logged and listed after the regular roots: stranded notes are detached
    from their parents in (sort_order, id) order until all are reachable.
    """
    ordered = sorted(notes, key=lambda n: (n.sort_order, n.id))
    nodes = {note.id: NoteTreeNode.model_validate(note) for note in ordered}

    roots: list[NoteTreeNode] = []
    for note in ordered:
        node = nodes[note.id]
        parent = nodes.get(note.parent_id) if note.parent_id is not None else None
        if parent is None:
            roots.append(node)
        else:
            parent.children.append(node)

    attached = _subtree_ids(roots)
    stranded = [note for note in ordered if note.id not in attached]
    if stranded:
        logger.warning(
            "Parent cycle detected among notes %s", [note.id for note in stranded]
        )
    for note in stranded:
        if note.id in attached:
            continue
        node = nodes[note.id]
        siblings = nodes[note.parent_id].children
        siblings[:] = [child for child in siblings if child is not node]
        roots.append(node)
        attached |= _subtree_ids([node])
    return roots


def _subtree_ids(nodes: list[NoteTreeNode]) -> set[int]:
    seen: set[int] = set()
    stack = list(nodes)
    while stack:
        node = stack.pop()
        if node.id not in seen:
            seen.add(node.id)
            stack.extend(node.children)
    return seen


class TreeService:
    def __init__(
        self,
        versions: VersionService,
        indexer: EmbeddingIndexer | None = None,
        clock: Clock = utcnow,
    ) -> None:
        self._versions = versions
        self._indexer = indexer
        self._clock = clock

    def _schedule_embedding(self, note_id: int) -> None:
        if self._indexer is not None:
            self._indexer.schedule(note_id)

    async def get_note(self, session: AsyncSession, owner_id: int, note_id: int) -> Note:
        """Get an active note of owner_id or raise NotFoundError."""
        note = await note_repository.get_active(session, owner_id, note_id)
        if note is None:
            raise NotFoundError.note(note_id)
        return note

    async def create_note(
        self,
        session: AsyncSession,
        owner_id: int,
        *,
        parent_id: int | None = None,
        title: str = "Untitled",
        title_emoji: str | None = None,
        content: str = "",
    ) -> Note:
        """
        Create a note at the end of its sibling group.

        Raises:
            NotFoundError: parent_id is not an active note of owner_id.
        """
        if parent_id is not None:
            parent = await note_repository.get_active(session, owner_id, parent_id)
            if parent is None:
                raise NotFoundError("Parent note not found", {"parent_id": parent_id})

        return await self._append_note(
            session, owner_id, parent_id, title, title_emoji, content
        )

    async def _append_note(
        self,
        session: AsyncSession,
        owner_id: int,
        parent_id: int | None,
        title: str,
        title_emoji: str | None,
        content: str,
    ) -> Note:
        now = self._clock()
        note = await note_repository.create(
            session,
            {
                "owner_id": owner_id,
                "parent_id": parent_id,
                "title": title,
                "title_emoji": title_emoji,
                "content": content,
                "sort_order": await note_repository.next_sort_order(
                    session, owner_id, parent_id
                ),
                "is_expanded": True,
                "created_at": now,
                "updated_at": now,
            },
        )
        logger.info("Created note %s for owner %s (parent=%s)", note.id, owner_id, parent_id)

        self._schedule_embedding(note.id)
        return note

    async def update_note(
        self,
        session: AsyncSession,
        owner_id: int,
        note_id: int,
        data: NoteUpdate,
    ) -> Note:
        """
        Apply a partial update.

        When content changes, the outgoing state is offered to the version
        history first. Title or content changes schedule re-embedding.
        """
        note = await self.get_note(session, owner_id, note_id)
        changes = data.model_dump(exclude_unset=True)

        # title/content/editor_width are NOT NULL; only title_emoji clears
        for field in ("title", "content", "editor_width"):
            if changes.get(field, ...) is None:
                changes.pop(field)

        content_changed = "content" in changes and changes["content"] != note.content
        title_changed = "title" in changes and changes["title"] != note.title

        if content_changed:
            await self._versions.maybe_snapshot(
                session, note.id, owner_id, note.title, note.content
            )

        changes["updated_at"] = self._clock()
        note = await note_repository.update(session, note, changes)

        if content_changed or title_changed:
            self._schedule_embedding(note.id)
        return note

    async def move_note(
        self,
        session: AsyncSession,
        owner_id: int,
        note_id: int,
        new_parent_id: int | None,
    ) -> Note:
        """
        Re-parent a note (None moves it to the root level).

        Raises:
            NotFoundError: note or new parent is not an active note of owner_id.
            InvalidOperationError: new parent is the note itself or a descendant.
        """
        note = await self.get_note(session, owner_id, note_id)

        if new_parent_id is not None:
            if new_parent_id == note_id:
                raise InvalidOperationError(
                    "Cannot move a note into itself", {"note_id": note_id}
                )
            parent = await note_repository.get_active(session, owner_id, new_parent_id)
            if parent is None:
                raise NotFoundError("Parent note not found", {"parent_id": new_parent_id})

            descendants = await note_repository.descendant_ids(session, owner_id, note_id)
            if new_parent_id in descendants:
                raise InvalidOperationError(
                    "Cannot move a note into its own descendant",
                    {"note_id": note_id, "new_parent_id": new_parent_id},
                )

        sort_order = await note_repository.next_sort_order(session, owner_id, new_parent_id)
        note = await note_repository.update(
            session,
            note,
            {
                "parent_id": new_parent_id,
                "sort_order": sort_order,
                "updated_at": self._clock(),
            },
        )
        logger.info("Moved note %s under %s", note_id, new_parent_id)
        return note

    async def reorder_note(
        self,
        session: AsyncSession,
        owner_id: int,
        note_id: int,
        sort_order: int,
    ) -> Note:
        """Set sort_order verbatim; collisions are resolved by id when rendering."""
        note = await self.get_note(session, owner_id, note_id)
        return await note_repository.update(
            session, note, {"sort_order": sort_order, "updated_at": self._clock()}
        )

    async def toggle_expand(self, session: AsyncSession, owner_id: int, note_id: int) -> bool:
        note = await self.get_note(session, owner_id, note_id)
        note = await note_repository.update(
            session, note, {"is_expanded": not note.is_expanded}
        )
        return note.is_expanded

    async def toggle_favorite(
        self, session: AsyncSession, owner_id: int, note_id: int
    ) -> bool:
        note = await self.get_note(session, owner_id, note_id)
        note = await note_repository.update(
            session, note, {"is_favorite": not note.is_favorite}
        )
        return note.is_favorite

    async def duplicate_note(
        self, session: AsyncSession, owner_id: int, note_id: int
    ) -> Note:
        """
        Shallow copy (children are not duplicated) appended to the same parent.

        The copy keeps the source's parent_id even when that parent sits in
        trash, so both notes resurface together.
        """
        source = await self.get_note(session, owner_id, note_id)
        return await self._append_note(
            session,
            owner_id,
            source.parent_id,
            f"{source.title}{COPY_SUFFIX}",
            source.title_emoji,
            source.content,
        )

    async def get_tree(self, session: AsyncSession, owner_id: int) -> list[NoteTreeNode]:
        notes = await note_repository.list_active(session, owner_id)
        return build_tree(notes)

    async def list_favorites(
        self, session: AsyncSession, owner_id: int
    ) -> Sequence[Note]:
        return await note_repository.list_favorites(session, owner_id)

    async def list_recent(
        self,
        session: AsyncSession,
        owner_id: int,
        limit: int = RECENT_LIMIT,
    ) -> Sequence[Note]:
        return await note_repository.list_recent(session, owner_id, limit)
