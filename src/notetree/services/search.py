"""
Search Service

Hybrid search over an owner's active notes.

Pipeline:
    1. Keyword pass: case-insensitive substring on title/content.
    2. Auto-index trigger: queue unindexed notes once per registry TTL.
    3. Semantic pass: cosine similarity of the query embedding against
       stored note embeddings, ranked by pgvector on PostgreSQL and by an
       in-process scan on other dialects (skipped or dropped on any
       provider failure).
    4. Merge: keyword hits first, then semantic hits not already present.

Exact matches always outrank semantic ones; a note found by both passes is
reported once, as a keyword hit.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from notetree.core.clock import ensure_utc
from notetree.models import Note
from notetree.repositories import note_repository
from notetree.schemas.search import IndexStatus, SearchResult
from notetree.services.embeddings import EmbeddingIndexer
from notetree.services.index_triggers import IndexTriggerRegistry
from notetree.services.text import build_preview
from notetree.services.vector import EmbeddingProvider, cosine_similarity

logger = logging.getLogger(__name__)


def uses_pgvector(session: AsyncSession) -> bool:
    """Whether similarity can be ranked in the database (PostgreSQL + pgvector)."""
    return session.get_bind().dialect.name == "postgresql"


class SearchService:
    def __init__(
        self,
        provider: EmbeddingProvider,
        indexer: EmbeddingIndexer,
        triggers: IndexTriggerRegistry,
        *,
        min_query_length: int = 2,
        keyword_limit: int = 20,
        semantic_limit: int = 15,
        result_limit: int = 20,
        similarity_threshold: float = 0.5,
        preview_radius: int = 40,
    ) -> None:
        self._provider = provider
        self._indexer = indexer
        self._triggers = triggers
        self._min_query_length = min_query_length
        self._keyword_limit = keyword_limit
        self._semantic_limit = semantic_limit
        self._result_limit = result_limit
        self._similarity_threshold = similarity_threshold
        self._preview_radius = preview_radius

    def _to_result(
        self,
        note: Note,
        query: str,
        match_type: str,
        score: float | None = None,
    ) -> SearchResult:
        return SearchResult(
            id=note.id,
            title=note.title,
            title_emoji=note.title_emoji,
            preview=build_preview(note.content, query, self._preview_radius),
            updated_at=ensure_utc(note.updated_at),
            match_type=match_type,
            score=score,
        )

    async def search(
        self, session: AsyncSession, owner_id: int, query: str
    ) -> list[SearchResult]:
        """
        Run the hybrid search. Never fails because of the embedding provider.

        Returns:
            At most ``result_limit`` hits; empty for queries shorter than
            ``min_query_length`` after stripping.
        """
        query = (query or "").strip()
        if len(query) < self._min_query_length:
            return []

        keyword_notes = await note_repository.search_keyword(
            session, owner_id, query, self._keyword_limit
        )
        results = [self._to_result(note, query, "keyword") for note in keyword_notes]

        if not self._provider.available():
            return results[: self._result_limit]

        await self._maybe_trigger_indexing(session, owner_id)

        try:
            semantic = await self._semantic_matches(session, owner_id, query)
        except Exception as e:
            logger.warning("Semantic search failed, returning keyword results: %s", e)
            semantic = []

        seen = {result.id for result in results}
        for note, score in semantic:
            if note.id not in seen:
                results.append(self._to_result(note, query, "semantic", score))
                seen.add(note.id)

        return results[: self._result_limit]

    async def _maybe_trigger_indexing(self, session: AsyncSession, owner_id: int) -> None:
        unindexed = await note_repository.list_unindexed_ids(session, owner_id)
        if not unindexed:
            return
        if await self._triggers.claim(owner_id):
            queued = self._indexer.schedule_many(unindexed)
            logger.info("Auto-indexing %d notes for owner %s", queued, owner_id)

    async def _semantic_matches(
        self, session: AsyncSession, owner_id: int, query: str
    ) -> list[tuple[Note, float]]:
        query_vector = await self._provider.embed(query)
        if uses_pgvector(session):
            return await note_repository.search_similar(
                session,
                owner_id,
                query_vector,
                self._similarity_threshold,
                self._semantic_limit,
            )
        return await self._scan_embedded(session, owner_id, query_vector)

    async def _scan_embedded(
        self, session: AsyncSession, owner_id: int, query_vector: list[float]
    ) -> list[tuple[Note, float]]:
        """Same ranking as search_similar, computed in process."""
        matches: list[tuple[Note, float]] = []
        for note in await note_repository.list_embedded(session, owner_id):
            embedding = note.embedding
            # Vectors from a previous provider/model can have another size
            if embedding is None or len(embedding) != len(query_vector):
                continue
            score = cosine_similarity(query_vector, embedding)
            if score > self._similarity_threshold:
                matches.append((note, score))

        matches.sort(key=lambda match: (-match[1], match[0].id))
        return matches[: self._semantic_limit]

    async def index_status(self, session: AsyncSession, owner_id: int) -> IndexStatus:
        total, indexed = await note_repository.count_index_status(session, owner_id)
        return IndexStatus(
            total=total,
            indexed=indexed,
            pending=total - indexed,
            available=self._provider.available(),
            model_loaded=self._provider.model_loaded,
            provider=self._provider.name,
        )

    async def reindex(self, session: AsyncSession, owner_id: int) -> int:
        """
        Queue every active note of the owner for re-embedding.

        Also clears the owner's auto-index claim, so notes this pass fails
        to embed are picked up by the next search instead of after the TTL.

        Returns:
            Number of notes queued (0 when the provider is unavailable).
        """
        if not self._provider.available():
            logger.warning("Reindex requested for owner %s but embeddings unavailable", owner_id)
            return 0
        note_ids = await note_repository.list_active_ids(session, owner_id)
        queued = self._indexer.schedule_many(note_ids)
        await self._triggers.reset(owner_id)
        logger.info("Reindex queued %d notes for owner %s", queued, owner_id)
        return queued
