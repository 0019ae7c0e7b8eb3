"""
Embedding Indexer

Background embedding generation for notes. Runs outside the HTTP request
lifecycle: every attempt opens its own database session, because the
request session is closed by the time the work runs.

Guarantees:
    - At most ``max_concurrency`` notes are embedded at once.
    - A note is never embedded twice concurrently. A schedule request for a
      note already in flight marks it for one more pass, so the stored
      vector always reflects the latest saved content.
    - Transient failures are retried with linear backoff (2s, 4s, 6s...).
    - A batch stops as soon as the provider reports itself unavailable.
"""

import asyncio
import logging
from collections.abc import Iterable

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from notetree.repositories import note_repository
from notetree.services.text import prepare_note_text
from notetree.services.vector import EmbeddingProvider

logger = logging.getLogger(__name__)

MAX_RETRIES = 3
RETRY_DELAY_SECONDS = 2.0  # Base delay, multiplied by attempt number (linear backoff)


class EmbeddingIndexer:
    """
    Owns every detached embedding task of the process.

    Usage::

        indexer = EmbeddingIndexer(provider, get_session_factory())
        indexer.schedule(note.id)      # fire-and-forget
        await indexer.drain()          # tests / scripts: wait for completion
        await indexer.shutdown()       # app shutdown: cancel outstanding work
    """

    def __init__(
        self,
        provider: EmbeddingProvider,
        session_factory: async_sessionmaker[AsyncSession],
        max_concurrency: int = 4,
        max_retries: int = MAX_RETRIES,
        retry_delay: float = RETRY_DELAY_SECONDS,
    ) -> None:
        self.provider = provider
        self._session_factory = session_factory
        self._semaphore = asyncio.Semaphore(max_concurrency)
        self._max_retries = max_retries
        self._retry_delay = retry_delay
        self._tasks: set[asyncio.Task[None]] = set()
        self._in_flight: set[int] = set()
        self._rerun: set[int] = set()

    @property
    def pending_tasks(self) -> int:
        return len(self._tasks)

    def schedule(self, note_id: int) -> None:
        """Queue one note for (re-)embedding."""
        self.schedule_many([note_id])

    def schedule_many(self, note_ids: Iterable[int]) -> int:
        """
        Queue a batch of notes as one tracked background task.

        Returns:
            Number of notes queued.
        """
        ids = list(dict.fromkeys(note_ids))
        if not ids:
            return 0
        task = asyncio.create_task(self._run_batch(ids))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return len(ids)

    async def _run_batch(self, note_ids: list[int]) -> None:
        results = await asyncio.gather(*(self.index_note(note_id) for note_id in note_ids))
        if len(note_ids) > 1:
            logger.info(
                "Indexed %d/%d notes in batch", sum(1 for ok in results if ok), len(note_ids)
            )

    async def index_note(self, note_id: int) -> bool:
        """
        Embed one note now, coalescing with any run already in flight.

        Returns:
            True if an embedding was stored by this call.
        """
        if note_id in self._in_flight:
            self._rerun.add(note_id)
            return False

        self._in_flight.add(note_id)
        try:
            async with self._semaphore:
                while True:
                    self._rerun.discard(note_id)
                    if not self.provider.available():
                        logger.debug("Provider unavailable, skipping note %s", note_id)
                        return False
                    stored = await self._embed_with_retries(note_id)
                    if note_id not in self._rerun:
                        return stored
        finally:
            self._in_flight.discard(note_id)
            self._rerun.discard(note_id)

    async def _embed_with_retries(self, note_id: int) -> bool:
        for attempt in range(self._max_retries):
            # New session per attempt: previous session may be in failed state
            async with self._session_factory() as session:
                try:
                    note = await note_repository.get_by_id(session, note_id)
                    if note is None or note.is_deleted:
                        logger.info("Note %s gone or trashed, skipping embedding", note_id)
                        return False

                    vector = await self.provider.embed(
                        prepare_note_text(note.title, note.content)
                    )
                    await note_repository.update_embedding(session, note_id, vector)
                    logger.info("Embedding generated for note %s", note_id)
                    return True

                except Exception as e:
                    logger.error(
                        "Error processing embedding for note %s (attempt %d/%d): %s",
                        note_id,
                        attempt + 1,
                        self._max_retries,
                        e,
                    )

            if not self.provider.available():
                return False
            if attempt < self._max_retries - 1:
                await asyncio.sleep(self._retry_delay * (attempt + 1))

        logger.error(
            "Failed to process embedding for note %s after %d attempts",
            note_id,
            self._max_retries,
        )
        return False

    async def drain(self) -> None:
        """Wait until every scheduled task, including ones scheduled meanwhile, is done."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def shutdown(self) -> None:
        """Cancel outstanding work (restart abandons it; the next search re-triggers)."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.info("Cancelled %d pending embedding tasks", len(tasks))
        self._tasks.clear()
