#!/usr/bin/env python3
"""
Reindex Embeddings Script

Regenerates note embeddings for one owner with the configured provider
(EMBEDDING_PROVIDER). Useful after switching models, since vectors from
different models are not comparable.

Usage:
    Requires the database to be reachable with the .env credentials:
    $ python scripts/reindex_embeddings.py --owner-id 1
    $ python scripts/reindex_embeddings.py --owner-id 1 --missing-only
"""

import argparse
import asyncio
import os
import sys

# Required for direct script execution without package installation
sys.path.append(os.path.join(os.path.dirname(__file__), "../src"))

from notetree.core.config import settings  # noqa: E402
from notetree.core.database import dispose_engine, get_session_factory  # noqa: E402
from notetree.core.logging import setup_logging  # noqa: E402
from notetree.repositories import note_repository  # noqa: E402
from notetree.services.embeddings import EmbeddingIndexer  # noqa: E402
from notetree.services.vector import get_embedding_provider  # noqa: E402


async def main(owner_id: int, missing_only: bool) -> None:
    setup_logging()
    provider = get_embedding_provider(settings)
    if not provider.available():
        print(f"Embedding provider '{provider.name}' is not available. Aborting.")
        return

    factory = get_session_factory()
    indexer = EmbeddingIndexer(
        provider,
        factory,
        max_concurrency=settings.INDEXER_MAX_CONCURRENCY,
        max_retries=settings.INDEXER_MAX_RETRIES,
        retry_delay=settings.INDEXER_RETRY_DELAY_SECONDS,
    )

    async with factory() as session:
        if missing_only:
            note_ids = await note_repository.list_unindexed_ids(session, owner_id)
        else:
            note_ids = await note_repository.list_active_ids(session, owner_id)

    print(f"Reindexing {len(note_ids)} notes with provider '{provider.name}'...")
    indexer.schedule_many(note_ids)
    await indexer.drain()

    async with factory() as session:
        total, indexed = await note_repository.count_index_status(session, owner_id)

    await dispose_engine()
    print(f"Done: {indexed}/{total} active notes indexed.")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Regenerate note embeddings")
    parser.add_argument("--owner-id", type=int, required=True)
    parser.add_argument(
        "--missing-only",
        action="store_true",
        help="Only embed notes that have no embedding yet",
    )
    args = parser.parse_args()
    asyncio.run(main(args.owner_id, args.missing_only))
