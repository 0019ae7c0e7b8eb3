"""
Search Service Unit Tests

Keyword pass, semantic pass, merge rules, previews, graceful degradation
and the search-triggered background indexing.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
import pytest_asyncio
from sqlalchemy.dialects import postgresql

from notetree.repositories import note_repository
from notetree.services.embeddings import EmbeddingIndexer
from notetree.services.index_triggers import LocalIndexTriggerRegistry
from notetree.services.search import SearchService, uses_pgvector
from notetree.services.tree import TreeService
from notetree.services.versions import VersionService

OWNER = 1
OTHER_OWNER = 2

TRIP_CONTENT = (
    "<p>Our trip started in Tokyo where we spent a week, and afterwards we "
    "visited <strong>Kyoto</strong> in spring to see the temples and the cherry "
    "blossoms along the river.</p>"
)


@pytest.fixture
def tree_service(clock) -> TreeService:
    return TreeService(VersionService(clock=clock), clock=clock)


@pytest_asyncio.fixture
async def indexer(provider, session_factory):
    indexer = EmbeddingIndexer(provider, session_factory, max_concurrency=1, retry_delay=0)
    yield indexer
    await indexer.shutdown()


@pytest.fixture
def triggers() -> LocalIndexTriggerRegistry:
    return LocalIndexTriggerRegistry(ttl_seconds=3600)


@pytest.fixture
def search_service(provider, indexer, triggers) -> SearchService:
    return SearchService(provider, indexer, triggers)


def _ids(results):
    return [r.id for r in results]


# ---------------------------------------------------------------------------
# keyword pass
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.parametrize("query", ["", "a", "  b  ", "   "])
async def test_short_queries_return_nothing(session, search_service, tree_service, query):
    await tree_service.create_note(session, OWNER, title="a b c")

    assert await search_service.search(session, OWNER, query) == []


@pytest.mark.asyncio
async def test_keyword_matches_title_or_content(
    session, search_service, tree_service, provider, clock
):
    provider.is_available = False
    by_title = await tree_service.create_note(session, OWNER, title="Garden plans")
    clock.advance(minutes=1)
    by_content = await tree_service.create_note(
        session, OWNER, title="Spring", content="<p>Plant the GARDEN beds</p>"
    )
    await tree_service.create_note(session, OWNER, title="Unrelated")
    await tree_service.create_note(session, OTHER_OWNER, title="Their garden")

    results = await search_service.search(session, OWNER, "garden")

    # Most recently updated first
    assert _ids(results) == [by_content.id, by_title.id]
    assert all(r.match_type == "keyword" and r.score is None for r in results)


@pytest.mark.asyncio
async def test_trashed_notes_are_not_searchable(session, search_service, tree_service, clock):
    note = await tree_service.create_note(session, OWNER, title="Secret plan")
    await note_repository.mark_deleted(session, [note.id], clock())

    assert await search_service.search(session, OWNER, "secret") == []


@pytest.mark.asyncio
async def test_like_wildcards_are_literal(session, search_service, tree_service, provider):
    provider.is_available = False
    done = await tree_service.create_note(session, OWNER, title="100% done")
    await tree_service.create_note(session, OWNER, title="1000 done")

    results = await search_service.search(session, OWNER, "0%")

    assert _ids(results) == [done.id]


@pytest.mark.asyncio
@pytest.mark.parametrize("query", ["Kyoto", "kyoto", " KYOTO "])
async def test_preview_is_centered_on_match(
    session, search_service, tree_service, provider, query
):
    provider.is_available = False
    await tree_service.create_note(session, OWNER, title="Trip to Japan", content=TRIP_CONTENT)

    (result,) = await search_service.search(session, OWNER, query)

    assert result.preview == (
        "...spent a week, and afterwards we visited Kyoto in spring to see "
        "the temples and the ch..."
    )


@pytest.mark.asyncio
async def test_preview_falls_back_to_leading_text(
    session, search_service, tree_service, provider
):
    provider.is_available = False
    await tree_service.create_note(session, OWNER, title="Trip to Japan", content=TRIP_CONTENT)

    (result,) = await search_service.search(session, OWNER, "japan")

    assert result.preview == (
        "Our trip started in Tokyo where we spent a week, and afterwards we visited Kyoto..."
    )


# ---------------------------------------------------------------------------
# semantic pass & merge
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_semantic_only_match(session, search_service, tree_service, embed_note):
    dinner = await tree_service.create_note(
        session, OWNER, title="Dinner", content="<p>ramen, sushi</p>"
    )
    taxes = await tree_service.create_note(
        session, OWNER, title="Taxes", content="<p>deadline april</p>"
    )
    await embed_note(dinner)
    await embed_note(taxes)

    results = await search_service.search(session, OWNER, "sushi ramen")

    assert _ids(results) == [dinner.id]
    assert results[0].match_type == "semantic"
    assert results[0].score == pytest.approx(2 / (3**0.5 * 2**0.5))


@pytest.mark.asyncio
async def test_keyword_hit_wins_over_semantic_duplicate(
    session, search_service, tree_service, embed_note, clock
):
    dinner = await tree_service.create_note(
        session, OWNER, title="Dinner", content="<p>ramen, sushi</p>"
    )
    clock.advance(minutes=1)
    guide = await tree_service.create_note(
        session, OWNER, title="Sushi ramen guide", content="<p>best sushi ramen spots</p>"
    )
    await embed_note(dinner)
    await embed_note(guide)

    results = await search_service.search(session, OWNER, "sushi ramen")

    assert _ids(results) == [guide.id, dinner.id]
    assert [r.match_type for r in results] == ["keyword", "semantic"]


@pytest.mark.asyncio
async def test_semantic_results_sorted_and_capped(
    session, provider, indexer, triggers, tree_service, embed_note
):
    service = SearchService(provider, indexer, triggers, semantic_limit=2)
    far = await tree_service.create_note(
        session, OWNER, title="Soup", content="ramen broth pork egg"
    )
    best = await tree_service.create_note(session, OWNER, title="Soup", content="ramen broth")
    close = await tree_service.create_note(
        session, OWNER, title="Soup", content="ramen broth pork"
    )
    for note in (far, best, close):
        await embed_note(note)

    # Word order differs from every note, so no keyword hits
    results = await service.search(session, OWNER, "broth ramen")

    assert _ids(results) == [best.id, close.id]
    assert results[0].score > results[1].score > 0.5


@pytest.mark.asyncio
async def test_provider_unavailable_means_keyword_only(
    session, search_service, tree_service, provider, embed_note
):
    dinner = await tree_service.create_note(
        session, OWNER, title="Dinner", content="<p>ramen, sushi</p>"
    )
    await embed_note(dinner)
    provider.is_available = False
    provider.calls.clear()

    assert await search_service.search(session, OWNER, "sushi ramen") == []
    assert provider.calls == []


@pytest.mark.asyncio
async def test_provider_failure_falls_back_to_keyword(
    session, search_service, tree_service, provider, embed_note
):
    dinner = await tree_service.create_note(
        session, OWNER, title="Dinner", content="<p>ramen, sushi</p>"
    )
    await embed_note(dinner)
    provider.fail = True

    results = await search_service.search(session, OWNER, "Dinner")

    assert _ids(results) == [dinner.id]
    assert results[0].match_type == "keyword"


@pytest.mark.asyncio
async def test_mismatched_dimensions_are_skipped(
    session, search_service, tree_service, provider, embed_note
):
    dinner = await tree_service.create_note(
        session, OWNER, title="Dinner", content="<p>ramen, sushi</p>"
    )
    await embed_note(dinner)
    provider.embed = AsyncMock(return_value=[1.0, 0.0, 0.0])

    assert await search_service.search(session, OWNER, "sushi ramen") == []


# ---------------------------------------------------------------------------
# background indexing
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_search_triggers_indexing_once_per_window(
    session, search_service, tree_service, indexer
):
    for title in ("Alpha notes", "Beta notes"):
        await tree_service.create_note(session, OWNER, title=title)

    await search_service.search(session, OWNER, "notes")
    await indexer.drain()
    assert await note_repository.count_index_status(session, OWNER) == (2, 2)

    await tree_service.create_note(session, OWNER, title="Gamma notes")
    await search_service.search(session, OWNER, "notes")
    await indexer.drain()

    # Registry already claimed for this owner: the new note waits
    assert await note_repository.count_index_status(session, OWNER) == (3, 2)


@pytest.mark.asyncio
async def test_index_status_and_reindex(session, search_service, tree_service, indexer, embed_note):
    first = await tree_service.create_note(session, OWNER, title="One")
    await tree_service.create_note(session, OWNER, title="Two")
    await embed_note(first)

    status = await search_service.index_status(session, OWNER)
    assert (status.total, status.indexed, status.pending) == (2, 1, 1)
    assert status.available is True
    assert status.provider == "fake"

    assert await search_service.reindex(session, OWNER) == 2
    await indexer.drain()

    assert await note_repository.count_index_status(session, OWNER) == (2, 2)


@pytest.mark.asyncio
async def test_reindex_without_provider(session, search_service, tree_service, provider):
    await tree_service.create_note(session, OWNER, title="One")
    provider.is_available = False

    assert await search_service.reindex(session, OWNER) == 0


@pytest.mark.asyncio
async def test_reindex_reopens_auto_index_window(
    session, search_service, tree_service, indexer
):
    await tree_service.create_note(session, OWNER, title="Alpha notes")
    await search_service.search(session, OWNER, "notes")
    await indexer.drain()

    await search_service.reindex(session, OWNER)
    await indexer.drain()

    # Without the reindex this note would wait out the registry TTL
    await tree_service.create_note(session, OWNER, title="Beta notes")
    await search_service.search(session, OWNER, "notes")
    await indexer.drain()

    assert await note_repository.count_index_status(session, OWNER) == (2, 2)


# ---------------------------------------------------------------------------
# pgvector ranking
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_postgres_ranks_in_database(session, search_service, tree_service, embed_note):
    dinner = await tree_service.create_note(
        session, OWNER, title="Dinner", content="<p>ramen, sushi</p>"
    )
    await embed_note(dinner)
    ranked = AsyncMock(return_value=[(dinner, 0.82)])

    with (
        patch("notetree.services.search.uses_pgvector", return_value=True),
        patch.object(note_repository, "search_similar", ranked),
        patch.object(note_repository, "list_embedded") as scan,
    ):
        results = await search_service.search(session, OWNER, "sushi ramen")

    assert _ids(results) == [dinner.id]
    assert results[0].score == pytest.approx(0.82)
    scan.assert_not_called()
    _, owner_id, query_vector, threshold, limit = ranked.await_args.args
    assert owner_id == OWNER
    assert len(query_vector) == 384
    assert (threshold, limit) == (0.5, 15)


@pytest.mark.asyncio
async def test_sqlite_uses_in_process_scan(session):
    assert uses_pgvector(session) is False


@pytest.mark.asyncio
async def test_search_similar_query_uses_cosine_operator():
    result = MagicMock()
    result.all.return_value = []
    fake_session = MagicMock()
    fake_session.execute = AsyncMock(return_value=result)

    assert await note_repository.search_similar(fake_session, OWNER, [0.1] * 384, 0.5, 15) == []

    stmt = fake_session.execute.await_args.args[0]
    sql = str(stmt.compile(dialect=postgresql.dialect()))
    assert "<=>" in sql
    assert "vector_dims(notes.embedding)" in sql
    assert "ORDER BY distance, notes.id" in sql
    assert "LIMIT" in sql
