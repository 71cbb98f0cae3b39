"""Tests for the offline search engine."""

import pytest

from offline_sync.sync.offline_search import (
    OfflineSearchEngine,
    field_matches,
    parse_terms,
    relevance_score,
)
from offline_sync.sync.schemas import LinkedRecord


@pytest.fixture
def engine(cache_store):
    return OfflineSearchEngine(cache_store, default_limit=35)


class TestScoring:
    """Term parsing, field matching and the additive score."""

    def test_parse_terms(self):
        assert parse_terms("  Machine   LEARNING ") == ["machine", "learning"]
        assert parse_terms("") == []

    def test_field_matches_linked_records(self):
        """Linked entities match on title or name."""
        people = [LinkedRecord(title="Ada Lovelace"), LinkedRecord(name="Alan Turing")]

        assert field_matches(people, "lovelace")
        assert field_matches(people, "turing")
        assert not field_matches(people, "hopper")
        assert not field_matches(None, "x")

    def test_score_weights(self, make_record):
        """Each matching field adds its weight, per term."""
        record = make_record(
            1,
            Title="Python tips",
            Channel="python weekly",
            Hashtags=["python", "pythonista"],
            Description="all about python",
        )

        # title 10 + channel 5 + exact tag 8 + partial tag 3 + description 2
        assert relevance_score(record, ["python"]) == 28

    def test_score_sums_over_terms(self, make_record):
        record = make_record(1, Title="rust and go", Description="systems")

        assert relevance_score(record, ["rust", "systems"]) == 12


class TestOfflineSearchEngine:
    """Filtering, ranking and pagination."""

    @pytest.mark.asyncio
    async def test_empty_query_lists_newest_first(self, cache_store, engine, make_record):
        """An empty query pages through everything, newest first."""
        a = make_record(1, "2024-02-01", Title="A")
        b = make_record(2, "2024-01-01", Title="B")
        await cache_store.put_many([b, a])

        result = await engine.search("", limit=1)

        assert [r.id for r in result.records] == [a.id]
        assert result.total == 2

    @pytest.mark.asyncio
    async def test_terms_are_anded(self, cache_store, engine, make_record):
        """Every term must match somewhere in the record."""
        await cache_store.put_many(
            [
                make_record(1, Title="machine learning basics"),
                make_record(2, Title="machine shop"),
                make_record(3, Title="learning to cook"),
            ]
        )

        result = await engine.search("machine learning")

        assert [r.id for r in result.records] == [1]
        assert result.total == 1

    @pytest.mark.asyncio
    async def test_terms_may_match_different_fields(self, cache_store, engine, make_record):
        """Terms can be satisfied by different fields of the same record."""
        await cache_store.put(make_record(1, Title="Keynote", Speaker="Grace Hopper"))

        result = await engine.search("keynote hopper")

        assert result.total == 1

    @pytest.mark.asyncio
    async def test_ranking_and_tie_break(self, cache_store, engine, make_record):
        """Higher scores come first; equal scores are ordered by id."""
        await cache_store.put_many(
            [
                make_record(5, Description="python"),
                make_record(3, Description="python"),
                make_record(4, Title="python"),
            ]
        )

        result = await engine.search("python")

        assert [r.id for r in result.records] == [4, 3, 5]

    @pytest.mark.asyncio
    async def test_categories_restrict_fields(self, cache_store, engine, make_record):
        """Only the selected categories are searched."""
        await cache_store.put_many(
            [
                make_record(1, Title="docker"),
                make_record(2, Hashtags=["docker"]),
                make_record(3, Persons=["Solomon Docker"]),
            ]
        )

        by_hashtag = await engine.search("docker", categories=["hashtag"])
        by_person = await engine.search("docker", categories=["person"])

        assert [r.id for r in by_hashtag.records] == [2]
        assert [r.id for r in by_person.records] == [3]

    @pytest.mark.asyncio
    async def test_unknown_category_matches_nothing(self, cache_store, engine, make_record):
        await cache_store.put(make_record(1, Title="docker"))

        result = await engine.search("docker", categories=["nonexistent"])

        assert result.total == 0
        assert result.records == []

    @pytest.mark.asyncio
    async def test_pagination(self, cache_store, engine, make_record):
        """Offset and limit slice the ranked matches; total counts all of them."""
        await cache_store.put_many([make_record(i, Title="talk") for i in range(1, 6)])

        page = await engine.search("talk", limit=2, offset=2)

        assert [r.id for r in page.records] == [3, 4]
        assert page.total == 5

    @pytest.mark.asyncio
    async def test_default_limit(self, cache_store, make_record):
        """Without a limit the engine's default page size applies."""
        await cache_store.put_many([make_record(i) for i in range(1, 11)])

        result = await OfflineSearchEngine(cache_store, default_limit=4).search()

        assert len(result.records) == 4
        assert result.total == 10

    def test_search_records_uses_given_list(self, engine, make_record):
        """Searching a supplied list ignores what the store holds."""
        records = [make_record(2, "2024-02-01", Title="go"), make_record(1, Title="go")]

        result = engine.search_records(records, "go")

        assert [r.id for r in result.records] == [1, 2]
        assert engine.search_records(records, "", limit=1).records == records[:1]
