"""Offline Search Engine: filter, rank and paginate cached records.

Matching is AND across whitespace separated terms: every term has to be
found in at least one searchable field of the requested categories.
Matches are ranked by an additive score summed over terms:

========================  =====
title substring             +10
channel substring            +5
hashtag exact                +8
hashtag substring            +3
description substring        +2
========================  =====

Equal scores are ordered by record id ascending.
"""

from typing import Any, Callable, Dict, List, Optional, Sequence

from offline_sync.sync.cache_store import CacheStore
from offline_sync.sync.schemas import CachedRecord, LinkedRecord, SearchResult
from offline_sync.utils.logging import get_logger

logger = get_logger(__name__)

FieldValue = Any


# Searchable values of a record per category.
CATEGORY_FIELDS: Dict[str, Callable[[CachedRecord], FieldValue]] = {
    "title": lambda r: r.title,
    "description": lambda r: r.description,
    "channel": lambda r: r.channel,
    "speaker": lambda r: r.speaker,
    "hashtag": lambda r: r.hashtags,
    "person": lambda r: r.persons,
    "company": lambda r: r.companies,
    "genre": lambda r: r.video_genre,
    "topic": lambda r: r.main_topic,
}

TITLE_SCORE = 10
CHANNEL_SCORE = 5
TAG_EXACT_SCORE = 8
TAG_PARTIAL_SCORE = 3
DESCRIPTION_SCORE = 2


def parse_terms(query: str) -> List[str]:
    """Split a query into lowercase terms."""
    return query.lower().split()


def _contains(value: Optional[str], term: str) -> bool:
    return value is not None and term in value.lower()


def field_matches(value: FieldValue, term: str) -> bool:
    """Return True if ``term`` occurs in a string field or any list element."""
    if isinstance(value, str):
        return term in value.lower()
    if isinstance(value, list):
        for item in value:
            if isinstance(item, LinkedRecord):
                if _contains(item.title, term) or _contains(item.name, term):
                    return True
            elif isinstance(item, str) and term in item.lower():
                return True
    return False


def record_matches(
    record: CachedRecord, terms: Sequence[str], categories: Sequence[str]
) -> bool:
    """AND semantics: every term must hit one of the category fields."""
    extractors = [CATEGORY_FIELDS[c] for c in categories if c in CATEGORY_FIELDS]
    values = [extract(record) for extract in extractors]
    return all(any(field_matches(v, term) for v in values) for term in terms)


def relevance_score(record: CachedRecord, terms: Sequence[str]) -> int:
    """Additive relevance score of a record for the given terms."""
    score = 0
    tags = [tag.lower() for tag in record.hashtags]
    for term in terms:
        if _contains(record.title, term):
            score += TITLE_SCORE
        if _contains(record.channel, term):
            score += CHANNEL_SCORE
        if term in tags:
            score += TAG_EXACT_SCORE
        if any(term in tag for tag in tags):
            score += TAG_PARTIAL_SCORE
        if _contains(record.description, term):
            score += DESCRIPTION_SCORE
    return score


class OfflineSearchEngine:
    """Searches the Cache Store without any network access."""

    def __init__(self, store: CacheStore, default_limit: int = 35):
        """Initialize the engine.

        Args:
            store: Cache store to search
            default_limit: Page size when the caller passes none
        """
        self.store = store
        self.default_limit = default_limit

    async def search(
        self,
        query: str = "",
        categories: Optional[Sequence[str]] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> SearchResult:
        """Search cached records.

        Args:
            query: Free text; empty returns everything newest first
            categories: Category names to search (all when empty). Unknown
                names match nothing.
            limit: Page size
            offset: Number of results to skip

        Returns:
            The requested page and the total number of matches
        """
        records = await self.store.get_all_sorted_by_publish_desc()
        return self.search_records(records, query, categories, limit, offset)

    def search_records(
        self,
        records: Sequence[CachedRecord],
        query: str = "",
        categories: Optional[Sequence[str]] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> SearchResult:
        """Search an already loaded, newest-first list of records.

        Callers that show pending local changes pass the overlaid records.
        """
        limit = self.default_limit if limit is None else limit
        offset = max(offset, 0)

        terms = parse_terms(query)
        if not terms:
            return SearchResult(records=records[offset : offset + limit], total=len(records))

        selected = list(categories) if categories else list(CATEGORY_FIELDS)
        scored = [
            (relevance_score(record, terms), record)
            for record in records
            if record_matches(record, terms, selected)
        ]
        scored.sort(key=lambda pair: (-pair[0], pair[1].id))
        matched = [record for _, record in scored]

        logger.debug("offline_search", terms=terms, categories=selected, total=len(matched))
        return SearchResult(records=matched[offset : offset + limit], total=len(matched))
