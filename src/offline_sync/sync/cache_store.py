"""Cache Store: durable keyed collection of cached video records.

Two implementations share the :class:`CacheStore` interface: an in-memory
store used by tests and ephemeral clients, and a SQL store persisting to the
``videos`` table.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy import delete, func, select

from offline_sync.core.database import Database
from offline_sync.models.offline import CachedVideo
from offline_sync.sync.schemas import CachedRecord
from offline_sync.utils.logging import get_logger

logger = get_logger(__name__)

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def publish_sort_key(record: CachedRecord) -> Tuple[bool, datetime, int]:
    """Ascending key: undated records first, then oldest publish time, then id."""
    return (
        record.published_at is not None,
        record.published_at or _EPOCH,
        record.id,
    )


def sort_newest_first(records: Iterable[CachedRecord]) -> List[CachedRecord]:
    """Order records by publish time descending (undated records last)."""
    return sorted(records, key=publish_sort_key, reverse=True)


class CacheStore(ABC):
    """Interface of the offline video cache.

    ``put``/``put_many`` are idempotent upserts keyed by ``record.id``; two
    writes to the same id are last-write-wins.
    """

    @abstractmethod
    async def put(self, record: CachedRecord) -> None:
        """Insert or replace one record."""

    @abstractmethod
    async def put_many(self, records: Iterable[CachedRecord]) -> int:
        """Insert or replace several records; returns how many were written."""

    @abstractmethod
    async def get(self, record_id: int) -> Optional[CachedRecord]:
        """Look a record up by primary identifier."""

    @abstractmethod
    async def get_by_alternate_id(self, video_id: str) -> Optional[CachedRecord]:
        """Look a record up by its alternate (``VideoID``) identifier."""

    @abstractmethod
    async def get_all_sorted_by_publish_desc(self) -> List[CachedRecord]:
        """All records, newest publish time first."""

    @abstractmethod
    async def delete(self, record_id: int) -> bool:
        """Remove a record; returns False if it was not cached."""

    @abstractmethod
    async def clear(self) -> int:
        """Remove every record; returns how many were removed."""

    @abstractmethod
    async def count(self) -> int:
        """Number of cached records."""

    @abstractmethod
    async def estimate_size_bytes(self) -> int:
        """Approximate cache footprint.

        This is the sum of the serialized JSON length of every record, not
        the real on-disk usage. It is only precise enough for eviction
        decisions.
        """

    @abstractmethod
    async def replace_all(self, records: Iterable[CachedRecord]) -> int:
        """Swap the whole cache for ``records`` as one logical operation."""


class InMemoryCacheStore(CacheStore):
    """Dictionary-backed cache store."""

    def __init__(self) -> None:
        """Initialize an empty store."""
        self._records: Dict[int, CachedRecord] = {}

    async def put(self, record: CachedRecord) -> None:
        """Insert or replace one record."""
        self._records[record.id] = record

    async def put_many(self, records: Iterable[CachedRecord]) -> int:
        """Insert or replace several records."""
        written = 0
        for record in records:
            self._records[record.id] = record
            written += 1
        return written

    async def get(self, record_id: int) -> Optional[CachedRecord]:
        """Look a record up by primary identifier."""
        return self._records.get(record_id)

    async def get_by_alternate_id(self, video_id: str) -> Optional[CachedRecord]:
        """Look a record up by alternate identifier (lowest id wins)."""
        matches = [r for r in self._records.values() if r.video_id == video_id]
        return min(matches, key=lambda r: r.id) if matches else None

    async def get_all_sorted_by_publish_desc(self) -> List[CachedRecord]:
        """All records, newest publish time first."""
        return sort_newest_first(self._records.values())

    async def delete(self, record_id: int) -> bool:
        """Remove a record."""
        return self._records.pop(record_id, None) is not None

    async def clear(self) -> int:
        """Remove every record."""
        removed = len(self._records)
        self._records.clear()
        return removed

    async def count(self) -> int:
        """Number of cached records."""
        return len(self._records)

    async def estimate_size_bytes(self) -> int:
        """Sum of serialized record lengths."""
        return sum(record.serialized_size() for record in self._records.values())

    async def replace_all(self, records: Iterable[CachedRecord]) -> int:
        """Swap the whole cache for ``records``."""
        fresh = {record.id: record for record in records}
        self._records = fresh
        return len(fresh)


def _naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    return value.astimezone(timezone.utc).replace(tzinfo=None)


class SQLCacheStore(CacheStore):
    """Cache store persisted to the ``videos`` table.

    Each row keeps the record's serialized size so the size estimate is a
    single aggregate query.
    """

    def __init__(self, database: Database):
        """Initialize the store.

        Args:
            database: Initialized local database
        """
        self.database = database

    @staticmethod
    def _to_row(record: CachedRecord) -> CachedVideo:
        return CachedVideo(
            id=record.id,
            video_id=record.video_id,
            published_at=_naive_utc(record.published_at),
            payload=record.to_storage(),
            size_bytes=record.serialized_size(),
        )

    @staticmethod
    def _from_row(row: CachedVideo) -> CachedRecord:
        return CachedRecord.model_validate(row.payload)

    async def put(self, record: CachedRecord) -> None:
        """Insert or replace one record."""
        async with self.database.session() as session:
            await session.merge(self._to_row(record))

    async def put_many(self, records: Iterable[CachedRecord]) -> int:
        """Insert or replace several records in one transaction."""
        written = 0
        async with self.database.session() as session:
            for record in records:
                await session.merge(self._to_row(record))
                written += 1
        return written

    async def get(self, record_id: int) -> Optional[CachedRecord]:
        """Look a record up by primary identifier."""
        async with self.database.session() as session:
            row = await session.get(CachedVideo, record_id)
            return self._from_row(row) if row is not None else None

    async def get_by_alternate_id(self, video_id: str) -> Optional[CachedRecord]:
        """Look a record up through the ``video_id`` index."""
        stmt = (
            select(CachedVideo)
            .where(CachedVideo.video_id == video_id)
            .order_by(CachedVideo.id)
            .limit(1)
        )
        async with self.database.session() as session:
            row = (await session.execute(stmt)).scalars().first()
            return self._from_row(row) if row is not None else None

    async def get_all_sorted_by_publish_desc(self) -> List[CachedRecord]:
        """All records through the ``published_at`` index, newest first."""
        stmt = select(CachedVideo).order_by(
            CachedVideo.published_at.is_(None),
            CachedVideo.published_at.desc(),
            CachedVideo.id.desc(),
        )
        async with self.database.session() as session:
            rows = (await session.execute(stmt)).scalars().all()
            return [self._from_row(row) for row in rows]

    async def delete(self, record_id: int) -> bool:
        """Remove a record."""
        async with self.database.session() as session:
            result = await session.execute(
                delete(CachedVideo).where(CachedVideo.id == record_id)
            )
            return bool(result.rowcount)

    async def clear(self) -> int:
        """Remove every record."""
        async with self.database.session() as session:
            result = await session.execute(delete(CachedVideo))
            return result.rowcount or 0

    async def count(self) -> int:
        """Number of cached records."""
        async with self.database.session() as session:
            result = await session.execute(select(func.count(CachedVideo.id)))
            return int(result.scalar_one())

    async def estimate_size_bytes(self) -> int:
        """Sum of the stored serialized sizes."""
        stmt = select(func.coalesce(func.sum(CachedVideo.size_bytes), 0))
        async with self.database.session() as session:
            return int((await session.execute(stmt)).scalar_one())

    async def replace_all(self, records: Iterable[CachedRecord]) -> int:
        """Clear and refill the table inside a single transaction."""
        fresh = {record.id: record for record in records}
        async with self.database.session() as session:
            await session.execute(delete(CachedVideo))
            session.add_all([self._to_row(record) for record in fresh.values()])
        logger.debug("cache_replaced", records=len(fresh))
        return len(fresh)
