"""Eviction Policy: keeps the Cache Store inside its storage budget."""

from typing import List

from pydantic import BaseModel, Field

from offline_sync.config import BYTES_PER_MB
from offline_sync.sync.cache_store import CacheStore
from offline_sync.utils.logging import get_logger

logger = get_logger(__name__)


class EvictionReport(BaseModel):
    """Outcome of one eviction pass."""

    evicted_ids: List[int] = Field(default_factory=list)
    size_before_bytes: int = 0
    size_after_bytes: int = 0

    @property
    def evicted(self) -> int:
        """Number of records removed."""
        return len(self.evicted_ids)


class EvictionPolicy:
    """Removes oldest-published records until the cache fits a budget.

    Removal is strictly oldest first: a newer record is never evicted while
    an older one remains, even if dropping a single large newer record would
    free more space.
    """

    def __init__(self, store: CacheStore):
        """Initialize the policy.

        Args:
            store: Cache store to shrink
        """
        self.store = store

    async def evict_to_target(self, target_bytes: int) -> EvictionReport:
        """Evict until the estimated size is at most ``target_bytes``.

        Args:
            target_bytes: Size budget in bytes

        Returns:
            Which records were removed and the size before/after
        """
        size = await self.store.estimate_size_bytes()
        report = EvictionReport(size_before_bytes=size, size_after_bytes=size)
        if size <= target_bytes:
            return report

        logger.warning(
            "cache_over_budget",
            size_mb=round(size / BYTES_PER_MB, 2),
            target_mb=round(target_bytes / BYTES_PER_MB, 2),
        )
        oldest_first = list(reversed(await self.store.get_all_sorted_by_publish_desc()))
        for record in oldest_first:
            if size <= target_bytes:
                break
            await self.store.delete(record.id)
            report.evicted_ids.append(record.id)
            size = await self.store.estimate_size_bytes()

        report.size_after_bytes = size
        logger.info(
            "cache_evicted",
            evicted=report.evicted,
            size_mb=round(size / BYTES_PER_MB, 2),
        )
        return report

    async def enforce_record_limit(self, max_records: int) -> EvictionReport:
        """Evict oldest records until at most ``max_records`` remain."""
        size = await self.store.estimate_size_bytes()
        report = EvictionReport(size_before_bytes=size, size_after_bytes=size)
        records = await self.store.get_all_sorted_by_publish_desc()
        overflow = records[max_records:]
        if not overflow:
            return report

        for record in reversed(overflow):
            await self.store.delete(record.id)
            report.evicted_ids.append(record.id)

        report.size_after_bytes = await self.store.estimate_size_bytes()
        logger.info("cache_record_limit_enforced", evicted=report.evicted, limit=max_records)
        return report
