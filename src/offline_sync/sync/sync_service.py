"""Sync orchestrator: reconciles the offline cache with the remote service.

A full sync runs four phases:

1. push every queued mutation (oldest first) and classify each outcome
2. pull the newest videos and replace the cache wholesale
3. evict oldest records until the cache fits the target budget
4. record ``lastSync``, ``cachePayloadVersion`` and ``totalCacheSize``

Only one sync runs at a time. A trigger arriving while a sync is in flight
is ignored and gets ``None`` back.
"""

import asyncio
import time
from datetime import datetime
from enum import Enum
from typing import List, Optional, Tuple

from pydantic import BaseModel, Field

from offline_sync.config import BYTES_PER_MB, Settings, get_settings
from offline_sync.sync.cache_store import CacheStore, sort_newest_first
from offline_sync.sync.eviction import EvictionPolicy
from offline_sync.sync.metadata_store import (
    CACHE_PAYLOAD_VERSION_KEY,
    LAST_SYNC_KEY,
    TOTAL_CACHE_SIZE_KEY,
    MetadataStore,
)
from offline_sync.sync.mutation_queue import MutationQueue
from offline_sync.sync.remote import RemoteVideoClient
from offline_sync.sync.schemas import (
    MutationType,
    PendingMutation,
    SyncErrorEntry,
    SyncResult,
)
from offline_sync.sync.transport import SyncTransport
from offline_sync.utils.exceptions import (
    OfflineSyncException,
    RemoteErrorKind,
    RemoteServiceError,
    RetryBudgetExceededError,
    SyncTimeoutError,
    ValidationError,
    is_terminal,
)
from offline_sync.utils.logging import get_logger

logger = get_logger(__name__)

RETRY_BUDGET_EXCEEDED = "retry_budget_exceeded"


class SyncState(str, Enum):
    """Orchestrator state."""

    IDLE = "idle"
    SYNCING = "syncing"


class MutationOutcome(str, Enum):
    """What happened to a mutation during the push phase."""

    SYNCED = "synced"  # remote confirmed, removed from queue
    DISCARDED = "discarded"  # terminal rejection, removed from queue
    RETRY = "retry"  # transient failure, kept for the next sync
    DROPPED = "dropped"  # retry budget exhausted, removed from queue


class PushResult(BaseModel):
    """Outcome of a push phase."""

    synced: int = 0
    errors: List[SyncErrorEntry] = Field(default_factory=list)


def classify_error(error: Exception) -> RemoteErrorKind:
    """Map an exception raised by a remote call to its kind.

    Anything that did not come through the remote-client boundary is treated
    as an unknown, transient failure.
    """
    if isinstance(error, RemoteServiceError):
        return error.kind
    return RemoteErrorKind.UNKNOWN


class SyncOrchestrator:
    """Coordinates push, pull, eviction and metadata for the offline cache."""

    def __init__(
        self,
        cache_store: CacheStore,
        mutation_queue: MutationQueue,
        metadata_store: MetadataStore,
        remote_client: RemoteVideoClient,
        transport: SyncTransport,
        settings: Optional[Settings] = None,
        eviction_policy: Optional[EvictionPolicy] = None,
    ):
        """Initialize the orchestrator.

        Args:
            cache_store: Offline video cache
            mutation_queue: Queue of local writes
            metadata_store: Sync bookkeeping
            remote_client: Applies mutations remotely
            transport: Downloads cache snapshots
            settings: Limits and timeouts, defaults to the global settings
            eviction_policy: Defaults to oldest-first eviction on ``cache_store``
        """
        settings = settings or get_settings()
        self.cache_store = cache_store
        self.mutation_queue = mutation_queue
        self.metadata_store = metadata_store
        self.remote_client = remote_client
        self.transport = transport
        self.eviction_policy = eviction_policy or EvictionPolicy(cache_store)

        self.max_cached_records = settings.max_cached_records
        self.target_cache_size_bytes = settings.target_cache_size_bytes
        self.cache_payload_version = settings.cache_payload_version
        self.max_mutation_retries = settings.max_mutation_retries
        self.pull_timeout_seconds = settings.pull_timeout_seconds

        self._state = SyncState.IDLE
        self._cache_trusted = False

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def state(self) -> SyncState:
        """Current orchestrator state."""
        return self._state

    def is_syncing(self) -> bool:
        """Return True while a sync is in flight."""
        return self._state is SyncState.SYNCING

    def is_cache_trusted(self) -> bool:
        """Return True once the cache matches the current payload version."""
        return self._cache_trusted

    def _try_begin(self) -> bool:
        # No await between the check and the write: atomic on the event loop.
        if self._state is SyncState.SYNCING:
            return False
        self._state = SyncState.SYNCING
        return True

    def _finish(self) -> None:
        self._state = SyncState.IDLE

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def full_sync(self) -> Optional[SyncResult]:
        """Push queued mutations, then refresh the cache.

        Returns:
            Sync summary, or None if another sync was already running

        Raises:
            SyncTimeoutError: the cache download exceeded its time budget
            OfflineSyncException: the pull failed; cache and remaining
                queue are left as they were
        """
        if not self._try_begin():
            logger.info("sync_skipped_already_running", trigger="full_sync")
            return None

        started = time.monotonic()
        logger.info("full_sync_started")
        try:
            push = await self._push_mutations()
            videos_updated, sync_time = await self._pull_cache()
        finally:
            self._finish()

        logger.info(
            "full_sync_completed",
            videos_updated=videos_updated,
            mutations_synced=push.synced,
            errors=len(push.errors),
            duration_ms=round((time.monotonic() - started) * 1000),
        )
        return SyncResult(
            videos_updated=videos_updated,
            mutations_synced=push.synced,
            errors=push.errors,
            last_sync_time=sync_time,
        )

    async def resync_cache(self) -> Optional[SyncResult]:
        """Refresh the cache without pushing mutations.

        Returns:
            Sync summary, or None if another sync was already running
        """
        if not self._try_begin():
            logger.info("sync_skipped_already_running", trigger="resync_cache")
            return None

        try:
            videos_updated, sync_time = await self._pull_cache()
        finally:
            self._finish()
        return SyncResult(videos_updated=videos_updated, last_sync_time=sync_time)

    async def startup_check(self) -> bool:
        """Resync the cache if it was written with another payload version.

        Failures are logged, not raised: the previous snapshot stays readable
        but is reported as untrusted.

        Returns:
            True if the cache can be trusted after the check
        """
        stored = await self.metadata_store.get(CACHE_PAYLOAD_VERSION_KEY)
        if stored == self.cache_payload_version:
            self._cache_trusted = True
            return True

        logger.info(
            "cache_payload_version_mismatch",
            stored=stored,
            expected=self.cache_payload_version,
        )
        self._cache_trusted = False
        try:
            await self.resync_cache()
        except OfflineSyncException as e:
            logger.error("startup_resync_failed", error=str(e))
            return False
        return self._cache_trusted

    async def on_connectivity_restored(self) -> None:
        """Listener for connectivity monitors: run a full sync, log failures."""
        logger.info("connectivity_restored")
        try:
            await self.full_sync()
        except OfflineSyncException as e:
            logger.error("connectivity_sync_failed", error=str(e))

    # ------------------------------------------------------------------
    # Push phase
    # ------------------------------------------------------------------

    async def _push_mutations(self) -> PushResult:
        mutations = await self.mutation_queue.get_all_ordered_by_timestamp()
        result = PushResult()
        if not mutations:
            return result

        logger.info("pushing_mutations", pending=len(mutations))
        for mutation in mutations:
            outcome, error = await self._push_one(mutation)
            if outcome is MutationOutcome.SYNCED:
                result.synced += 1
            elif error is not None:
                result.errors.append(error)

        logger.info("mutations_pushed", synced=result.synced, total=len(mutations))
        return result

    async def _push_one(
        self, mutation: PendingMutation
    ) -> Tuple[MutationOutcome, Optional[SyncErrorEntry]]:
        try:
            await self._execute(mutation)
        except Exception as e:  # noqa: BLE001 - every failure is classified below
            return await self._handle_failure(mutation, e)

        await self.mutation_queue.remove(mutation.id)
        if mutation.type is MutationType.DELETE:
            await self.cache_store.delete(mutation.target_id)
        logger.info("mutation_synced", mutation_id=mutation.id, type=mutation.type.value)
        return MutationOutcome.SYNCED, None

    async def _execute(self, mutation: PendingMutation) -> None:
        if mutation.type is MutationType.UPDATE:
            if not mutation.payload:
                raise ValidationError("UPDATE mutation missing data")
            await self.remote_client.update(mutation.target_id, mutation.payload)
        else:
            await self.remote_client.delete(mutation.target_id)

    async def _handle_failure(
        self, mutation: PendingMutation, error: Exception
    ) -> Tuple[MutationOutcome, SyncErrorEntry]:
        kind = classify_error(error)
        message = str(error) or type(error).__name__

        if is_terminal(kind):
            await self.mutation_queue.remove(mutation.id)
            if kind is RemoteErrorKind.NOT_FOUND:
                await self.cache_store.delete(mutation.target_id)
            logger.info(
                "mutation_discarded",
                mutation_id=mutation.id,
                kind=kind.value,
                error=message,
            )
            return MutationOutcome.DISCARDED, SyncErrorEntry(
                mutation_id=mutation.id, kind=kind.value, message=message
            )

        attempts = mutation.retry_count + 1
        if attempts >= self.max_mutation_retries:
            await self.mutation_queue.remove(mutation.id)
            dropped = RetryBudgetExceededError(mutation.id, attempts, message)
            logger.warning(
                "mutation_dropped",
                mutation_id=mutation.id,
                attempts=attempts,
                error=message,
            )
            return MutationOutcome.DROPPED, SyncErrorEntry(
                mutation_id=mutation.id, kind=RETRY_BUDGET_EXCEEDED, message=str(dropped)
            )

        await self.mutation_queue.update(
            mutation.model_copy(update={"retry_count": attempts, "last_error": message})
        )
        logger.warning(
            "mutation_retry_scheduled",
            mutation_id=mutation.id,
            kind=kind.value,
            attempts=attempts,
            error=message,
        )
        return MutationOutcome.RETRY, SyncErrorEntry(
            mutation_id=mutation.id, kind=kind.value, message=message
        )

    # ------------------------------------------------------------------
    # Pull, eviction and metadata phases
    # ------------------------------------------------------------------

    async def _pull_cache(self) -> Tuple[int, datetime]:
        try:
            snapshot = await asyncio.wait_for(
                self.transport.fetch_snapshot(), timeout=self.pull_timeout_seconds
            )
        except asyncio.TimeoutError as e:
            logger.error("cache_pull_timeout", timeout_seconds=self.pull_timeout_seconds)
            raise SyncTimeoutError(self.pull_timeout_seconds) from e

        sync_time = snapshot.timestamp
        if not snapshot.videos:
            logger.warning("cache_pull_empty", total_available=snapshot.total_available)

        newest = sort_newest_first(snapshot.videos)[: self.max_cached_records]
        if len(newest) < len(snapshot.videos):
            logger.info(
                "cache_pull_truncated",
                received=len(snapshot.videos),
                kept=len(newest),
            )

        stored = await self.cache_store.replace_all(newest)
        await self.eviction_policy.evict_to_target(self.target_cache_size_bytes)

        cache_size = await self.cache_store.estimate_size_bytes()
        await self.metadata_store.set_datetime(LAST_SYNC_KEY, sync_time)
        await self.metadata_store.set(CACHE_PAYLOAD_VERSION_KEY, self.cache_payload_version)
        await self.metadata_store.set(TOTAL_CACHE_SIZE_KEY, cache_size)
        self._cache_trusted = True

        logger.info(
            "cache_refreshed",
            videos=stored,
            size_mb=round(cache_size / BYTES_PER_MB, 2),
        )
        return stored, sync_time
