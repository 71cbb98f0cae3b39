"""Offline client: the entry point read and write paths talk to.

It wires the stores, the orchestrator and the remote collaborators
together, applies local writes optimistically and overlays still-pending
mutations on reads. A queued mutation is an unsynced override: a pull may
have replaced the cached record with remote state the mutation has not yet
been applied to.
"""

from collections import defaultdict
from typing import Dict, Iterable, List, Optional, Sequence

from offline_sync.config import BYTES_PER_MB, Settings, get_settings
from offline_sync.core.database import Database
from offline_sync.sync.cache_store import CacheStore, SQLCacheStore
from offline_sync.sync.connectivity import ConnectivityMonitor
from offline_sync.sync.metadata_store import (
    LAST_SYNC_KEY,
    TOTAL_CACHE_SIZE_KEY,
    MetadataStore,
    SQLMetadataStore,
)
from offline_sync.sync.mutation_queue import MutationQueue, SQLMutationQueue
from offline_sync.sync.offline_mode import OfflineMode
from offline_sync.sync.offline_search import OfflineSearchEngine
from offline_sync.sync.remote import HttpVideoClient, RemoteVideoClient
from offline_sync.sync.schemas import (
    CachedRecord,
    CacheStats,
    MutationType,
    PendingMutation,
    SearchResult,
    SyncResult,
)
from offline_sync.sync.sync_service import SyncOrchestrator
from offline_sync.sync.transport import HttpSyncTransport, SyncTransport
from offline_sync.utils.exceptions import OfflineSyncException
from offline_sync.utils.logging import get_logger

logger = get_logger(__name__)


def apply_pending(
    record: Optional[CachedRecord], mutations: Iterable[PendingMutation]
) -> Optional[CachedRecord]:
    """Overlay pending mutations (oldest first) on a cached record.

    A pending DELETE hides the record; pending UPDATEs are merged in order.
    """
    for mutation in mutations:
        if record is None:
            return None
        if mutation.type is MutationType.DELETE:
            return None
        if mutation.payload:
            record = record.with_changes(mutation.payload)
    return record


class OfflineClient:
    """Facade over the offline cache, mutation queue and sync orchestrator."""

    def __init__(
        self,
        cache_store: CacheStore,
        mutation_queue: MutationQueue,
        metadata_store: MetadataStore,
        remote_client: RemoteVideoClient,
        transport: SyncTransport,
        settings: Optional[Settings] = None,
        connectivity: Optional[ConnectivityMonitor] = None,
        database: Optional[Database] = None,
    ):
        """Initialize the client.

        Args:
            cache_store: Offline video cache
            mutation_queue: Queue of local writes
            metadata_store: Sync bookkeeping and offline-mode flag
            remote_client: Applies mutations remotely
            transport: Downloads cache snapshots
            settings: Limits and timeouts, defaults to the global settings
            connectivity: Monitor whose restore events trigger a full sync
            database: Database to initialize on start and dispose on close
        """
        self.settings = settings or get_settings()
        self.cache_store = cache_store
        self.mutation_queue = mutation_queue
        self.metadata_store = metadata_store
        self.remote_client = remote_client
        self.transport = transport
        self.connectivity = connectivity
        self.database = database

        self.orchestrator = SyncOrchestrator(
            cache_store,
            mutation_queue,
            metadata_store,
            remote_client,
            transport,
            settings=self.settings,
        )
        self.search_engine = OfflineSearchEngine(
            cache_store, default_limit=self.settings.default_search_limit
        )
        self.offline_mode = OfflineMode(metadata_store)

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "OfflineClient":
        """Build a client persisting to ``settings.database_url``."""
        settings = settings or get_settings()
        database = Database.from_settings(settings)
        return cls(
            cache_store=SQLCacheStore(database),
            mutation_queue=SQLMutationQueue(database),
            metadata_store=SQLMetadataStore(database),
            remote_client=HttpVideoClient(
                settings.videos_api_url, timeout=settings.request_timeout_seconds
            ),
            transport=HttpSyncTransport(
                settings.sync_endpoint_url,
                pull_timeout=settings.pull_timeout_seconds,
                request_timeout=settings.request_timeout_seconds,
            ),
            settings=settings,
            connectivity=ConnectivityMonitor(settings.connectivity_check_url),
            database=database,
        )

    async def start(self) -> bool:
        """Prepare storage and check the cache payload version.

        Returns:
            True if the cache can be trusted for reads
        """
        if self.database is not None:
            await self.database.init()
        if self.connectivity is not None:
            self.connectivity.add_listener(self.orchestrator.on_connectivity_restored)
        return await self.orchestrator.startup_check()

    async def close(self) -> None:
        """Release network and database resources."""
        if self.connectivity is not None:
            self.connectivity.remove_listener(self.orchestrator.on_connectivity_restored)
            await self.connectivity.close()
        await self.remote_client.close()
        await self.transport.close()
        if self.database is not None:
            await self.database.dispose()

    async def __aenter__(self) -> "OfflineClient":
        """Start the client."""
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        """Close the client."""
        await self.close()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def _pending_by_target(self) -> Dict[int, List[PendingMutation]]:
        pending: Dict[int, List[PendingMutation]] = defaultdict(list)
        for mutation in await self.mutation_queue.get_all_ordered_by_timestamp():
            pending[mutation.target_id].append(mutation)
        return pending

    async def get_video(self, video_id: int) -> Optional[CachedRecord]:
        """Cached video with pending local changes applied."""
        record = await self.cache_store.get(video_id)
        return apply_pending(record, await self.mutation_queue.get_by_target(video_id))

    async def get_video_by_alternate_id(self, alternate_id: str) -> Optional[CachedRecord]:
        """Cached video looked up by ``VideoID``, with pending changes applied."""
        record = await self.cache_store.get_by_alternate_id(alternate_id)
        if record is None:
            return None
        return apply_pending(record, await self.mutation_queue.get_by_target(record.id))

    async def _visible_records(self) -> List[CachedRecord]:
        """Cached videos newest first, pending changes applied, deletions hidden."""
        pending = await self._pending_by_target()
        visible = []
        for record in await self.cache_store.get_all_sorted_by_publish_desc():
            overlaid = apply_pending(record, pending.get(record.id, ()))
            if overlaid is not None:
                visible.append(overlaid)
        return visible

    async def list_cached_videos(
        self, limit: Optional[int] = None, offset: int = 0
    ) -> List[CachedRecord]:
        """Newest cached videos with pending changes applied, paginated."""
        visible = await self._visible_records()
        if limit is None:
            return visible[offset:]
        return visible[offset : offset + limit]

    async def search(
        self,
        query: str = "",
        categories: Optional[Sequence[str]] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> SearchResult:
        """Search the offline cache as the user sees it, pending changes included."""
        records = await self._visible_records()
        return self.search_engine.search_records(records, query, categories, limit, offset)

    # ------------------------------------------------------------------
    # Local writes
    # ------------------------------------------------------------------

    async def update_video(self, video_id: int, fields: Dict[str, object]) -> PendingMutation:
        """Apply an edit locally and queue it for the remote.

        Args:
            video_id: Id of the video
            fields: Changed fields keyed by remote field name, e.g. ``{"Watched": True}``

        Returns:
            The queued mutation
        """
        record = await self.cache_store.get(video_id)
        if record is not None:
            await self.cache_store.put(record.with_changes(fields))
        return await self.mutation_queue.enqueue(MutationType.UPDATE, video_id, dict(fields))

    async def delete_video(self, video_id: int) -> PendingMutation:
        """Remove a video locally and queue the remote deletion."""
        await self.cache_store.delete(video_id)
        return await self.mutation_queue.enqueue(MutationType.DELETE, video_id)

    # ------------------------------------------------------------------
    # Sync and offline mode
    # ------------------------------------------------------------------

    async def sync_now(self) -> Optional[SyncResult]:
        """Run a full sync; None if one is already running."""
        return await self.orchestrator.full_sync()

    def is_syncing(self) -> bool:
        """Return True while a sync is in flight."""
        return self.orchestrator.is_syncing()

    async def set_offline_mode(self, enabled: bool) -> Optional[SyncResult]:
        """Persist the offline-mode flag; enabling it fills the cache.

        A failed initial fill is logged and leaves the flag enabled, the next
        sync retries it.
        """
        await self.offline_mode.set_enabled(enabled)
        if not enabled:
            return None
        try:
            return await self.orchestrator.resync_cache()
        except OfflineSyncException as e:
            logger.error("initial_cache_sync_failed", error=str(e))
            return None

    async def toggle_offline_mode(self) -> bool:
        """Flip the offline-mode flag, filling the cache when enabling."""
        enabled = not await self.offline_mode.is_enabled()
        await self.set_offline_mode(enabled)
        return enabled

    # ------------------------------------------------------------------
    # Housekeeping
    # ------------------------------------------------------------------

    async def get_stats(self) -> CacheStats:
        """Current cache size, record count and sync status."""
        size = await self.cache_store.estimate_size_bytes()
        max_mb = self.settings.max_cache_size_mb
        return CacheStats(
            cached_videos=await self.cache_store.count(),
            cache_size_bytes=size,
            cache_size_mb=round(size / BYTES_PER_MB, 2),
            max_cache_size_mb=max_mb,
            usage_percent=round(size / self.settings.max_cache_size_bytes * 100, 1),
            last_sync=await self.metadata_store.get_datetime(LAST_SYNC_KEY),
            pending_mutations=await self.mutation_queue.count(),
            offline_mode_enabled=await self.offline_mode.is_enabled(),
        )

    async def clear_cache(self) -> int:
        """Drop every cached video and reset the sync bookkeeping.

        Pending mutations are kept; they still have to reach the remote.
        """
        removed = await self.cache_store.clear()
        await self.metadata_store.set_datetime(LAST_SYNC_KEY, None)
        await self.metadata_store.set(TOTAL_CACHE_SIZE_KEY, 0)
        logger.info("cache_cleared", removed=removed)
        return removed
