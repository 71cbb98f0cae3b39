"""Sync module for offline caching and mutation synchronization."""

from .cache_store import CacheStore, InMemoryCacheStore, SQLCacheStore
from .client import OfflineClient
from .connectivity import ConnectivityMonitor
from .eviction import EvictionPolicy, EvictionReport
from .metadata_store import InMemoryMetadataStore, MetadataStore, SQLMetadataStore
from .mutation_queue import InMemoryMutationQueue, MutationQueue, SQLMutationQueue
from .offline_mode import OfflineMode
from .offline_search import OfflineSearchEngine
from .remote import HttpVideoClient, RemoteVideoClient
from .schemas import CachedRecord, MutationType, PendingMutation, SearchResult, SyncResult
from .sync_service import MutationOutcome, SyncOrchestrator, SyncState
from .transport import HttpSyncTransport, SyncTransport

__all__ = [
    "OfflineClient",
    "SyncOrchestrator",
    "SyncState",
    "MutationOutcome",
    "CacheStore",
    "InMemoryCacheStore",
    "SQLCacheStore",
    "MutationQueue",
    "InMemoryMutationQueue",
    "SQLMutationQueue",
    "MetadataStore",
    "InMemoryMetadataStore",
    "SQLMetadataStore",
    "EvictionPolicy",
    "EvictionReport",
    "OfflineSearchEngine",
    "OfflineMode",
    "ConnectivityMonitor",
    "RemoteVideoClient",
    "HttpVideoClient",
    "SyncTransport",
    "HttpSyncTransport",
    "CachedRecord",
    "MutationType",
    "PendingMutation",
    "SearchResult",
    "SyncResult",
]
