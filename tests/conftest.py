"""Shared fixtures for the offline sync test suite.

Stores come in two flavours: in-memory, and SQL on a throwaway SQLite file
per test. Remote collaborators are scripted fakes so sync behaviour can be
driven without a network.
"""

from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

import pytest
import pytest_asyncio

from offline_sync.config import Settings
from offline_sync.core.database import Database
from offline_sync.sync.cache_store import InMemoryCacheStore, SQLCacheStore
from offline_sync.sync.metadata_store import InMemoryMetadataStore, SQLMetadataStore
from offline_sync.sync.mutation_queue import InMemoryMutationQueue, SQLMutationQueue
from offline_sync.sync.remote import RemoteVideoClient
from offline_sync.sync.schemas import (
    CachedRecord,
    CacheSnapshot,
    MutationBatchResult,
    PendingMutation,
)
from offline_sync.sync.sync_service import SyncOrchestrator
from offline_sync.sync.transport import SyncTransport


def build_record(record_id: int, published: Optional[str] = None, **fields: Any) -> CachedRecord:
    """Build a cached record; ``published`` is an ISO date such as ``2024-02-01``."""
    data: Dict[str, Any] = {"Id": record_id, "VideoID": f"vid-{record_id}"}
    if published is not None:
        data["PublishedAt"] = datetime.fromisoformat(published).replace(tzinfo=timezone.utc)
    data.update(fields)
    return CachedRecord.model_validate(data)


class FakeRemoteClient(RemoteVideoClient):
    """Remote client whose failures are scripted per target id.

    ``failures[target_id]`` is either an exception raised on every call, or a
    list of exceptions consumed one call at a time (``None`` entries succeed).
    """

    def __init__(self) -> None:
        self.failures: Dict[int, Any] = {}
        self.calls: List[tuple] = []
        self.closed = False

    def _maybe_fail(self, video_id: int) -> None:
        failure = self.failures.get(video_id)
        if isinstance(failure, list):
            failure = failure.pop(0) if failure else None
        if failure is not None:
            raise failure

    async def update(self, video_id: int, fields: Dict[str, Any]) -> None:
        self.calls.append(("update", video_id, fields))
        self._maybe_fail(video_id)

    async def delete(self, video_id: int) -> None:
        self.calls.append(("delete", video_id))
        self._maybe_fail(video_id)

    async def close(self) -> None:
        self.closed = True


class FakeTransport(SyncTransport):
    """Sync transport serving a fixed snapshot, or raising ``error``."""

    def __init__(self, records: Optional[List[CachedRecord]] = None) -> None:
        self.records: List[CachedRecord] = list(records or [])
        self.timestamp = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)
        self.error: Optional[Exception] = None
        self.hook: Optional[Callable[[], Any]] = None
        self.fetches = 0
        self.closed = False

    async def fetch_snapshot(self) -> CacheSnapshot:
        self.fetches += 1
        if self.hook is not None:
            await self.hook()
        if self.error is not None:
            raise self.error
        return CacheSnapshot(
            videos=list(self.records),
            timestamp=self.timestamp,
            total_available=len(self.records),
        )

    async def push_mutations(self, mutations: List[PendingMutation]) -> MutationBatchResult:
        return MutationBatchResult(synced=len(mutations))

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def make_record() -> Callable[..., CachedRecord]:
    """Factory for cached records."""
    return build_record


@pytest.fixture
def settings() -> Settings:
    """Settings isolated from the environment and any .env file."""
    return Settings(_env_file=None)


@pytest.fixture
def cache_store() -> InMemoryCacheStore:
    return InMemoryCacheStore()


@pytest.fixture
def mutation_queue() -> InMemoryMutationQueue:
    return InMemoryMutationQueue()


@pytest.fixture
def metadata_store() -> InMemoryMetadataStore:
    return InMemoryMetadataStore()


@pytest.fixture
def remote_client() -> FakeRemoteClient:
    return FakeRemoteClient()


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def orchestrator(
    cache_store, mutation_queue, metadata_store, remote_client, transport, settings
) -> SyncOrchestrator:
    """Orchestrator wired to in-memory stores and scripted fakes."""
    return SyncOrchestrator(
        cache_store,
        mutation_queue,
        metadata_store,
        remote_client,
        transport,
        settings=settings,
    )


@pytest_asyncio.fixture
async def database(tmp_path):
    """Initialized SQLite database in a temporary directory."""
    db = Database(f"sqlite:///{tmp_path / 'offline_cache.db'}")
    await db.init()
    yield db
    await db.dispose()


@pytest.fixture
def sql_cache_store(database) -> SQLCacheStore:
    return SQLCacheStore(database)


@pytest.fixture
def sql_mutation_queue(database) -> SQLMutationQueue:
    return SQLMutationQueue(database)


@pytest.fixture
def sql_metadata_store(database) -> SQLMetadataStore:
    return SQLMetadataStore(database)
