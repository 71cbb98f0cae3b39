"""Key/value bookkeeping for the offline cache."""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import delete

from offline_sync.core.database import Database
from offline_sync.models.offline import MetadataEntry
from offline_sync.sync.schemas import SyncMetadata

LAST_SYNC_KEY = "lastSync"
CACHE_PAYLOAD_VERSION_KEY = "cachePayloadVersion"
TOTAL_CACHE_SIZE_KEY = "totalCacheSize"
OFFLINE_MODE_KEY = "offlineModeEnabled"


class MetadataStore(ABC):
    """Interface of the ``metadata`` collection.

    Values must be JSON serializable; datetimes go through
    :meth:`set_datetime`/:meth:`get_datetime`.
    """

    @abstractmethod
    async def get(self, key: str, default: Any = None) -> Any:
        """Read a value, or ``default`` if the key is absent."""

    @abstractmethod
    async def set(self, key: str, value: Any) -> None:
        """Write a value."""

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Remove a key; returns False if it was absent."""

    async def get_datetime(self, key: str) -> Optional[datetime]:
        """Read an ISO-8601 timestamp value."""
        value = await self.get(key)
        return datetime.fromisoformat(value) if value else None

    async def set_datetime(self, key: str, value: Optional[datetime]) -> None:
        """Write a timestamp as ISO-8601 (or None)."""
        await self.set(key, value.isoformat() if value is not None else None)

    async def load_sync_metadata(self) -> SyncMetadata:
        """Collect the sync bookkeeping keys into one model."""
        return SyncMetadata(
            last_sync=await self.get_datetime(LAST_SYNC_KEY),
            cache_payload_version=await self.get(CACHE_PAYLOAD_VERSION_KEY),
            total_cache_size_bytes=await self.get(TOTAL_CACHE_SIZE_KEY, 0) or 0,
        )


class InMemoryMetadataStore(MetadataStore):
    """Dictionary-backed metadata store."""

    def __init__(self) -> None:
        """Initialize an empty store."""
        self._values: Dict[str, Any] = {}

    async def get(self, key: str, default: Any = None) -> Any:
        """Read a value."""
        return self._values.get(key, default)

    async def set(self, key: str, value: Any) -> None:
        """Write a value."""
        self._values[key] = value

    async def delete(self, key: str) -> bool:
        """Remove a key."""
        if key not in self._values:
            return False
        del self._values[key]
        return True


class SQLMetadataStore(MetadataStore):
    """Metadata store persisted to the ``metadata`` table."""

    def __init__(self, database: Database):
        """Initialize the store.

        Args:
            database: Initialized local database
        """
        self.database = database

    async def get(self, key: str, default: Any = None) -> Any:
        """Read a value."""
        async with self.database.session() as session:
            entry = await session.get(MetadataEntry, key)
            return entry.value if entry is not None else default

    async def set(self, key: str, value: Any) -> None:
        """Write a value."""
        async with self.database.session() as session:
            await session.merge(MetadataEntry(key=key, value=value))

    async def delete(self, key: str) -> bool:
        """Remove a key."""
        async with self.database.session() as session:
            result = await session.execute(
                delete(MetadataEntry).where(MetadataEntry.key == key)
            )
            return bool(result.rowcount)
