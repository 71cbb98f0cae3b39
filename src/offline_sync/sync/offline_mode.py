"""Persisted offline-mode flag."""

from offline_sync.sync.metadata_store import OFFLINE_MODE_KEY, MetadataStore
from offline_sync.utils.logging import get_logger

logger = get_logger(__name__)


class OfflineMode:
    """Whether the user opted into offline mode; stored in the metadata collection."""

    def __init__(self, metadata_store: MetadataStore):
        """Initialize with the metadata store holding the flag."""
        self.metadata_store = metadata_store

    async def is_enabled(self) -> bool:
        """Current flag, False if never set."""
        return bool(await self.metadata_store.get(OFFLINE_MODE_KEY, False))

    async def set_enabled(self, enabled: bool) -> None:
        """Persist the flag."""
        await self.metadata_store.set(OFFLINE_MODE_KEY, enabled)
        logger.info("offline_mode_set", enabled=enabled)

    async def toggle(self) -> bool:
        """Flip the flag and return the new value."""
        enabled = not await self.is_enabled()
        await self.set_enabled(enabled)
        return enabled
