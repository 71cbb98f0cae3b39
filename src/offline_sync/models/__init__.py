"""Database models."""

from offline_sync.models.base import Base
from offline_sync.models.offline import CachedVideo, MetadataEntry, PendingMutationRow

__all__ = ["Base", "CachedVideo", "MetadataEntry", "PendingMutationRow"]
