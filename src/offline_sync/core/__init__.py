"""Core infrastructure."""

from offline_sync.core.database import Database

__all__ = ["Database"]
