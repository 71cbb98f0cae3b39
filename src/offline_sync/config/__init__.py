"""Configuration module for offline sync."""

from offline_sync.config.base import BYTES_PER_MB, Settings
from offline_sync.config.loader import get_settings

__all__ = ["BYTES_PER_MB", "Settings", "get_settings"]
