"""Offline-first video cache with queued mutation sync."""

__version__ = "0.1.0"
