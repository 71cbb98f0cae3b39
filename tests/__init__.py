"""Offline Sync test suite."""
