"""Tables backing the offline cache.

Three collections are persisted:

- ``videos``: cached records keyed by remote id, indexed by alternate id
  and publish time
- ``pending_mutations``: local writes keyed by mutation id, indexed by
  timestamp and target id
- ``metadata``: key/value bookkeeping (``lastSync``, ``cachePayloadVersion``,
  ``totalCacheSize``, ``offlineModeEnabled``)
"""

from sqlalchemy import JSON, Column, DateTime, Integer, String, Text

from offline_sync.models.base import Base, TimestampMixin


class CachedVideo(Base, TimestampMixin):
    """A cached video projection."""

    __tablename__ = "videos"

    id = Column(Integer, primary_key=True, autoincrement=False)
    video_id = Column(String, nullable=True, index=True)
    # Stored as naive UTC; only used for ordering
    published_at = Column(DateTime, nullable=True, index=True)
    payload = Column(JSON, nullable=False)
    size_bytes = Column(Integer, nullable=False, default=0)

    def __repr__(self) -> str:
        """Return string representation."""
        return f"<CachedVideo(id={self.id}, video_id={self.video_id})>"


class PendingMutationRow(Base):
    """A queued local mutation."""

    __tablename__ = "pending_mutations"

    # Assigned by the database on insert; insertion order breaks timestamp ties
    seq = Column(Integer, primary_key=True, autoincrement=True)
    id = Column(String, nullable=False, unique=True)
    type = Column(String(16), nullable=False)
    target_id = Column(Integer, nullable=False, index=True)
    payload = Column(JSON, nullable=True)
    timestamp = Column(DateTime, nullable=False, index=True)
    retry_count = Column(Integer, nullable=False, default=0)
    last_error = Column(Text, nullable=True)

    def __repr__(self) -> str:
        """Return string representation."""
        return f"<PendingMutationRow(id={self.id}, type={self.type})>"


class MetadataEntry(Base):
    """A metadata key/value pair."""

    __tablename__ = "metadata"

    key = Column(String, primary_key=True)
    value = Column(JSON, nullable=True)
