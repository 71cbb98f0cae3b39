"""Data models shared by the offline cache, the mutation queue and sync.

Field aliases follow the remote video table (``Id``, ``VideoID``,
``PublishedAt``...) so records and mutations round-trip through the sync
endpoint unchanged, while Python code uses snake_case attribute names.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

# Bulky fields stripped from every cached record (50-200 KB each).
EXCLUDED_FIELDS = ("FullTranscript", "Transcript")


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


class LinkedRecord(BaseModel):
    """Reference to a linked entity such as a person or a company."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: Optional[Any] = Field(default=None, alias="Id")
    title: Optional[str] = Field(default=None, alias="Title")
    name: Optional[str] = None

    @property
    def display_name(self) -> Optional[str]:
        """Name shown for the entity; ``Title`` wins over ``name``."""
        return self.title or self.name


class CachedRecord(BaseModel):
    """Reduced projection of a remote video kept in the offline cache."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    # Identifiers
    id: int = Field(alias="Id")
    video_id: Optional[str] = Field(default=None, alias="VideoID")
    url: Optional[str] = Field(default=None, alias="URL")

    # Dates
    published_at: Optional[datetime] = Field(default=None, alias="PublishedAt")
    created_at: Optional[datetime] = Field(default=None, alias="CreatedAt")
    updated_at: Optional[datetime] = Field(default=None, alias="UpdatedAt")

    # Display / searchable
    title: Optional[str] = Field(default=None, alias="Title")
    description: Optional[str] = Field(default=None, alias="Description")
    channel: Optional[str] = Field(default=None, alias="Channel")
    speaker: Optional[str] = Field(default=None, alias="Speaker")
    video_genre: Optional[str] = Field(default=None, alias="VideoGenre")
    main_topic: Optional[str] = Field(default=None, alias="MainTopic")
    thumb_high: Optional[str] = Field(default=None, alias="ThumbHigh")
    hashtags: List[str] = Field(default_factory=list, alias="Hashtags")
    persons: List[LinkedRecord] = Field(default_factory=list, alias="Persons")
    companies: List[LinkedRecord] = Field(default_factory=list, alias="Companies")

    # User editable
    importance_rating: Optional[int] = Field(default=None, alias="ImportanceRating")
    personal_comment: Optional[str] = Field(default=None, alias="PersonalComment")
    notes: Optional[str] = Field(default=None, alias="Notes")
    watched: Optional[bool] = Field(default=None, alias="Watched")
    archived: Optional[bool] = Field(default=None, alias="Archived")
    private: Optional[bool] = Field(default=None, alias="Private")
    status: Optional[str] = Field(default=None, alias="Status")
    priority: Optional[str] = Field(default=None, alias="Priority")

    @model_validator(mode="before")
    @classmethod
    def drop_excluded_fields(cls, data: Any) -> Any:
        """Project away transcripts before validation."""
        if isinstance(data, dict) and any(key in data for key in EXCLUDED_FIELDS):
            data = {k: v for k, v in data.items() if k not in EXCLUDED_FIELDS}
        return data

    @field_validator("hashtags", mode="before")
    @classmethod
    def split_hashtags(cls, v: Any) -> Any:
        """Accept the comma separated string form used by the remote table."""
        if v is None:
            return []
        if isinstance(v, str):
            return [tag.strip() for tag in v.split(",") if tag.strip()]
        return v

    @field_validator("persons", "companies", mode="before")
    @classmethod
    def normalize_linked(cls, v: Any) -> Any:
        """Turn null or plain-string entries into linked records."""
        if v is None:
            return []
        if isinstance(v, str):
            v = [part.strip() for part in v.split(",") if part.strip()]
        if isinstance(v, list):
            return [{"Title": item} if isinstance(item, str) else item for item in v]
        return v

    @field_validator("published_at", "created_at", "updated_at")
    @classmethod
    def ensure_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        """Naive timestamps are treated as UTC."""
        return _as_utc(v)

    def to_storage(self) -> Dict[str, Any]:
        """JSON-safe dict keyed by remote field names."""
        return self.model_dump(mode="json", by_alias=True)

    def serialized_size(self) -> int:
        """Approximate storage footprint: length of the JSON form."""
        return len(self.model_dump_json(by_alias=True))

    def with_changes(self, changes: Dict[str, Any]) -> "CachedRecord":
        """Return a copy with remote-named fields overwritten by ``changes``."""
        data = self.to_storage()
        data.update(changes)
        data["Id"] = self.id
        return CachedRecord.model_validate(data)


class MutationType(str, Enum):
    """Kind of local write awaiting remote confirmation."""

    UPDATE = "UPDATE"
    DELETE = "DELETE"


class PendingMutation(BaseModel):
    """A local write queued for the next push."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    type: MutationType
    target_id: int = Field(alias="videoId")
    payload: Optional[Dict[str, Any]] = Field(default=None, alias="data")
    timestamp: datetime = Field(default_factory=utc_now)
    retry_count: int = Field(default=0, ge=0, alias="retryCount")
    last_error: Optional[str] = Field(default=None, alias="error")

    @field_validator("timestamp")
    @classmethod
    def ensure_utc(cls, v: datetime) -> datetime:
        """Naive timestamps are treated as UTC."""
        return v.replace(tzinfo=timezone.utc) if v.tzinfo is None else v

    def to_wire(self) -> Dict[str, Any]:
        """JSON-safe dict in the sync endpoint's field names."""
        return self.model_dump(mode="json", by_alias=True)


class SyncMetadata(BaseModel):
    """Bookkeeping written by the sync orchestrator."""

    last_sync: Optional[datetime] = None
    cache_payload_version: Optional[int] = None
    total_cache_size_bytes: int = 0


class SyncErrorEntry(BaseModel):
    """One mutation failure reported in a sync summary."""

    model_config = ConfigDict(populate_by_name=True)

    mutation_id: str = Field(alias="mutationId")
    kind: str
    message: str


class SyncResult(BaseModel):
    """Summary returned by a full sync or a pull-only resync."""

    model_config = ConfigDict(populate_by_name=True)

    videos_updated: int = Field(default=0, alias="videosUpdated")
    mutations_synced: int = Field(default=0, alias="mutationsSynced")
    errors: List[SyncErrorEntry] = Field(default_factory=list)
    last_sync_time: datetime = Field(default_factory=utc_now, alias="lastSyncTime")


class CacheSnapshot(BaseModel):
    """Response of the ``cache`` sync action."""

    model_config = ConfigDict(populate_by_name=True)

    videos: List[CachedRecord] = Field(default_factory=list)
    timestamp: datetime = Field(default_factory=utc_now)
    total_available: Optional[int] = Field(default=None, alias="totalAvailable")

    @field_validator("timestamp", mode="before")
    @classmethod
    def parse_epoch_millis(cls, v: Any) -> Any:
        """The endpoint reports its timestamp in epoch milliseconds."""
        if isinstance(v, (int, float)):
            return datetime.fromtimestamp(v / 1000, tz=timezone.utc)
        return v

    @field_validator("timestamp")
    @classmethod
    def ensure_utc(cls, v: datetime) -> datetime:
        """Naive timestamps are treated as UTC."""
        return v.replace(tzinfo=timezone.utc) if v.tzinfo is None else v


class MutationBatchError(BaseModel):
    """Per-mutation failure reported by the ``mutations`` sync action."""

    model_config = ConfigDict(populate_by_name=True)

    mutation_id: str = Field(alias="mutationId")
    error: str


class MutationBatchResult(BaseModel):
    """Response of the ``mutations`` sync action."""

    synced: int = 0
    errors: List[MutationBatchError] = Field(default_factory=list)


class SearchResult(BaseModel):
    """One page of offline search results."""

    records: List[CachedRecord] = Field(default_factory=list)
    total: int = 0


class CacheStats(BaseModel):
    """Snapshot of the offline cache for status displays."""

    cached_videos: int
    cache_size_bytes: int
    cache_size_mb: float
    max_cache_size_mb: int
    usage_percent: float
    last_sync: Optional[datetime] = None
    pending_mutations: int = 0
    offline_mode_enabled: bool = False
