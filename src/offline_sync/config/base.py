"""Base configuration settings."""

from pydantic import Field, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

BYTES_PER_MB = 1024 * 1024


class Settings(BaseSettings):
    """Application settings.

    Every field can be overridden with an ``OFFLINE_SYNC_`` prefixed
    environment variable or a ``.env`` file entry.
    """

    model_config = SettingsConfigDict(
        env_prefix="OFFLINE_SYNC_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "Offline Video Sync"
    environment: str = "development"
    log_level: str = "INFO"
    log_format: str = "console"

    # Local storage
    database_url: str = "sqlite+aiosqlite:///./offline_cache.db"

    # Remote endpoints
    sync_endpoint_url: str = "http://localhost:3000/api/offline/sync"
    videos_api_url: str = "http://localhost:3000/api/videos"
    connectivity_check_url: str = "http://localhost:3000/api/config.json"

    # Storage limits
    max_cached_records: int = Field(default=200, gt=0)
    max_cache_size_mb: int = Field(default=40, gt=0)
    target_cache_size_mb: int = Field(default=35, gt=0)
    cache_payload_version: int = 2

    # Sync behaviour
    max_mutation_retries: int = Field(default=5, gt=0)
    pull_timeout_seconds: float = Field(default=120.0, gt=0)
    request_timeout_seconds: float = Field(default=30.0, gt=0)
    default_search_limit: int = Field(default=35, gt=0)

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        """Only console and json renderers exist."""
        v = v.lower()
        if v not in ("console", "json"):
            raise ValueError(f"log_format must be 'console' or 'json', got {v!r}")
        return v

    @field_validator("target_cache_size_mb")
    @classmethod
    def validate_target_size(cls, v: int, info: ValidationInfo) -> int:
        """Keep the eviction target under the hard limit."""
        max_size = info.data.get("max_cache_size_mb")
        if max_size is not None and v > max_size:
            raise ValueError(
                f"target_cache_size_mb ({v}) cannot exceed max_cache_size_mb ({max_size})"
            )
        return v

    @property
    def max_cache_size_bytes(self) -> int:
        """Hard cache size limit in bytes."""
        return self.max_cache_size_mb * BYTES_PER_MB

    @property
    def target_cache_size_bytes(self) -> int:
        """Size the eviction policy shrinks the cache to."""
        return self.target_cache_size_mb * BYTES_PER_MB
