"""Database connection and session management for the local cache."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from offline_sync.config import Settings, get_settings
from offline_sync.models import Base
from offline_sync.utils.exceptions import StorageError
from offline_sync.utils.logging import get_logger

logger = get_logger(__name__)


def to_async_url(database_url: str) -> str:
    """Pick the async driver for a plain database URL."""
    if database_url.startswith("sqlite://"):
        return database_url.replace("sqlite://", "sqlite+aiosqlite://", 1)
    return database_url


class Database:
    """Async engine and session factory for one local database."""

    def __init__(self, database_url: str, echo: bool = False):
        """Initialize database.

        Args:
            database_url: SQLAlchemy URL; plain ``sqlite://`` URLs get aiosqlite
            echo: Log emitted SQL
        """
        self.url = to_async_url(database_url)
        self.engine = create_async_engine(self.url, echo=echo)
        self.session_factory = async_sessionmaker(
            bind=self.engine,
            class_=AsyncSession,
            autoflush=False,
            expire_on_commit=False,
        )

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "Database":
        """Create a database from application settings."""
        settings = settings or get_settings()
        return cls(settings.database_url)

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Yield a session that commits on success and rolls back on error."""
        async with self.session_factory() as session:
            try:
                yield session
                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                logger.error("database_error", error=str(e))
                raise StorageError(f"Local database error: {e}") from e

    async def init(self) -> None:
        """Create the cache tables if they do not exist."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def dispose(self) -> None:
        """Close pooled connections."""
        await self.engine.dispose()
