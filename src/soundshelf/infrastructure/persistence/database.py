"""Database session management for the shelf store."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from soundshelf.config import StorageSettings

logger = logging.getLogger(__name__)


# Hey future me - the shelf lives in ONE SQLite file inside the private data dir. We open it
# through aiosqlite so saving after every discovery run never blocks the event loop. The data
# dir is created on demand; pass a custom url (e.g. "sqlite+aiosqlite://" for in-memory) in tests.
class Database:
    """Database connection and session manager."""

    def __init__(self, settings: StorageSettings, url: str | None = None) -> None:
        """Initialize database from storage settings."""
        self.settings = settings
        self.url = url or settings.database_url

        if url is None:
            settings.data_dir.mkdir(parents=True, exist_ok=True)

        engine_kwargs: dict[str, Any] = {"echo": settings.echo}
        if "sqlite" in self.url:
            engine_kwargs["connect_args"] = {"timeout": 30}  # Wait up to 30s for lock

        self._engine = create_async_engine(self.url, **engine_kwargs)

        if "sqlite" in self.url:
            self._enable_sqlite_foreign_keys()

        self._session_factory = async_sessionmaker(
            self._engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    def _enable_sqlite_foreign_keys(self) -> None:
        """Enable foreign key constraints for SQLite connections."""

        @event.listens_for(self._engine.sync_engine, "connect")
        def set_sqlite_pragma(dbapi_conn: Any, _connection_record: Any) -> None:
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    @asynccontextmanager
    async def session_scope(self) -> AsyncGenerator[AsyncSession, None]:
        """Provide a transactional scope for database operations."""
        async with self._session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                # Rollback on any exception, then re-raise for the caller
                await session.rollback()
                raise

    async def create_tables(self) -> None:
        """Create all tables that don't exist yet."""
        from soundshelf.infrastructure.persistence.models import Base

        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def close(self) -> None:
        """Close database connection."""
        await self._engine.dispose()
