"""Async engine and sessions behind the Postgres request and notification stores."""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from bookswap.core.config import DBConfig
from bookswap.db.base import Base

logger = logging.getLogger(__name__)


class DatabaseManager:
    """Owns the engine and session factory shared by the SQL repositories.

    The app builds one from ``settings.db``; tests hand it a
    ``sqlite+aiosqlite`` URL directly::

        db = DatabaseManager.from_config(settings.db)
        requests = PostgresRequestRepository(db)
        notifications = PostgresNotificationRepository(db)
        ...
        await db.close()
    """

    def __init__(
        self,
        database_url: str,
        echo: bool = False,
        pool_size: int = 5,
    ) -> None:
        kwargs: dict[str, Any] = {"echo": echo}
        if not database_url.startswith("sqlite"):
            kwargs["pool_size"] = pool_size
            kwargs["pool_pre_ping"] = True
        self._engine: AsyncEngine = create_async_engine(database_url, **kwargs)
        # Repositories read rows back after commit to build their models.
        self._session_factory: async_sessionmaker[AsyncSession] = async_sessionmaker(
            self._engine,
            expire_on_commit=False,
        )

    @classmethod
    def from_config(cls, config: DBConfig) -> DatabaseManager:
        if not config.database_url:
            raise ValueError("BOOKSWAP_DB_DATABASE_URL is not set")
        return cls(config.database_url, echo=config.echo, pool_size=config.pool_size)

    @property
    def engine(self) -> AsyncEngine:
        return self._engine

    def session(self) -> AsyncSession:
        return self._session_factory()

    async def create_all(self) -> None:
        """Create the request and notification tables. Development and tests only;
        deployments run the Alembic migrations."""
        import bookswap.db.models  # noqa: F401

        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def ping(self) -> bool:
        """Whether the database answers a trivial query. Used by the health check."""
        try:
            async with self._engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except (SQLAlchemyError, OSError) as exc:
            logger.warning("Database ping failed: %s", exc)
            return False
        return True

    async def close(self) -> None:
        await self._engine.dispose()
