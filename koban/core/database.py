"""
Database session management with async SQLAlchemy 2.0.

Provides:
- Async engine with connection pooling
- Session factory with proper lifecycle
- Dependency injection for route handlers
- Deadline enforcement for individual store calls
"""

import asyncio
import logging
from typing import AsyncGenerator, Awaitable, TypeVar

from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import NullPool

from koban.config import settings
from koban.core.exceptions import StoreUnavailableError
from koban.core.metrics import store_unavailable_total

logger = logging.getLogger(__name__)

T = TypeVar("T")


# Base class for all ORM models
class Base(DeclarativeBase):
    """
    Base class for all database models.

    Provides:
    - Common metadata for all tables
    - Type hints for SQLAlchemy
    """
    pass


async def store_call(awaitable: Awaitable[T], timeout: float | None = None) -> T:
    """
    Await a single store operation under a deadline.

    Timeouts and lost connections become StoreUnavailableError so callers
    get a retryable error instead of a hang. Nothing is retried here.

    Usage:
        result = await store_call(db.execute(select(AccessKey)))
    """
    deadline = timeout if timeout is not None else settings.store_timeout_seconds

    try:
        return await asyncio.wait_for(awaitable, timeout=deadline)
    except asyncio.TimeoutError as e:
        store_unavailable_total.labels(reason="timeout").inc()
        logger.error(f"Store call exceeded deadline of {deadline}s")
        raise StoreUnavailableError(
            "Store unavailable, retry later",
            details={"reason": "timeout", "timeout_seconds": deadline},
        ) from e
    except OperationalError as e:
        store_unavailable_total.labels(reason="connection").inc()
        logger.error(f"Store connection error: {e.orig!r}")
        raise StoreUnavailableError(
            "Store unavailable, retry later",
            details={"reason": "connection"},
        ) from e
    except DBAPIError as e:
        if e.connection_invalidated:
            store_unavailable_total.labels(reason="connection").inc()
            raise StoreUnavailableError(
                "Store unavailable, retry later",
                details={"reason": "connection"},
            ) from e
        raise


class DatabaseManager:
    """
    Manages database engine and session lifecycle.

    Singleton pattern ensures one engine per application.
    """

    def __init__(self) -> None:
        self._engine: AsyncEngine | None = None
        self._session_factory: async_sessionmaker[AsyncSession] | None = None

    def init(self, database_url: str | None = None) -> None:
        """
        Initialize database engine and session factory.

        Called during application startup (lifespan event).
        """
        logger.info("Initializing database connection...")

        url = database_url or settings.database_url
        engine_options: dict = {"echo": settings.db_echo and settings.is_development}

        if url.startswith("sqlite"):
            # SQLite has no server-side pool worth configuring
            engine_options["poolclass"] = NullPool
        elif settings.is_development:
            engine_options["poolclass"] = NullPool
            engine_options["pool_pre_ping"] = True
        else:
            engine_options["pool_size"] = settings.db_pool_size
            engine_options["max_overflow"] = settings.db_max_overflow
            engine_options["pool_pre_ping"] = True  # Verify connections before using

        self._engine = create_async_engine(url, **engine_options)

        self._session_factory = async_sessionmaker(
            bind=self._engine,
            class_=AsyncSession,
            expire_on_commit=False,  # Don't expire objects after commit
            autoflush=False,  # Manual control over flushes
        )

        logger.info("Database connection initialized successfully")

    async def create_all(self) -> None:
        """Create missing tables (local development and SQLite deployments)."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def close(self) -> None:
        """
        Close database connections.

        Called during application shutdown (lifespan event).
        """
        if self._engine:
            logger.info("Closing database connections...")
            await self._engine.dispose()
            logger.info("Database connections closed")

    @property
    def engine(self) -> AsyncEngine:
        """Get the database engine."""
        if not self._engine:
            raise RuntimeError("Database not initialized. Call init() first.")
        return self._engine

    async def get_session(self) -> AsyncGenerator[AsyncSession, None]:
        """
        Dependency injection for database sessions.

        Yields:
            AsyncSession: Database session with automatic cleanup
        """
        if not self._session_factory:
            raise RuntimeError("Database not initialized. Call init() first.")

        async with self._session_factory() as session:
            try:
                yield session
                await session.commit()  # Auto-commit on success
            except Exception:
                await session.rollback()  # Auto-rollback on error
                raise
            finally:
                await session.close()


# Global instance
db_manager = DatabaseManager()


# Convenience function for dependency injection
async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency for database sessions.

    Usage:
        from koban.core.database import get_db

        @router.get("/keys/{key_id}")
        async def get_key(db: AsyncSession = Depends(get_db)):
            ...
    """
    async for session in db_manager.get_session():
        yield session
