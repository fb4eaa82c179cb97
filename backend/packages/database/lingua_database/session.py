"""
Async database engine and session management.

The API uses ``get_session`` as a FastAPI dependency; worker jobs open
sessions through ``get_session_context``.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def _enable_sqlite_foreign_keys(dbapi_connection: Any, _record: Any) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def init_database(database_url: str, **engine_kwargs: Any) -> AsyncEngine:
    """
    Initialize the global engine and session factory.

    Calling it again replaces the previous engine (used by tests).

    Args:
        database_url: SQLAlchemy async database URL.
        **engine_kwargs: Extra keyword arguments for ``create_async_engine``.

    Returns:
        The created engine.
    """
    global _engine, _session_factory

    engine = create_async_engine(database_url, **engine_kwargs)
    if engine.dialect.name == "sqlite":
        # Cascading deletes rely on foreign key enforcement
        event.listen(engine.sync_engine, "connect", _enable_sqlite_foreign_keys)

    _engine = engine
    _session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    return engine


async def close_database() -> None:
    """Dispose of the global engine."""
    global _engine, _session_factory

    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_factory = None


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Yield a database session.

    Rolls back on error so a failed request never leaves a dirty transaction.
    """
    if _session_factory is None:
        raise RuntimeError("Database not initialized. Call init_database() first.")

    async with _session_factory() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


@asynccontextmanager
async def get_session_context() -> AsyncGenerator[AsyncSession, None]:
    """Async context manager variant of ``get_session`` for background jobs."""
    if _session_factory is None:
        raise RuntimeError("Database not initialized. Call init_database() first.")

    async with _session_factory() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
