"""
Database Configuration.

SQLAlchemy async engine and session management for the note store.
Uses lazy initialization to prevent import-time failures when config is
not available.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from notekeeper.core.logging import get_logger
from notekeeper.models.base import Base

logger = get_logger(__name__)

# Module-level state for lazy initialization
_engine: AsyncEngine | None = None
_async_session_factory: async_sessionmaker[AsyncSession] | None = None


def _enable_sqlite_foreign_keys(dbapi_connection: Any, connection_record: Any) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_engine(url: str, echo: bool = False, **kwargs: Any) -> AsyncEngine:
    """
    Create an async engine for the note store.

    SQLite connections get foreign key enforcement switched on so pin rows
    cascade with their note.
    """
    engine = create_async_engine(url, echo=echo, **kwargs)
    if engine.dialect.name == "sqlite":
        event.listen(engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
    return engine


def _create_engine() -> AsyncEngine:
    """Create the application engine from database.yaml."""
    from notekeeper.core.config import get_app_config, get_database_url

    db_config = get_app_config().database
    engine = create_engine(get_database_url(), echo=db_config.echo)
    logger.debug("Database engine created", extra={"dialect": engine.dialect.name})
    return engine


def get_engine() -> AsyncEngine:
    """Get the database engine, creating it on first use."""
    global _engine
    if _engine is None:
        _engine = _create_engine()
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Get the session factory, creating it on first use."""
    global _async_session_factory
    if _async_session_factory is None:
        _async_session_factory = async_sessionmaker(
            get_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
        )
    return _async_session_factory


async def init_models(engine: AsyncEngine | None = None) -> None:
    """Create the note store tables if they do not exist yet."""
    engine = engine or get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.debug("Note store schema ensured")


@asynccontextmanager
async def session_scope(
    session_factory: async_sessionmaker[AsyncSession] | None = None,
) -> AsyncGenerator[AsyncSession, None]:
    """
    Provide a transactional session.

    Commits when the block exits cleanly and rolls back on any exception,
    which is re-raised.

    Usage:
        async with session_scope() as session:
            service = NoteService(session, mirror_sync=sync)
            await service.create_note("Buy milk")
    """
    factory = session_factory or get_session_factory()
    async with factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def dispose_engine() -> None:
    """Dispose the shared engine. Called during shutdown."""
    global _engine, _async_session_factory
    if _engine is not None:
        await _engine.dispose()
        logger.debug("Database engine disposed")
    _engine = None
    _async_session_factory = None
