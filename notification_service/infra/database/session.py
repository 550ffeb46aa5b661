"""Database engine and session management (SQLAlchemy async)."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from notification_service.core.exceptions import PersistenceError

if TYPE_CHECKING:
    from notification_service.core.settings.db import DatabaseSettings

logger = logging.getLogger(__name__)

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def create_engine(db_settings: DatabaseSettings) -> AsyncEngine:
    """Create an async engine from database settings.

    Pool options are only applied to server databases; SQLite URLs get the
    dialect's default pool.
    """
    return create_async_engine(
        db_settings.get_sqlalchemy_url(),
        **db_settings.sqlalchemy_engine_kwargs(),
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to ``engine``."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


def get_engine() -> AsyncEngine:
    """Process-wide engine, created on first use from cached settings."""
    global _engine
    if _engine is None:
        from notification_service.core.settings import get_db_settings

        _engine = create_engine(get_db_settings())
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Process-wide session factory bound to get_engine()."""
    global _session_factory
    if _session_factory is None:
        _session_factory = create_session_factory(get_engine())
    return _session_factory


async def init_database(engine: AsyncEngine | None = None, *, create_schema: bool = False) -> None:
    """Verify the database is reachable, optionally creating missing tables.

    Args:
        engine: Engine to check; defaults to get_engine().
        create_schema: Run ``metadata.create_all`` (idempotent, ``checkfirst``).

    Raises:
        PersistenceError: If the database cannot be reached.
    """
    engine = engine or get_engine()
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))

        if create_schema:
            # Import models so every table is registered on the metadata
            from notification_service.core.database import Base
            from notification_service.features.notifications import models  # noqa: F401

            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
    except (SQLAlchemyError, OSError) as e:
        logger.error(
            "Failed to connect to database",
            extra={"url": engine.url.render_as_string(hide_password=True), "error": str(e)},
        )
        raise PersistenceError("Database unavailable", details={"error": str(e)}) from e

    logger.info(
        "Database connection established",
        extra={"url": engine.url.render_as_string(hide_password=True), "schema_created": create_schema},
    )


async def close_database() -> None:
    """Dispose the process-wide engine and drop the cached factory."""
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
        logger.info("Database connections closed")
    _engine = None
    _session_factory = None


__all__ = [
    "close_database",
    "create_engine",
    "create_session_factory",
    "get_engine",
    "get_session_factory",
    "init_database",
]
