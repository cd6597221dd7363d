"""Database connection and session management.

This module provides async SQLAlchemy setup for SQLite (dev) and PostgreSQL (prod).
Uses SQLAlchemy 2.0 async patterns with contextmanager sessions.

Examples:
    >>> from app.database import get_session, init_db
    >>> await init_db()  # Create tables
    >>> async with get_session() as session:
    ...     result = await session.execute(select(User))

Tests:
    - tests/conftest.py::database
    - tests/unit/test_main.py::TestHealthEndpoint
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy import event, text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from app.config import get_settings

logger = logging.getLogger(__name__)

# Global engine and session factory (initialized lazily)
_engine: AsyncEngine | None = None
_async_session_factory: async_sessionmaker[AsyncSession] | None = None


def get_engine() -> AsyncEngine:
    """Get or create async database engine.

    Returns:
        AsyncEngine: SQLAlchemy async engine.

    Note:
        For SQLite, enables WAL mode, foreign keys and a busy timeout so
        concurrent writers wait instead of failing. In-memory SQLite shares
        one connection so every session sees the same database.
        For PostgreSQL, configures connection pooling.
    """
    global _engine

    if _engine is None:
        settings = get_settings()

        if settings.is_sqlite:
            engine_kwargs: dict = {
                "echo": False,
                "connect_args": {"check_same_thread": False},
            }
            if ":memory:" in settings.DATABASE_URL:
                engine_kwargs["poolclass"] = StaticPool

            _engine = create_async_engine(settings.DATABASE_URL, **engine_kwargs)

            @event.listens_for(_engine.sync_engine, "connect")
            def set_sqlite_pragma(dbapi_connection, connection_record):
                cursor = dbapi_connection.cursor()
                cursor.execute("PRAGMA journal_mode=WAL")
                cursor.execute("PRAGMA foreign_keys=ON")
                cursor.execute("PRAGMA busy_timeout=5000")
                cursor.close()

        else:
            _engine = create_async_engine(
                settings.DATABASE_URL,
                echo=False,
                pool_size=5,
                max_overflow=10,
                pool_pre_ping=True,
            )

        logger.info(f"Database engine created: {settings.DATABASE_URL.split('@')[-1]}")

    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Get or create async session factory.

    Returns:
        async_sessionmaker: Session factory for creating sessions.
    """
    global _async_session_factory

    if _async_session_factory is None:
        engine = get_engine()
        _async_session_factory = async_sessionmaker(
            engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

    return _async_session_factory


@asynccontextmanager
async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Get database session as async context manager.

    Yields:
        AsyncSession: Database session.

    Examples:
        >>> async with get_session() as session:
        ...     session.add(user)

    Note:
        Session is automatically committed on success, rolled back on error.
    """
    factory = get_session_factory()
    session = factory()

    try:
        yield session
        await session.commit()
    except BaseException:
        await session.rollback()
        raise
    finally:
        await session.close()


async def init_db() -> None:
    """Initialize database - create all tables.

    Should be called once at application startup.
    """
    from app.models import Base

    engine = get_engine()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    logger.info("Database tables created")


async def check_db_connection() -> bool:
    """Report whether the database answers a trivial query (for /health)."""
    try:
        async with get_engine().connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        return False


async def close_db() -> None:
    """Dispose of the engine at shutdown; the next use builds a new one."""
    global _engine, _async_session_factory

    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _async_session_factory = None
        logger.info("Database connections closed")


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency yielding a request-scoped session.

    Used for reads (current user, ledger history). Balance mutations open
    their own short transactions under the user's lock instead.
    """
    async with get_session() as session:
        yield session
