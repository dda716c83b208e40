"""Database configuration and session management.

Provides async SQLAlchemy engine and session factory.
"""

from collections.abc import AsyncGenerator, AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import structlog
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import declarative_base

from storefront.infrastructure.config import settings

logger = structlog.get_logger()

# Create async engine
engine: AsyncEngine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    pool_pre_ping=True,
)

# Session factory
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)

# Base class for models
Base = declarative_base()


def configure_engine(url: str, **engine_options: Any) -> AsyncEngine:
    """Point the engine and session factory at another database.

    Used by scripts and tests that run against a database other than
    ``settings.database_url``.

    Args:
        url: SQLAlchemy async database URL.
        **engine_options: Extra ``create_async_engine`` arguments.

    Returns:
        The new engine.
    """
    global engine, async_session_factory
    engine = create_async_engine(url, **engine_options)
    async_session_factory = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    return engine


@asynccontextmanager
async def session_scope() -> AsyncIterator[AsyncSession]:
    """Open a session that commits on success and rolls back on error.

    Middleware and websocket handlers use this for short units of work
    outside the request dependency graph.
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Get database session.

    Yields:
        AsyncSession for database operations.
    """
    async with session_scope() as session:
        yield session


async def ping_database() -> bool:
    """Check database connectivity with a trivial query.

    Returns:
        True if the database answered, False if it could not be reached.
    """
    try:
        async with engine.connect() as connection:
            await connection.execute(text("SELECT 1"))
    except (OSError, SQLAlchemyError) as e:
        logger.warning("Database ping failed", error=str(e))
        return False
    return True
