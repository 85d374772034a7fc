"""Persistence: async engine, session factory, and Base for SQLAlchemy ORM.

Engine and session factory are created lazily on first use so import does
not trigger Settings validation.

Two ways to get a session:
- get_db(): request-scoped session (FastAPI dependency); the unit of work
  commits or rolls it back.
- get_session_factory(): for components that outlive a request (cache
  store, webhook event log). They open one short session per operation.
"""

import logging
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from app.core.config import get_settings

logger = logging.getLogger(__name__)

# Set by _ensure_engine() on first use; avoids get_settings() at import time.
engine: Any = None
AsyncSessionLocal: async_sessionmaker[AsyncSession] | None = None


def _ensure_engine() -> async_sessionmaker[AsyncSession]:
    """Create engine and AsyncSessionLocal on first use."""
    global engine, AsyncSessionLocal
    if AsyncSessionLocal is not None:
        return AsyncSessionLocal
    settings = get_settings()
    pool_size = settings.db_pool_size if settings.db_pool_size is not None else 20
    max_overflow = (
        settings.db_max_overflow if settings.db_max_overflow is not None else 30
    )
    command_timeout = (
        settings.db_command_timeout
        if settings.db_command_timeout is not None
        else 60
    )
    connect_args: dict[str, Any] = {}
    if "postgresql" in settings.database_url:
        connect_args["command_timeout"] = command_timeout
    engine = create_async_engine(
        settings.database_url,
        echo=settings.database_echo,
        pool_pre_ping=True,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_recycle=3600,
        connect_args=connect_args,
    )
    AsyncSessionLocal = async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
        autocommit=False,
    )
    return AsyncSessionLocal


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy declarative models."""


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Return the process-wide session factory (creating the engine on first call)."""
    return _ensure_engine()


async def get_db():
    """Database session dependency.

    Does not commit; the unit of work built on this session commits or
    rolls back explicitly. Yields a session and closes it on exit.
    """
    factory = _ensure_engine()
    async with factory() as session:
        yield session


async def dispose_engine() -> None:
    """Dispose the engine pool (app shutdown)."""
    global engine, AsyncSessionLocal
    if engine is not None:
        await engine.dispose()
        logger.info("Database engine disposed")
    engine = None
    AsyncSessionLocal = None
