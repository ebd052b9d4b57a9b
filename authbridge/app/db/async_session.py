"""Async database session management for SQLAlchemy 2.0+.

Engines are created by the application lifespan and handed to the
services that need them; nothing here is a process-wide singleton.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from authbridge.app.core.config import Settings
from authbridge.app.core.logging import get_logger

logger = get_logger(__name__)


def create_engine_from_settings(settings: Settings, database_url: str | None = None) -> AsyncEngine:
    """Create the async database engine.

    Args:
        settings: Application settings
        database_url: Optional URL overriding ``settings.database_url``

    Returns:
        AsyncEngine instance
    """
    url = database_url or settings.database_url

    if "sqlite" in url.lower():
        # SQLite needs no pool tuning
        engine = create_async_engine(url, echo=False)
        logger.info("Created SQLite async engine")
    else:
        engine = create_async_engine(
            url,
            echo=False,
            pool_recycle=settings.db_pool_recycle,
            pool_pre_ping=settings.db_pool_pre_ping,
        )
        logger.info(f"Created async engine for {engine.url.get_backend_name()}")
    return engine


def create_session_maker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Build a session maker bound to ``engine``."""
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@asynccontextmanager
async def get_async_session(
    session_maker: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """Async context manager for database sessions.

    Usage:
        async with get_async_session(session_maker) as session:
            result = await session.execute(...)

    Uncommitted changes are rolled back when the block raises.
    """
    async with session_maker() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


async def init_models(engine: AsyncEngine, tables: list | None = None) -> None:
    """Create tables (and their indexes) if they do not exist yet.

    Args:
        engine: Engine to run DDL on
        tables: Optional subset of ``Base.metadata`` tables to create
    """
    from authbridge.app.db.base import Base

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all, tables=tables)


async def dispose_engine(engine: AsyncEngine) -> None:
    """Close the engine and release its connections.

    Call this on application shutdown.
    """
    try:
        await engine.dispose()
        logger.debug("Async engine disposed successfully")
    except RuntimeError:
        # Event loop mismatch in test scenarios - connections already gone
        logger.debug("Engine dispose encountered RuntimeError (event loop mismatch)")
