"""
Database connection management.

Provides the async engine, the session factory and the FastAPI dependency
that hands one AsyncSession to each request.
"""

import logging
from typing import AsyncGenerator

from fastapi import HTTPException, Request, status
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from connector.app.config import Settings
from connector.app.db.models import Base


logger = logging.getLogger(__name__)


def create_engine_from_settings(settings: Settings) -> AsyncEngine:
    """
    Create the async engine for the configured database URL.

    Args:
        settings: Application settings

    Returns:
        AsyncEngine bound to DATABASE.URL
    """
    db_config = settings.DATABASE
    return create_async_engine(
        db_config.URL,
        echo=db_config.ECHO_SQL,
        pool_pre_ping=True,
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


async def init_models(engine: AsyncEngine) -> None:
    """Create missing tables."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables ensured", extra={"tables": sorted(Base.metadata.tables)})


async def get_async_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency yielding a session from the app's session factory.

    Raises:
        HTTPException: 503 if the database was not initialized at startup
    """
    session_factory = getattr(request.app.state, "session_factory", None)
    if session_factory is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database not initialized",
        )

    async with session_factory() as session:
        yield session
