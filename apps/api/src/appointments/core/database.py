"""
Database Configuration

Async SQLAlchemy engine, session factory, and declarative base.
"""

import logging
from collections.abc import AsyncGenerator

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from appointments.core.config import settings

logger = logging.getLogger(__name__)

engine = create_async_engine(
    settings.database_url,
    echo=settings.database_echo,
    pool_pre_ping=True,
)

async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


class Base(DeclarativeBase):
    """Base class for all ORM models."""


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency yielding a database session.

    Rolls back on error so a failed request never leaves a half-written
    transaction on the connection.
    """
    async with async_session_maker() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


async def init_db() -> None:
    """
    Verify connectivity and, in development, create missing tables.

    Production schemas are managed by Alembic migrations.
    """
    async with engine.begin() as conn:
        await conn.execute(text("SELECT 1"))
        if settings.is_development:
            # Import models so they are registered on Base.metadata
            from appointments.modules.applications import models  # noqa: F401
            from appointments.modules.colleges import models as college_models  # noqa: F401

            await conn.run_sync(Base.metadata.create_all)
            logger.info("Development schema ensured via create_all")


async def close_db() -> None:
    """Dispose of the engine's connection pool."""
    await engine.dispose()
