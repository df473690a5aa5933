"""
Database Connection Management
Async SQLAlchemy with connection pooling
Source: https://docs.sqlalchemy.org/en/20/orm/extensions/asyncio.html

The engine and session factory are built once at application startup and
handed to the components that need them; nothing here is a module global.
"""

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from eligibility_service.api.config import Settings
from eligibility_service.utils.logging import get_logger

logger = get_logger(__name__)


def create_engine(settings: Settings) -> AsyncEngine:
    """
    Create the async engine for the coverage store.

    Args:
        settings: Application settings

    Returns:
        AsyncEngine instance
    """
    logger.info(f"Creating database engine: {settings.database_url.split('@')[-1]}")

    if settings.is_testing:
        # NullPool does not accept pool_size/max_overflow/pool_timeout
        return create_async_engine(
            settings.database_url,
            echo=settings.DEBUG,
            poolclass=NullPool,
        )

    return create_async_engine(
        settings.database_url,
        echo=settings.DEBUG,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_timeout=settings.DB_POOL_TIMEOUT,
        pool_pre_ping=True,  # Verify connections before using
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to an engine."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


async def close_engine(engine: AsyncEngine) -> None:
    """Dispose of the connection pool on shutdown."""
    logger.info("Closing database connection pool...")
    await engine.dispose()
    logger.info("Database connection pool closed")


async def check_db_connection(engine: AsyncEngine) -> bool:
    """
    Check if database connection is healthy.

    Returns:
        True if connection is healthy, False otherwise
    """
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except (SQLAlchemyError, OSError) as e:
        logger.error(f"Database connection check failed: {e}")
        return False
