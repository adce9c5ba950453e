"""
Database Connection Management

Async SQLAlchemy 2.0 engine with a bounded connection pool. Callers block for
up to ``pool_timeout`` seconds when every pooled connection is checked out.
"""

import time
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from orderstream.config import DatabaseSettings
from orderstream.database.models import Base

logger = structlog.get_logger(__name__)


def create_engine(settings: DatabaseSettings) -> AsyncEngine:
    """
    Create the async engine and its connection pool.

    Args:
        settings: Database section of the application settings

    Returns:
        AsyncEngine: Engine backed by an async-adapted queue pool
    """
    engine = create_async_engine(
        settings.async_url,
        echo=settings.echo,
        pool_pre_ping=True,  # Verify connections before use
        pool_size=settings.pool_size,
        max_overflow=settings.max_overflow,
        pool_timeout=settings.pool_timeout,
        pool_recycle=settings.pool_recycle,
    )
    logger.info(
        "Database engine created",
        host=settings.host,
        database=settings.db,
        pool_size=settings.pool_size,
    )
    return engine


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory shared by the store"""
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


async def init_database(engine: AsyncEngine, create_schema: bool = False) -> None:
    """
    Verify connectivity and optionally create the schema.

    Args:
        engine: Engine returned by ``create_engine``
        create_schema: Create missing tables

    Raises:
        SQLAlchemyError: If the database is unreachable
    """
    try:
        async with engine.begin() as conn:
            await conn.execute(text("SELECT 1"))
            if create_schema:
                await conn.run_sync(Base.metadata.create_all)
        logger.info("Database connection established", schema_created=create_schema)
    except Exception as e:
        logger.error("Failed to connect to database", error=str(e))
        raise


async def close_database(engine: AsyncEngine) -> None:
    """
    Close the database connection pool.

    Connections still checked out are closed when they are returned.
    """
    await engine.dispose()
    logger.info("Database connection pool closed")


@asynccontextmanager
async def get_db(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """
    Get a database session from the pool.

    Context manager that provides a database session and handles
    commit/rollback/close automatically.

    Example:
        async with get_db(session_factory) as db:
            result = await db.execute(query)
    """
    session = session_factory()
    try:
        yield session
        await session.commit()
    except Exception as e:
        logger.error("Database session error, rolling back", error=str(e), error_type=type(e).__name__)
        await session.rollback()
        raise
    finally:
        await session.close()


async def check_database_health(engine: AsyncEngine) -> dict:
    """
    Check database health status.

    Returns:
        dict: Health status with latency information
    """
    try:
        start = time.perf_counter()
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        latency_ms = (time.perf_counter() - start) * 1000

        pool = engine.pool
        return {
            "status": "healthy",
            "latency_ms": round(latency_ms, 2),
            "pool_size": pool.size() if hasattr(pool, "size") else None,
        }
    except Exception as e:
        return {
            "status": "unhealthy",
            "error": str(e),
        }
