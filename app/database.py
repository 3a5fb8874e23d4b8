"""
Database connection and session management.

The assistant only reads the catalog, which is owned and migrated by the
main BKDocs application; sessions here never commit.
"""
from sqlalchemy import text
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import NullPool
from typing import AsyncGenerator
import logging

from app.config import settings

logger = logging.getLogger(__name__)

engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.LOG_LEVEL.upper() == "DEBUG",
    future=True,
    pool_pre_ping=True,
    poolclass=NullPool,
)

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)

# Base class for ORM models
Base = declarative_base()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Yield a read-only catalog session for one request.

    Example:
        @router.get("/{document_id}")
        async def get_document(document_id: str, db: AsyncSession = Depends(get_db)):
            return await DocumentCatalog(db).get_by_id_with_relations(document_id)
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception as e:
            logger.error("Database session error: %s", e)
            raise
        finally:
            # nothing is ever written, so always discard
            await session.rollback()


async def ping_database(session: AsyncSession) -> bool:
    """True if a trivial query round-trips."""
    try:
        await session.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error("Database health check failed: %s", e)
        return False


async def init_db() -> None:
    """
    Verify the connection and make sure accent-insensitive search works.

    Creates the ``unaccent`` extension and any catalog tables that are
    missing (local development databases start empty).
    """
    try:
        async with engine.begin() as conn:
            from app.models import database_models  # noqa: F401

            await conn.execute(text("CREATE EXTENSION IF NOT EXISTS unaccent"))
            logger.info("unaccent extension created/verified")

            await conn.run_sync(Base.metadata.create_all)
            logger.info("Catalog tables verified")

    except Exception as e:
        logger.error("Error initializing database: %s", e)
        raise


async def close_db() -> None:
    """Close database connections gracefully."""
    try:
        await engine.dispose()
        logger.info("Database connections closed")
    except Exception as e:
        logger.error("Error closing database: %s", e)
        raise
