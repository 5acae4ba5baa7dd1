"""
Database engine and session management
"""
import logging
from typing import AsyncIterator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from portfolio.config import settings

logger = logging.getLogger(__name__)

engine = create_async_engine(
    settings.database_url,
    echo=False,
    pool_pre_ping=True,
)

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)

Base = declarative_base()


async def get_db() -> AsyncIterator[AsyncSession]:
    """FastAPI dependency yielding a session per request"""
    async with AsyncSessionLocal() as session:
        yield session


async def get_db_session() -> AsyncIterator[AsyncSession]:
    """Session generator for scripts running outside a request"""
    async with AsyncSessionLocal() as session:
        yield session


async def init_db():
    """Create tables that do not exist yet"""
    # Register models on Base.metadata
    from portfolio import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables ensured")


async def close_db():
    """Dispose of the engine's connection pool"""
    await engine.dispose()
