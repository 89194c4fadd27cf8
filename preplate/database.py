"""
Database Connection Module
Handles the relational store using the SQLAlchemy async engine.

PostgreSQL (psycopg) in deployments, SQLite (aiosqlite) for local work
and the test suite.
"""

import logging
from typing import AsyncIterator

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import NullPool

from preplate.core.config import get_settings

logger = logging.getLogger(__name__)


def build_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    """
    Create the async engine for ``database_url``.

    SQLite connections are opened per session (no pooling) so a
    connection is never shared between event loops.
    """
    if database_url.startswith("sqlite"):
        return create_async_engine(
            database_url,
            echo=echo,
            poolclass=NullPool,
            connect_args={"check_same_thread": False},
        )
    return create_async_engine(
        database_url,
        echo=echo,
        pool_size=5,  # Connection pool size
        max_overflow=10,  # Extra connections when pool is full
        pool_pre_ping=True,
    )


engine = build_engine(get_settings().database_url)

# Session factory - creates new database sessions
async_session_maker = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False  # Objects remain accessible after commit
)


# Base class for all our models
class Base(DeclarativeBase):
    pass


async def get_db() -> AsyncIterator[AsyncSession]:
    """
    Dependency injection for FastAPI routes.
    Yields a database session and ensures cleanup.
    """
    async with async_session_maker() as session:
        try:
            yield session
        finally:
            await session.close()


async def init_db() -> None:
    """
    Create all tables in database.
    Called once at application startup.
    """
    # registers every table on Base.metadata
    import preplate.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables created")
