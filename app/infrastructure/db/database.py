"""
Database Configuration
SQLAlchemy async setup (SQLite by default, PostgreSQL in production).
Only the tracked-account set lives here.
"""

import logging
import os
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from app.config import settings

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Base class for all database models"""
    pass


def async_database_url(url: str) -> str:
    """Pick async drivers: postgres:// -> postgresql+asyncpg://, sqlite:// -> sqlite+aiosqlite://"""
    if url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql://", 1)
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    if url.startswith("sqlite://"):
        return url.replace("sqlite://", "sqlite+aiosqlite://", 1)
    return url


def build_engine(url: str, echo: bool = False) -> AsyncEngine:
    url = async_database_url(url)
    kwargs = {"echo": echo}
    if not url.startswith("sqlite"):
        kwargs.update(pool_size=5, max_overflow=10, pool_timeout=30, pool_recycle=3600)
    return create_async_engine(url, **kwargs)


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(bind, class_=AsyncSession, expire_on_commit=False)


async def create_tables(bind: AsyncEngine) -> None:
    # Models must be imported so they register on Base.metadata
    from app.infrastructure.db import models  # noqa: F401

    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


# Alembic builds its own engine from the same URL
ALEMBIC_MODE = os.getenv("ALEMBIC_MODE") == "1"

engine: Optional[AsyncEngine] = None
async_session_factory: Optional[async_sessionmaker] = None
if not ALEMBIC_MODE:
    engine = build_engine(settings.DATABASE_URL, echo=settings.DEBUG)
    async_session_factory = build_session_factory(engine)


async def init_db():
    """Initialize database (create tables unless migrations own the schema)"""
    if not settings.AUTO_CREATE_TABLES:
        logger.info("AUTO_CREATE_TABLES disabled; expecting alembic-managed schema")
        return
    await create_tables(engine)


async def close_db():
    """Close database connections"""
    if engine is not None:
        await engine.dispose()
