"""
Engine and session factory for the SQL storage backend.

SQLite (aiosqlite) in development, PostgreSQL (asyncpg) in production.
"""
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from ..config import get_settings
from .models import Base


# Global engine and session factory
_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def get_db_engine() -> AsyncEngine:
    """Engine for settings.database_url, created on first use."""
    global _engine

    if _engine is None:
        settings = get_settings()

        is_sqlite = settings.database_url.startswith("sqlite")

        _engine = create_async_engine(
            settings.database_url,
            echo=settings.debug,
            # sqlite3 connections are driven from aiosqlite's worker thread
            connect_args={"check_same_thread": False} if is_sqlite else {},
        )

    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the global engine."""
    global _session_factory

    if _session_factory is None:
        engine = get_db_engine()
        _session_factory = async_sessionmaker(
            engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    return _session_factory


@asynccontextmanager
async def get_db_session_context(
    factory: Optional[async_sessionmaker[AsyncSession]] = None,
) -> AsyncGenerator[AsyncSession, None]:
    """
    One SQLStorage unit of work: commit on success, roll back and re-raise
    on any exception. Tests pass their own factory.
    """
    factory = factory or get_session_factory()
    async with factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def init_db(engine: Optional[AsyncEngine] = None) -> None:
    """Create the party tables if missing. Run from the app lifespan when storage_type is "sql"."""
    engine = engine or get_db_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    """Dispose of the engine so the next use reconnects with fresh settings."""
    global _engine, _session_factory

    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _session_factory = None
