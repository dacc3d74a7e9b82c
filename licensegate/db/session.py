"""
Database Session Management - Async SQLAlchemy session factory.

A terminal talks to a single store: the local SQLite file by default, or a
PostgreSQL database when several terminals share one.
"""

from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from licensegate.config import settings
from licensegate.db.models import Base

# Global engine instance
_engine: AsyncEngine | None = None

# Session factory
_session_factory: async_sessionmaker[AsyncSession] | None = None


def get_engine() -> AsyncEngine:
    """Get or create the database engine."""
    global _engine
    if _engine is None:
        if settings.is_sqlite:
            # SQLite uses a static file; pool sizing does not apply
            _engine = create_async_engine(
                settings.database_url,
                echo=settings.log_level == "DEBUG",
            )
        else:
            _engine = create_async_engine(
                settings.database_url,
                pool_size=settings.database_pool_size,
                max_overflow=settings.database_max_overflow,
                pool_timeout=settings.database_pool_timeout,
                pool_recycle=settings.database_pool_recycle,
                echo=settings.log_level == "DEBUG",
            )
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Get or create the session factory."""
    global _session_factory
    if _session_factory is None:
        _session_factory = async_sessionmaker(
            get_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
        )
    return _session_factory


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency for a database session.

    Usage:
        @router.post("/endpoint")
        async def endpoint(db: AsyncSession = Depends(get_db)):
            ...
    """
    factory = get_session_factory()
    async with factory() as session:
        try:
            yield session
        finally:
            await session.close()


async def create_schema() -> None:
    """Create all tables directly (local store bootstrap without Alembic)."""
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_engines() -> None:
    """Close the database engine (for graceful shutdown)."""
    global _engine, _session_factory

    if _engine:
        await _engine.dispose()
        _engine = None
        _session_factory = None
