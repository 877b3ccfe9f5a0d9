"""Database connection and session management for SiteDPR.

Provides async SQLAlchemy session management for the document store.
"""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from sitedpr.config import get_config
from sitedpr.db.models import Base

# Global engine instance
_engine: AsyncEngine | None = None
_session_factory: sessionmaker | None = None


def get_engine(url: str | None = None) -> AsyncEngine:
    """Get or create singleton async engine.

    Raises:
        RuntimeError: If no database URL is configured
    """
    global _engine

    if _engine is None:
        db_config = get_config().db
        url = url or db_config.url
        if not url:
            raise RuntimeError("DATABASE_URL is not configured")

        engine_kwargs = {"echo": db_config.echo}

        # SQLite doesn't support connection pooling parameters
        if "sqlite" not in url.lower():
            engine_kwargs.update(
                {
                    "pool_pre_ping": True,  # Verify connections before using
                    "pool_recycle": 3600,
                }
            )

        _engine = create_async_engine(url, **engine_kwargs)

    return _engine


def get_session_factory() -> sessionmaker:
    """Get or create session factory."""
    global _session_factory

    if _session_factory is None:
        _session_factory = sessionmaker(
            get_engine(),
            class_=AsyncSession,
            expire_on_commit=False,  # Don't expire objects after commit
        )

    return _session_factory


async def init_db(drop: bool = False) -> None:
    """Create the document table (and optionally drop it first)."""
    engine = get_engine()

    async with engine.begin() as conn:
        if drop:
            await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    """Close database engine and dispose connections."""
    global _engine, _session_factory

    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _session_factory = None
