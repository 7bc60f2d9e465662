"""Async database engine and session management.

SQLAlchemy 2.0 async; asyncpg in production, aiosqlite in tests.
The engine is built lazily so importing the models never needs a live driver.
If the database is unreachable at startup the app keeps running and the
search cache serves from memory only.
"""

import logging

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from eduscout.config import settings

logger = logging.getLogger(__name__)

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def _engine_options(url: str) -> dict:
    if url.startswith("sqlite"):
        return {}
    return {"pool_size": 5, "max_overflow": 10, "pool_pre_ping": True}


def get_engine(url: str | None = None) -> AsyncEngine:
    """Return the process-wide engine, creating it on first use."""
    global _engine, _session_factory
    if _engine is None:
        url = url or settings.database_url
        _engine = create_async_engine(url, echo=False, **_engine_options(url))
        _session_factory = async_sessionmaker(
            _engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    get_engine()
    return _session_factory


async def init_db(url: str | None = None) -> bool:
    """Create tables if they don't exist. Returns True on success."""
    from eduscout.models import Base  # noqa: F811

    try:
        engine = get_engine(url)
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database initialized successfully")
        return True
    except Exception as e:
        logger.warning("Database unavailable — continuing without persistence: %s", str(e)[:200])
        return False


async def close_db():
    """Dispose engine connections on shutdown."""
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _session_factory = None
        logger.info("Database connections closed")
