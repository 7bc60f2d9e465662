"""Search result cache — PostgreSQL table with in-memory fallback.

The `search_cache` table is an append-only log: every write inserts a new
row, and a read returns the newest row for (query, bucket) that has not
expired. Concurrent misses for the same key may both insert; the newest row
wins, so no locking is needed.

Graceful degradation: without a database (or on any DB error) entries are
served from a cachetools.TTLCache. Errors are logged and treated as misses;
nothing here raises into the pipeline.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any

from cachetools import TTLCache
from sqlalchemy import delete, or_, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from eduscout.config import settings
from eduscout.models.search_cache import SearchCacheEntry

logger = logging.getLogger(__name__)


def make_bucket_key(scope: str, level: str) -> str:
    """Cache partition for a content-type scope at a learning level."""
    return f"{scope}:{level}"


class SearchCache:
    """Read-through cache for SearchResultSet payloads."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        ttl: int | None = None,
        memory_size: int = 512,
    ):
        self._session_factory = session_factory
        self.ttl = ttl or settings.cache_ttl_search
        self._fallback: TTLCache = TTLCache(maxsize=memory_size, ttl=self.ttl)

    @property
    def persistent(self) -> bool:
        return self._session_factory is not None

    def attach(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        """Enable the database backend (called once the DB is reachable)."""
        self._session_factory = session_factory

    def detach(self) -> None:
        self._session_factory = None

    async def get(self, query_key: str, bucket_key: str) -> dict[str, Any] | None:
        """Return the newest unexpired payload, or None on miss/error."""
        if self._session_factory is not None:
            try:
                payload = await self._db_get(query_key, bucket_key)
                if payload is not None:
                    logger.info("Cache HIT (db) | query=%s | bucket=%s", query_key[:40], bucket_key)
                    return payload
            except Exception as e:
                logger.warning("Cache read error, treating as miss | %s", str(e)[:200])

        payload = self._fallback.get((query_key, bucket_key))
        if payload is not None:
            logger.info("Cache HIT (memory) | query=%s | bucket=%s", query_key[:40], bucket_key)
            return payload

        logger.info("Cache MISS | query=%s | bucket=%s", query_key[:40], bucket_key)
        return None

    async def put(self, query_key: str, bucket_key: str, payload: dict[str, Any]) -> None:
        """Insert a new version of the entry. Best-effort, never raises."""
        if self._session_factory is not None:
            try:
                await self._db_insert(query_key, bucket_key, payload)
                logger.info("Cache SET (db) | query=%s | bucket=%s | ttl=%ds", query_key[:40], bucket_key, self.ttl)
            except Exception as e:
                logger.warning("Cache write error | %s", str(e)[:200])

        # Always write to in-memory fallback too
        self._fallback[(query_key, bucket_key)] = payload

    async def purge_expired(self) -> int:
        """Delete expired rows. Returns the number of rows removed."""
        if self._session_factory is None:
            return 0
        now = datetime.now(timezone.utc)
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    delete(SearchCacheEntry).where(SearchCacheEntry.expires_at <= now)
                )
                await session.commit()
                removed = result.rowcount or 0
        except Exception as e:
            logger.warning("Cache purge error | %s", str(e)[:200])
            return 0
        logger.info("Cache purged %d expired rows", removed)
        return removed

    def clear_memory(self) -> None:
        self._fallback.clear()

    async def _db_get(self, query_key: str, bucket_key: str) -> dict[str, Any] | None:
        now = datetime.now(timezone.utc)
        stmt = (
            select(SearchCacheEntry.results)
            .where(
                SearchCacheEntry.query == query_key,
                SearchCacheEntry.content_type == bucket_key,
                or_(SearchCacheEntry.expires_at.is_(None), SearchCacheEntry.expires_at > now),
            )
            .order_by(SearchCacheEntry.created_at.desc())
            .limit(1)
        )
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return result.scalar_one_or_none()

    async def _db_insert(self, query_key: str, bucket_key: str, payload: dict[str, Any]) -> None:
        now = datetime.now(timezone.utc)
        async with self._session_factory() as session:
            session.add(SearchCacheEntry(
                query=query_key,
                content_type=bucket_key,
                results=payload,
                created_at=now,
                expires_at=now + timedelta(seconds=self.ttl),
            ))
            await session.commit()


# Singleton instance
search_cache = SearchCache()
