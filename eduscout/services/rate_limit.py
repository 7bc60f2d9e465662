"""Fixed-window rate limiting behind an injectable counter store.

MemoryRateLimitStore keeps counters in-process (single instance).
RedisRateLimitStore shares them across instances and falls back to memory
when Redis is unreachable.
"""

import logging
import time
from typing import Protocol

logger = logging.getLogger(__name__)


class RateLimitStore(Protocol):
    async def hit(self, key: str, limit: int, window_seconds: int) -> bool:
        """Count one request for key. Returns True if it is within the limit."""
        ...


class MemoryRateLimitStore:
    """In-process fixed-window counters."""

    def __init__(self):
        self._windows: dict[str, tuple[int, float]] = {}

    async def hit(self, key: str, limit: int, window_seconds: int) -> bool:
        now = time.monotonic()
        count, reset_at = self._windows.get(key, (0, 0.0))
        if now >= reset_at:
            self._windows[key] = (1, now + window_seconds)
            return True
        if count >= limit:
            return False
        self._windows[key] = (count + 1, reset_at)
        return True

    def reset(self) -> None:
        self._windows.clear()


class RedisRateLimitStore:
    """Redis INCR/EXPIRE counters with in-memory fallback."""

    def __init__(self, redis_url: str, prefix: str = "es:rl"):
        self.redis_url = redis_url
        self.prefix = prefix
        self._redis = None
        self._fallback = MemoryRateLimitStore()

    async def connect(self) -> bool:
        """Connect to Redis. Returns True on success."""
        try:
            import redis.asyncio as aioredis

            self._redis = aioredis.from_url(
                self.redis_url,
                decode_responses=True,
                socket_connect_timeout=3,
            )
            await self._redis.ping()
            return True
        except Exception as e:
            logger.warning("Redis connection failed — using in-memory rate limits: %s", str(e)[:100])
            self._redis = None
            return False

    async def disconnect(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None

    async def hit(self, key: str, limit: int, window_seconds: int) -> bool:
        if self._redis is not None:
            redis_key = f"{self.prefix}:{key}"
            try:
                count = await self._redis.incr(redis_key)
                if count == 1:
                    await self._redis.expire(redis_key, window_seconds)
                return count <= limit
            except Exception as e:
                logger.debug("Redis rate-limit error: %s", str(e)[:100])
        return await self._fallback.hit(key, limit, window_seconds)

    def reset(self) -> None:
        """Clear in-memory counters (Redis keys expire on their own)."""
        self._fallback.reset()


class RateLimiter:
    """Per-key request limit over a fixed window."""

    def __init__(self, store: RateLimitStore, max_requests: int, window_seconds: int = 60, name: str = ""):
        self.store = store
        self.max_requests = max_requests
        self.window = window_seconds
        self.name = name

    async def is_limited(self, key: str) -> bool:
        allowed = await self.store.hit(f"{self.name}:{key}", self.max_requests, self.window)
        if not allowed:
            logger.info("Rate limited | limiter=%s | key=%s", self.name, key[:16])
        return not allowed
