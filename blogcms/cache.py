import json
import logging

import redis.asyncio as redis

from blogcms.config import settings

logger = logging.getLogger(__name__)

LISTING_PREFIX = "articles:list"

# Session.info key set by writes that change listing pages.
STALE_FLAG = "listings_stale"


class CacheManager:
    """
    Cache-aside store for public article listings, backed by Redis.

    Redis is optional: when it is unreachable or not connected, reads
    report a miss and writes are skipped, so every request still falls
    through to the database.
    """

    def __init__(self) -> None:
        self._redis: redis.Redis | None = None
        self._hits: int = 0
        self._misses: int = 0

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        """Open the connection pool.  Called once at application startup."""
        self._redis = redis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
            socket_connect_timeout=2,
            socket_timeout=2,
        )
        try:
            await self._redis.ping()
            logger.info("Redis connected: %s", settings.REDIS_URL)
        except redis.RedisError as exc:
            logger.warning("Redis ping failed, listing cache disabled: %s", exc)
            await self._redis.aclose()
            self._redis = None

    async def disconnect(self) -> None:
        """Close the connection pool.  Called once at application shutdown."""
        if self._redis:
            await self._redis.aclose()
            self._redis = None

    # ------------------------------------------------------------------
    # Core cache operations
    # ------------------------------------------------------------------

    async def get(self, key: str) -> dict | None:
        """Return the cached value for *key*, or None on a miss / error."""
        if not self._redis:
            self._misses += 1
            return None
        try:
            data = await self._redis.get(key)
        except redis.RedisError as exc:
            logger.debug("Cache GET error for key=%r: %s", key, exc)
            self._misses += 1
            return None
        if data is None:
            self._misses += 1
            return None
        self._hits += 1
        return json.loads(data)

    async def set(self, key: str, value: dict, ttl: int | None = None) -> None:
        """
        Persist *value* under *key* with an optional TTL (seconds).

        Redis failures are logged at debug level; a cache write never
        fails the request that triggered it.
        """
        if not self._redis:
            return
        try:
            await self._redis.set(key, json.dumps(value, default=str), ex=ttl)
        except redis.RedisError as exc:
            logger.debug("Cache SET error for key=%r: %s", key, exc)

    async def delete_pattern(self, pattern: str) -> None:
        """Delete all keys matching *pattern* using SCAN (avoids blocking KEYS)."""
        if not self._redis:
            return
        try:
            keys = [key async for key in self._redis.scan_iter(match=pattern)]
            if keys:
                await self._redis.delete(*keys)
                logger.debug("Cache invalidated %d key(s) matching %r", len(keys), pattern)
        except redis.RedisError as exc:
            logger.debug("Cache DELETE_PATTERN error for pattern=%r: %s", pattern, exc)

    # ------------------------------------------------------------------
    # Listing helpers
    # ------------------------------------------------------------------

    @staticmethod
    def listing_key(**params) -> str:
        """Build a key encoding every parameter that shapes a listing page."""
        parts = [f"{name}={params[name]}" for name in sorted(params)]
        return f"{LISTING_PREFIX}:" + "&".join(parts)

    async def invalidate_listings(self) -> None:
        """
        Drop every cached listing page.

        Run after the commit of any write that can change a listing: article writes,
        comment moderation (comment counts, popular ordering) and term
        renames or deletes (embedded category/tag names).
        """
        await self.delete_pattern(f"{LISTING_PREFIX}:*")

    @staticmethod
    def mark_listings_stale(session) -> None:
        """
        Flag *session* so its listings are dropped once it commits.

        Listings must not be dropped earlier: a read between the drop and
        the commit would cache the pre-write rows again.
        """
        session.info[STALE_FLAG] = True

    async def invalidate_if_stale(self, session) -> None:
        """Drop cached listings if *session* changed them; clears the flag."""
        if session.info.pop(STALE_FLAG, False):
            await self.invalidate_listings()

    # ------------------------------------------------------------------
    # Observability
    # ------------------------------------------------------------------

    @property
    def stats(self) -> dict:
        """Return a snapshot of hit/miss counters for the stats endpoint."""
        total = self._hits + self._misses
        return {
            "connected": self._redis is not None,
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": round(self._hits / total * 100, 1) if total > 0 else 0.0,
        }


# Module-level singleton shared across all request handlers.
cache = CacheManager()
