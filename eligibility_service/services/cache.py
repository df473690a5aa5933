"""
Redis Cache Manager
Cache-aside storage for eligibility, coverage and benefit projections.
Source: https://redis.io/docs/connect/clients/python/

Every failure talking to Redis degrades to a miss on read and is logged and
swallowed on write, so a cache outage only costs latency.
"""

import json
import re
from typing import Any

from redis.asyncio import Redis
from redis.exceptions import RedisError

from eligibility_service.utils.logging import get_logger

logger = get_logger(__name__)

# Errors that mean "cache degraded", never surfaced to callers
CACHE_ERRORS = (RedisError, OSError, TimeoutError)

_GLOB_SPECIAL = re.compile(r"([*?\[\]\\])")


def escape_glob(value: str) -> str:
    """Escape Redis glob metacharacters in an identifier."""
    return _GLOB_SPECIAL.sub(r"\\\1", value)


class CacheManager:
    """
    Thin wrapper over an injected ``redis.asyncio`` client.

    The client is created at application startup and handed in; this class
    never connects on its own.
    """

    def __init__(self, redis: Redis, default_ttl: int = 300):
        self._redis = redis
        self.default_ttl = default_ttl

    # =========================================================================
    # Raw string operations
    # =========================================================================

    async def get(self, key: str) -> str | None:
        """
        Get a raw value.

        Args:
            key: Cache key

        Returns:
            Cached string or None on miss or cache failure
        """
        try:
            value = await self._redis.get(key)
        except CACHE_ERRORS as e:
            logger.warning(f"Cache read failed for {key}: {e}")
            return None
        if isinstance(value, bytes):
            value = value.decode("utf-8")
        return value

    async def set(self, key: str, value: str, ttl: int | None = None) -> bool:
        """
        Store a raw value with a TTL.

        Returns:
            True when the value was written
        """
        ttl = ttl or self.default_ttl
        try:
            await self._redis.setex(key, ttl, value)
        except CACHE_ERRORS as e:
            logger.warning(f"Cache write failed for {key}: {e}")
            return False
        return True

    async def delete(self, key: str) -> bool:
        try:
            return bool(await self._redis.delete(key))
        except CACHE_ERRORS as e:
            logger.warning(f"Cache delete failed for {key}: {e}")
            return False

    async def exists(self, key: str) -> bool:
        try:
            return bool(await self._redis.exists(key))
        except CACHE_ERRORS as e:
            logger.warning(f"Cache exists failed for {key}: {e}")
            return False

    async def delete_pattern(self, pattern: str) -> int:
        """
        Delete every key matching a glob pattern.

        Uses SCAN so large keyspaces never block the server.

        Args:
            pattern: Redis key pattern (e.g., "*:M123:*")

        Returns:
            Number of keys deleted (0 when the cache is unavailable)
        """
        try:
            keys = [key async for key in self._redis.scan_iter(match=pattern)]
            if not keys:
                return 0
            deleted = await self._redis.delete(*keys)
        except CACHE_ERRORS as e:
            logger.warning(f"Cache invalidation failed for pattern {pattern}: {e}")
            return 0
        logger.debug(f"Invalidated {deleted} cache keys matching {pattern}")
        return deleted

    # =========================================================================
    # JSON operations
    # =========================================================================

    async def get_json(self, key: str) -> Any | None:
        """Get a JSON value. Undecodable entries count as a miss."""
        raw = await self.get(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning(f"Discarding undecodable cache entry {key}: {e}")
            return None

    async def set_json(self, key: str, value: Any, ttl: int | None = None) -> bool:
        return await self.set(key, json.dumps(value, default=str), ttl)

    # =========================================================================
    # Administration
    # =========================================================================

    async def flush(self) -> bool:
        """Drop every key in the current database."""
        try:
            await self._redis.flushdb()
        except CACHE_ERRORS as e:
            logger.error(f"Cache flush failed: {e}")
            return False
        logger.info("Cache flushed")
        return True

    async def info(self) -> dict[str, Any]:
        """Key count and memory usage, empty when the cache is unavailable."""
        try:
            memory = await self._redis.info("memory")
            stats = await self._redis.info("stats")
            keys = await self._redis.dbsize()
        except CACHE_ERRORS as e:
            logger.warning(f"Cache info unavailable: {e}")
            return {}
        return {
            "cached_entries": keys,
            "cache_size": memory.get("used_memory_human"),
            "eviction_count": stats.get("evicted_keys"),
        }

    async def ping(self) -> bool:
        try:
            return bool(await self._redis.ping())
        except CACHE_ERRORS:
            return False

    # =========================================================================
    # Invalidation patterns
    # =========================================================================

    @staticmethod
    def pattern_for_member(member_id: str) -> str:
        """Every cached projection of a member, in any namespace."""
        return f"*:{escape_glob(member_id)}:*"

    @staticmethod
    def pattern_for_coverage(coverage_id: str) -> str:
        return f"*:{escape_glob(coverage_id)}"
