"""
Recommendation Cache

Two-tier response cache in front of the engine.

L1: In-process TTL cache
L2: Redis (optional)

Keys always carry the user, the strategy and the limit, and every entry
expires, since a new rental changes what should be recommended.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

import orjson
import redis.asyncio as aioredis
from cachetools import TTLCache
from redis.exceptions import RedisError

KEY_PREFIX = "recs"


@dataclass
class CacheStats:
    """Cache performance statistics"""
    hits: int = 0
    misses: int = 0
    total_requests: int = 0
    avg_latency_ms: float = 0.0

    @property
    def hit_rate(self) -> float:
        return self.hits / max(1, self.total_requests)


def make_cache_key(user_id: Any, strategy: str, limit: int) -> str:
    return f"{KEY_PREFIX}:{user_id}:{strategy}:{limit}"


class CacheManager:
    """
    Multi-tier cache manager for recommendation responses
    """

    def __init__(
        self,
        max_entries: int = 10000,
        ttl_seconds: int = 300,
        redis_url: Optional[str] = None,
        redis_client: Optional[aioredis.Redis] = None,
        timer: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize cache manager

        Args:
            max_entries: Maximum number of L1 entries
            ttl_seconds: Time to live of every entry
            redis_url: Optional Redis URL for the shared L2 tier
            redis_client: Pre-built Redis client (takes precedence over redis_url)
            timer: Clock used by the L1 tier
        """
        self.ttl_seconds = ttl_seconds
        self.l1_cache: TTLCache = TTLCache(maxsize=max_entries, ttl=ttl_seconds, timer=timer)

        self.redis_client = redis_client
        if self.redis_client is None and redis_url:
            self.redis_client = aioredis.from_url(redis_url)

        self.stats = CacheStats()
        self.logger = logging.getLogger(__name__)

    async def get(self, key: str) -> Optional[Any]:
        """
        Get value from cache with multi-tier lookup

        Args:
            key: Cache key

        Returns:
            Cached value or None
        """
        start_time = time.time()
        self.stats.total_requests += 1

        value = self.l1_cache.get(key)
        if value is None:
            value = await self._get_from_redis(key)
            if value is not None:
                self.l1_cache[key] = value

        if value is None:
            self.stats.misses += 1
            return None

        self.stats.hits += 1
        self._update_avg_latency((time.time() - start_time) * 1000)
        return value

    async def set(self, key: str, value: Any):
        """Store a JSON-serializable value in every tier"""
        self.l1_cache[key] = value
        await self._set_to_redis(key, value)

    async def delete(self, key: str):
        """Delete key from all cache tiers"""
        self.l1_cache.pop(key, None)
        if self.redis_client is not None:
            try:
                await self.redis_client.delete(key)
            except RedisError as e:
                self.logger.warning(f"Redis delete failed for {key}: {e}")

    async def invalidate_user(self, user_id: Any) -> int:
        """Invalidate all cache entries for a user; returns the number of L1 entries dropped"""
        prefix = f"{KEY_PREFIX}:{user_id}:"
        keys_to_delete = [key for key in list(self.l1_cache.keys()) if key.startswith(prefix)]

        for key in keys_to_delete:
            self.l1_cache.pop(key, None)

        if self.redis_client is not None:
            try:
                redis_keys = [key async for key in self.redis_client.scan_iter(match=f"{prefix}*")]
                if redis_keys:
                    await self.redis_client.delete(*redis_keys)
            except RedisError as e:
                self.logger.warning(f"Redis invalidation failed for user {user_id}: {e}")

        self.logger.debug(f"Invalidated {len(keys_to_delete)} cache entries for user {user_id}")
        return len(keys_to_delete)

    async def _get_from_redis(self, key: str) -> Optional[Any]:
        if self.redis_client is None:
            return None
        try:
            raw = await self.redis_client.get(key)
        except RedisError as e:
            self.logger.warning(f"Redis get failed for {key}: {e}")
            return None
        if raw is None:
            return None
        return orjson.loads(raw)

    async def _set_to_redis(self, key: str, value: Any):
        if self.redis_client is None:
            return
        try:
            await self.redis_client.set(key, orjson.dumps(value), ex=self.ttl_seconds)
        except RedisError as e:
            self.logger.warning(f"Redis set failed for {key}: {e}")

    def _update_avg_latency(self, latency_ms: float):
        """Update average latency using exponential moving average"""
        alpha = 0.1  # Smoothing factor
        if self.stats.avg_latency_ms == 0:
            self.stats.avg_latency_ms = latency_ms
        else:
            self.stats.avg_latency_ms = (
                alpha * latency_ms +
                (1 - alpha) * self.stats.avg_latency_ms
            )

    async def ping(self) -> bool:
        """Health check for cache system"""
        if self.redis_client is None:
            return True
        try:
            return bool(await self.redis_client.ping())
        except RedisError as e:
            self.logger.error(f"Cache ping failed: {e}")
            return False

    def get_stats(self) -> Dict[str, Any]:
        """Get cache performance statistics"""
        return {
            "hit_rate": self.stats.hit_rate,
            "total_requests": self.stats.total_requests,
            "hits": self.stats.hits,
            "misses": self.stats.misses,
            "avg_latency_ms": self.stats.avg_latency_ms,
            "l1_cache_size": len(self.l1_cache),
            "max_items": self.l1_cache.maxsize,
            "l2_enabled": self.redis_client is not None
        }

    def clear_stats(self):
        """Reset cache statistics"""
        self.stats = CacheStats()

    async def close(self):
        """Close cache connections"""
        self.logger.info("Closing cache connections...")

        if self.redis_client is not None:
            await self.redis_client.aclose()

        self.l1_cache.clear()

        self.logger.info("Cache connections closed")
