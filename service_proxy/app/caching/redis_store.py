"""
Redis-backed cache of normalized proxy responses.
"""

import json
import time
from typing import Any, Callable, Dict, Optional

import redis.asyncio as redis

from shared.logging import get_logger

from service_proxy.app.caching.cache_store import CacheEntry


class RedisCacheStore:
    """Cache entries as JSON strings with a TTL of twice the expiry.

    Redis expires old entries on its own, so ``sweep`` has nothing to do.
    """

    backend = "redis"

    def __init__(
        self,
        redis_url: str,
        expiry_seconds: int = 300,
        clock: Callable[[], float] = time.time,
        prefix: str = "proxy:cache",
    ):
        self.redis_url = redis_url
        self.expiry_seconds = expiry_seconds
        self.clock = clock
        self.prefix = prefix
        self.logger = get_logger("proxy.redis_cache")
        self._redis: Optional[redis.Redis] = None

    async def _get_redis(self) -> redis.Redis:
        """Get Redis connection."""
        if self._redis is None:
            self._redis = redis.from_url(self.redis_url)
        return self._redis

    def _make_key(self, key: str) -> str:
        return f"{self.prefix}:{key}"

    async def get(self, key: str) -> Optional[CacheEntry]:
        try:
            redis_client = await self._get_redis()
            cached = await redis_client.get(self._make_key(key))
        except Exception as e:
            self.logger.error("Cache get error", error=str(e))
            return None

        if not cached:
            return None
        if isinstance(cached, bytes):
            cached = cached.decode("utf-8")

        try:
            record = json.loads(cached)
            created_at = float(record["created_at"])
            payload = record["payload"]
        except (ValueError, KeyError, TypeError):
            self.logger.warning("Unreadable cache entry", key=key)
            return None

        if not isinstance(payload, dict) or self.clock() - created_at >= self.expiry_seconds:
            return None
        return CacheEntry(key=key, payload=payload, created_at=created_at)

    async def put(self, key: str, endpoint: str, payload: Dict[str, Any]) -> CacheEntry:
        created_at = self.clock()
        record = {"key": key, "endpoint": endpoint, "created_at": created_at, "payload": payload}
        redis_client = await self._get_redis()
        await redis_client.set(
            self._make_key(key),
            json.dumps(record, ensure_ascii=False),
            ex=2 * self.expiry_seconds,
        )
        return CacheEntry(key=key, payload=payload, created_at=created_at)

    async def sweep(self, max_age: Optional[float] = None) -> int:
        return 0

    async def close(self):
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None
