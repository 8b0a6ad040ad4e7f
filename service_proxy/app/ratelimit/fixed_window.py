"""
Fixed-window rate limiters for the proxy service.
"""

import asyncio
import fcntl
import hashlib
import json
import os
import time
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Union

import redis.asyncio as redis

from shared.logging import get_logger


def _window_result(allowed: bool, count: int, limit: int, window: int, reset_in: int) -> Dict[str, Any]:
    result: Dict[str, Any] = {
        "allowed": allowed,
        "current_count": count,
        "limit": limit,
        "remaining": max(0, limit - count),
        "reset_in_seconds": max(0, reset_in),
    }
    if not allowed:
        result["retry_after"] = window
    return result


class FileRateLimiter:
    """Per-client windows persisted as ``rate_<hash>.json`` files.

    The read-modify-write of a window happens under an exclusive ``flock``
    on the window file, so concurrent workers cannot lose increments.
    """

    def __init__(
        self,
        cache_dir: Union[str, Path],
        limit: int = 60,
        window_seconds: int = 60,
        clock: Callable[[], float] = time.time,
    ):
        self.cache_dir = Path(cache_dir)
        self.limit = limit
        self.window_seconds = window_seconds
        self.clock = clock
        self.logger = get_logger("proxy.rate_limiter")

    def _path(self, client_id: str) -> Path:
        digest = hashlib.sha256(client_id.encode("utf-8")).hexdigest()
        return self.cache_dir / f"rate_{digest}.json"

    def _check(self, client_id: str) -> Dict[str, Any]:
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        now = self.clock()

        fd = os.open(self._path(client_id), os.O_RDWR | os.O_CREAT, 0o644)
        with os.fdopen(fd, "r+b") as handle:
            fcntl.flock(handle.fileno(), fcntl.LOCK_EX)
            try:
                raw = handle.read()
                try:
                    window = json.loads(raw.decode("utf-8")) if raw else None
                    started = float(window["timestamp"])
                    count = int(window["count"])
                except (ValueError, KeyError, TypeError):
                    window = None

                if window is None or now - started >= self.window_seconds:
                    started, count = now, 1
                else:
                    count += 1

                handle.seek(0)
                handle.truncate()
                handle.write(json.dumps({"timestamp": started, "count": count}).encode("utf-8"))
                handle.flush()
            finally:
                fcntl.flock(handle.fileno(), fcntl.LOCK_UN)

        reset_in = int(started + self.window_seconds - now)
        return _window_result(count <= self.limit, count, self.limit, self.window_seconds, reset_in)

    async def check(self, client_id: str) -> Dict[str, Any]:
        """Count one request for ``client_id`` and report whether it is allowed."""
        loop = asyncio.get_running_loop()
        try:
            result = await loop.run_in_executor(None, self._check, client_id)
        except OSError as e:
            self.logger.error("Rate limit check error", error=str(e))
            result = _window_result(True, 0, self.limit, self.window_seconds, self.window_seconds)
            result["error"] = str(e)
            return result

        if not result["allowed"]:
            self.logger.warning(
                "Rate limit exceeded",
                current_count=result["current_count"],
                limit=self.limit,
            )
        return result

    async def allow(self, client_id: str) -> bool:
        return (await self.check(client_id))["allowed"]

    async def close(self):
        pass


class RedisRateLimiter:
    """Distributed fixed-window limiter using Redis ``INCR`` + ``EXPIRE``."""

    def __init__(self, redis_url: str, limit: int = 60, window_seconds: int = 60):
        self.redis_url = redis_url
        self.limit = limit
        self.window_seconds = window_seconds
        self.logger = get_logger("proxy.rate_limiter")
        self._redis: Optional[redis.Redis] = None

    async def _get_redis(self) -> redis.Redis:
        """Get Redis connection."""
        if self._redis is None:
            self._redis = redis.from_url(self.redis_url)
        return self._redis

    def _make_key(self, client_id: str) -> str:
        """Generate rate limit key."""
        return f"proxy:rate_limit:{client_id}"

    async def check(self, client_id: str) -> Dict[str, Any]:
        key = self._make_key(client_id)
        try:
            redis_client = await self._get_redis()
            count = int(await redis_client.incr(key))
            if count == 1:
                await redis_client.expire(key, self.window_seconds)
                ttl = self.window_seconds
            else:
                ttl = await redis_client.ttl(key)
                if ttl is None or ttl < 0:
                    # window key lost its expiry; start it again
                    await redis_client.expire(key, self.window_seconds)
                    ttl = self.window_seconds
        except Exception as e:
            self.logger.error("Rate limit check error", error=str(e))
            result = _window_result(True, 0, self.limit, self.window_seconds, self.window_seconds)
            result["error"] = str(e)
            return result

        result = _window_result(count <= self.limit, count, self.limit, self.window_seconds, int(ttl))
        if not result["allowed"]:
            self.logger.warning("Rate limit exceeded", current_count=count, limit=self.limit)
        return result

    async def allow(self, client_id: str) -> bool:
        return (await self.check(client_id))["allowed"]

    async def close(self):
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None


def build_rate_limiter(settings, clock: Optional[Callable[[], float]] = None):
    """Create the rate limiter for the configured backend."""
    if settings.cache_backend.strip().lower() == "redis":
        return RedisRateLimiter(
            settings.redis_url,
            limit=settings.rate_limit_requests,
            window_seconds=settings.rate_limit_window_seconds,
        )
    return FileRateLimiter(
        settings.cache_dir,
        limit=settings.rate_limit_requests,
        window_seconds=settings.rate_limit_window_seconds,
        clock=clock or time.time,
    )
