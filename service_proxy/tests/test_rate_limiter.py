"""
Unit tests for the proxy rate limiters.
"""

import asyncio
import json
from unittest.mock import AsyncMock, patch

import pytest

from service_proxy.app.ratelimit.fixed_window import FileRateLimiter, RedisRateLimiter
from shared.test_helpers import FakeClock


class TestFileRateLimiter:
    """Test cases for FileRateLimiter."""

    @pytest.fixture
    def clock(self):
        return FakeClock()

    @pytest.fixture
    def rate_limiter(self, tmp_path, clock):
        return FileRateLimiter(tmp_path, limit=60, window_seconds=60, clock=clock)

    @pytest.mark.asyncio
    async def test_sixty_allowed_then_denied(self, rate_limiter):
        """The 61st request inside the window is rejected."""
        for _ in range(60):
            assert await rate_limiter.allow("client-a") is True

        result = await rate_limiter.check("client-a")

        assert result["allowed"] is False
        assert result["current_count"] == 61
        assert result["limit"] == 60
        assert result["retry_after"] == 60

    @pytest.mark.asyncio
    async def test_window_resets_after_boundary(self, rate_limiter, clock):
        """A request after the window boundary starts a new window at 1."""
        for _ in range(61):
            await rate_limiter.check("client-a")

        clock.now += 60
        result = await rate_limiter.check("client-a")

        assert result["allowed"] is True
        assert result["current_count"] == 1
        assert result["remaining"] == 59

    @pytest.mark.asyncio
    async def test_clients_are_independent(self, rate_limiter):
        for _ in range(61):
            await rate_limiter.check("client-a")

        assert await rate_limiter.allow("client-b") is True

    @pytest.mark.asyncio
    async def test_window_file_layout(self, rate_limiter, tmp_path, clock):
        await rate_limiter.check("client-a")
        await rate_limiter.check("client-a")

        files = list(tmp_path.glob("rate_*.json"))
        assert len(files) == 1
        assert len(files[0].stem) == len("rate_") + 64
        assert json.loads(files[0].read_text()) == {"timestamp": clock.now, "count": 2}

    @pytest.mark.asyncio
    async def test_corrupt_window_is_reset(self, rate_limiter, tmp_path):
        await rate_limiter.check("client-a")
        window_file = next(tmp_path.glob("rate_*.json"))
        window_file.write_text("garbage")

        result = await rate_limiter.check("client-a")

        assert result["allowed"] is True
        assert result["current_count"] == 1

    @pytest.mark.asyncio
    async def test_undecodable_window_is_reset(self, rate_limiter, tmp_path):
        await rate_limiter.check("client-a")
        window_file = next(tmp_path.glob("rate_*.json"))
        window_file.write_bytes(b"\xff\xfe\x00garbage")

        result = await rate_limiter.check("client-a")

        assert result["allowed"] is True
        assert result["current_count"] == 1
        assert json.loads(window_file.read_text())["count"] == 1

    @pytest.mark.asyncio
    async def test_concurrent_checks_count_every_request(self, tmp_path, clock):
        """Simultaneous checks serialize on the window file lock."""
        rate_limiter = FileRateLimiter(tmp_path, limit=1000, window_seconds=60, clock=clock)

        results = await asyncio.gather(*(rate_limiter.check("client-a") for _ in range(200)))

        assert sorted(r["current_count"] for r in results) == list(range(1, 201))
        window_file = next(tmp_path.glob("rate_*.json"))
        assert json.loads(window_file.read_text())["count"] == 200


class TestRedisRateLimiter:
    """Test cases for RedisRateLimiter."""

    @pytest.fixture
    def rate_limiter(self):
        return RedisRateLimiter("redis://localhost:6379/0", limit=60, window_seconds=60)

    @pytest.mark.asyncio
    async def test_first_request_sets_expiry(self, rate_limiter):
        with patch.object(rate_limiter, "_get_redis", new_callable=AsyncMock) as mock_get_redis:
            mock_redis = AsyncMock()
            mock_redis.incr.return_value = 1
            mock_get_redis.return_value = mock_redis

            result = await rate_limiter.check("client-a")

            assert result["allowed"] is True
            assert result["current_count"] == 1
            mock_redis.expire.assert_awaited_once_with("proxy:rate_limit:client-a", 60)

    @pytest.mark.asyncio
    async def test_limit_exceeded(self, rate_limiter):
        with patch.object(rate_limiter, "_get_redis", new_callable=AsyncMock) as mock_get_redis:
            mock_redis = AsyncMock()
            mock_redis.incr.return_value = 61
            mock_redis.ttl.return_value = 42
            mock_get_redis.return_value = mock_redis

            result = await rate_limiter.check("client-a")

            assert result["allowed"] is False
            assert result["reset_in_seconds"] == 42
            assert result["retry_after"] == 60

    @pytest.mark.asyncio
    async def test_redis_failure_allows(self, rate_limiter):
        """An unavailable Redis does not block traffic."""
        with patch.object(rate_limiter, "_get_redis", new_callable=AsyncMock) as mock_get_redis:
            mock_get_redis.side_effect = ConnectionError("redis down")

            result = await rate_limiter.check("client-a")

            assert result["allowed"] is True
            assert "error" in result
