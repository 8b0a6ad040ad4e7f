"""
Unit tests for the proxy cache stores and cache manager.
"""

import json
import os
from unittest.mock import AsyncMock, patch

import pytest

from service_proxy.app.caching.cache_manager import CacheManager
from service_proxy.app.caching.cache_store import FileCacheStore, make_cache_key
from service_proxy.app.caching.redis_store import RedisCacheStore
from shared.metrics import MetricsCollector
from shared.test_helpers import FakeClock


class TestCacheKey:
    """Test cases for make_cache_key."""

    def test_parameter_order_does_not_matter(self):
        first = make_cache_key("nws-alerts", {"area": "FL", "zoom": "5"})
        second = make_cache_key("nws-alerts", {"zoom": "5", "area": "FL"})
        assert first == second

    def test_different_requests_get_different_keys(self):
        keys = {
            make_cache_key("nws-alerts", {}),
            make_cache_key("nws-alerts", {"area": "FL"}),
            make_cache_key("nws-alerts", {"area": "TX"}),
            make_cache_key("nhc-storms", {"area": "FL"}),
        }
        assert len(keys) == 4

    def test_key_is_sha256_hex(self):
        key = make_cache_key("hurdat2", {})
        assert len(key) == 64
        assert all(c in "0123456789abcdef" for c in key)


class TestFileCacheStore:
    """Test cases for FileCacheStore."""

    @pytest.fixture
    def clock(self):
        return FakeClock()

    @pytest.fixture
    def store(self, tmp_path, clock):
        return FileCacheStore(tmp_path / "cache", expiry_seconds=300, clock=clock)

    @pytest.mark.asyncio
    async def test_put_then_get(self, store):
        """A stored document is returned while fresh."""
        key = make_cache_key("nhc-storms", {})
        await store.put(key, "nhc-storms", {"storms": []})

        entry = await store.get(key)

        assert entry is not None
        assert entry.payload == {"storms": []}

    @pytest.mark.asyncio
    async def test_freshness_window(self, store, clock):
        """Entries are fresh just before expiry and absent just after."""
        key = make_cache_key("nhc-storms", {})
        await store.put(key, "nhc-storms", {"storms": []})
        start = clock.now

        clock.now = start + 299
        assert await store.get(key) is not None

        clock.now = start + 301
        assert await store.get(key) is None

    @pytest.mark.asyncio
    async def test_missing_key(self, store):
        assert await store.get(make_cache_key("hurdat2", {})) is None

    @pytest.mark.asyncio
    async def test_file_layout(self, store):
        """Entries are one JSON file per key and no temp files remain."""
        key = make_cache_key("nws-alerts", {"area": "FL"})
        await store.put(key, "nws-alerts", {"alerts": []})

        files = os.listdir(store.cache_dir)
        assert files == [f"{key}.json"]

        record = json.loads((store.cache_dir / f"{key}.json").read_text())
        assert record["key"] == key
        assert record["endpoint"] == "nws-alerts"
        assert record["payload"] == {"alerts": []}

    @pytest.mark.asyncio
    async def test_corrupt_entry_is_absent(self, store):
        key = make_cache_key("hurdat2", {})
        store.cache_dir.mkdir(parents=True)
        (store.cache_dir / f"{key}.json").write_text("{not json")

        assert await store.get(key) is None

    @pytest.mark.asyncio
    async def test_sweep_removes_old_entries_only(self, store, clock):
        """Sweep reclaims entries older than twice the expiry."""
        old_key = make_cache_key("nhc-storms", {})
        await store.put(old_key, "nhc-storms", {"storms": []})

        clock.now += 500
        new_key = make_cache_key("hurdat2", {})
        await store.put(new_key, "hurdat2", {"storms": []})

        clock.now += 101
        removed = await store.sweep()

        assert removed == 1
        assert not (store.cache_dir / f"{old_key}.json").exists()
        assert (store.cache_dir / f"{new_key}.json").exists()

    @pytest.mark.asyncio
    async def test_sweep_ignores_rate_limit_files(self, store, clock):
        store.cache_dir.mkdir(parents=True)
        rate_file = store.cache_dir / f"rate_{'a' * 64}.json"
        rate_file.write_text(json.dumps({"timestamp": 0, "count": 1}))
        clock.now += 10_000

        assert await store.sweep() == 0
        assert rate_file.exists()

    @pytest.mark.asyncio
    async def test_sweep_without_directory(self, store):
        assert await store.sweep() == 0


class TestRedisCacheStore:
    """Test cases for RedisCacheStore."""

    @pytest.fixture
    def clock(self):
        return FakeClock()

    @pytest.fixture
    def store(self, clock):
        return RedisCacheStore("redis://localhost:6379/0", expiry_seconds=300, clock=clock)

    @pytest.mark.asyncio
    async def test_put_sets_double_expiry_ttl(self, store):
        with patch.object(store, "_get_redis", new_callable=AsyncMock) as mock_get_redis:
            mock_redis = AsyncMock()
            mock_get_redis.return_value = mock_redis

            await store.put("abc", "nhc-storms", {"storms": []})

            mock_redis.set.assert_awaited_once()
            args, kwargs = mock_redis.set.call_args
            assert args[0] == "proxy:cache:abc"
            assert json.loads(args[1])["payload"] == {"storms": []}
            assert kwargs["ex"] == 600

    @pytest.mark.asyncio
    async def test_get_respects_expiry(self, store, clock):
        record = json.dumps({"key": "abc", "endpoint": "hurdat2", "created_at": clock.now, "payload": {"storms": []}})

        with patch.object(store, "_get_redis", new_callable=AsyncMock) as mock_get_redis:
            mock_redis = AsyncMock()
            mock_redis.get.return_value = record.encode("utf-8")
            mock_get_redis.return_value = mock_redis

            entry = await store.get("abc")
            assert entry is not None
            assert entry.payload == {"storms": []}

            clock.now += 300
            assert await store.get("abc") is None

    @pytest.mark.asyncio
    async def test_get_redis_error_is_a_miss(self, store):
        with patch.object(store, "_get_redis", new_callable=AsyncMock) as mock_get_redis:
            mock_redis = AsyncMock()
            mock_redis.get.side_effect = ConnectionError("redis down")
            mock_get_redis.return_value = mock_redis

            assert await store.get("abc") is None

    @pytest.mark.asyncio
    async def test_sweep_is_noop(self, store):
        assert await store.sweep() == 0


class TestCacheManager:
    """Test cases for CacheManager."""

    @pytest.fixture
    def metrics(self):
        return MetricsCollector("proxy")

    @pytest.fixture
    def store(self, tmp_path):
        return FileCacheStore(tmp_path, expiry_seconds=300, clock=FakeClock())

    @pytest.mark.asyncio
    async def test_lookup_records_hits_and_misses(self, store, metrics):
        manager = CacheManager(store, metrics=metrics)

        assert await manager.lookup("nhc-storms", {}) is None
        assert await manager.store_payload("nhc-storms", {}, {"storms": []}) is True
        assert (await manager.lookup("nhc-storms", {})).payload == {"storms": []}

        assert metrics.sample_value("cache_misses_total", endpoint="nhc-storms") == 1.0
        assert metrics.sample_value("cache_hits_total", endpoint="nhc-storms") == 1.0

    @pytest.mark.asyncio
    async def test_store_failure_is_reported_not_raised(self, store):
        manager = CacheManager(store)
        with patch.object(store, "put", new_callable=AsyncMock) as mock_put:
            mock_put.side_effect = OSError("disk full")
            assert await manager.store_payload("nhc-storms", {}, {"storms": []}) is False

    def test_sweep_probability(self, store):
        assert CacheManager(store, sweep_probability=0.01, rng=lambda: 0.005).should_sweep() is True
        assert CacheManager(store, sweep_probability=0.01, rng=lambda: 0.5).should_sweep() is False

    @pytest.mark.asyncio
    async def test_sweep_counts(self, store, metrics):
        manager = CacheManager(store, metrics=metrics)
        await manager.sweep()
        assert metrics.sample_value("cache_sweeps_total", backend="file") == 1.0
