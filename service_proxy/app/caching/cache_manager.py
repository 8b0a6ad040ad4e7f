"""
Proxy cache manager.
"""

import random
from typing import TYPE_CHECKING, Any, Callable, Dict, Mapping, Optional, Union

from shared.config import ProxySettings
from shared.logging import get_logger

from service_proxy.app.caching.cache_store import CacheEntry, FileCacheStore, make_cache_key
from service_proxy.app.caching.redis_store import RedisCacheStore

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


CacheStore = Union[FileCacheStore, RedisCacheStore]


class CacheManager:
    """Key derivation, hit/miss accounting and probabilistic sweeping over a store."""

    def __init__(
        self,
        store: CacheStore,
        *,
        metrics: Optional["MetricsCollector"] = None,
        sweep_probability: float = 0.01,
        rng: Optional[Callable[[], float]] = None,
    ):
        self.store = store
        self.metrics = metrics
        self.sweep_probability = sweep_probability
        self.rng = rng or random.random
        self.logger = get_logger("proxy.cache_manager")

    @property
    def clock(self) -> Callable[[], float]:
        return self.store.clock

    def _count(self, metric_name: str, **labels):
        if self.metrics:
            self.metrics.increment_counter(metric_name, **labels)

    async def lookup(self, endpoint: str, params: Mapping[str, str]) -> Optional[CacheEntry]:
        """Fresh cached document for the request, if any."""
        key = make_cache_key(endpoint, params)
        entry = await self.store.get(key)
        if entry is None:
            self._count("cache_misses_total", endpoint=endpoint)
            return None

        self._count("cache_hits_total", endpoint=endpoint)
        self.logger.debug("Cache hit", endpoint=endpoint, key=key)
        return entry

    async def store_payload(self, endpoint: str, params: Mapping[str, str], payload: Dict[str, Any]) -> bool:
        """Persist a normalized document. Failures are logged, never raised."""
        key = make_cache_key(endpoint, params)
        try:
            await self.store.put(key, endpoint, payload)
        except Exception as exc:
            self.logger.error("Cache write error", endpoint=endpoint, key=key, error=str(exc))
            return False
        self.logger.debug("Cached response", endpoint=endpoint, key=key)
        return True

    def should_sweep(self) -> bool:
        return self.rng() < self.sweep_probability

    async def sweep(self) -> int:
        """Reclaim entries older than twice the expiry."""
        try:
            removed = await self.store.sweep()
        except Exception as exc:
            self.logger.error("Cache sweep error", backend=self.store.backend, error=str(exc))
            return 0
        self._count("cache_sweeps_total", backend=self.store.backend)
        if removed:
            self.logger.info("Cache sweep", backend=self.store.backend, removed=removed)
        return removed

    async def close(self):
        await self.store.close()


def build_cache_manager(
    settings: ProxySettings,
    *,
    metrics: Optional["MetricsCollector"] = None,
    clock: Optional[Callable[[], float]] = None,
    rng: Optional[Callable[[], float]] = None,
) -> CacheManager:
    """Create the cache manager for the configured backend."""
    kwargs: Dict[str, Any] = {"expiry_seconds": settings.cache_expiry_seconds}
    if clock is not None:
        kwargs["clock"] = clock

    if settings.cache_backend.strip().lower() == "redis":
        store: CacheStore = RedisCacheStore(settings.redis_url, **kwargs)
    else:
        store = FileCacheStore(settings.cache_dir, **kwargs)

    return CacheManager(
        store,
        metrics=metrics,
        sweep_probability=settings.sweep_probability,
        rng=rng,
    )
