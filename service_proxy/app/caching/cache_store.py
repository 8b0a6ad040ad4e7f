"""
File-backed cache of normalized proxy responses.
"""

import asyncio
import hashlib
import json
import os
import re
import tempfile
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional, Union

from shared.logging import get_logger

_KEY_PATTERN = re.compile(r"^[0-9a-f]{64}$")


def make_cache_key(endpoint: str, params: Mapping[str, str]) -> str:
    """Deterministic key for an endpoint and its parameter set.

    Parameters are serialized sorted by name so that the same pairs in any
    order map to the same entry.
    """
    canonical = json.dumps(sorted(params.items()), separators=(",", ":"), ensure_ascii=False)
    return hashlib.sha256(f"{endpoint}|{canonical}".encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class CacheEntry:
    """One cached, normalized document."""

    key: str
    payload: Dict[str, Any]
    created_at: float

    def age(self, now: float) -> int:
        return max(0, int(now - self.created_at))


class FileCacheStore:
    """One JSON file per key under ``cache_dir``.

    Writes go through a temp file in the same directory and ``os.replace`` so
    readers never see a partial entry.
    """

    backend = "file"

    def __init__(
        self,
        cache_dir: Union[str, Path],
        expiry_seconds: int = 300,
        clock: Callable[[], float] = time.time,
    ):
        self.cache_dir = Path(cache_dir)
        self.expiry_seconds = expiry_seconds
        self.clock = clock
        self.logger = get_logger("proxy.cache_store")

    def _path(self, key: str) -> Path:
        return self.cache_dir / f"{key}.json"

    def _read(self, key: str) -> Optional[CacheEntry]:
        path = self._path(key)
        try:
            with path.open("r", encoding="utf-8") as handle:
                record = json.load(handle)
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as exc:
            self.logger.warning("Unreadable cache entry", key=key, error=str(exc))
            return None

        if not isinstance(record, dict) or not isinstance(record.get("payload"), dict):
            return None
        try:
            created_at = float(record["created_at"])
        except (KeyError, TypeError, ValueError):
            return None

        if self.clock() - created_at >= self.expiry_seconds:
            return None
        return CacheEntry(key=key, payload=record["payload"], created_at=created_at)

    def _write(self, key: str, endpoint: str, payload: Dict[str, Any]) -> CacheEntry:
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        created_at = self.clock()
        record = {
            "key": key,
            "endpoint": endpoint,
            "created_at": created_at,
            "payload": payload,
        }

        fd, tmp_name = tempfile.mkstemp(dir=self.cache_dir, prefix=".tmp_", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(record, handle, ensure_ascii=False)
            os.replace(tmp_name, self._path(key))
        except BaseException:
            try:
                os.unlink(tmp_name)
            except OSError:
                pass
            raise
        return CacheEntry(key=key, payload=payload, created_at=created_at)

    def _sweep(self, max_age: float) -> int:
        if not self.cache_dir.is_dir():
            return 0

        now = self.clock()
        removed = 0
        for path in self.cache_dir.glob("*.json"):
            if not _KEY_PATTERN.match(path.stem):
                continue
            try:
                with path.open("r", encoding="utf-8") as handle:
                    created_at = float(json.load(handle)["created_at"])
                expired = now - created_at > max_age
            except (OSError, ValueError, KeyError, TypeError):
                expired = True
            if expired:
                try:
                    path.unlink()
                    removed += 1
                except FileNotFoundError:
                    pass
        return removed

    async def get(self, key: str) -> Optional[CacheEntry]:
        """Fresh entry for ``key`` or None."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._read, key)

    async def put(self, key: str, endpoint: str, payload: Dict[str, Any]) -> CacheEntry:
        """Store ``payload`` under ``key``."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._write, key, endpoint, payload)

    async def sweep(self, max_age: Optional[float] = None) -> int:
        """Delete entries older than ``max_age`` (2x expiry by default)."""
        if max_age is None:
            max_age = 2 * self.expiry_seconds
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._sweep, max_age)

    async def close(self):
        pass
