"""Small in-process TTL cache for read-mostly lookups (taxonomy lists)."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

logger = logging.getLogger("woo_catalog_server.utils.cache")

DAY_IN_SECONDS = 24 * 60 * 60


@dataclass
class CacheEntry:
    value: Any
    created_at: float
    ttl: float

    def is_expired(self, now: Optional[float] = None) -> bool:
        now = time.time() if now is None else now
        return (now - self.created_at) > self.ttl


class TTLCache:
    """Thread-safe key/value cache where every entry expires after a TTL."""

    def __init__(self, default_ttl: float = DAY_IN_SECONDS, clock: Callable[[], float] = time.time):
        self.default_ttl = default_ttl
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Any:
        """Return the cached value or None when missing or expired."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if entry.is_expired(self._clock()):
                self._entries.pop(key, None)
                return None
            return entry.value

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        with self._lock:
            self._entries[key] = CacheEntry(
                value=value,
                created_at=self._clock(),
                ttl=self.default_ttl if ttl is None else ttl,
            )

    def invalidate(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    async def get_or_compute(
        self,
        key: str,
        compute: Callable[[], Awaitable[Any]],
        ttl: Optional[float] = None,
    ) -> Any:
        """Return the cached value, computing and storing it on a miss.

        Empty results are not cached so a transient upstream gap is retried.
        """
        cached = self.get(key)
        if cached is not None:
            return cached
        logger.debug("Cache miss for %s", key)
        value = await compute()
        if value:
            self.set(key, value, ttl)
        return value
