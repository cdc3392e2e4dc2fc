"""
In-memory response cache

Bounded by total payload bytes and expiring entries after a fixed TTL. The
cache is advisory: a failed write is logged and dropped, never raised.
"""

import logging
import threading
import time
from typing import Any, Callable, Dict, Optional

from cachetools import TTLCache

from ..config import CacheConfig
from .prometheus_metrics import prometheus_metrics

logger = logging.getLogger("geominder.cache")


class ResponseCache:
    """Thread-safe map from request key to pre-serialized response body.

    Entries are evicted least-recently-used first once the byte budget is
    exhausted, and read as absent once their TTL has elapsed even if not yet
    physically removed.
    """

    def __init__(self, config: Optional[CacheConfig] = None, timer: Callable[[], float] = time.monotonic):
        self.config = config or CacheConfig()
        self._store = TTLCache(
            maxsize=self.config.max_size_bytes,
            ttl=self.config.ttl_seconds,
            timer=timer,
            getsizeof=len,
        )
        self._lock = threading.Lock()
        self._closed = False
        self.hits = 0
        self.misses = 0

    def get(self, key: str) -> Optional[bytes]:
        """Return the cached body for ``key``, or None if unset or expired"""
        with self._lock:
            if self._closed:
                return None
            value = self._store.get(key)
            if value is None:
                self.misses += 1
            else:
                self.hits += 1
        if value is None:
            prometheus_metrics.increment_cache_misses()
        else:
            prometheus_metrics.increment_cache_hits()
        return value

    def set(self, key: str, value: bytes) -> None:
        """Store ``value`` under ``key``, replacing any previous entry"""
        with self._lock:
            if self._closed:
                logger.debug(f"Cache write for {key} ignored: cache closed")
                return
            try:
                self._store[key] = value
            except ValueError as e:
                # cachetools refuses values larger than the whole budget
                logger.warning(f"Cache write for {key} dropped: {e}", extra={
                    "component": "cache",
                    "size": len(value),
                })

    def close(self) -> None:
        """Drop every entry. The cache reports misses from now on."""
        with self._lock:
            self._store.clear()
            self._closed = True

    @property
    def closed(self) -> bool:
        return self._closed

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            self._store.expire()
            return {
                "entries": len(self._store),
                "bytes": self._store.currsize,
                "max_bytes": self._store.maxsize,
                "ttl_seconds": self.config.ttl_seconds,
                "hits": self.hits,
                "misses": self.misses,
            }
