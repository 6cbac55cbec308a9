"""
Caching layer for Horizon News.
Provides an in-memory, time-boxed cache for news query results.
"""

import copy
import math
import threading
import time
from typing import Any, Callable, Mapping, Optional
from urllib.parse import urlencode

from cachetools import TTLCache

from logging_config import get_metrics_logger

metrics = get_metrics_logger()

# Default freshness window for query results
DEFAULT_TTL = 60.0


def build_query_key(path: str, params: Optional[Mapping[str, Any]] = None) -> str:
    """
    Generate a cache key for a query.

    Parameters are sorted by name and ``None`` values are dropped, so two
    calls describing the same logical query produce the same key.

    Args:
        path: Base path of the query (e.g. ``/api/news``)
        params: Filter parameters

    Returns:
        Cache key string
    """
    if not params:
        return path
    items = sorted((k, str(v)) for k, v in params.items() if v is not None)
    if not items:
        return path
    return f"{path}?{urlencode(items)}"


class QueryCache:
    """
    Keyed cache whose entries expire ``ttl`` seconds after insertion.

    There is no size-based eviction: entries only leave through expiry or
    :meth:`clear`. Values are deep-copied on the way in and on the way out,
    so a stored entry is a snapshot that callers cannot mutate.
    """

    def __init__(self, ttl: float = DEFAULT_TTL, timer: Callable[[], float] = time.monotonic):
        if ttl <= 0:
            raise ValueError(f"ttl must be positive, got {ttl}")
        self.ttl = ttl
        self._store: TTLCache[str, Any] = TTLCache(maxsize=math.inf, ttl=ttl, timer=timer)
        self._lock = threading.RLock()

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get a cached value.

        Args:
            key: Cache key
            default: Value returned when the key is absent or expired

        Returns:
            The cached value, or ``default``
        """
        with self._lock:
            try:
                value = self._store[key]
            except KeyError:
                metrics.log_cache_operation("get", key, hit=False)
                return default
        metrics.log_cache_operation("get", key, hit=True)
        return copy.deepcopy(value)

    def set(self, key: str, value: Any) -> None:
        """Store ``value`` under ``key``, replacing any previous entry."""
        snapshot = copy.deepcopy(value)
        with self._lock:
            self._store[key] = snapshot
        metrics.log_cache_operation("set", key)

    def clear(self) -> None:
        """Drop every entry regardless of age."""
        with self._lock:
            dropped = len(self._store)
            self._store.clear()
        metrics.log_cache_operation("clear", entries=dropped)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._store

    def __len__(self) -> int:
        with self._lock:
            self._store.expire()
            return len(self._store)

    def stats(self) -> dict[str, Any]:
        """
        Get cache statistics.

        Returns:
            Dictionary with live entry count and TTL
        """
        return {"size": len(self), "ttl": self.ttl}
