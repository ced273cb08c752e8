"""
In-Run Caches
=============

Nothing here outlives an AdvisorRun: every invocation re-scans the filesystem,
so results always reflect what is on disk now.

- LRUCache: thread-safe LRU with optional TTL and hit/miss stats
- ValidatorCache: memoizes linter/type-check results per feature. Each run
  creates its own and passes it down; there is no module-level instance.
"""

import threading
import time
from collections import OrderedDict
from collections.abc import Callable, Hashable
from typing import Any, Generic, TypeVar

T = TypeVar("T")

_MISSING = object()


class LRUCache(Generic[T]):
    """
    Thread-safe LRU cache.

    Entries are ``(value, expires_at)`` pairs; ``expires_at`` is a monotonic
    deadline or None when the cache has no TTL.
    """

    def __init__(self, maxsize: int = 128, ttl_seconds: float | None = None):
        self._entries: OrderedDict[Hashable, tuple[T, float | None]] = OrderedDict()
        self._lock = threading.RLock()
        self.maxsize = maxsize
        self.ttl_seconds = ttl_seconds
        self._hits = 0
        self._misses = 0

    def _lookup(self, key: Hashable) -> Any:
        # Caller holds the lock. Drops expired entries; does not touch stats.
        entry = self._entries.get(key)
        if entry is None:
            return _MISSING
        value, expires_at = entry
        if expires_at is not None and time.monotonic() >= expires_at:
            del self._entries[key]
            return _MISSING
        self._entries.move_to_end(key)
        return value

    def _record(self, hit: bool) -> None:
        if hit:
            self._hits += 1
        else:
            self._misses += 1

    def __contains__(self, key: Hashable) -> bool:
        with self._lock:
            return self._lookup(key) is not _MISSING

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def get(self, key: Hashable) -> T | None:
        """Cached value, or None when absent or expired."""
        with self._lock:
            value = self._lookup(key)
            self._record(value is not _MISSING)
            return None if value is _MISSING else value

    def set(self, key: Hashable, value: T) -> None:
        with self._lock:
            expires_at = (
                time.monotonic() + self.ttl_seconds if self.ttl_seconds is not None else None
            )
            self._entries[key] = (value, expires_at)
            self._entries.move_to_end(key)
            while len(self._entries) > self.maxsize:
                self._entries.popitem(last=False)

    def get_or_set(self, key: Hashable, factory: Callable[[], T]) -> T:
        """
        Return the value for ``key``, computing it with ``factory`` on a miss.

        The lock is held while ``factory`` runs, so concurrent callers for the
        same key share one computation.
        """
        with self._lock:
            value = self._lookup(key)
            self._record(value is not _MISSING)
            if value is _MISSING:
                value = factory()
                self.set(key, value)
            return value

    def delete(self, key: Hashable) -> bool:
        with self._lock:
            return self._entries.pop(key, _MISSING) is not _MISSING

    def clear(self) -> None:
        """Drop every entry and reset the stats."""
        with self._lock:
            self._entries.clear()
            self._hits = self._misses = 0

    @property
    def stats(self) -> dict[str, Any]:
        with self._lock:
            lookups = self._hits + self._misses
            return {
                "size": len(self._entries),
                "maxsize": self.maxsize,
                "hits": self._hits,
                "misses": self._misses,
                "hit_rate": f"{(self._hits / lookups * 100) if lookups else 0.0:.1f}%",
            }


class ValidatorCache(LRUCache[Any]):
    """
    Per-run memo of validator results, keyed by feature name.

    Large enough that no feature is evicted during a run, so each feature is
    validated at most once.
    """

    def __init__(self, maxsize: int = 1024):
        super().__init__(maxsize=maxsize, ttl_seconds=None)
