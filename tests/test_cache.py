"""
Tests for core/cache.py
========================

Tests for the in-run LRU cache and the per-run validator cache.
"""

from __future__ import annotations

import threading
import time

from feature_advisor.core.cache import LRUCache, ValidatorCache


class TestLRUCache:
    """Tests for LRUCache class."""

    def test_basic_get_set(self) -> None:
        """Test basic get and set operations."""
        cache: LRUCache[str] = LRUCache(maxsize=10)
        cache.set("orders", "scored")

        assert cache.get("orders") == "scored"
        assert "orders" in cache
        assert cache.get("catalog") is None

    def test_lru_eviction(self) -> None:
        """Test that the least recently used entry is evicted first."""
        cache: LRUCache[int] = LRUCache(maxsize=2)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.get("a")

        cache.set("c", 3)

        assert cache.get("b") is None
        assert cache.get("a") == 1
        assert len(cache) == 2

    def test_ttl_expiration(self) -> None:
        """Test TTL-based expiration."""
        cache: LRUCache[str] = LRUCache(maxsize=10, ttl_seconds=0.05)
        cache.set("key", "value")

        time.sleep(0.1)

        assert cache.get("key") is None
        assert "key" not in cache

    def test_delete_and_clear(self) -> None:
        """Test delete and clear reset entries and stats."""
        cache: LRUCache[str] = LRUCache(maxsize=10)
        cache.set("a", "1")
        cache.set("b", "2")

        assert cache.delete("a") is True
        assert cache.delete("a") is False
        cache.clear()
        assert len(cache) == 0
        assert cache.stats["hits"] == 0

    def test_stats(self) -> None:
        """Test hit/miss accounting."""
        cache: LRUCache[str] = LRUCache(maxsize=10)
        cache.set("key", "value")
        cache.get("key")
        cache.get("missing")

        stats = cache.stats
        assert stats["hits"] == 1
        assert stats["misses"] == 1
        assert stats["hit_rate"] == "50.0%"


class TestGetOrSet:
    """Tests for compute-once semantics."""

    def test_factory_called_once(self) -> None:
        """Test that the factory runs only on the first lookup."""
        cache: LRUCache[int] = LRUCache(maxsize=10)
        calls: list[int] = []

        def factory() -> int:
            calls.append(1)
            return 42

        assert cache.get_or_set("k", factory) == 42
        assert cache.get_or_set("k", factory) == 42
        assert len(calls) == 1
        assert cache.stats["hits"] == 1
        assert cache.stats["misses"] == 1

    def test_concurrent_callers_compute_once(self) -> None:
        """Test that threads racing on one key share a single computation."""
        cache: LRUCache[str] = LRUCache(maxsize=10)
        calls: list[str] = []
        results: list[str] = []

        def factory() -> str:
            calls.append("x")
            time.sleep(0.01)
            return "validated"

        def worker() -> None:
            results.append(cache.get_or_set("orders", factory))

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert calls == ["x"]
        assert results == ["validated"] * 8


class TestValidatorCache:
    """Tests for ValidatorCache."""

    def test_never_expires(self) -> None:
        """Test that validator results have no TTL."""
        cache = ValidatorCache()
        cache.set("orders", {"lint": "ok"})

        assert cache.get("orders") == {"lint": "ok"}
        assert cache.stats["maxsize"] == 1024

    def test_instances_are_independent(self) -> None:
        """Test that two caches never share entries."""
        first = ValidatorCache()
        second = ValidatorCache()
        first.set("orders", 1)

        assert second.get("orders") is None
