"""Tests for the bounded TTL cache."""

from __future__ import annotations

import pytest

from wallet_analytics.analytics.cache import BoundedCache


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class TestBoundedCache:
    """Tests for BoundedCache."""

    def test_get_missing(self) -> None:
        cache: BoundedCache[str] = BoundedCache()
        assert cache.get("0xabc") is None

    def test_set_and_get_case_insensitive(self) -> None:
        """Keys are normalised to lowercase."""
        cache: BoundedCache[str] = BoundedCache()
        cache.set("0xABC", "value")
        assert cache.get("0xabc") == "value"
        assert "0xAbC" in cache

    def test_capacity_plus_one_evicts_oldest(self) -> None:
        """Inserting capacity + 1 distinct keys evicts exactly the first."""
        cache: BoundedCache[int] = BoundedCache(capacity=3)
        for i in range(4):
            cache.set(f"key{i}", i)

        assert len(cache) == 3
        assert cache.get("key0") is None
        assert cache.keys() == ["key1", "key2", "key3"]

    def test_overwrite_refreshes_position(self) -> None:
        """Writing an existing key makes it the newest."""
        cache: BoundedCache[int] = BoundedCache(capacity=2)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.set("a", 3)
        cache.set("c", 4)

        assert cache.get("a") == 3
        assert cache.get("b") is None
        assert len(cache) == 2

    def test_expired_entry_is_absent(self) -> None:
        """An entry older than the TTL is dropped on read."""
        clock = FakeClock()
        cache: BoundedCache[str] = BoundedCache(ttl_seconds=300, clock=clock)
        cache.set("k", "v")

        clock.now += 299
        assert cache.get("k") == "v"

        clock.now += 1
        assert cache.get("k") is None
        assert len(cache) == 0

    def test_clear(self) -> None:
        cache: BoundedCache[str] = BoundedCache()
        cache.set("k", "v")
        cache.clear()
        assert len(cache) == 0

    def test_invalid_capacity(self) -> None:
        with pytest.raises(ValueError):
            BoundedCache(capacity=0)
