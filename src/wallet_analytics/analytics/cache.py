"""Bounded in-process cache with TTL and insertion-order eviction."""

from __future__ import annotations

import threading
import time
from collections import OrderedDict
from collections.abc import Callable
from typing import Generic, TypeVar

V = TypeVar("V")

DEFAULT_CAPACITY = 1000
DEFAULT_TTL_SECONDS = 300.0  # 5 minutes


class BoundedCache(Generic[V]):
    """Fixed-capacity key/value store.

    Keys are normalised with ``str.lower``. An entry older than the TTL is
    treated as absent. Writing an existing key moves it to the newest
    position; writing a new key at capacity evicts the oldest entry first.
    All operations are O(1) and guarded by a lock.

    Example:
        ```python
        cache: BoundedCache[CollectionData] = BoundedCache(capacity=1000, ttl_seconds=300)
        cache.set("0xABC...", data)
        cache.get("0xabc...")  # -> data
        ```
    """

    def __init__(
        self,
        capacity: int = DEFAULT_CAPACITY,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the cache.

        Args:
            capacity: Maximum number of entries.
            ttl_seconds: Entry lifetime in seconds.
            clock: Time source, injectable for tests.
        """
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self._capacity = capacity
        self._ttl = ttl_seconds
        self._clock = clock
        self._entries: OrderedDict[str, tuple[V, float]] = OrderedDict()
        self._lock = threading.Lock()

    @property
    def capacity(self) -> int:
        return self._capacity

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None

    def get(self, key: str) -> V | None:
        """Return the cached value, or None if absent or expired."""
        key = key.lower()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            value, written_at = entry
            if self._clock() - written_at >= self._ttl:
                del self._entries[key]
                return None
            return value

    def set(self, key: str, value: V) -> None:
        """Store a value, refreshing its position and evicting if full."""
        key = key.lower()
        with self._lock:
            if key in self._entries:
                del self._entries[key]
            while len(self._entries) >= self._capacity:
                self._entries.popitem(last=False)
            self._entries[key] = (value, self._clock())

    def keys(self) -> list[str]:
        """Return the stored keys, oldest first (expired entries included)."""
        with self._lock:
            return list(self._entries)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
