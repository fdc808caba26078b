"""
Read-through stats cache.

Memoizes leaderboard and model-detail results for a short TTL. Votes
invalidate it, so reads after a vote always see the new state.
"""

import threading
import time
from collections.abc import Callable, Hashable
from typing import Any, TypeVar

T = TypeVar("T")


class StatsCache:
    """Thread-safe TTL cache keyed by arbitrary hashable keys."""

    def __init__(self, ttl_seconds: float = 20.0, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[Hashable, tuple[float, Any]] = {}
        self._generation = 0
        self._lock = threading.Lock()

    def get_or_compute(self, key: Hashable, compute: Callable[[], T]) -> T:
        if self.ttl_seconds <= 0:
            return compute()

        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and entry[0] > now:
                return entry[1]
            generation = self._generation

        # Computed outside the lock; concurrent misses may both compute
        value = compute()
        with self._lock:
            # An invalidation during compute makes the value stale
            if generation == self._generation:
                self._entries[key] = (self._clock() + self.ttl_seconds, value)
        return value

    def invalidate(self) -> None:
        with self._lock:
            self._entries.clear()
            self._generation += 1

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
