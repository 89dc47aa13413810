"""Per-namespace counters for the response cache.

A namespace is a view's query key prefix (``"products"``) or a filter
options prefix (``"filter-options:brand"``).  Lookups end in one of three
outcomes: a fresh hit, a miss (nothing cached) or a stale entry that has to
be refetched.  Invalidations are counted separately.
"""

from __future__ import annotations

import threading
from collections import Counter
from dataclasses import dataclass
from enum import Enum


class CacheOutcome(Enum):
    HIT = "hit"
    MISS = "miss"
    STALE = "stale"
    INVALIDATED = "invalidated"


@dataclass(frozen=True)
class CacheStats:
    hits: int = 0
    misses: int = 0
    stale: int = 0
    invalidated: int = 0

    @property
    def lookups(self) -> int:
        return self.hits + self.misses + self.stale

    @property
    def hit_rate(self) -> float:
        """Fresh hits over all lookups; 0.0 before the first lookup."""
        if not self.lookups:
            return 0.0
        return self.hits / self.lookups

    @classmethod
    def from_counter(cls, counter: Counter) -> "CacheStats":
        return cls(
            hits=counter[CacheOutcome.HIT],
            misses=counter[CacheOutcome.MISS],
            stale=counter[CacheOutcome.STALE],
            invalidated=counter[CacheOutcome.INVALIDATED],
        )


class CacheStatsCollector:
    """Thread-safe; one instance is shared by every cache in the process."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._counters: dict[str, Counter] = {}

    def record(self, namespace: str, outcome: CacheOutcome, count: int = 1) -> None:
        if count <= 0:
            return
        with self._lock:
            self._counters.setdefault(namespace, Counter())[outcome] += count

    def get(self, namespace: str) -> CacheStats:
        with self._lock:
            return CacheStats.from_counter(self._counters.get(namespace, Counter()))

    def all(self) -> dict[str, CacheStats]:
        with self._lock:
            return {name: CacheStats.from_counter(self._counters[name]) for name in sorted(self._counters)}

    def reset(self, namespace: str | None = None) -> None:
        with self._lock:
            if namespace is None:
                self._counters.clear()
            else:
                self._counters.pop(namespace, None)
