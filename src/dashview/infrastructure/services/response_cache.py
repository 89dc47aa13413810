"""Stale-time based cache for fetched pages, shared across view instances.

Keys are ``(query_key_prefix, QueryState.cache_key())`` pairs.  Two views
with the same prefix and the same query read the same entry, which is what
lets a second list screen open instantly after the first one loaded.
Remote filter option pages live in the same cache under
``filter-options:<data_key>`` prefixes.
"""

from __future__ import annotations

import threading
import time
from collections import Counter
from dataclasses import dataclass
from typing import Any, Callable, Optional, Union

from dashview.config import GC_TIME_SEC, STALE_TIME_SEC
from dashview.domain.models.query import QueryState
from dashview.infrastructure.services.cache_stats import CacheOutcome, CacheStatsCollector
from dashview.infrastructure.services.inflight import InflightRegistry
from dashview.utils.logging import get_logger

LOGGER = get_logger(__name__)

CacheKey = tuple[str, str]


def make_cache_key(prefix: str, state: QueryState) -> CacheKey:
    return (prefix, state.cache_key())


@dataclass
class CacheEntry:
    data: Any
    fetched_at: float
    stale_time: float
    invalidated: bool = False

    def is_fresh(self, now: float) -> bool:
        return not self.invalidated and (now - self.fetched_at) < self.stale_time


class ResponseCache:
    """Thread-safe page cache.

    ``get`` only returns entries younger than their stale time; stale or
    invalidated entries stay around (see :meth:`peek`) until ``gc_time``
    has passed since they were fetched, then are dropped.

    Every invalidation bumps :attr:`epoch`.  A fetch records the epoch it
    started in and hands it back to :meth:`set`; if a matching invalidation
    happened meanwhile the entry is stored already invalidated.  The
    :attr:`inflight` registry lets views share a fetch that is still running.
    """

    def __init__(
        self,
        stale_time: float = STALE_TIME_SEC,
        gc_time: float = GC_TIME_SEC,
        clock: Callable[[], float] = time.monotonic,
        stats: Optional[CacheStatsCollector] = None,
    ) -> None:
        self._stale_time = stale_time
        self._gc_time = max(gc_time, stale_time)
        self._clock = clock
        self._stats = stats or CacheStatsCollector()
        self._entries: dict[CacheKey, CacheEntry] = {}
        self._epoch = 0
        self._invalidations: dict[Union[str, CacheKey], int] = {}
        self._inflight = InflightRegistry()
        self._lock = threading.Lock()

    @property
    def stats(self) -> CacheStatsCollector:
        return self._stats

    @property
    def inflight(self) -> InflightRegistry:
        return self._inflight

    @property
    def epoch(self) -> int:
        with self._lock:
            return self._epoch

    @property
    def stale_time(self) -> float:
        return self._stale_time

    @property
    def size(self) -> int:
        with self._lock:
            return len(self._entries)

    def get(self, key: CacheKey) -> Optional[Any]:
        """Return the cached result for *key* if still fresh, else ``None``."""
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and now - entry.fetched_at >= self._gc_time:
                del self._entries[key]
                entry = None
        if entry is None:
            self._stats.record(key[0], CacheOutcome.MISS)
            return None
        if not entry.is_fresh(now):
            self._stats.record(key[0], CacheOutcome.STALE)
            return None
        self._stats.record(key[0], CacheOutcome.HIT)
        return entry.data

    def peek(self, key: CacheKey) -> Optional[CacheEntry]:
        """Return the entry for *key* regardless of freshness (no stats)."""
        with self._lock:
            return self._entries.get(key)

    def set(
        self,
        key: CacheKey,
        data: Any,
        stale_time: Optional[float] = None,
        since_epoch: Optional[int] = None,
    ) -> None:
        """Store *data*; ``since_epoch`` is the epoch the fetch started in."""
        entry = CacheEntry(
            data=data,
            fetched_at=self._clock(),
            stale_time=self._stale_time if stale_time is None else stale_time,
        )
        with self._lock:
            if since_epoch is not None and self._invalidated_since(key, since_epoch):
                LOGGER.debug("Storing %s as stale: invalidated while it was fetched", key[0])
                entry.invalidated = True
            self._entries[key] = entry
        self.prune()

    def invalidate(self, prefix_or_key: Union[str, CacheKey]) -> int:
        """Mark matching entries stale so the next read refetches.

        A string matches every key whose prefix equals it or starts with
        ``"<prefix>:"``; a full key tuple matches exactly one entry.
        Returns the number of entries marked.
        """
        marked: Counter[str] = Counter()
        with self._lock:
            self._epoch += 1
            self._invalidations[prefix_or_key] = self._epoch
            for key, entry in self._entries.items():
                if _matches(key, prefix_or_key):
                    entry.invalidated = True
                    marked[key[0]] += 1
        for namespace, count in marked.items():
            self._stats.record(namespace, CacheOutcome.INVALIDATED, count)
        total = sum(marked.values())
        LOGGER.debug("Invalidated %d cache entries for %r", total, prefix_or_key)
        return total

    def prune(self) -> int:
        """Drop entries older than ``gc_time``; return how many went."""
        now = self._clock()
        with self._lock:
            expired = [k for k, e in self._entries.items() if now - e.fetched_at >= self._gc_time]
            for key in expired:
                del self._entries[key]
        return len(expired)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def invalidated_since(self, key: CacheKey, epoch: int) -> bool:
        """True when an invalidation matching *key* happened after *epoch*."""
        with self._lock:
            return self._invalidated_since(key, epoch)

    def _invalidated_since(self, key: CacheKey, epoch: int) -> bool:
        return any(
            stamp > epoch and _matches(key, target) for target, stamp in self._invalidations.items()
        )


def _matches(key: CacheKey, target: Union[str, CacheKey]) -> bool:
    if isinstance(target, tuple):
        return key == target
    prefix = key[0]
    return prefix == target or prefix.startswith(f"{target}:")
