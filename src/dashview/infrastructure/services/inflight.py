"""Deduplication of concurrent fetches for the same cache key.

Two views that ask for the same ``(query_key_prefix, state)`` while a fetch
for it is still running share that fetch instead of issuing a second one.
Every view that joins counts as a waiter; a view that is superseded or
cancelled leaves, and the underlying fetch is only aborted once nobody is
left waiting for it.
"""

from __future__ import annotations

import threading
from typing import Any, Callable, Optional

from dashview.utils.logging import get_logger

LOGGER = get_logger(__name__)

CacheKey = tuple[str, str]
SettledCallback = Callable[["SharedFetch"], None]


class SharedFetch:
    """One running fetch, plus everyone waiting for its outcome."""

    def __init__(self, key: CacheKey, epoch: int, abort: Callable[[], None]) -> None:
        self.key = key
        self.epoch = epoch
        self.waiters = 0
        self._abort = abort
        self._lock = threading.Lock()
        self._settled = threading.Event()
        self._done = False
        self._callbacks: list[SettledCallback] = []
        self.result: Any = None
        self.error: Optional[BaseException] = None

    @property
    def done(self) -> bool:
        return self._done

    def add_done_callback(self, callback: SettledCallback) -> None:
        """Call *callback(self)* once settled; immediately if it already is."""
        with self._lock:
            if not self._done:
                self._callbacks.append(callback)
                return
        callback(self)

    def wait(self, timeout: Optional[float] = None) -> bool:
        return self._settled.wait(timeout)

    def _settle(self, result: Any, error: Optional[BaseException]) -> None:
        with self._lock:
            if self._done:
                return
            self.result = result
            self.error = error
            self._done = True
            callbacks, self._callbacks = self._callbacks, []
        try:
            for callback in callbacks:
                callback(self)
        finally:
            self._settled.set()


class InflightRegistry:
    """Running fetches keyed by cache key; one instance per response cache."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._fetches: dict[CacheKey, SharedFetch] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._fetches)

    def get(self, key: CacheKey) -> Optional[SharedFetch]:
        with self._lock:
            return self._fetches.get(key)

    def join(
        self,
        key: CacheKey,
        epoch: int,
        abort: Callable[[], None],
        *,
        fresh: bool = False,
        reusable: Optional[Callable[[SharedFetch], bool]] = None,
    ) -> tuple[SharedFetch, bool]:
        """Wait on the running fetch for *key*, or register a new one.

        Returns ``(fetch, started)``; when ``started`` is true the caller
        owns launching the fetch and must eventually call :meth:`settle`.
        ``fresh`` always registers a new fetch, replacing any running one;
        ``reusable`` can veto joining a particular running fetch.
        """
        with self._lock:
            current = self._fetches.get(key)
            if (
                current is not None
                and not fresh
                and not current.done
                and (reusable is None or reusable(current))
            ):
                current.waiters += 1
                LOGGER.debug("Joined in-flight fetch for %s (%d waiting)", key[0], current.waiters)
                return current, False
            shared = SharedFetch(key, epoch, abort)
            shared.waiters = 1
            self._fetches[key] = shared
            return shared, True

    def release(self, shared: SharedFetch) -> None:
        """Stop waiting on *shared*; abort it when it was the last waiter."""
        with self._lock:
            if shared.done or shared.waiters <= 0:
                return
            shared.waiters -= 1
            if shared.waiters:
                return
            if self._fetches.get(shared.key) is shared:
                del self._fetches[shared.key]
        LOGGER.debug("Aborting abandoned fetch for %s", shared.key[0])
        shared._abort()

    def settle(
        self,
        shared: SharedFetch,
        result: Any = None,
        error: Optional[BaseException] = None,
        store: Optional[Callable[[Any], None]] = None,
    ) -> None:
        """Finish *shared* and notify its waiters.

        ``store`` receives a successful result before the fetch leaves the
        registry, so a view joining at that moment finds it in one place or
        the other.  Abandoned fetches are never stored.
        """
        with self._lock:
            if error is None and store is not None and shared.waiters > 0:
                store(result)
            if self._fetches.get(shared.key) is shared:
                del self._fetches[shared.key]
        shared._settle(result, error)
