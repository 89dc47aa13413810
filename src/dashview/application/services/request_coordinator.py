"""Turns query-state changes into at most one current request per view.

Every issued request gets a generation number and its own cancellation
token.  Issuing a new request bumps the generation and cancels the previous
token; when a fetch settles, its outcome is committed only if its
generation is still the newest.  Superseded requests may keep running on
their worker thread, but whatever they return (or raise) never moves the
view's state machine.

Fetches go through the cache's :class:`InflightRegistry`, so views asking
for the same key at the same time share one network call.  A fetch no view
waits for any more is aborted and its result never reaches the cache.
"""

from __future__ import annotations

import threading
from concurrent.futures import Executor, ThreadPoolExecutor
from dataclasses import replace
from typing import Any, Callable, Optional

from dashview.application.services.cancellation import CancellationToken
from dashview.application.services.scheduler import DebounceScheduler
from dashview.config import DEFAULT_QUERY_KEY_PREFIX, FETCH_WORKERS, SEARCH_DEBOUNCE_MS
from dashview.domain.models.query import QueryState
from dashview.domain.models.result import EMPTY_RESULT, FetchContract, FetchResult, ViewStatus
from dashview.errors import AuthExpiredError, CancellationError
from dashview.errors.handler import ErrorHandler, ErrorSeverity
from dashview.gui.viewmodels.signal import ObservableProperty, Signal
from dashview.infrastructure.services.inflight import InflightRegistry, SharedFetch
from dashview.infrastructure.services.response_cache import ResponseCache, make_cache_key
from dashview.utils.logging import get_logger

LOGGER = get_logger(__name__)

Dispatch = Callable[[Callable[[], None]], None]


def _call_inline(fn: Callable[[], None]) -> None:
    fn()


def only_search_changed(new: QueryState, old: QueryState) -> bool:
    """True when *new* differs from *old* in the search text alone.

    The page index is ignored because changing the search resets it.
    """
    if new.global_filter == old.global_filter:
        return False
    return replace(new, global_filter=old.global_filter, page_index=old.page_index) == old


class RequestCoordinator:
    """Newest-request-wins fetch orchestration for one view instance.

    State machine (``status``)::

        idle    --request-------------> loading
        loading --resolve(latest)-----> success
        loading --resolve(stale)------> loading   (ignored)
        loading --reject(cancel)------> loading   (superseded) or prior terminal state
        loading --reject(error)-------> error
        success|error --request-------> loading

    A fresh cache hit skips ``loading`` and commits straight to ``success``.

    Parameters
    ----------
    fetch:
        Fetch contract, usually a :class:`FilterAdapter`.
    cache:
        Shared :class:`ResponseCache`; ``None`` disables caching.
    query_key_prefix:
        Cache namespace for this view.
    debounce_ms:
        Trailing debounce applied when only the search text changed.
    executor:
        Where fetches run.  Defaults to a private thread pool.
    dispatch:
        Receives a zero-argument callable for every completion; hosts with a
        UI thread pass something that posts to it.  Defaults to inline.
    error_handler:
        Process-wide handler that receives :class:`AuthExpiredError`.
    """

    def __init__(
        self,
        fetch: FetchContract,
        cache: Optional[ResponseCache] = None,
        query_key_prefix: str = DEFAULT_QUERY_KEY_PREFIX,
        *,
        debounce_ms: int = SEARCH_DEBOUNCE_MS,
        executor: Optional[Executor] = None,
        dispatch: Optional[Dispatch] = None,
        error_handler: Optional[ErrorHandler] = None,
    ) -> None:
        self._fetch = fetch
        self._cache = cache
        self._prefix = query_key_prefix
        self._debouncer = DebounceScheduler(debounce_ms)
        self._executor = executor
        self._owns_executor = executor is None
        self._dispatch = dispatch or _call_inline
        self._error_handler = error_handler

        # RLock: signal handlers fired during a commit may issue a new request.
        self._lock = threading.RLock()
        self._generation = 0
        self._token: Optional[CancellationToken] = None
        self._inflight = cache.inflight if cache is not None else InflightRegistry()
        self._shared: Optional[SharedFetch] = None
        self._last_shared: Optional[SharedFetch] = None
        self._latest_state: Optional[QueryState] = None
        self._settled_status = ViewStatus.IDLE
        self._disposed = False

        self.status = ObservableProperty(ViewStatus.IDLE)
        self.result = ObservableProperty(EMPTY_RESULT)
        self.error = ObservableProperty(None)
        self.committed = Signal()  # (state, result)
        self.failed = Signal()  # (state, error)

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def query_key_prefix(self) -> str:
        return self._prefix

    @property
    def latest_state(self) -> Optional[QueryState]:
        """State of the newest issued request (pending debounce excluded)."""
        return self._latest_state

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def is_fetching(self) -> bool:
        return self._token is not None

    @property
    def debouncer(self) -> DebounceScheduler:
        return self._debouncer

    # ------------------------------------------------------------------
    # Triggers
    # ------------------------------------------------------------------

    def on_state_changed(self, new: QueryState, old: QueryState) -> None:
        """Store listener: debounce search-only changes, fetch the rest now."""
        if only_search_changed(new, old):
            self._debouncer.schedule(lambda: self.request(new))
            return
        self._debouncer.cancel()
        self.request(new)

    def request(self, state: QueryState, *, force: bool = False) -> None:
        """Make *state* the current request, from cache when fresh.

        A fetch another view is already running for the same key is joined
        rather than repeated.  ``force`` bypasses both the cache and any
        running fetch.
        """
        if self._disposed:
            return
        key = make_cache_key(self._prefix, state)
        if not force and self._cache is not None:
            cached = self._cache.get(key)
            if cached is not None:
                LOGGER.debug("Cache hit for %s", self._prefix)
                with self._lock:
                    self._generation += 1
                    previous, self._token = self._token, None
                    self._latest_state = state
                    if previous is not None:
                        previous.cancel("superseded by cached result")
                    self._leave_shared()
                    self._commit(state, cached)
                return

        token = CancellationToken()
        with self._lock:
            self._generation += 1
            generation = self._generation
            previous, self._token = self._token, token
            self._latest_state = state
            if previous is not None:
                previous.cancel("superseded")
            self._leave_shared()
            self.status.value = ViewStatus.LOADING

            fetch_token = CancellationToken()
            shared, started = self._inflight.join(
                key,
                self._cache.epoch if self._cache is not None else 0,
                lambda: fetch_token.cancel("no view is waiting"),
                fresh=force,
                reusable=self._is_reusable,
            )
            self._shared = self._last_shared = shared
        if started:
            LOGGER.debug("Issuing request #%d for %s (token %d)", generation, self._prefix, fetch_token.id)
            self._get_executor().submit(self._run, shared, fetch_token, state)
        else:
            LOGGER.debug("Request #%d for %s joins a running fetch", generation, self._prefix)
        shared.add_done_callback(lambda settled: self._on_settled(generation, token, state, settled))

    def retry(self) -> None:
        """Re-issue the newest request, bypassing the cache."""
        if self._latest_state is not None:
            self.request(self._latest_state, force=True)

    refetch = retry

    def cancel(self) -> None:
        """Abort the current request and any pending debounce.

        The view falls back to the last terminal state it was in.  A fetch
        other views are still waiting for keeps running for them.
        """
        self._debouncer.cancel()
        with self._lock:
            token, self._token = self._token, None
            if token is None:
                return
            self._generation += 1
            token.cancel("aborted")
            self._leave_shared()
            self.status.value = self._settled_status
        LOGGER.debug("Cancelled request for %s", self._prefix)

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until the newest fetch this view waited on has settled."""
        self._debouncer.flush()
        shared = self._last_shared
        if shared is None:
            return True
        return shared.wait(timeout)

    def dispose(self) -> None:
        self.cancel()
        self._disposed = True
        if self._owns_executor and self._executor is not None:
            # Queued fetches may have other views waiting on them; abandoned ones
            # stop at their first cancellation checkpoint.
            self._executor.shutdown(wait=False)
            self._executor = None

    # ------------------------------------------------------------------
    # Worker side
    # ------------------------------------------------------------------

    def _get_executor(self) -> Executor:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=FETCH_WORKERS,
                thread_name_prefix=f"dashview-fetch-{self._prefix}",
            )
        return self._executor

    def _run(self, shared: SharedFetch, token: CancellationToken, state: QueryState) -> None:
        try:
            token.raise_if_cancelled()
            result = self._coerce(self._fetch(state.to_fetch_args(token)))
        except Exception as exc:
            self._inflight.settle(shared, error=exc)
        else:
            self._inflight.settle(shared, result, store=self._store_for(shared))

    def _coerce(self, result: Any) -> FetchResult:
        if isinstance(result, FetchResult):
            return result
        if isinstance(result, tuple):
            return FetchResult(*result)
        LOGGER.warning(
            "Fetch for %s returned %s instead of a FetchResult; showing no rows",
            self._prefix,
            type(result).__name__,
        )
        return FetchResult()

    def _store_for(self, shared: SharedFetch) -> Optional[Callable[[FetchResult], None]]:
        cache = self._cache
        if cache is None:
            return None
        return lambda result: cache.set(shared.key, result, since_epoch=shared.epoch)

    def _is_reusable(self, shared: SharedFetch) -> bool:
        return self._cache is None or not self._cache.invalidated_since(shared.key, shared.epoch)

    def _leave_shared(self) -> None:
        shared, self._shared = self._shared, None
        if shared is not None:
            self._inflight.release(shared)

    # ------------------------------------------------------------------
    # Completion side (runs wherever ``dispatch`` puts it)
    # ------------------------------------------------------------------

    def _on_settled(
        self,
        generation: int,
        token: CancellationToken,
        state: QueryState,
        shared: SharedFetch,
    ) -> None:
        error = shared.error
        if isinstance(error, CancellationError):
            self._dispatch(lambda: self._on_cancelled(generation, token))
        elif error is not None:
            self._dispatch(lambda: self._on_failed(generation, token, state, error))
        else:
            self._dispatch(lambda: self._on_resolved(generation, token, state, shared.result))

    def _is_current(self, generation: int, token: CancellationToken) -> bool:
        return generation == self._generation and not token.cancelled

    def _on_resolved(
        self,
        generation: int,
        token: CancellationToken,
        state: QueryState,
        result: FetchResult,
    ) -> None:
        with self._lock:
            if not self._is_current(generation, token):
                LOGGER.debug("Discarding stale response #%d for %s", generation, self._prefix)
                return
            self._token = None
            self._shared = None
            self._commit(state, result)

    def _on_cancelled(self, generation: int, token: CancellationToken) -> None:
        with self._lock:
            if generation != self._generation:
                return
            # Cancelled from below (transport) without anything replacing it.
            self._token = None
            self._shared = None
            self.status.value = self._settled_status

    def _on_failed(
        self,
        generation: int,
        token: CancellationToken,
        state: QueryState,
        exc: Exception,
    ) -> None:
        with self._lock:
            if not self._is_current(generation, token):
                LOGGER.debug("Ignoring failure of superseded request #%d: %s", generation, exc)
                return
            self._token = None
            self._shared = None
            if isinstance(exc, AuthExpiredError):
                self.status.value = self._settled_status
                self._escalate(exc)
                return
            LOGGER.error("Fetch for %s failed: %s", self._prefix, exc)
            self.error.value = exc
            self._settled_status = ViewStatus.ERROR
            self.status.value = ViewStatus.ERROR
            self.failed.emit(state, exc)

    def _commit(self, state: QueryState, result: FetchResult) -> None:
        self.result.value = result
        self.error.value = None
        self._settled_status = ViewStatus.SUCCESS
        self.status.value = ViewStatus.SUCCESS
        self.committed.emit(state, result)

    def _escalate(self, exc: AuthExpiredError) -> None:
        if self._error_handler is None:
            LOGGER.error("Session expired while fetching %s: %s", self._prefix, exc)
            return
        self._error_handler.handle(
            exc,
            ErrorSeverity.CRITICAL,
            context={"query_key_prefix": self._prefix},
        )
