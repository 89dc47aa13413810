"""CollectionViewModel: one server-backed list screen, no Qt dependency.

Wires a :class:`QueryStateStore`, a :class:`RequestCoordinator`, a
:class:`DynamicFilterRegistry` and, optionally, a :class:`UrlSyncBridge`
into one object that table or grid views bind to.
"""

from __future__ import annotations

import logging
from concurrent.futures import Executor
from typing import Any, Iterable, Mapping, Optional, Sequence

from dashview.application.services.filter_registry import DynamicFilterRegistry
from dashview.application.services.query_state_store import QueryStateStore
from dashview.application.services.request_coordinator import Dispatch, RequestCoordinator
from dashview.application.services.url_sync import UrlSyncBridge
from dashview.config import PAGE_SIZE_OPTIONS, SEARCH_DEBOUNCE_MS
from dashview.domain.models.filters import FilterDescriptor
from dashview.domain.models.query import ColumnFilter, QueryState, SortingRule, ViewMode
from dashview.domain.models.result import FetchContract, FetchResult, Row
from dashview.errors.handler import ErrorHandler
from dashview.events.bus import EventBus
from dashview.events.collection_events import RecordsChangedEvent
from dashview.gui.viewmodels.base import BaseViewModel
from dashview.gui.viewmodels.signal import ObservableProperty
from dashview.infrastructure.services.response_cache import ResponseCache


class CollectionViewModel(BaseViewModel):
    """State and commands for a paginated, filterable collection view.

    Nothing is fetched until :meth:`mount`.  From then on every query change
    goes through the store, and the coordinator decides whether it turns
    into a request.  ``status``, ``result`` and ``error`` are the
    coordinator's observables; ``result`` keeps the previous page while the
    next one loads.
    """

    def __init__(
        self,
        fetch: FetchContract,
        query_key_prefix: str,
        event_bus: Optional[EventBus] = None,
        *,
        cache: Optional[ResponseCache] = None,
        initial_state: Optional[QueryState] = None,
        view_mode: ViewMode = ViewMode.TABLE,
        column_visibility: Optional[Mapping[str, bool]] = None,
        filters: Iterable[FilterDescriptor] = (),
        url_bridge: Optional[UrlSyncBridge] = None,
        error_handler: Optional[ErrorHandler] = None,
        executor: Optional[Executor] = None,
        dispatch: Optional[Dispatch] = None,
        debounce_ms: int = SEARCH_DEBOUNCE_MS,
        page_size_options: Sequence[int] = PAGE_SIZE_OPTIONS,
    ) -> None:
        super().__init__()
        self._logger = logging.getLogger(__name__)
        self._prefix = query_key_prefix
        self._url_bridge = url_bridge
        self._mounted = False

        self.store = QueryStateStore(
            initial_state,
            page_size_options=page_size_options,
            view_mode=view_mode,
            column_visibility=column_visibility,
        )
        self.coordinator = RequestCoordinator(
            fetch,
            cache,
            query_key_prefix,
            debounce_ms=debounce_ms,
            executor=executor,
            dispatch=dispatch,
            error_handler=error_handler,
        )
        self.filters = DynamicFilterRegistry(self.store, cache)
        self.filters.register_many(filters)

        # Observable properties
        self.status = self.coordinator.status
        self.result = self.coordinator.result
        self.error = self.coordinator.error
        self.view_mode = ObservableProperty(self.store.view_mode)
        self.column_visibility = ObservableProperty(self.store.column_visibility)
        self.page_count = ObservableProperty(1)
        self.displayed_state = ObservableProperty(None)

        self.bind(self.store.view_mode_changed, self._on_view_mode_changed)
        self.bind(self.store.column_visibility_changed, self._on_column_visibility_changed)
        self.bind(self.coordinator.committed, self._on_committed)
        if event_bus is not None:
            self.subscribe_event(event_bus, RecordsChangedEvent, self._on_records_changed)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def query_key_prefix(self) -> str:
        return self._prefix

    @property
    def mounted(self) -> bool:
        return self._mounted

    def mount(self) -> None:
        """Hydrate from the URL (if synced) and issue the first request."""
        if self._mounted or self.disposed:
            return
        self._mounted = True
        if self._url_bridge is not None:
            self._connections.append(self._url_bridge.attach(self.store))
        self.bind(self.store.changed, self.coordinator.on_state_changed)
        self.coordinator.request(self.store.state)

    def dispose(self) -> None:
        self.coordinator.dispose()
        super().dispose()

    # ------------------------------------------------------------------
    # Query commands
    # ------------------------------------------------------------------

    @property
    def state(self) -> QueryState:
        return self.store.state

    @property
    def rows(self) -> tuple[Row, ...]:
        return self.result.value.rows

    @property
    def total(self) -> int:
        return self.result.value.total

    def set_page(self, index: int) -> None:
        self.store.set_page(index)

    def next_page(self) -> None:
        if self.store.state.page_index + 1 < self.page_count.value:
            self.store.set_page(self.store.state.page_index + 1)

    def previous_page(self) -> None:
        if self.store.state.page_index > 0:
            self.store.set_page(self.store.state.page_index - 1)

    def set_page_size(self, size: int) -> None:
        self.store.set_page_size(size)

    def sort_by(self, column_id: Optional[str], desc: bool = False) -> None:
        """Sort by one column, or clear sorting with ``None``."""
        self.store.set_sorting(() if column_id is None else (SortingRule(column_id, desc),))

    def toggle_sort(self, column_id: str) -> None:
        """Cycle a column through ascending, descending and unsorted."""
        current = self.store.state.primary_sort
        if current is None or current.id != column_id:
            self.sort_by(column_id)
        elif not current.desc:
            self.sort_by(column_id, desc=True)
        else:
            self.sort_by(None)

    def set_search(self, text: str) -> None:
        self.store.set_global_filter(text)

    def flush_search(self) -> None:
        """Issue a pending debounced search right away (Enter key)."""
        self.coordinator.debouncer.flush()

    def set_filter(self, key: str, raw: Any) -> None:
        self.filters.commit(key, raw)

    def clear_filter(self, key: str) -> None:
        self.filters.clear(key)

    def clear_filters(self) -> None:
        self.filters.clear_all()

    def set_column_filters(self, column_filters: Iterable[ColumnFilter]) -> None:
        self.store.set_column_filters(column_filters)

    def set_view_mode(self, mode: ViewMode) -> None:
        self.store.set_view_mode(mode)

    def set_column_visible(self, column_id: str, visible: bool) -> None:
        self.store.set_column_visible(column_id, visible)

    def toggle_column(self, column_id: str) -> bool:
        return self.store.toggle_column(column_id)

    def is_column_visible(self, column_id: str) -> bool:
        return self.store.is_column_visible(column_id)

    def retry(self) -> None:
        self.coordinator.retry()

    def refetch(self) -> None:
        self.coordinator.refetch()

    def cancel(self) -> None:
        self.coordinator.cancel()

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    def _on_view_mode_changed(self, new: ViewMode, _old: ViewMode) -> None:
        self.view_mode.value = new

    def _on_column_visibility_changed(self, new: dict[str, bool], _old: dict[str, bool]) -> None:
        self.column_visibility.value = new

    def _on_committed(self, state: QueryState, result: FetchResult) -> None:
        self.displayed_state.value = state
        self.page_count.value = result.page_count(state.page_size)

    def _on_records_changed(self, event: RecordsChangedEvent) -> None:
        prefix = event.query_key_prefix
        if not self._mounted or not (prefix == self._prefix or self._prefix.startswith(f"{prefix}:")):
            return
        self._logger.debug("Refetching %s after %s", self._prefix, event.action)
        self.coordinator.request(self.store.state, force=True)
