"""Single source of truth for one view's query state."""

from __future__ import annotations

import threading
from typing import Any, Iterable, Mapping, Optional, Sequence

from dashview.config import PAGE_SIZE_OPTIONS
from dashview.domain.models.query import (
    ColumnFilter,
    FilterValue,
    QueryState,
    SortingRule,
    ViewMode,
)
from dashview.errors import FilterValidationError
from dashview.gui.viewmodels.signal import Signal
from dashview.utils.logging import get_logger

LOGGER = get_logger(__name__)


class QueryStateStore:
    """Holds the current :class:`QueryState` snapshot for a view instance.

    Each mutation builds a new frozen snapshot and swaps it in under a lock,
    then emits ``changed(new_state, old_state)``.  Mutations that do not
    change anything emit nothing.  The view mode and per-column visibility
    are tracked next to the query state; they change presentation only,
    never the data, so they are not part of the cache key.  A column missing
    from the visibility map is visible.
    """

    def __init__(
        self,
        initial: Optional[QueryState] = None,
        *,
        page_size_options: Sequence[int] = PAGE_SIZE_OPTIONS,
        view_mode: ViewMode = ViewMode.TABLE,
        column_visibility: Optional[Mapping[str, bool]] = None,
    ) -> None:
        self._page_size_options = tuple(page_size_options)
        self._state = initial or QueryState()
        self._check_page_size(self._state.page_size)
        self._view_mode = view_mode
        self._column_visibility = {str(k): bool(v) for k, v in (column_visibility or {}).items()}
        self._lock = threading.Lock()
        self.changed = Signal()
        self.view_mode_changed = Signal()
        self.column_visibility_changed = Signal()

    # -- accessors -------------------------------------------------------

    @property
    def state(self) -> QueryState:
        return self._state

    @property
    def view_mode(self) -> ViewMode:
        return self._view_mode

    @property
    def column_visibility(self) -> dict[str, bool]:
        return dict(self._column_visibility)

    def is_column_visible(self, column_id: str) -> bool:
        return self._column_visibility.get(column_id, True)

    @property
    def page_size_options(self) -> tuple[int, ...]:
        return self._page_size_options

    # -- mutations -------------------------------------------------------

    def set_page(self, index: int) -> None:
        if not isinstance(index, int) or index < 0:
            raise FilterValidationError(f"page index must be >= 0, got {index!r}")
        self._apply(page_index=index)

    def set_page_size(self, size: int) -> None:
        self._check_page_size(size)
        self._apply(page_size=size)

    def set_sorting(self, rules: Iterable[SortingRule]) -> None:
        self._apply(sorting=tuple(rules))

    def set_global_filter(self, text: str) -> None:
        self._apply(global_filter=text or "")

    def set_filter(self, key: str, values: Iterable[FilterValue]) -> None:
        values = tuple(values)
        with self._lock:
            filters = dict(self._state.filters)
            filters[key] = values
            transition = self._swap_locked(filters=filters)
        self._emit(transition)

    def clear_filter(self, key: str) -> None:
        with self._lock:
            if key not in self._state.filters:
                return
            filters = dict(self._state.filters)
            del filters[key]
            transition = self._swap_locked(filters=filters)
        self._emit(transition)

    def update_filters(self, changes: Mapping[str, Iterable[FilterValue]]) -> None:
        """Set several filter keys in one snapshot; an empty selection removes the key."""
        with self._lock:
            filters = dict(self._state.filters)
            for key, values in changes.items():
                values = tuple(values)
                if values:
                    filters[key] = values
                else:
                    filters.pop(key, None)
            transition = self._swap_locked(filters=filters)
        self._emit(transition)

    def clear_filters(self) -> None:
        self._apply(filters={})

    def set_column_filters(self, column_filters: Iterable[ColumnFilter]) -> None:
        self._apply(column_filters=tuple(column_filters))

    def replace(self, state: QueryState) -> None:
        """Swap in a complete snapshot (URL hydration, saved views)."""
        self._check_page_size(state.page_size)
        with self._lock:
            old = self._state
            if old == state:
                return
            self._state = state
        self._emit((state, old))

    def set_view_mode(self, mode: ViewMode) -> None:
        mode = ViewMode(mode)
        with self._lock:
            old = self._view_mode
            if old is mode:
                return
            self._view_mode = mode
        self.view_mode_changed.emit(mode, old)

    def set_column_visibility(self, visibility: Mapping[str, bool]) -> None:
        """Merge *visibility* into the current map."""
        with self._lock:
            old = dict(self._column_visibility)
            new = {**old, **{str(k): bool(v) for k, v in visibility.items()}}
            if new == old:
                return
            self._column_visibility = new
        self.column_visibility_changed.emit(dict(new), old)

    def set_column_visible(self, column_id: str, visible: bool) -> None:
        self.set_column_visibility({column_id: visible})

    def toggle_column(self, column_id: str) -> bool:
        """Flip one column and return whether it is now visible."""
        with self._lock:
            visible = not self._column_visibility.get(column_id, True)
        self.set_column_visibility({column_id: visible})
        return visible

    # -- internal --------------------------------------------------------

    def _apply(self, **changes: Any) -> None:
        with self._lock:
            transition = self._swap_locked(**changes)
        self._emit(transition)

    def _swap_locked(self, **changes: Any) -> Optional[tuple[QueryState, QueryState]]:
        old = self._state
        new = old.evolve(**changes)
        if new == old:
            return None
        self._state = new
        return new, old

    def _emit(self, transition: Optional[tuple[QueryState, QueryState]]) -> None:
        # Always called outside the lock so handlers may mutate the store.
        if transition is None:
            return
        new, old = transition
        LOGGER.debug("Query state changed: %s", new.cache_key())
        self.changed.emit(new, old)

    def _check_page_size(self, size: int) -> None:
        if not isinstance(size, int) or size <= 0:
            raise FilterValidationError(f"page size must be > 0, got {size!r}")
        if self._page_size_options and size not in self._page_size_options:
            raise FilterValidationError(
                f"page size {size} not in allowed sizes {self._page_size_options}"
            )
