"""Mirror a view's query state into a URL query string and back.

Only the parameters this bridge manages are rewritten; anything else that
is already in the location (tracking ids, unrelated screen state) survives
every write untouched.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, replace
from typing import Any, Callable, Iterable, Optional, Protocol, Sequence
from urllib.parse import parse_qsl, urlencode

from dashview.config import DEFAULT_PAGE_SIZE, URL_FILTER_PREFIX
from dashview.domain.models.query import (
    ColumnFilter,
    QueryState,
    SortingRule,
    ViewMode,
    filter_value_from_dict,
    filter_value_to_dict,
)
from dashview.errors import FilterValidationError
from dashview.utils.logging import get_logger

LOGGER = get_logger(__name__)


class Location(Protocol):
    """Where the query string lives (a browser history entry, a test double)."""

    @property
    def query(self) -> str: ...

    def replace(self, query: str) -> None: ...


class MemoryLocation:
    """In-process location used by desktop hosts, the CLI and tests."""

    def __init__(self, query: str = "") -> None:
        self._query = query.lstrip("?")
        self.history: list[str] = []

    @property
    def query(self) -> str:
        return self._query

    def replace(self, query: str) -> None:
        self._query = query
        self.history.append(query)


@dataclass(frozen=True)
class UrlParams:
    """Query-string parameter names."""

    search: str = "search"
    page: str = "page"
    page_size: str = "pageSize"
    sort: str = "sort"
    view: str = "view"
    columns: str = "columns"
    filter_prefix: str = URL_FILTER_PREFIX


def _compact(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"), default=str)


class UrlSyncBridge:
    """Two-way binding between a :class:`QueryStateStore` and a location.

    ``synced_filters`` restricts which filter keys are written to (and read
    from) the URL; ``None`` syncs all of them.
    """

    def __init__(
        self,
        location: Location,
        params: Optional[UrlParams] = None,
        synced_filters: Optional[Iterable[str]] = None,
        default_page_size: int = DEFAULT_PAGE_SIZE,
    ) -> None:
        self._location = location
        self._params = params or UrlParams()
        self._synced = None if synced_filters is None else frozenset(synced_filters)
        self._default_page_size = default_page_size
        self._detach: list[Callable[[], None]] = []

    @property
    def location(self) -> Location:
        return self._location

    # ------------------------------------------------------------------
    # State -> URL
    # ------------------------------------------------------------------

    def serialize(self, state: QueryState, view_mode: ViewMode = ViewMode.TABLE) -> str:
        p = self._params
        kept = [
            (name, value)
            for name, value in parse_qsl(self._location.query, keep_blank_values=True)
            if not self._is_managed(name)
        ]
        ours: list[tuple[str, str]] = []
        if state.global_filter:
            ours.append((p.search, state.global_filter))
        if state.page_index > 0:
            ours.append((p.page, str(state.page_index + 1)))
        if state.page_size != self._default_page_size:
            ours.append((p.page_size, str(state.page_size)))
        if state.sorting:
            ours.append((p.sort, _compact([{"id": r.id, "desc": r.desc} for r in state.sorting])))
        if view_mode is not ViewMode.TABLE:
            ours.append((p.view, view_mode.value))
        if state.column_filters:
            ours.append(
                (p.columns, _compact([{"id": cf.id, "value": cf.value} for cf in state.column_filters]))
            )
        for key, values in state.filters.items():
            if self._syncs(key):
                ours.append(
                    (f"{p.filter_prefix}{key}", _compact([filter_value_to_dict(v) for v in values]))
                )
        return urlencode(kept + ours)

    def write(self, state: QueryState, view_mode: ViewMode = ViewMode.TABLE) -> None:
        query = self.serialize(state, view_mode)
        if query != self._location.query:
            self._location.replace(query)

    # ------------------------------------------------------------------
    # URL -> state
    # ------------------------------------------------------------------

    def hydrate(
        self,
        defaults: Optional[QueryState] = None,
        default_view: ViewMode = ViewMode.TABLE,
        page_size_options: Sequence[int] = (),
    ) -> tuple[QueryState, ViewMode]:
        """Build the initial state: values present in the URL beat *defaults*.

        Values that fail to parse are skipped and the default is kept.
        """
        p = self._params
        state = defaults or QueryState()
        view_mode = default_view
        changes: dict[str, Any] = {}
        filters = dict(state.filters)

        for name, raw in parse_qsl(self._location.query, keep_blank_values=True):
            try:
                if name == p.search:
                    changes["global_filter"] = raw
                elif name == p.page:
                    page = int(raw)
                    if page >= 1:
                        changes["page_index"] = page - 1
                elif name == p.page_size:
                    size = int(raw)
                    if size > 0 and (not page_size_options or size in page_size_options):
                        changes["page_size"] = size
                elif name == p.sort:
                    changes["sorting"] = tuple(
                        SortingRule(str(item["id"]), bool(item.get("desc", False)))
                        for item in json.loads(raw)
                    )
                elif name == p.view:
                    view_mode = ViewMode(raw)
                elif name == p.columns:
                    changes["column_filters"] = tuple(
                        ColumnFilter(str(item["id"]), item.get("value"))
                        for item in json.loads(raw)
                    )
                elif name.startswith(p.filter_prefix):
                    key = name[len(p.filter_prefix):]
                    if key and self._syncs(key):
                        filters[key] = tuple(filter_value_from_dict(item) for item in json.loads(raw))
            except (ValueError, TypeError, KeyError, FilterValidationError) as exc:
                LOGGER.debug("Ignoring URL parameter %s=%r: %s", name, raw, exc)

        changes["filters"] = filters
        return replace(state, **changes), view_mode

    # ------------------------------------------------------------------
    # Store binding
    # ------------------------------------------------------------------

    def attach(self, store: Any) -> Callable[[], None]:
        """Hydrate *store* from the URL, then keep the URL in step with it.

        Returns a callable that detaches the bridge again.
        """
        state, view_mode = self.hydrate(store.state, store.view_mode, store.page_size_options)
        store.replace(state)
        store.set_view_mode(view_mode)

        def sync(*_args: Any) -> None:
            self.write(store.state, store.view_mode)

        self._detach.append(store.changed.connect(sync))
        self._detach.append(store.view_mode_changed.connect(sync))
        sync()
        return self.detach

    def detach(self) -> None:
        while self._detach:
            self._detach.pop()()

    # ------------------------------------------------------------------

    def _syncs(self, key: str) -> bool:
        return self._synced is None or key in self._synced

    def _is_managed(self, name: str) -> bool:
        p = self._params
        if name in (p.search, p.page, p.page_size, p.sort, p.view, p.columns):
            return True
        if name.startswith(p.filter_prefix):
            return self._syncs(name[len(p.filter_prefix):])
        return False
