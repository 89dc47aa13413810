"""Query state value objects.

Everything here is immutable: the store replaces whole snapshots instead of
mutating them, so any consumer holding a ``QueryState`` sees a consistent
view of pagination, sorting, search and filters.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, Literal, Mapping, Optional, Union

from dateutil.parser import isoparse

from dashview.config import DEFAULT_PAGE_SIZE
from dashview.errors import FilterValidationError


class ViewMode(Enum):
    TABLE = "table"
    GRID = "grid"


# ---------------------------------------------------------------------------
# Filter values (tagged union keyed on ``kind``)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DropdownValue:
    value: str
    label: str = ""
    kind: Literal["dropdown"] = field(default="dropdown", init=False)

    def param_value(self) -> str:
        return self.value


@dataclass(frozen=True)
class MultiValue:
    value: str
    label: str = ""
    kind: Literal["multi"] = field(default="multi", init=False)

    def param_value(self) -> str:
        return self.value


@dataclass(frozen=True)
class DateValue:
    value: date
    label: str = ""
    kind: Literal["date"] = field(default="date", init=False)

    def __post_init__(self) -> None:
        # datetime is a date subclass; keep only the calendar day
        if isinstance(self.value, datetime):
            object.__setattr__(self, "value", self.value.date())
        if not self.label:
            object.__setattr__(self, "label", self.value.isoformat())

    def param_value(self) -> str:
        return self.value.isoformat()


FilterValue = Union[DropdownValue, MultiValue, DateValue]


def filter_value_to_dict(item: FilterValue) -> dict[str, str]:
    if isinstance(item, DateValue):
        raw = item.value.isoformat()
    else:
        raw = item.value
    return {"kind": item.kind, "value": raw, "label": item.label}


def filter_value_from_dict(payload: Mapping[str, Any]) -> FilterValue:
    """Rebuild a tagged filter value from its dict form.

    Raises :class:`FilterValidationError` when the payload cannot describe
    any known kind.
    """

    if not isinstance(payload, Mapping) or "value" not in payload:
        raise FilterValidationError(f"Invalid filter value: {payload!r}")
    kind = payload.get("kind", "dropdown")
    label = str(payload.get("label") or "")
    raw = payload["value"]
    if kind == "dropdown":
        return DropdownValue(str(raw), label or str(raw))
    if kind == "multi":
        return MultiValue(str(raw), label or str(raw))
    if kind == "date":
        return DateValue(parse_date(raw), label)
    raise FilterValidationError(f"Unknown filter value kind: {kind!r}")


def parse_date(raw: Any) -> date:
    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw
    try:
        return isoparse(str(raw)).date()
    except (TypeError, ValueError) as exc:
        raise FilterValidationError(f"Invalid date: {raw!r}") from exc


# ---------------------------------------------------------------------------
# Sorting / column filters
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SortingRule:
    id: str
    desc: bool = False


@dataclass(frozen=True)
class ColumnFilter:
    id: str
    value: Any = None


# ---------------------------------------------------------------------------
# QueryState
# ---------------------------------------------------------------------------

# Changing any of these sends the view back to its first page.
_PAGE_RESETTING_FIELDS = frozenset(
    {"page_size", "sorting", "global_filter", "filters", "column_filters"}
)


@dataclass(frozen=True)
class QueryState:
    """What page, sort order, search text and filters a view wants."""

    page_index: int = 0
    page_size: int = DEFAULT_PAGE_SIZE
    sorting: tuple[SortingRule, ...] = ()
    global_filter: str = ""
    filters: Mapping[str, tuple[FilterValue, ...]] = field(default_factory=dict)
    column_filters: tuple[ColumnFilter, ...] = ()

    def __post_init__(self) -> None:
        if not isinstance(self.page_index, int) or self.page_index < 0:
            raise FilterValidationError(f"page_index must be >= 0, got {self.page_index!r}")
        if not isinstance(self.page_size, int) or self.page_size <= 0:
            raise FilterValidationError(f"page_size must be > 0, got {self.page_size!r}")
        object.__setattr__(self, "sorting", tuple(self.sorting))
        object.__setattr__(self, "column_filters", tuple(self.column_filters))
        object.__setattr__(self, "global_filter", self.global_filter or "")
        # Empty selections are the same as no selection at all.
        normalised = {
            key: tuple(values)
            for key, values in sorted(dict(self.filters).items())
            if values
        }
        object.__setattr__(self, "filters", MappingProxyType(normalised))

    def evolve(self, **changes: Any) -> "QueryState":
        """Return a copy with *changes* applied.

        ``page_index`` drops back to 0 when a page-resetting field actually
        changes, unless the caller sets ``page_index`` explicitly.
        """

        candidate = replace(self, **changes)
        if "page_index" in changes:
            return candidate
        for name in _PAGE_RESETTING_FIELDS.intersection(changes):
            if getattr(candidate, name) != getattr(self, name):
                return replace(candidate, page_index=0)
        return candidate

    @property
    def primary_sort(self) -> Optional[SortingRule]:
        return self.sorting[0] if self.sorting else None

    def to_dict(self) -> dict[str, Any]:
        return {
            "pageIndex": self.page_index,
            "pageSize": self.page_size,
            "sorting": [{"id": rule.id, "desc": rule.desc} for rule in self.sorting],
            "globalFilter": self.global_filter,
            "filters": {
                key: [filter_value_to_dict(item) for item in values]
                for key, values in self.filters.items()
            },
            "columnFilters": [{"id": cf.id, "value": cf.value} for cf in self.column_filters],
        }

    def cache_key(self) -> str:
        """Deterministic serialisation used as the cache key suffix."""
        return json.dumps(self.to_dict(), sort_keys=True, separators=(",", ":"), default=str)

    def to_fetch_args(self, signal: Any = None) -> "FetchArgs":
        return FetchArgs(
            page_index=self.page_index,
            page_size=self.page_size,
            sorting=self.sorting,
            global_filter=self.global_filter,
            filters=self.filters,
            column_filters=self.column_filters,
            signal=signal,
        )


@dataclass(frozen=True)
class FetchArgs:
    """Arguments handed to a fetch contract: the query plus a cancellation signal."""

    page_index: int = 0
    page_size: int = DEFAULT_PAGE_SIZE
    sorting: tuple[SortingRule, ...] = ()
    global_filter: str = ""
    filters: Mapping[str, tuple[FilterValue, ...]] = field(default_factory=dict)
    column_filters: tuple[ColumnFilter, ...] = ()
    signal: Any = None
