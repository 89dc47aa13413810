"""Registry of declarative filter controls bound to a query state store.

Controls hand raw selections to :meth:`DynamicFilterRegistry.commit`, which
normalises them into tagged filter values, validates them and only then
writes them into the store.  A rejected selection never reaches the store,
so it can never trigger a fetch.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Any, Iterable, Optional

from dashview.config import FILTER_OPTIONS_KEY_PREFIX, FILTER_OPTIONS_STALE_TIME_SEC
from dashview.domain.models.filters import (
    DependsOnBehavior,
    FilterDescriptor,
    FilterOption,
    FilterType,
    OptionsPage,
    OptionsQuery,
    SelectionMode,
)
from dashview.domain.models.query import (
    DateValue,
    DropdownValue,
    FilterValue,
    MultiValue,
    filter_value_from_dict,
    parse_date,
)
from dashview.errors import FilterValidationError
from dashview.gui.viewmodels.signal import Signal
from dashview.infrastructure.services.response_cache import ResponseCache
from dashview.utils.logging import get_logger

LOGGER = get_logger(__name__)

_SINGLE_ITEM_TYPES = (str, bytes, date, Enum, Mapping, FilterOption, DropdownValue, MultiValue, DateValue)


@dataclass(frozen=True)
class FilterControl:
    """Everything a control needs to draw itself."""

    key: str
    type: FilterType
    mode: SelectionMode
    label: str
    placeholder: str
    options: tuple[FilterOption, ...]
    selected: tuple[FilterValue, ...]
    error: Optional[str]
    disabled: bool
    is_remote: bool


def dedupe_by_value(values: Iterable[FilterValue]) -> tuple[FilterValue, ...]:
    seen: set[Any] = set()
    out: list[FilterValue] = []
    for item in values:
        if item.value in seen:
            continue
        seen.add(item.value)
        out.append(item)
    return tuple(out)


def _as_option(item: Any) -> FilterOption:
    if isinstance(item, FilterOption):
        return item
    if isinstance(item, Mapping):
        value = str(item["value"])
        return FilterOption(value, str(item.get("label") or value), item.get("meta"))
    return FilterOption(str(item), str(item))


class DynamicFilterRegistry:
    """Owns the filter descriptors of one view and their validation state.

    Signals
    -------
    validation_failed(key, message)
        A commit was rejected; ``errors[key]`` holds the message.
    """

    def __init__(
        self,
        store: Any,
        cache: Optional[ResponseCache] = None,
        *,
        key_prefix: str = FILTER_OPTIONS_KEY_PREFIX,
        options_stale_time: float = FILTER_OPTIONS_STALE_TIME_SEC,
    ) -> None:
        self._store = store
        self._cache = cache
        self._key_prefix = key_prefix
        self._options_stale_time = options_stale_time
        self._descriptors: dict[str, FilterDescriptor] = {}
        self._errors: dict[str, str] = {}
        self.validation_failed = Signal()

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(self, descriptor: FilterDescriptor) -> None:
        if descriptor.data_key in self._descriptors:
            raise ValueError(f"Filter {descriptor.data_key!r} is already registered")
        if descriptor.data_key in descriptor.depends_on:
            raise ValueError(f"Filter {descriptor.data_key!r} cannot depend on itself")
        self._descriptors[descriptor.data_key] = descriptor

    def register_many(self, descriptors: Iterable[FilterDescriptor]) -> None:
        for descriptor in descriptors:
            self.register(descriptor)

    def descriptor(self, key: str) -> FilterDescriptor:
        try:
            return self._descriptors[key]
        except KeyError:
            raise FilterValidationError(f"Unknown filter {key!r}", data_key=key) from None

    @property
    def descriptors(self) -> tuple[FilterDescriptor, ...]:
        return tuple(self._descriptors.values())

    @property
    def errors(self) -> dict[str, str]:
        return dict(self._errors)

    # ------------------------------------------------------------------
    # Options
    # ------------------------------------------------------------------

    def options_for(self, key: str, search: str = "", page_index: int = 0, signal: Any = None) -> OptionsPage:
        """Return one page of options for *key*, narrowed by *search*.

        Static options are filtered locally (case-insensitive on label and
        value).  Remote options go through the descriptor's fetcher and are
        cached under ``filter-options:<key>``.
        """
        descriptor = self.descriptor(key)
        if not descriptor.is_remote:
            needle = search.strip().casefold()
            options = tuple(
                option
                for option in descriptor.options
                if not needle or needle in option.label.casefold() or needle in option.value.casefold()
            )
            return OptionsPage(options=options, total_pages=1, page=1)

        query = OptionsQuery(
            page=page_index + 1,
            limit=descriptor.page_size,
            search=search,
            applied=self._dependency_values(descriptor),
            signal=signal,
        )
        cache_key = (f"{self._key_prefix}:{key}", self._options_cache_suffix(query))
        if self._cache is not None:
            cached = self._cache.get(cache_key)
            if cached is not None:
                return cached
        page = self._coerce_page(descriptor.remote_options_fetcher(query), query.page)
        if self._cache is not None:
            self._cache.set(cache_key, page, stale_time=self._options_stale_time)
        return page

    def invalidate_options(self, key: Optional[str] = None) -> int:
        if self._cache is None:
            return 0
        target = self._key_prefix if key is None else f"{self._key_prefix}:{key}"
        return self._cache.invalidate(target)

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    def commit(self, key: str, raw: Any) -> tuple[FilterValue, ...]:
        """Normalise, validate and apply a selection for *key*.

        ``raw`` may be ``None``, a single value or an iterable of values;
        values can be strings, dates, options, dicts or tagged filter values.
        Raises :class:`FilterValidationError` without touching the store
        when the selection is rejected.
        """
        try:
            descriptor = self.descriptor(key)
            if self.is_disabled(key):
                raise FilterValidationError(
                    f"Filter {key!r} is disabled until {', '.join(descriptor.depends_on)} is set",
                    data_key=key,
                )
            values = self.normalize(descriptor, raw)
        except FilterValidationError as exc:
            self._record_error(key, str(exc))
            raise

        self._errors.pop(key, None)
        current = tuple(self._store.state.filters.get(key, ()))
        if values == current:
            return values
        changes: dict[str, tuple[FilterValue, ...]] = {key: values}
        for dependent in self._dependents_of(key):
            changes[dependent] = ()
            self._errors.pop(dependent, None)
        self._store.update_filters(changes)
        return values

    def clear(self, key: str) -> None:
        self.descriptor(key)
        self._errors.pop(key, None)
        changes: dict[str, tuple[FilterValue, ...]] = {key: ()}
        for dependent in self._dependents_of(key):
            changes[dependent] = ()
        self._store.update_filters(changes)

    def clear_all(self) -> None:
        self._errors.clear()
        self._store.clear_filters()

    def is_disabled(self, key: str) -> bool:
        descriptor = self.descriptor(key)
        if descriptor.depends_on_behavior is not DependsOnBehavior.DISABLE_AND_CLEAR:
            return False
        filters = self._store.state.filters
        return any(not filters.get(dep) for dep in descriptor.depends_on)

    def normalize(self, descriptor: FilterDescriptor, raw: Any) -> tuple[FilterValue, ...]:
        if raw is None or raw == "":
            return ()
        if isinstance(raw, _SINGLE_ITEM_TYPES) or not isinstance(raw, Iterable):
            items = [raw]
        else:
            items = list(raw)
        try:
            values = dedupe_by_value(
                self._to_value(descriptor, item) for item in items if item is not None and item != ""
            )
        except FilterValidationError as exc:
            if exc.data_key is not None:
                raise
            raise FilterValidationError(str(exc), data_key=descriptor.data_key) from exc
        except (TypeError, ValueError) as exc:
            raise FilterValidationError(
                f"Invalid value for {descriptor.data_key!r}: {exc}",
                data_key=descriptor.data_key,
            ) from exc
        if descriptor.mode is SelectionMode.SINGLE:
            values = values[:1]
        if descriptor.options:
            allowed = {option.value for option in descriptor.options}
            unknown = [str(v.value) for v in values if v.value not in allowed]
            if unknown:
                raise FilterValidationError(
                    f"Unknown option(s) for {descriptor.data_key!r}: {', '.join(unknown)}",
                    data_key=descriptor.data_key,
                )
        return values

    def controls(self) -> tuple[FilterControl, ...]:
        filters = self._store.state.filters
        return tuple(
            FilterControl(
                key=d.data_key,
                type=d.type,
                mode=d.mode,
                label=d.label,
                placeholder=d.placeholder,
                options=d.options,
                selected=tuple(filters.get(d.data_key, ())),
                error=self._errors.get(d.data_key),
                disabled=self.is_disabled(d.data_key),
                is_remote=d.is_remote,
            )
            for d in self._descriptors.values()
        )

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _record_error(self, key: str, message: str) -> None:
        LOGGER.debug("Rejected filter %s: %s", key, message)
        self._errors[key] = message
        self.validation_failed.emit(key, message)

    def _to_value(self, descriptor: FilterDescriptor, item: Any) -> FilterValue:
        if isinstance(item, (DropdownValue, MultiValue, DateValue)):
            raw, label = item.value, item.label
        elif isinstance(item, FilterOption):
            raw, label = item.value, item.label
        elif isinstance(item, Mapping):
            parsed = filter_value_from_dict({"kind": "dropdown", **item})
            raw, label = parsed.value, parsed.label
        elif isinstance(item, Enum):
            raw, label = item.value, ""
        else:
            raw, label = item, ""

        if descriptor.type is FilterType.DATE:
            try:
                return DateValue(parse_date(raw), label)
            except FilterValidationError as exc:
                raise FilterValidationError(str(exc), data_key=descriptor.data_key) from exc

        value = str(raw)
        label = label or self._static_label(descriptor, value) or value
        if descriptor.type is FilterType.MULTISELECT:
            return MultiValue(value, label)
        return DropdownValue(value, label)

    @staticmethod
    def _static_label(descriptor: FilterDescriptor, value: str) -> str:
        for option in descriptor.options:
            if option.value == value:
                return option.label
        return ""

    def _dependents_of(self, key: str) -> list[str]:
        found: list[str] = []
        frontier = [key]
        while frontier:
            parent = frontier.pop()
            for d in self._descriptors.values():
                if parent in d.depends_on and d.data_key not in found and d.data_key != key:
                    found.append(d.data_key)
                    frontier.append(d.data_key)
        return found

    def _dependency_values(self, descriptor: FilterDescriptor) -> dict[str, tuple[Any, ...]]:
        filters = self._store.state.filters
        return {
            dep: tuple(v.param_value() for v in filters.get(dep, ()))
            for dep in descriptor.depends_on
        }

    @staticmethod
    def _options_cache_suffix(query: OptionsQuery) -> str:
        return json.dumps(
            {"page": query.page, "limit": query.limit, "search": query.search, "applied": query.applied},
            sort_keys=True,
            separators=(",", ":"),
            default=str,
        )

    @staticmethod
    def _coerce_page(result: Any, page: int) -> OptionsPage:
        if isinstance(result, OptionsPage):
            return result
        if isinstance(result, Mapping):
            total_pages = result.get("total_pages", result.get("totalPages"))
            return OptionsPage(
                options=tuple(_as_option(item) for item in result.get("options", ())),
                total_pages=None if total_pages is None else int(total_pages),
                page=page,
            )
        return OptionsPage(options=tuple(_as_option(item) for item in result), page=page)
