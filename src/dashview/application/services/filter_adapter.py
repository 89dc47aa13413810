"""Adapt an arbitrary REST list endpoint to the fetch contract.

Backends disagree on parameter names and on where the rows and the total
live in the response.  ``FilterAdapter`` owns both translations so that
views only ever see ``FetchResult(rows, total)``.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Callable, Optional, Union

from dashview.domain.models.query import FetchArgs, FilterValue
from dashview.domain.models.result import FetchResult
from dashview.errors import ShapeMismatchError
from dashview.utils.logging import get_logger

LOGGER = get_logger(__name__)

RawApiCall = Callable[[dict[str, Any], Any], Any]
ParamMapping = Union[str, Callable[[Any], Mapping[str, Any]]]


def resolve_path(tree: Any, path: str) -> Optional[Any]:
    """Walk a dot-separated *path* through nested mappings and sequences.

    Numeric segments index into lists (``"data.items.0.id"``).  Returns
    ``None`` instead of raising when any segment is missing.
    """

    if not path:
        return tree
    current = tree
    for part in path.split("."):
        if isinstance(current, Mapping):
            if part not in current:
                return None
            current = current[part]
        elif (
            isinstance(current, Sequence)
            and not isinstance(current, (str, bytes))
            and part.isdigit()
        ):
            index = int(part)
            if index >= len(current):
                return None
            current = current[index]
        else:
            return None
    return current


@dataclass(frozen=True)
class ParamNames:
    """Backend parameter names for the fixed part of the request."""

    page: str = "page"
    limit: str = "limit"
    search: str = "search"
    sort_by: str = "sortBy"
    order: str = "order"


def filter_param_value(values: Sequence[FilterValue]) -> Any:
    """Collapse a filter selection into one request parameter value.

    A single non-multi selection becomes a scalar; anything else is a list.
    """

    if len(values) == 1 and values[0].kind != "multi":
        return values[0].param_value()
    return [item.param_value() for item in values]


class FilterAdapter:
    """Fetch contract over a raw API callable.

    Parameters
    ----------
    api_call:
        ``(params, signal) -> response``; usually
        :meth:`dashview.infrastructure.http.transport.HttpTransport.endpoint`.
    data_path / total_path:
        Dot paths to the row list and the total count.  Without a
        ``total_path`` the total is the number of rows returned.
    filter_mapping:
        Internal filter key -> backend parameter name, or a callable that
        turns the value into several parameters.  Unmapped keys pass through.
    transform_result:
        Optional escape hatch taking the raw response and returning a
        ``FetchResult`` (or a ``(rows, total)`` pair) instead of path lookup.
    """

    def __init__(
        self,
        api_call: RawApiCall,
        data_path: str,
        total_path: Optional[str] = None,
        filter_mapping: Optional[Mapping[str, ParamMapping]] = None,
        transform_result: Optional[Callable[[Any], Any]] = None,
        param_names: Optional[ParamNames] = None,
    ) -> None:
        self._api_call = api_call
        self._data_path = data_path
        self._total_path = total_path
        self._filter_mapping = dict(filter_mapping or {})
        self._transform_result = transform_result
        self._names = param_names or ParamNames()

    def __call__(self, args: FetchArgs) -> FetchResult:
        params = self.build_params(args)
        LOGGER.debug("Fetching with params %s", params)
        response = self._api_call(params, args.signal)
        return self.extract(response)

    # ------------------------------------------------------------------
    # Request side
    # ------------------------------------------------------------------

    def build_params(self, args: FetchArgs) -> dict[str, Any]:
        names = self._names
        params: dict[str, Any] = {
            names.page: args.page_index + 1,
            names.limit: args.page_size,
        }
        if args.global_filter:
            params[names.search] = args.global_filter
        if args.sorting:
            rule = args.sorting[0]
            params[names.sort_by] = rule.id
            params[names.order] = "desc" if rule.desc else "asc"

        for key, values in args.filters.items():
            if values:
                self._apply_mapping(params, key, filter_param_value(values))
        for column_filter in args.column_filters:
            if column_filter.value is None or column_filter.value == "":
                continue
            self._apply_mapping(params, column_filter.id, column_filter.value)
        return params

    def _apply_mapping(self, params: dict[str, Any], key: str, value: Any) -> None:
        mapping = self._filter_mapping.get(key, key)
        if callable(mapping):
            params.update(mapping(value))
        else:
            params[mapping] = value

    # ------------------------------------------------------------------
    # Response side
    # ------------------------------------------------------------------

    def extract(self, response: Any) -> FetchResult:
        """Pull ``rows``/``total`` out of *response*; empty on shape mismatch."""

        try:
            if self._transform_result is not None:
                return self._coerce(self._transform_result(response))
            rows = self._rows(response)
            total = self._total(response, rows)
        except ShapeMismatchError as exc:
            LOGGER.warning("Response shape mismatch: %s", exc)
            return FetchResult()
        return FetchResult(rows=rows, total=total)

    def _rows(self, response: Any) -> tuple[Any, ...]:
        rows = resolve_path(response, self._data_path)
        if rows is None:
            raise ShapeMismatchError(f"no value at data path {self._data_path!r}")
        if isinstance(rows, (str, bytes, Mapping)) or not isinstance(rows, Sequence):
            raise ShapeMismatchError(
                f"data path {self._data_path!r} holds {type(rows).__name__}, not a list"
            )
        return tuple(rows)

    def _total(self, response: Any, rows: tuple[Any, ...]) -> int:
        if self._total_path is None:
            return len(rows)
        total = resolve_path(response, self._total_path)
        if isinstance(total, bool) or total is None:
            raise ShapeMismatchError(f"no count at total path {self._total_path!r}")
        try:
            return int(total)
        except (TypeError, ValueError) as exc:
            raise ShapeMismatchError(
                f"total path {self._total_path!r} holds {total!r}"
            ) from exc

    @staticmethod
    def _coerce(result: Any) -> FetchResult:
        if isinstance(result, FetchResult):
            return result
        if isinstance(result, Mapping) and "rows" in result:
            return FetchResult(rows=result["rows"], total=result.get("total", 0))
        if isinstance(result, tuple) and len(result) == 2:
            return FetchResult(rows=result[0], total=result[1])
        raise ShapeMismatchError(f"transform_result returned {type(result).__name__}")
