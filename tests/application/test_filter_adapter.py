"""Tests for FilterAdapter parameter building and response extraction."""

from datetime import date
from unittest.mock import Mock

import pytest

from dashview.application.services.filter_adapter import (
    FilterAdapter,
    ParamNames,
    resolve_path,
)
from dashview.domain.models.query import (
    ColumnFilter,
    DateValue,
    DropdownValue,
    MultiValue,
    QueryState,
    SortingRule,
)
from dashview.domain.models.result import FetchResult
from dashview.errors import NetworkError


def _args(**kwargs):
    return QueryState(**kwargs).to_fetch_args()


class TestResolvePath:
    def test_nested_mapping(self):
        assert resolve_path({"a": {"b": 3}}, "a.b") == 3

    def test_list_index(self):
        assert resolve_path({"items": [{"id": 7}]}, "items.0.id") == 7

    def test_missing_segment_is_none(self):
        assert resolve_path({"a": {}}, "a.b.c") is None

    def test_index_out_of_range_is_none(self):
        assert resolve_path({"items": []}, "items.0") is None

    def test_scalar_in_the_middle_is_none(self):
        assert resolve_path({"a": "text"}, "a.b") is None

    def test_empty_path_returns_tree(self):
        tree = {"a": 1}
        assert resolve_path(tree, "") is tree


class TestBuildParams:
    def test_page_is_one_based(self):
        adapter = FilterAdapter(Mock(), "data")
        params = adapter.build_params(_args(page_index=2, page_size=20))
        assert params == {"page": 3, "limit": 20}

    def test_search_omitted_when_empty(self):
        adapter = FilterAdapter(Mock(), "data")
        assert "search" not in adapter.build_params(_args())
        assert adapter.build_params(_args(global_filter="acme"))["search"] == "acme"

    def test_sort_from_first_rule(self):
        adapter = FilterAdapter(Mock(), "data")
        params = adapter.build_params(_args(sorting=(SortingRule("name", desc=True), SortingRule("id"))))
        assert params["sortBy"] == "name"
        assert params["order"] == "desc"

    def test_single_value_is_scalar_multi_is_list(self):
        adapter = FilterAdapter(Mock(), "data")
        params = adapter.build_params(
            _args(
                filters={
                    "status": (DropdownValue("active"),),
                    "tags": (MultiValue("a"),),
                    "brand": (DropdownValue("b1"), DropdownValue("b2")),
                }
            )
        )
        assert params["status"] == "active"
        assert params["tags"] == ["a"]
        assert params["brand"] == ["b1", "b2"]

    def test_dates_sent_as_iso(self):
        adapter = FilterAdapter(Mock(), "data")
        params = adapter.build_params(_args(filters={"from": (DateValue(date(2024, 3, 1)),)}))
        assert params["from"] == "2024-03-01"

    def test_string_mapping_renames(self):
        adapter = FilterAdapter(Mock(), "data", filter_mapping={"brand": "brandId"})
        params = adapter.build_params(_args(filters={"brand": (DropdownValue("b1"),)}))
        assert params["brandId"] == "b1"
        assert "brand" not in params

    def test_callable_mapping_merges(self):
        def split_range(value):
            low, high = value.split("-")
            return {"minPrice": low, "maxPrice": high}

        adapter = FilterAdapter(Mock(), "data", filter_mapping={"price": split_range})
        params = adapter.build_params(_args(filters={"price": (DropdownValue("10-20"),)}))
        assert params["minPrice"] == "10"
        assert params["maxPrice"] == "20"

    def test_empty_column_filters_skipped(self):
        adapter = FilterAdapter(Mock(), "data")
        params = adapter.build_params(
            _args(column_filters=(ColumnFilter("a", None), ColumnFilter("b", ""), ColumnFilter("c", 0)))
        )
        assert "a" not in params
        assert "b" not in params
        assert params["c"] == 0

    def test_custom_param_names(self):
        names = ParamNames(page="p", limit="size", search="q", sort_by="sort", order="dir")
        adapter = FilterAdapter(Mock(), "data", param_names=names)
        params = adapter.build_params(_args(global_filter="x", sorting=(SortingRule("id"),)))
        assert params == {"p": 1, "size": 10, "q": "x", "sort": "id", "dir": "asc"}


class TestExtract:
    def test_rows_and_total(self):
        api = Mock(return_value={"data": {"items": [{"id": 1}], "total": 1}})
        adapter = FilterAdapter(api, "data.items", "data.total")
        assert adapter(_args()) == FetchResult(rows=({"id": 1},), total=1)

    def test_missing_rows_yield_empty_result(self):
        api = Mock(return_value={"data": {}})
        adapter = FilterAdapter(api, "data.items", "data.total")
        result = adapter(_args())
        assert result.rows == ()
        assert result.total == 0

    def test_missing_total_yields_empty_result(self):
        adapter = FilterAdapter(Mock(), "data.items", "data.total")
        assert adapter.extract({"data": {"items": [{"id": 1}]}}) == FetchResult()

    def test_rows_not_a_list_yield_empty_result(self):
        adapter = FilterAdapter(Mock(), "data")
        assert adapter.extract({"data": {"id": 1}}) == FetchResult()
        assert adapter.extract({"data": "oops"}) == FetchResult()

    def test_total_defaults_to_row_count(self):
        adapter = FilterAdapter(Mock(), "data")
        assert adapter.extract({"data": [{"id": 1}, {"id": 2}]}).total == 2

    def test_numeric_string_total_accepted(self):
        adapter = FilterAdapter(Mock(), "rows", "count")
        assert adapter.extract({"rows": [], "count": "42"}).total == 42

    def test_transform_result_escape_hatch(self):
        adapter = FilterAdapter(
            Mock(),
            "ignored",
            transform_result=lambda response: (response["results"], response["meta"]["n"]),
        )
        result = adapter.extract({"results": [{"id": 1}], "meta": {"n": 9}})
        assert result == FetchResult(rows=({"id": 1},), total=9)

    def test_idempotent(self):
        response = {"data": {"items": [{"id": 1}, {"id": 2}], "total": 5}}
        adapter = FilterAdapter(Mock(return_value=response), "data.items", "data.total")
        args = _args(global_filter="x", page_index=1)
        assert adapter.build_params(args) == adapter.build_params(args)
        assert adapter(args) == adapter(args)

    def test_signal_passed_to_api_call(self):
        api = Mock(return_value={"data": []})
        token = object()
        FilterAdapter(api, "data")(QueryState().to_fetch_args(token))
        assert api.call_args[0][1] is token

    def test_network_errors_propagate(self):
        api = Mock(side_effect=NetworkError("down"))
        adapter = FilterAdapter(api, "data")
        with pytest.raises(NetworkError):
            adapter(_args())
