"""Tests for DynamicFilterRegistry."""

from datetime import date
from enum import Enum
from unittest.mock import Mock

import pytest

from dashview.application.services.filter_registry import DynamicFilterRegistry, dedupe_by_value
from dashview.application.services.query_state_store import QueryStateStore
from dashview.domain.models.filters import (
    DependsOnBehavior,
    FilterDescriptor,
    FilterOption,
    FilterType,
    OptionsPage,
    SelectionMode,
)
from dashview.domain.models.query import DateValue, DropdownValue, MultiValue
from dashview.errors import FilterValidationError
from dashview.infrastructure.services.response_cache import ResponseCache

STATUS = FilterDescriptor(
    "status",
    options=(FilterOption("active", "Active"), FilterOption("inactive", "Inactive")),
)


@pytest.fixture
def store():
    return QueryStateStore()


@pytest.fixture
def registry(store, clock):
    return DynamicFilterRegistry(store, ResponseCache(clock=clock))


def _changes(store):
    seen = []
    store.changed.connect(lambda new, old: seen.append(new))
    return seen


class TestRegistration:
    def test_duplicate_key_rejected(self, registry):
        registry.register(STATUS)
        with pytest.raises(ValueError):
            registry.register(STATUS)

    def test_self_dependency_rejected(self, registry):
        with pytest.raises(ValueError):
            registry.register(FilterDescriptor("a", depends_on=("a",)))

    def test_unknown_key(self, registry):
        with pytest.raises(FilterValidationError) as info:
            registry.descriptor("missing")
        assert info.value.data_key == "missing"


class TestCommit:
    def test_single_select_keeps_first_and_uses_static_label(self, registry, store):
        registry.register(STATUS)
        registry.commit("status", ["inactive", "active"])
        assert store.state.filters["status"] == (DropdownValue("inactive", "Inactive"),)

    def test_multiselect_dedupes_by_value(self, registry, store):
        registry.register(FilterDescriptor("tags", type=FilterType.MULTISELECT))
        registry.commit("tags", ["a", {"value": "b", "label": "Bee"}, "a"])
        assert store.state.filters["tags"] == (MultiValue("a", "a"), MultiValue("b", "Bee"))

    def test_date_is_normalised(self, registry, store):
        registry.register(FilterDescriptor("created", type=FilterType.DATE))
        registry.commit("created", "2024-02-29T10:15:00")
        assert store.state.filters["created"] == (DateValue(date(2024, 2, 29)),)

    def test_invalid_date_never_reaches_store(self, registry, store):
        registry.register(FilterDescriptor("created", type=FilterType.DATE))
        failures = []
        registry.validation_failed.connect(lambda key, message: failures.append(key))
        changes = _changes(store)

        with pytest.raises(FilterValidationError):
            registry.commit("created", "not a date")

        assert changes == []
        assert failures == ["created"]
        assert "created" in registry.errors

    def test_unknown_static_option_rejected(self, registry, store):
        registry.register(STATUS)
        with pytest.raises(FilterValidationError):
            registry.commit("status", "deleted")
        assert "status" not in store.state.filters

    def test_successful_commit_clears_error(self, registry):
        registry.register(STATUS)
        with pytest.raises(FilterValidationError):
            registry.commit("status", "deleted")
        registry.commit("status", "active")
        assert registry.errors == {}

    def test_same_selection_is_a_no_op(self, registry, store):
        registry.register(STATUS)
        registry.commit("status", "active")
        changes = _changes(store)
        registry.commit("status", DropdownValue("active", "Active"))
        assert changes == []

    def test_none_clears(self, registry, store):
        registry.register(STATUS)
        registry.commit("status", "active")
        registry.commit("status", None)
        assert "status" not in store.state.filters


class Tier(Enum):
    GOLD = "gold"
    SILVER = "silver"


class _Unprintable:
    def __str__(self):
        raise TypeError("no text form")


class TestScalarSelections:
    def test_number_is_a_single_value(self, registry, store):
        registry.register(FilterDescriptor("rating"))
        registry.commit("rating", 5)
        assert store.state.filters["rating"] == (DropdownValue("5", "5"),)

    def test_bool_is_a_single_value(self, registry, store):
        registry.register(FilterDescriptor("in_stock"))
        registry.commit("in_stock", True)
        assert store.state.filters["in_stock"] == (DropdownValue("True", "True"),)

    def test_enum_member_uses_its_value(self, registry, store):
        registry.register(FilterDescriptor("tier", type=FilterType.MULTISELECT))
        registry.commit("tier", [Tier.GOLD, Tier.SILVER])
        assert store.state.filters["tier"] == (MultiValue("gold", "gold"), MultiValue("silver", "silver"))

    def test_single_enum_member(self, registry, store):
        registry.register(FilterDescriptor("tier"))
        registry.commit("tier", Tier.GOLD)
        assert store.state.filters["tier"] == (DropdownValue("gold", "gold"),)

    def test_unconvertible_value_is_a_validation_error(self, registry, store):
        registry.register(FilterDescriptor("rating"))
        changes = _changes(store)
        with pytest.raises(FilterValidationError) as info:
            registry.commit("rating", _Unprintable())
        assert info.value.data_key == "rating"
        assert "rating" in registry.errors
        assert changes == []

    def test_malformed_mapping_carries_data_key(self, registry):
        registry.register(FilterDescriptor("tags", type=FilterType.MULTISELECT))
        with pytest.raises(FilterValidationError) as info:
            registry.commit("tags", {"label": "no value"})
        assert info.value.data_key == "tags"
        assert "tags" in registry.errors


class TestDependencies:
    @pytest.fixture
    def chained(self, registry):
        registry.register_many(
            [
                FilterDescriptor("company"),
                FilterDescriptor("brand", depends_on=("company",)),
                FilterDescriptor("model", depends_on=("brand",)),
                FilterDescriptor(
                    "region",
                    depends_on=("company",),
                    depends_on_behavior=DependsOnBehavior.CLEAR,
                ),
            ]
        )
        return registry

    def test_dependent_disabled_until_parent_set(self, chained):
        assert chained.is_disabled("brand")
        assert not chained.is_disabled("region")
        chained.commit("company", "c1")
        assert not chained.is_disabled("brand")

    def test_commit_to_disabled_filter_rejected(self, chained, store):
        with pytest.raises(FilterValidationError):
            chained.commit("brand", "b1")
        assert store.state.filters == {}

    def test_parent_change_clears_dependents_in_one_update(self, chained, store):
        chained.commit("company", "c1")
        chained.commit("brand", "b1")
        chained.commit("model", "m1")
        chained.commit("region", "north")
        changes = _changes(store)

        chained.commit("company", "c2")

        assert len(changes) == 1
        assert dict(store.state.filters) == {"company": (DropdownValue("c2", "c2"),)}

    def test_clear_cascades(self, chained, store):
        chained.commit("company", "c1")
        chained.commit("brand", "b1")
        chained.clear("company")
        assert dict(store.state.filters) == {}

    def test_controls_reflect_state(self, chained):
        chained.commit("company", "c1")
        controls = {control.key: control for control in chained.controls()}
        assert controls["company"].selected == (DropdownValue("c1", "c1"),)
        assert not controls["brand"].disabled
        assert controls["model"].disabled


class TestOptions:
    def test_static_options_filtered_locally(self, registry):
        registry.register(STATUS)
        page = registry.options_for("status", search="INACT")
        assert [option.value for option in page.options] == ["inactive"]
        assert not page.has_more

    def test_remote_fetcher_receives_dependency_values(self, registry):
        fetcher = Mock(return_value={"options": [{"value": "b1", "label": "Brand 1"}], "totalPages": 3})
        registry.register(FilterDescriptor("company"))
        registry.register(
            FilterDescriptor(
                "brand",
                depends_on=("company",),
                remote_options_fetcher=fetcher,
                page_size=25,
            )
        )
        registry.commit("company", "c1")

        page = registry.options_for("brand", search="bra", page_index=1)

        query = fetcher.call_args[0][0]
        assert (query.page, query.limit, query.search) == (2, 25, "bra")
        assert query.applied == {"company": ("c1",)}
        assert page == OptionsPage((FilterOption("b1", "Brand 1"),), total_pages=3, page=2)
        assert page.has_more

    def test_remote_options_are_cached(self, registry):
        fetcher = Mock(return_value=["x", "y"])
        registry.register(FilterDescriptor("tag", remote_options_fetcher=fetcher))
        registry.options_for("tag")
        page = registry.options_for("tag")
        assert fetcher.call_count == 1
        assert [option.label for option in page.options] == ["x", "y"]
        assert page.total_pages is None

    def test_invalidate_options_forces_refetch(self, registry):
        fetcher = Mock(return_value=["x"])
        registry.register(FilterDescriptor("tag", remote_options_fetcher=fetcher))
        registry.options_for("tag")
        assert registry.invalidate_options("tag") == 1
        registry.options_for("tag")
        assert fetcher.call_count == 2


def test_dedupe_by_value_keeps_first_label():
    values = [DropdownValue("a", "first"), DropdownValue("a", "second"), DropdownValue("b")]
    assert dedupe_by_value(values) == (DropdownValue("a", "first"), DropdownValue("b"))


def test_multiselect_forces_multi_mode():
    descriptor = FilterDescriptor("tags", type=FilterType.MULTISELECT)
    assert descriptor.mode is SelectionMode.MULTI
