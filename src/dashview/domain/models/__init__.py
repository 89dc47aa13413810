from .filters import (
    DependsOnBehavior,
    FilterDescriptor,
    FilterOption,
    FilterType,
    OptionsPage,
    OptionsQuery,
    SelectionMode,
)
from .query import (
    ColumnFilter,
    DateValue,
    DropdownValue,
    FetchArgs,
    FilterValue,
    MultiValue,
    QueryState,
    SortingRule,
    ViewMode,
    filter_value_from_dict,
    filter_value_to_dict,
)
from .result import EMPTY_RESULT, FetchContract, FetchResult, Row, ViewStatus

__all__ = [
    "ColumnFilter",
    "DateValue",
    "DependsOnBehavior",
    "DropdownValue",
    "EMPTY_RESULT",
    "FetchArgs",
    "FetchContract",
    "FetchResult",
    "FilterDescriptor",
    "FilterOption",
    "FilterType",
    "FilterValue",
    "MultiValue",
    "OptionsPage",
    "OptionsQuery",
    "QueryState",
    "Row",
    "SelectionMode",
    "SortingRule",
    "ViewMode",
    "ViewStatus",
    "filter_value_from_dict",
    "filter_value_to_dict",
]
