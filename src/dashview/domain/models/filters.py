"""Declarative filter descriptors consumed by filter controls."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Mapping, Optional

from dashview.config import FILTER_OPTIONS_PAGE_SIZE


class FilterType(Enum):
    DROPDOWN = "dropdown"
    DATE = "date"
    MULTISELECT = "multiselect"


class SelectionMode(Enum):
    SINGLE = "single"
    MULTI = "multi"


class DependsOnBehavior(Enum):
    # Keep the control enabled and only clear its value when a dependency changes.
    CLEAR = "clear"
    # Disable the control while any dependency is empty, and clear on change.
    DISABLE_AND_CLEAR = "disable+clear"


@dataclass(frozen=True)
class FilterOption:
    value: str
    label: str
    meta: Any = None


@dataclass(frozen=True)
class FilterDescriptor:
    data_key: str
    type: FilterType = FilterType.DROPDOWN
    mode: SelectionMode = SelectionMode.SINGLE
    label: str = ""
    options: tuple[FilterOption, ...] = ()
    remote_options_fetcher: Optional[Callable[..., Any]] = None
    placeholder: str = ""
    depends_on: tuple[str, ...] = ()
    depends_on_behavior: DependsOnBehavior = DependsOnBehavior.DISABLE_AND_CLEAR
    page_size: int = FILTER_OPTIONS_PAGE_SIZE

    def __post_init__(self) -> None:
        if not self.data_key:
            raise ValueError("FilterDescriptor.data_key must not be empty")
        object.__setattr__(self, "options", tuple(self.options))
        object.__setattr__(self, "depends_on", tuple(self.depends_on))
        if self.type is FilterType.MULTISELECT and self.mode is not SelectionMode.MULTI:
            object.__setattr__(self, "mode", SelectionMode.MULTI)
        if self.options and self.remote_options_fetcher is not None:
            raise ValueError(
                f"Filter {self.data_key!r} defines both static options and a remote fetcher"
            )
        if not self.label:
            object.__setattr__(self, "label", self.data_key)

    @property
    def is_remote(self) -> bool:
        return self.remote_options_fetcher is not None


@dataclass(frozen=True)
class OptionsQuery:
    """Input handed to a remote options fetcher."""

    page: int = 1  # 1-based
    limit: int = FILTER_OPTIONS_PAGE_SIZE
    search: str = ""
    applied: Mapping[str, tuple[Any, ...]] = field(default_factory=dict)
    signal: Any = None


@dataclass(frozen=True)
class OptionsPage:
    """One page of options; ``total_pages`` is ``None`` when the server does not say."""

    options: tuple[FilterOption, ...] = ()
    total_pages: Optional[int] = None
    page: int = 1

    @property
    def has_more(self) -> bool:
        if self.total_pages is None:
            return False
        return self.page < self.total_pages
