"""Fetch results and view status."""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Mapping, Sequence

from .query import FetchArgs

Row = Mapping[str, Any]


class ViewStatus(Enum):
    IDLE = "idle"
    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (ViewStatus.SUCCESS, ViewStatus.ERROR)


@dataclass(frozen=True)
class FetchResult:
    """One page of rows plus the server-side total across all pages."""

    rows: Sequence[Row] = ()
    total: int = 0

    def __post_init__(self) -> None:
        rows = tuple(self.rows)
        object.__setattr__(self, "rows", rows)
        try:
            total = int(self.total)
        except (TypeError, ValueError):
            total = 0
        # A single page can never hold more rows than the collection.
        object.__setattr__(self, "total", max(total, len(rows), 0))

    def page_count(self, page_size: int) -> int:
        return max(1, math.ceil(self.total / max(1, page_size)))

    @property
    def is_empty(self) -> bool:
        return not self.rows


FetchContract = Callable[[FetchArgs], FetchResult]

EMPTY_RESULT = FetchResult()
