"""Presentation-neutral rendering of a collection view.

:class:`ViewRenderer` turns the view-model's current result, status and
view mode into a :class:`RenderedView` snapshot.  Only columns the view-model
marks visible are drawn, in the table and in the default cards.  Terminal, Qt and test
front-ends all draw from that snapshot, so switching between table and grid
is a pure re-render of rows already in memory, as is hiding a column.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Optional, Sequence, Union

from dashview.application.services.filter_adapter import resolve_path
from dashview.domain.models.query import ViewMode
from dashview.domain.models.result import Row, ViewStatus
from dashview.gui.viewmodels.base import BaseViewModel
from dashview.gui.viewmodels.signal import Signal


@dataclass(frozen=True)
class ColumnDef:
    """One table column; ``accessor`` is a dot path or a callable on the row."""

    id: str
    header: str = ""
    accessor: Union[str, Callable[[Row], Any], None] = None
    formatter: Optional[Callable[[Any], str]] = None
    sortable: bool = True

    @property
    def title(self) -> str:
        return self.header or self.id.replace("_", " ").title()

    def value(self, row: Row) -> Any:
        if callable(self.accessor):
            return self.accessor(row)
        return resolve_path(row, self.accessor or self.id)

    def render(self, row: Row) -> str:
        value = self.value(row)
        if self.formatter is not None:
            return self.formatter(value)
        return "" if value is None else str(value)


@dataclass(frozen=True)
class Card:
    title: str
    subtitle: str = ""
    fields: tuple[tuple[str, str], ...] = ()
    image: Optional[str] = None


CardRenderer = Callable[[Row], Card]


def columns_card_renderer(columns: Sequence[ColumnDef]) -> CardRenderer:
    """Card renderer that uses the first column as title and the rest as fields."""

    def render(row: Row) -> Card:
        if not columns:
            return Card(title=str(row))
        head, *rest = columns
        return Card(
            title=head.render(row),
            fields=tuple((column.title, column.render(row)) for column in rest),
        )

    return render


@dataclass(frozen=True)
class TableRender:
    headers: tuple[str, ...]
    rows: tuple[tuple[str, ...], ...]
    sorted_column: Optional[str] = None
    sort_desc: bool = False


@dataclass(frozen=True)
class PaginationInfo:
    page_index: int
    page_size: int
    page_count: int
    total: int

    @property
    def has_previous(self) -> bool:
        return self.page_index > 0

    @property
    def has_next(self) -> bool:
        return self.page_index + 1 < self.page_count

    @property
    def first_row(self) -> int:
        """1-based number of the first row on the page (0 when empty)."""
        if self.total == 0:
            return 0
        return min(self.page_index * self.page_size + 1, self.total)

    @property
    def last_row(self) -> int:
        return min((self.page_index + 1) * self.page_size, self.total)

    def describe(self) -> str:
        return (
            f"Showing {self.first_row}-{self.last_row} of {self.total} "
            f"(page {self.page_index + 1} of {self.page_count})"
        )


@dataclass(frozen=True)
class ErrorPanel:
    message: str
    retryable: bool = True


@dataclass(frozen=True)
class RenderedView:
    status: ViewStatus
    view_mode: ViewMode
    pagination: PaginationInfo
    table: Optional[TableRender] = None
    cards: tuple[Card, ...] = ()
    error: Optional[ErrorPanel] = None
    empty_text: str = ""

    @property
    def is_loading(self) -> bool:
        return self.status is ViewStatus.LOADING

    @property
    def is_empty(self) -> bool:
        if self.view_mode is ViewMode.GRID:
            return not self.cards
        return self.table is None or not self.table.rows


class ViewRenderer(BaseViewModel):
    """Re-renders whenever the bound view-model's output changes.

    Emits ``rendered(view)`` with the new :class:`RenderedView`.
    """

    def __init__(
        self,
        viewmodel: Any,
        columns: Sequence[ColumnDef],
        card_renderer: Optional[CardRenderer] = None,
        empty_text: str = "No results.",
    ) -> None:
        super().__init__()
        self._vm = viewmodel
        self._columns = tuple(columns)
        self._card_renderer = card_renderer
        self._empty_text = empty_text
        self.rendered = Signal()
        self.current: Optional[RenderedView] = None

        for observable in (
            viewmodel.result,
            viewmodel.status,
            viewmodel.error,
            viewmodel.view_mode,
            viewmodel.column_visibility,
        ):
            self.bind(observable.changed, self._on_changed)

    @property
    def columns(self) -> tuple[ColumnDef, ...]:
        return self._columns

    @property
    def visible_columns(self) -> tuple[ColumnDef, ...]:
        visibility = self._vm.column_visibility.value
        return tuple(column for column in self._columns if visibility.get(column.id, True))

    def render(self) -> RenderedView:
        vm = self._vm
        state = vm.store.state
        result = vm.result.value
        mode = vm.view_mode.value
        pagination = PaginationInfo(
            page_index=state.page_index,
            page_size=state.page_size,
            page_count=result.page_count(state.page_size),
            total=result.total,
        )
        columns = self.visible_columns
        table = None
        cards: tuple[Card, ...] = ()
        if mode is ViewMode.GRID:
            card_renderer = self._card_renderer or columns_card_renderer(columns)
            cards = tuple(card_renderer(row) for row in result.rows)
        else:
            sort = state.primary_sort
            table = TableRender(
                headers=tuple(column.title for column in columns),
                rows=tuple(tuple(column.render(row) for column in columns) for row in result.rows),
                sorted_column=sort.id if sort else None,
                sort_desc=sort.desc if sort else False,
            )
        error = vm.error.value
        panel = None
        if vm.status.value is ViewStatus.ERROR and error is not None:
            panel = ErrorPanel(str(error) or error.__class__.__name__, getattr(error, "retryable", True))
        view = RenderedView(
            status=vm.status.value,
            view_mode=mode,
            pagination=pagination,
            table=table,
            cards=cards,
            error=panel,
            empty_text=self._empty_text if result.is_empty else "",
        )
        self.current = view
        self.rendered.emit(view)
        return view

    def _on_changed(self, *_args: Any) -> None:
        self.render()
