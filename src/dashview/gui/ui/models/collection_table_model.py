"""Table model exposing one page of a collection view to Qt views."""

from __future__ import annotations

from typing import Any, Sequence

from PySide6.QtCore import QAbstractTableModel, QModelIndex, QObject, Qt

from dashview.domain.models.result import FetchResult, Row
from dashview.gui.viewmodels.collection_viewmodel import CollectionViewModel
from dashview.gui.viewmodels.view_renderer import ColumnDef

from .roles import Roles, role_names


class CollectionTableModel(QAbstractTableModel):
    """Rows of the view-model's current result, one column per visible :class:`ColumnDef`.

    Sorting from a header click is forwarded to the view-model, so the
    server sorts and the model simply resets when the new page arrives.
    Hiding or showing a column resets the model as well.
    """

    def __init__(
        self,
        viewmodel: CollectionViewModel,
        columns: Sequence[ColumnDef],
        parent: QObject | None = None,
    ) -> None:
        super().__init__(parent)
        self._vm = viewmodel
        self._all_columns = tuple(columns)
        self._columns = self._visible(viewmodel.column_visibility.value)
        self._rows: tuple[Row, ...] = viewmodel.rows
        self._disconnects = [
            viewmodel.result.changed.connect(self._on_result_changed),
            viewmodel.column_visibility.changed.connect(self._on_visibility_changed),
        ]

    # ------------------------------------------------------------------
    # Qt overrides
    # ------------------------------------------------------------------

    def rowCount(self, parent: QModelIndex = QModelIndex()) -> int:  # noqa: N802  # Qt override
        if parent.isValid():
            return 0
        return len(self._rows)

    def columnCount(self, parent: QModelIndex = QModelIndex()) -> int:  # noqa: N802  # Qt override
        if parent.isValid():
            return 0
        return len(self._columns)

    def roleNames(self) -> dict[int, bytes]:  # noqa: N802  # Qt override
        return role_names(super().roleNames())

    def data(self, index: QModelIndex, role: int = Qt.DisplayRole) -> Any:
        if not index.isValid():
            return None
        row_index, column_index = index.row(), index.column()
        if not (0 <= row_index < len(self._rows)) or not (0 <= column_index < len(self._columns)):
            return None
        row = self._rows[row_index]
        column = self._columns[column_index]
        if role == Qt.DisplayRole:
            return column.render(row)
        if role == Roles.RAW_VALUE:
            return column.value(row)
        if role == Roles.ROW:
            return dict(row)
        return None

    def headerData(  # noqa: N802  # Qt override
        self,
        section: int,
        orientation: Qt.Orientation,
        role: int = Qt.DisplayRole,
    ) -> Any:
        if role != Qt.DisplayRole:
            return None
        if orientation == Qt.Horizontal:
            if 0 <= section < len(self._columns):
                return self._columns[section].title
            return None
        state = self._vm.state
        return state.page_index * state.page_size + section + 1

    def sort(self, column: int, order: Qt.SortOrder = Qt.AscendingOrder) -> None:
        if not (0 <= column < len(self._columns)) or not self._columns[column].sortable:
            return
        self._vm.sort_by(self._columns[column].id, desc=order == Qt.DescendingOrder)

    # ------------------------------------------------------------------

    @property
    def columns(self) -> tuple[ColumnDef, ...]:
        return self._columns

    def row_at(self, row_index: int) -> Row:
        return self._rows[row_index]

    def dispose(self) -> None:
        for disconnect in self._disconnects:
            disconnect()
        self._disconnects.clear()

    def _visible(self, visibility: dict[str, bool]) -> tuple[ColumnDef, ...]:
        return tuple(column for column in self._all_columns if visibility.get(column.id, True))

    def _on_result_changed(self, result: FetchResult, _old: FetchResult) -> None:
        self.beginResetModel()
        self._rows = result.rows
        self.endResetModel()

    def _on_visibility_changed(self, visibility: dict[str, bool], _old: dict[str, bool]) -> None:
        self.beginResetModel()
        self._columns = self._visible(visibility)
        self.endResetModel()
