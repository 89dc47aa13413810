"""List model exposing a collection view as cards for grid delegates."""

from __future__ import annotations

from typing import Any, Optional

from PySide6.QtCore import QAbstractListModel, QModelIndex, QObject, Qt

from dashview.domain.models.result import FetchResult, Row
from dashview.gui.viewmodels.collection_viewmodel import CollectionViewModel
from dashview.gui.viewmodels.view_renderer import Card, CardRenderer

from .roles import Roles, role_names


class CollectionGridModel(QAbstractListModel):
    """One item per row of the current result, rendered through *card_renderer*."""

    def __init__(
        self,
        viewmodel: CollectionViewModel,
        card_renderer: CardRenderer,
        parent: QObject | None = None,
    ) -> None:
        super().__init__(parent)
        self._render_card = card_renderer
        self._rows: tuple[Row, ...] = ()
        self._cards: tuple[Card, ...] = ()
        self._load(viewmodel.result.value)
        self._disconnect = viewmodel.result.changed.connect(self._on_result_changed)

    def rowCount(self, parent: QModelIndex = QModelIndex()) -> int:  # noqa: N802  # Qt override
        if parent.isValid():
            return 0
        return len(self._cards)

    def roleNames(self) -> dict[int, bytes]:  # noqa: N802  # Qt override
        return role_names(super().roleNames())

    def data(self, index: QModelIndex, role: int = Qt.DisplayRole) -> Any:
        if not index.isValid() or not (0 <= index.row() < len(self._cards)):
            return None
        card = self._cards[index.row()]
        if role in (Qt.DisplayRole, Roles.TITLE):
            return card.title
        if role == Roles.SUBTITLE:
            return card.subtitle
        if role == Roles.FIELDS:
            return [{"label": label, "value": value} for label, value in card.fields]
        if role == Roles.IMAGE:
            return card.image
        if role == Qt.ToolTipRole:
            return card.subtitle or card.title
        if role == Roles.ROW:
            return dict(self._rows[index.row()])
        return None

    def card_at(self, row_index: int) -> Optional[Card]:
        if 0 <= row_index < len(self._cards):
            return self._cards[row_index]
        return None

    def dispose(self) -> None:
        self._disconnect()

    def _load(self, result: FetchResult) -> None:
        self._rows = result.rows
        self._cards = tuple(self._render_card(row) for row in result.rows)

    def _on_result_changed(self, result: FetchResult, _old: FetchResult) -> None:
        self.beginResetModel()
        self._load(result)
        self.endResetModel()
