"""Role definitions shared by the collection models."""

from __future__ import annotations

from enum import IntEnum
from typing import Dict

from PySide6.QtCore import Qt


class Roles(IntEnum):
    """Custom roles exposed to QML or widgets."""

    ROW = Qt.ItemDataRole.UserRole + 1
    RAW_VALUE = Qt.ItemDataRole.UserRole + 2
    TITLE = Qt.ItemDataRole.UserRole + 3
    SUBTITLE = Qt.ItemDataRole.UserRole + 4
    FIELDS = Qt.ItemDataRole.UserRole + 5
    IMAGE = Qt.ItemDataRole.UserRole + 6


def role_names(base: Dict[int, bytes] | None = None) -> Dict[int, bytes]:
    """Return a mapping of Qt role numbers to byte names."""

    mapping: Dict[int, bytes] = {} if base is None else dict(base)
    mapping.update(
        {
            Roles.ROW: b"row",
            Roles.RAW_VALUE: b"rawValue",
            Roles.TITLE: b"title",
            Roles.SUBTITLE: b"subtitle",
            Roles.FIELDS: b"fields",
            Roles.IMAGE: b"image",
        }
    )
    return mapping


__all__ = ["Roles", "role_names"]
