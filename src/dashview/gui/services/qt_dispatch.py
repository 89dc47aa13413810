"""QtDispatcher: run fetch completions on the Qt GUI thread.

Pass an instance as the ``dispatch`` argument of a view-model so that
results produced on worker threads are committed, and therefore rendered
into item models, from the thread that owns those models.
"""

from __future__ import annotations

import logging
from typing import Callable

from PySide6.QtCore import QObject, Qt, Signal, Slot


class QtDispatcher(QObject):
    """Callable that queues zero-argument functions onto this object's thread."""

    _invoke = Signal(object)

    def __init__(self, parent: QObject | None = None) -> None:
        super().__init__(parent)
        self._logger = logging.getLogger(__name__)
        self._invoke.connect(self._run, Qt.ConnectionType.QueuedConnection)

    def __call__(self, fn: Callable[[], None]) -> None:
        self._invoke.emit(fn)

    @Slot(object)
    def _run(self, fn: Callable[[], None]) -> None:
        try:
            fn()
        except Exception:
            self._logger.exception("Dispatched callback failed")
