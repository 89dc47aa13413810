"""Observer primitives for view-models, no Qt dependency.

``Signal`` fans a call out to connected handlers; ``ObservableProperty``
wraps a value and emits ``changed(new, old)`` when it is replaced.  Both are
safe to use from fetch worker threads.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable

_logger = logging.getLogger(__name__)


class Signal:
    """Thread-safe observer list.

    Handlers run in the emitting thread, in connection order.  A handler
    that raises is logged and skipped so the remaining handlers still run.
    """

    def __init__(self) -> None:
        self._handlers: list[Callable] = []
        self._lock = threading.Lock()

    def connect(self, handler: Callable) -> Callable[[], None]:
        """Connect *handler* and return a callable that disconnects it."""
        with self._lock:
            if handler not in self._handlers:
                self._handlers.append(handler)

        def _disconnect() -> None:
            with self._lock:
                if handler in self._handlers:
                    self._handlers.remove(handler)

        return _disconnect

    def disconnect(self, handler: Callable) -> None:
        with self._lock:
            self._handlers.remove(handler)

    def emit(self, *args: Any, **kwargs: Any) -> None:
        with self._lock:
            handlers = list(self._handlers)
        for handler in handlers:
            try:
                handler(*args, **kwargs)
            except Exception:
                _logger.exception("Signal handler %r failed", handler)

    @property
    def handler_count(self) -> int:
        with self._lock:
            return len(self._handlers)


class ObservableProperty:
    """Value holder that emits ``changed(new_value, old_value)`` on change."""

    def __init__(self, initial_value: Any = None) -> None:
        self._value = initial_value
        self._lock = threading.Lock()
        self.changed = Signal()

    @property
    def value(self) -> Any:
        return self._value

    @value.setter
    def value(self, new_value: Any) -> None:
        with self._lock:
            old_value = self._value
            if old_value == new_value:
                return
            self._value = new_value
        self.changed.emit(new_value, old_value)
