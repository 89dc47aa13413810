"""Cooperative cancellation for in-flight fetches."""

from __future__ import annotations

import itertools
import threading
from typing import Callable, Optional

from dashview.errors import CancellationError

_ids = itertools.count(1)


class CancellationToken:
    """Abort signal handed to a fetch contract.

    Fetches are expected to call :meth:`raise_if_cancelled` at their own
    checkpoints (the HTTP transport does so before every attempt).  A
    cancelled request may still finish physically; the coordinator simply
    ignores what it produces.
    """

    def __init__(self, reason: str = "") -> None:
        self.id = next(_ids)
        self._event = threading.Event()
        self._reason = reason
        self._callbacks: list[Callable[["CancellationToken"], None]] = []
        self._lock = threading.Lock()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str:
        return self._reason

    def cancel(self, reason: str = "superseded") -> None:
        with self._lock:
            if self._event.is_set():
                return
            self._reason = reason
            self._event.set()
            callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            callback(self)

    def on_cancel(self, callback: Callable[["CancellationToken"], None]) -> None:
        """Run *callback* once on cancellation (immediately if already cancelled)."""
        with self._lock:
            if not self._event.is_set():
                self._callbacks.append(callback)
                return
        callback(self)

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise CancellationError(f"request {self.id} cancelled: {self._reason}")

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until cancelled or *timeout* elapses; return ``cancelled``."""
        return self._event.wait(timeout)

    def __repr__(self) -> str:
        state = "cancelled" if self.cancelled else "active"
        return f"<CancellationToken #{self.id} {state}>"
