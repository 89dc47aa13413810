"""Trailing-edge debounce built on a cancellable timer."""

from __future__ import annotations

import asyncio
import threading
from typing import Any, Callable, Optional

from dashview.utils.logging import get_logger

LOGGER = get_logger(__name__)


class DebounceScheduler:
    """Run only the most recently scheduled callback, *delay_ms* after the last call.

    Each :meth:`schedule` replaces the pending callback and restarts the
    timer, so a burst of keystrokes collapses into one trailing call.
    ``delay_ms == 0`` runs callbacks synchronously.  :meth:`flush` runs the
    pending callback now, which is what tests and synchronous hosts use.
    """

    def __init__(self, delay_ms: int) -> None:
        if delay_ms < 0:
            raise ValueError("delay_ms must be >= 0")
        self._delay_ms = delay_ms
        self._delay_s = delay_ms / 1000.0
        self._lock = threading.Lock()
        self._timer: Optional[Any] = None
        self._pending: Optional[Callable[[], None]] = None
        self._generation = 0

    @property
    def delay_ms(self) -> int:
        return self._delay_ms

    @property
    def pending(self) -> bool:
        with self._lock:
            return self._pending is not None

    def schedule(self, callback: Callable[[], None]) -> None:
        if self._delay_s == 0:
            self.cancel()
            callback()
            return
        with self._lock:
            self._cancel_timer_locked()
            self._generation += 1
            generation = self._generation
            self._pending = callback
            self._timer = self._start_timer_locked(generation)

    def cancel(self) -> None:
        with self._lock:
            self._cancel_timer_locked()
            self._pending = None
            self._generation += 1

    def flush(self) -> bool:
        """Run the pending callback immediately; return whether one ran."""
        with self._lock:
            callback = self._pending
            self._cancel_timer_locked()
            self._pending = None
            self._generation += 1
        if callback is None:
            return False
        callback()
        return True

    # -- internal ----------------------------------------------------------

    def _start_timer_locked(self, generation: int) -> Any:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            timer = threading.Timer(self._delay_s, self._on_timeout, args=(generation,))
            timer.daemon = True
            timer.start()
            return timer
        return loop.call_later(self._delay_s, self._on_timeout, generation)

    def _cancel_timer_locked(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _on_timeout(self, generation: int) -> None:
        with self._lock:
            # A newer schedule() or cancel() owns the slot now.
            if generation != self._generation or self._pending is None:
                return
            callback = self._pending
            self._pending = None
            self._timer = None
        try:
            callback()
        except Exception:
            LOGGER.exception("Debounced callback failed")
