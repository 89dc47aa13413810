"""BaseViewModel: pure Python, no Qt dependency.

Tracks ``EventBus`` subscriptions and signal connections so that concrete
view-models release everything in ``dispose()``.
"""

from __future__ import annotations

from typing import Callable, Type

from dashview.events.bus import EventBus, Subscription
from dashview.gui.viewmodels.signal import Signal


class BaseViewModel:
    """ViewModel base class: pure Python, no Qt dependency."""

    def __init__(self) -> None:
        self._subscriptions: list[Subscription] = []
        self._connections: list[Callable[[], None]] = []
        self._disposed = False

    def subscribe_event(
        self,
        event_bus: EventBus,
        event_type: Type,
        handler: Callable,
    ) -> Subscription:
        """Subscribe to an event type and track the subscription."""
        sub = event_bus.subscribe(event_type, handler)
        self._subscriptions.append(sub)
        return sub

    def bind(self, signal: Signal, handler: Callable) -> None:
        """Connect *handler* to *signal* for the lifetime of this view-model."""
        self._connections.append(signal.connect(handler))

    @property
    def disposed(self) -> bool:
        return self._disposed

    def dispose(self) -> None:
        """Cancel all tracked event subscriptions and signal connections."""
        for sub in self._subscriptions:
            sub.cancel()
        self._subscriptions.clear()
        for disconnect in self._connections:
            disconnect()
        self._connections.clear()
        self._disposed = True
