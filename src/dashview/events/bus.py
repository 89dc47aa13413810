"""In-process publish/subscribe for :class:`DomainEvent` objects.

Handlers are registered per concrete event class and run either inline on
the publishing thread or on a small worker pool.  A failing handler is
logged and never stops delivery to the others.
"""

import logging
import threading
from collections import defaultdict
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from itertools import count
from typing import Callable, Dict, List, Optional, Type

from .domain_events import DomainEvent

Handler = Callable[[DomainEvent], None]

_ids = count(1)


@dataclass(eq=False)
class Subscription:
    """Handle returned by :meth:`EventBus.subscribe`; ``cancel()`` detaches it."""

    event_type: Type[DomainEvent]
    handler: Handler
    run_async: bool = False
    id: int = field(default_factory=lambda: next(_ids))
    active: bool = True
    _bus: Optional["EventBus"] = field(default=None, repr=False)

    def cancel(self) -> None:
        if self._bus is not None:
            self._bus.unsubscribe(self)
        self.active = False


class EventBus:
    def __init__(self, logger: Optional[logging.Logger] = None, max_workers: int = 4):
        self._logger = logger or logging.getLogger(__name__)
        self._subscriptions: Dict[Type[DomainEvent], List[Subscription]] = defaultdict(list)
        self._max_workers = max_workers
        self._executor: Optional[ThreadPoolExecutor] = None
        self._lock = threading.Lock()

    def subscribe(self, event_type: Type[DomainEvent], handler: Handler, async_: bool = False) -> Subscription:
        sub = Subscription(event_type, handler, run_async=async_, _bus=self)
        with self._lock:
            self._subscriptions[event_type].append(sub)
        return sub

    def unsubscribe(self, subscription: Subscription) -> None:
        subscription.active = False
        with self._lock:
            subs = self._subscriptions.get(subscription.event_type)
            if subs and subscription in subs:
                subs.remove(subscription)

    def subscriber_count(self, event_type: Type[DomainEvent]) -> int:
        with self._lock:
            return len(self._subscriptions.get(event_type, ()))

    def publish(self, event: DomainEvent) -> int:
        """Deliver *event*; returns how many handlers it was handed to."""
        delivered = 0
        for sub in self._live(type(event)):
            if sub.run_async:
                self._pool().submit(self._invoke, sub, event)
            else:
                self._invoke(sub, event)
            delivered += 1
        return delivered

    def publish_async(self, event: DomainEvent) -> List[Future]:
        """Run every handler on the pool, including inline ones."""
        return [self._pool().submit(self._invoke, sub, event) for sub in self._live(type(event))]

    def shutdown(self) -> None:
        with self._lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=True)

    def _live(self, event_type: Type[DomainEvent]) -> List[Subscription]:
        with self._lock:
            return [sub for sub in self._subscriptions.get(event_type, ()) if sub.active]

    def _pool(self) -> ThreadPoolExecutor:
        with self._lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self._max_workers, thread_name_prefix="dashview-events"
                )
            return self._executor

    def _invoke(self, sub: Subscription, event: DomainEvent) -> None:
        if not sub.active:
            return
        try:
            sub.handler(event)
        except Exception:
            self._logger.exception("Handler for %s failed", event.name)
