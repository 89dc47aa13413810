"""Mark cached pages stale when a mutation reports changed records."""

from __future__ import annotations

import logging
from typing import Optional

from dashview.events.bus import EventBus, Subscription
from dashview.events.collection_events import RecordsChangedEvent
from dashview.infrastructure.services.response_cache import ResponseCache


class CacheInvalidator:
    """Subscribes to :class:`RecordsChangedEvent` and invalidates its prefix.

    Mutation flows publish the event after a successful create, update or
    delete; the next read of any page under that prefix goes to the network.
    """

    def __init__(self, cache: ResponseCache, event_bus: EventBus) -> None:
        self._cache = cache
        self._events = event_bus
        self._logger = logging.getLogger(__name__)
        self._subscription: Optional[Subscription] = event_bus.subscribe(
            RecordsChangedEvent, self._on_records_changed
        )

    def _on_records_changed(self, event: RecordsChangedEvent) -> None:
        if not event.query_key_prefix:
            self._logger.warning("RecordsChangedEvent without a query key prefix ignored")
            return
        count = self._cache.invalidate(event.query_key_prefix)
        self._logger.info(
            "Invalidated %d cached page(s) for %s after %s of %s",
            count,
            event.query_key_prefix,
            event.action,
            event.record_id or "records",
        )

    def close(self) -> None:
        if self._subscription is not None:
            self._events.unsubscribe(self._subscription)
            self._subscription = None
