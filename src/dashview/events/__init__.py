from .bus import EventBus, Subscription
from .domain_events import DomainEvent
from .collection_events import RecordsChangedEvent, SessionExpiredEvent

__all__ = [
    "DomainEvent",
    "EventBus",
    "RecordsChangedEvent",
    "SessionExpiredEvent",
    "Subscription",
]
