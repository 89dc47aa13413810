from dataclasses import dataclass

from .domain_events import DomainEvent


@dataclass(frozen=True, kw_only=True)
class RecordsChangedEvent(DomainEvent):
    """Published by mutation flows after a create/update/delete.

    ``query_key_prefix`` names the collection whose cached pages are now
    out of date (e.g. ``"products"``).
    """

    query_key_prefix: str = ""
    record_id: str = ""
    action: str = "update"


@dataclass(frozen=True, kw_only=True)
class SessionExpiredEvent(DomainEvent):
    reason: str = ""
