from dataclasses import dataclass, field
from datetime import datetime, timezone
from uuid import uuid4


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True, kw_only=True)
class DomainEvent:
    """Immutable notification carried by the :class:`~dashview.events.bus.EventBus`.

    ``source`` names the component that published the event (``"error-handler"``,
    a view's query key prefix, a mutation flow) and only serves logging.
    """

    event_id: str = field(default_factory=lambda: uuid4().hex)
    occurred_at: datetime = field(default_factory=_now)
    source: str = ""

    @property
    def name(self) -> str:
        return type(self).__name__
