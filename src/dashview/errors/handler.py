"""Process-wide sink for errors that escape a single view."""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, List, Optional

from dashview.errors import AuthExpiredError, CancellationError, NetworkError
from dashview.events.bus import EventBus
from dashview.events.collection_events import SessionExpiredEvent
from dashview.events.domain_events import DomainEvent


class ErrorSeverity(Enum):
    INFO = logging.INFO
    WARNING = logging.WARNING
    ERROR = logging.ERROR
    CRITICAL = logging.CRITICAL

    @classmethod
    def for_error(cls, error: BaseException) -> "ErrorSeverity":
        if isinstance(error, AuthExpiredError):
            return cls.CRITICAL
        if isinstance(error, CancellationError):
            return cls.INFO
        if isinstance(error, NetworkError) and error.retryable:
            return cls.WARNING
        return cls.ERROR


@dataclass(frozen=True, kw_only=True)
class ErrorOccurredEvent(DomainEvent):
    error: BaseException
    severity: ErrorSeverity
    context: dict = field(default_factory=dict)


UiCallback = Callable[[str, ErrorSeverity], None]


class ErrorHandler:
    """Logs, publishes and surfaces errors by severity.

    Every handled error becomes an :class:`ErrorOccurredEvent`.  An
    :class:`AuthExpiredError` additionally publishes a
    :class:`SessionExpiredEvent` so the session owner can sign the user out.
    UI callbacks only hear about ERROR and CRITICAL.
    """

    def __init__(self, logger: logging.Logger, event_bus: EventBus):
        self._logger = logger
        self._events = event_bus
        self._ui_callbacks: List[UiCallback] = []

    def register_ui_callback(self, callback: UiCallback) -> Callable[[], None]:
        self._ui_callbacks.append(callback)

        def unregister() -> None:
            if callback in self._ui_callbacks:
                self._ui_callbacks.remove(callback)

        return unregister

    def handle(
        self,
        error: BaseException,
        severity: Optional[ErrorSeverity] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> ErrorSeverity:
        severity = severity or ErrorSeverity.for_error(error)
        context = dict(context or {})
        source = str(context.get("query_key_prefix", ""))

        self._logger.log(
            severity.value,
            "%s: %s",
            error.__class__.__name__,
            error,
            extra={"context": context},
            exc_info=severity is ErrorSeverity.CRITICAL and error.__traceback__ is not None,
        )
        self._events.publish(ErrorOccurredEvent(error=error, severity=severity, context=context, source=source))
        if isinstance(error, AuthExpiredError):
            self._events.publish(SessionExpiredEvent(source="error-handler", reason=str(error)))

        if severity in (ErrorSeverity.ERROR, ErrorSeverity.CRITICAL):
            for callback in list(self._ui_callbacks):
                callback(str(error), severity)
        return severity
