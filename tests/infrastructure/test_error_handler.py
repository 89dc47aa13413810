import logging
from unittest.mock import Mock

from dashview.errors import AuthExpiredError, CancellationError, HttpStatusError, NetworkError
from dashview.errors.handler import ErrorHandler, ErrorOccurredEvent, ErrorSeverity
from dashview.events.bus import EventBus
from dashview.events.collection_events import SessionExpiredEvent


def _handler():
    logger = Mock(spec=logging.Logger)
    event_bus = Mock(spec=EventBus)
    return ErrorHandler(logger, event_bus), logger, event_bus


def test_handle_error_logs_and_publishes():
    handler, logger, event_bus = _handler()

    error = NetworkError("connection reset")
    handler.handle(error, ErrorSeverity.ERROR, context={"query_key_prefix": "products"})

    assert logger.log.call_args[0][0] == logging.ERROR
    event = event_bus.publish.call_args[0][0]
    assert isinstance(event, ErrorOccurredEvent)
    assert event.error is error
    assert event.severity is ErrorSeverity.ERROR
    assert event.context == {"query_key_prefix": "products"}
    assert event.source == "products"


def test_auth_expired_publishes_session_expired():
    handler, logger, event_bus = _handler()

    handler.handle(AuthExpiredError("Session expired. Please sign in again."), ErrorSeverity.CRITICAL)

    assert logger.log.call_args[0][0] == logging.CRITICAL
    published = [call[0][0] for call in event_bus.publish.call_args_list]
    assert [type(event) for event in published] == [ErrorOccurredEvent, SessionExpiredEvent]
    assert published[1].reason == "Session expired. Please sign in again."


def test_severity_is_derived_from_the_error():
    assert ErrorSeverity.for_error(AuthExpiredError("x")) is ErrorSeverity.CRITICAL
    assert ErrorSeverity.for_error(CancellationError()) is ErrorSeverity.INFO
    assert ErrorSeverity.for_error(HttpStatusError("busy", 503)) is ErrorSeverity.WARNING
    assert ErrorSeverity.for_error(HttpStatusError("missing", 404)) is ErrorSeverity.ERROR
    assert ErrorSeverity.for_error(ValueError("x")) is ErrorSeverity.ERROR

    handler, _logger, _bus = _handler()
    assert handler.handle(AuthExpiredError("gone")) is ErrorSeverity.CRITICAL


def test_ui_callback():
    handler, _logger, _bus = _handler()
    callback = Mock()
    handler.register_ui_callback(callback)

    handler.handle(RuntimeError("ui error"), ErrorSeverity.CRITICAL)

    callback.assert_called_with("ui error", ErrorSeverity.CRITICAL)


def test_ui_callback_can_be_unregistered():
    handler, _logger, _bus = _handler()
    first, second = Mock(), Mock()
    unregister = handler.register_ui_callback(first)
    handler.register_ui_callback(second)

    unregister()
    handler.handle(RuntimeError("boom"))

    first.assert_not_called()
    second.assert_called_once_with("boom", ErrorSeverity.ERROR)


def test_ignore_info_severity_in_ui():
    handler, _logger, _bus = _handler()
    callback = Mock()
    handler.register_ui_callback(callback)

    handler.handle(Exception("info"), ErrorSeverity.INFO)

    callback.assert_not_called()
