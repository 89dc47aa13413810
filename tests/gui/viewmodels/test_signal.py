"""Tests for the pure Python Signal and ObservableProperty classes."""

import threading

import pytest

from dashview.gui.viewmodels.signal import ObservableProperty, Signal


class TestSignal:
    def test_connect_and_emit(self):
        sig = Signal()
        received = []
        sig.connect(received.append)

        sig.emit(42)

        assert received == [42]

    def test_connect_returns_disconnect(self):
        sig = Signal()
        received = []
        disconnect = sig.connect(received.append)
        sig.emit(1)
        disconnect()
        disconnect()
        sig.emit(2)

        assert received == [1]

    def test_disconnect_missing_raises(self):
        sig = Signal()
        with pytest.raises(ValueError):
            sig.disconnect(lambda: None)

    def test_duplicate_connect_ignored(self):
        sig = Signal()
        handler = lambda: None  # noqa: E731
        sig.connect(handler)
        sig.connect(handler)
        assert sig.handler_count == 1

    def test_emit_multiple_args(self):
        sig = Signal()
        received = []
        sig.connect(lambda *args: received.append(args))

        sig.emit(1, "two", 3.0)

        assert received == [(1, "two", 3.0)]

    def test_handler_exception_does_not_break_others(self):
        sig = Signal()
        received = []

        def bad_handler(v):
            raise RuntimeError("boom")

        sig.connect(bad_handler)
        sig.connect(received.append)

        sig.emit(1)

        assert received == [1]

    def test_handler_may_disconnect_during_emit(self):
        sig = Signal()
        received = []
        disconnect = None

        def once(v):
            received.append(v)
            disconnect()

        disconnect = sig.connect(once)
        sig.emit(1)
        sig.emit(2)

        assert received == [1]


class TestObservableProperty:
    def test_initial_value(self):
        assert ObservableProperty(10).value == 10
        assert ObservableProperty().value is None

    def test_changed_emits_new_and_old(self):
        prop = ObservableProperty(0)
        changes = []
        prop.changed.connect(lambda new, old: changes.append((new, old)))

        prop.value = 1
        prop.value = 1
        prop.value = 2

        assert changes == [(1, 0), (2, 1)]

    def test_set_from_worker_thread(self):
        prop = ObservableProperty(0)
        seen = []
        prop.changed.connect(lambda new, old: seen.append(threading.current_thread().name))

        worker = threading.Thread(target=lambda: setattr(prop, "value", 1), name="fetch-worker")
        worker.start()
        worker.join()

        assert prop.value == 1
        assert seen == ["fetch-worker"]
