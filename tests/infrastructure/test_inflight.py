"""Tests for InflightRegistry: one running fetch per cache key."""

from unittest.mock import Mock

import pytest

from dashview.infrastructure.services.inflight import InflightRegistry

KEY = ("products", "{}")


@pytest.fixture
def registry():
    return InflightRegistry()


class TestJoin:
    def test_second_caller_joins(self, registry):
        first, started = registry.join(KEY, 0, Mock())
        second, joined_started = registry.join(KEY, 0, Mock())
        assert started and not joined_started
        assert second is first
        assert first.waiters == 2
        assert len(registry) == 1

    def test_fresh_replaces_running_fetch(self, registry):
        first, _ = registry.join(KEY, 0, Mock())
        second, started = registry.join(KEY, 0, Mock(), fresh=True)
        assert started
        assert second is not first
        assert registry.get(KEY) is second

    def test_reusable_can_veto(self, registry):
        first, _ = registry.join(KEY, 0, Mock())
        second, started = registry.join(KEY, 1, Mock(), reusable=lambda shared: shared.epoch >= 1)
        assert started
        assert second is not first


class TestRelease:
    def test_last_waiter_aborts(self, registry):
        abort = Mock()
        shared, _ = registry.join(KEY, 0, abort)
        registry.join(KEY, 0, Mock())

        registry.release(shared)
        abort.assert_not_called()
        registry.release(shared)

        abort.assert_called_once_with()
        assert registry.get(KEY) is None

    def test_release_after_settle_is_ignored(self, registry):
        abort = Mock()
        shared, _ = registry.join(KEY, 0, abort)
        registry.settle(shared, "page")
        registry.release(shared)
        abort.assert_not_called()


class TestSettle:
    def test_callbacks_receive_result(self, registry):
        shared, _ = registry.join(KEY, 0, Mock())
        seen = []
        shared.add_done_callback(lambda settled: seen.append(settled.result))

        registry.settle(shared, "page")

        assert seen == ["page"]
        assert shared.done and shared.wait(0)
        assert len(registry) == 0

    def test_late_callback_runs_immediately(self, registry):
        shared, _ = registry.join(KEY, 0, Mock())
        registry.settle(shared, error=RuntimeError("boom"))
        seen = []
        shared.add_done_callback(lambda settled: seen.append(settled.error))
        assert isinstance(seen[0], RuntimeError)

    def test_store_only_when_someone_waits(self, registry):
        store = Mock()
        shared, _ = registry.join(KEY, 0, Mock())
        registry.settle(shared, "page", store=store)
        store.assert_called_once_with("page")

        abandoned, _ = registry.join(KEY, 0, Mock())
        registry.release(abandoned)
        registry.settle(abandoned, "page", store=store)
        assert store.call_count == 1

    def test_failure_is_not_stored(self, registry):
        store = Mock()
        shared, _ = registry.join(KEY, 0, Mock())
        registry.settle(shared, error=RuntimeError("boom"), store=store)
        store.assert_not_called()
