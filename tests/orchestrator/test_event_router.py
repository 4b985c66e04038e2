"""
Tests for the event router.

============================================================
PURPOSE
============================================================
- Verify exactly-once dispatch per subscribed kind
- Verify handler failure isolation
- Confirm unknown kinds are ignored
- Confirm nothing is dispatched after detach

============================================================
"""

import pytest
from unittest.mock import MagicMock

from core.exceptions import OrchestrationError
from orchestrator.events import EventRouter
from orchestrator.models import EventKind, ManagerEvent
from tests.stubs import StubManager


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture
def router():
    return EventRouter()


@pytest.fixture
def manager():
    return StubManager()


# ============================================================
# DISPATCH TESTS
# ============================================================

class TestDispatch:
    """Tests for EventRouter.dispatch."""

    @pytest.mark.parametrize("kind", list(EventKind))
    def test_exactly_once_with_payload(self, router, kind):
        """Each event reaches its handler once with the same payload."""
        handler = MagicMock()
        router.subscribe(kind, handler)
        payload = {"name": "PLC_A", "count": 3}

        assert router.dispatch(ManagerEvent(kind=kind.value, payload=payload)) is True

        handler.assert_called_once_with(payload)
        assert router.statistics.dispatched == 1

    def test_routes_by_kind(self, router):
        """Only the handler for the event's kind runs."""
        connected = MagicMock()
        alarm = MagicMock()
        router.subscribe(EventKind.DEVICE_CONNECTED, connected)
        router.subscribe(EventKind.DEVICE_ALARM, alarm)

        router.dispatch(ManagerEvent(kind="device_alarm", payload={"name": "PLC_A"}))

        connected.assert_not_called()
        alarm.assert_called_once()

    def test_last_registration_wins(self, router):
        first = MagicMock()
        second = MagicMock()
        router.subscribe(EventKind.INITIALIZED, first)
        router.subscribe("initialized", second)

        router.dispatch(ManagerEvent(kind="initialized"))

        first.assert_not_called()
        second.assert_called_once_with({})

    def test_unknown_kind_ignored(self, router):
        """A kind outside the known set is ignored, not raised."""
        handler = MagicMock()
        router.subscribe(EventKind.DEVICE_DATA, handler)

        assert router.dispatch(ManagerEvent(kind="plc_reboot", payload={})) is False

        handler.assert_not_called()
        assert router.statistics.ignored == 1

    def test_unsubscribed_kind_ignored(self, router):
        assert router.dispatch(ManagerEvent(kind="health_check_complete")) is False
        assert router.statistics.ignored == 1

    def test_handler_failure_isolated(self, router):
        """A raising handler does not affect the next event."""
        handler = MagicMock(side_effect=[RuntimeError("boom"), None])
        router.subscribe(EventKind.DEVICE_CONNECTED, handler)

        assert router.dispatch(ManagerEvent(kind="device_connected", payload={"name": "A"})) is False
        assert router.dispatch(ManagerEvent(kind="device_connected", payload={"name": "B"})) is True

        assert handler.call_count == 2
        assert router.statistics.handler_failures == 1
        assert router.statistics.dispatched == 1


# ============================================================
# SUBSCRIPTION TESTS
# ============================================================

class TestSubscription:
    """Tests for EventRouter.subscribe."""

    def test_unknown_kind_rejected(self, router):
        with pytest.raises(OrchestrationError):
            router.subscribe("plc_reboot", MagicMock())

    def test_subscribe_after_attach_rejected(self, router, manager):
        router.attach(manager)

        with pytest.raises(OrchestrationError):
            router.subscribe(EventKind.DEVICE_DATA, MagicMock())

    def test_subscriptions_is_a_copy(self, router):
        router.subscribe(EventKind.DEVICE_DATA, MagicMock())

        router.subscriptions.clear()

        assert EventKind.DEVICE_DATA in router.subscriptions


# ============================================================
# ATTACHMENT TESTS
# ============================================================

class TestAttachment:
    """Tests for attach / detach against a Manager."""

    def test_manager_events_dispatched(self, router, manager):
        handler = MagicMock()
        router.subscribe(EventKind.DEVICE_CONNECTED, handler)
        router.attach(manager)

        manager.emit(EventKind.DEVICE_CONNECTED, {"name": "PLC_A"})

        handler.assert_called_once_with({"name": "PLC_A"})
        assert router.is_attached

    def test_attach_twice_rejected(self, router, manager):
        router.attach(manager)

        with pytest.raises(OrchestrationError):
            router.attach(manager)

    def test_no_dispatch_after_detach(self, router, manager):
        """Detach removes the listener and drops late events."""
        handler = MagicMock()
        router.subscribe(EventKind.DEVICE_DATA, handler)
        router.attach(manager)

        router.detach()
        manager.emit(EventKind.DEVICE_DATA, {"name": "PLC_A"})
        router.dispatch(ManagerEvent(kind="device_data"))

        handler.assert_not_called()
        assert manager.listener_count == 0
        assert router.statistics.dropped == 1
        assert router.is_closed

    def test_detach_is_idempotent(self, router, manager):
        router.attach(manager)

        router.detach()
        router.detach()

        assert router.is_closed
        assert not router.is_attached

    def test_attach_after_detach_rejected(self, router, manager):
        router.detach()

        with pytest.raises(OrchestrationError):
            router.attach(manager)
