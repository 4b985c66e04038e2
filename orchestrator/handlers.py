"""
Orchestrator - Event Handlers.

Logging handlers for every Manager event kind.

Each handler reads its payload defensively: a missing key is
rendered as "?" rather than failing the dispatch.
"""

import logging
from typing import Any, Dict, Mapping

from manager.interfaces import ManagerFacade

from .events import EventHandler, EventRouter
from .formatting import format_system_overview
from .models import EventKind


logger = logging.getLogger(__name__)


class ManagerEventHandlers:
    """
    Handlers bound to one Manager.

    ``device_data`` events are logged one in every
    ``data_event_log_every`` (0 disables them).
    """

    def __init__(
        self,
        manager: ManagerFacade,
        data_event_log_every: int = 100,
    ):
        self._manager = manager
        self._data_event_log_every = data_event_log_every
        self._data_events = 0

    @property
    def data_events_seen(self) -> int:
        return self._data_events

    def handlers(self) -> Dict[EventKind, EventHandler]:
        """Dispatch table covering every event kind."""
        return {
            EventKind.INITIALIZED: self.on_initialized,
            EventKind.DATABASE_CONNECTED: self.on_database_connected,
            EventKind.CONFIGURATIONS_LOADED: self.on_configurations_loaded,
            EventKind.DEVICE_CONNECTED: self.on_device_connected,
            EventKind.DEVICE_DISCONNECTED: self.on_device_disconnected,
            EventKind.DEVICE_CONNECTION_FAILED: self.on_device_connection_failed,
            EventKind.DEVICE_ALARM: self.on_device_alarm,
            EventKind.DEVICE_DATA: self.on_device_data,
            EventKind.HEALTH_CHECK_COMPLETE: self.on_health_check_complete,
            EventKind.CONFIGURATIONS_CHANGED: self.on_configurations_changed,
        }

    def register(self, router: EventRouter) -> None:
        """Subscribe every kind the router has no handler for yet."""
        existing = router.subscriptions
        for kind, handler in self.handlers().items():
            if kind not in existing:
                router.subscribe(kind, handler)

    # --------------------------------------------------------
    # System events
    # --------------------------------------------------------

    def on_initialized(self, payload: Mapping[str, Any]) -> None:
        logger.info("Manager initialized successfully")
        for line in format_system_overview(self._manager.get_system_status()):
            logger.info(line)

    def on_database_connected(self, payload: Mapping[str, Any]) -> None:
        logger.info("Database connected successfully")

    def on_configurations_loaded(self, payload: Mapping[str, Any]) -> None:
        logger.info(f"Loaded {payload.get('count', '?')} device configurations")

    def on_health_check_complete(self, payload: Mapping[str, Any]) -> None:
        logger.info(
            f"Health check: {payload.get('connected_count', '?')}/"
            f"{payload.get('total_count', '?')} devices connected"
        )

    def on_configurations_changed(self, payload: Mapping[str, Any]) -> None:
        logger.info(
            f"Configuration change: {payload.get('old_count', '?')} -> "
            f"{payload.get('new_count', '?')} devices"
        )

    # --------------------------------------------------------
    # Device events
    # --------------------------------------------------------

    def on_device_connected(self, payload: Mapping[str, Any]) -> None:
        name = payload.get("name", "?")
        logger.info(f"Device connected: {name}")
        self._log_device_info(name)

    def on_device_disconnected(self, payload: Mapping[str, Any]) -> None:
        logger.info(f"Device disconnected: {payload.get('name', '?')}")

    def on_device_connection_failed(self, payload: Mapping[str, Any]) -> None:
        logger.warning(
            f"Device connection failed: {payload.get('name', '?')} - "
            f"{payload.get('error', 'unknown error')}"
        )

    def on_device_alarm(self, payload: Mapping[str, Any]) -> None:
        logger.warning(
            f"ALARM from {payload.get('name', '?')}: {payload.get('type', '?')} - "
            f"{payload.get('tag_name', '?')} = {payload.get('value', '?')}"
        )

    def on_device_data(self, payload: Mapping[str, Any]) -> None:
        self._data_events += 1
        every = self._data_event_log_every
        if every <= 0 or self._data_events % every:
            return
        data = payload.get("data") or {}
        logger.info(f"Data from {payload.get('name', '?')}: {len(data)} tags updated")

    def _log_device_info(self, name: str) -> None:
        try:
            snapshot = self._manager.get_device_data(name)
        except Exception as e:
            logger.warning(f"Could not get data for {name}: {e}")
            return

        if snapshot is not None and snapshot.connected:
            logger.info(f"   {name}: {snapshot.tag_count} tags active")


__all__ = ["ManagerEventHandlers"]
