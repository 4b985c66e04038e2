"""
Manager Package.

The external multi-device Manager as seen by the orchestrator.

Components:
- interfaces: ManagerFacade protocol and listener type
- models: Snapshot dataclasses and event kinds
- emitter: Listener registry shared by backends
- simulated: In-process simulated Manager
- remote: REST client for a Manager API server
- factory: Backend selection
"""

from .emitter import EventEmitter
from .factory import BACKENDS, create_manager
from .interfaces import EventListener, ManagerFacade
from .models import (
    AlarmFilter,
    AlarmRecord,
    DeviceConfig,
    DeviceSnapshot,
    DeviceStatus,
    EventKind,
    HistoricalFilter,
    HistoricalRecord,
    SystemReport,
    SystemStatus,
    TagValue,
)
from .remote import RemoteManager
from .simulated import SimulatedDevice, SimulatedManager, SimulatedTag, SimulationConfig

__all__ = [
    "BACKENDS",
    "create_manager",
    "EventEmitter",
    "EventListener",
    "ManagerFacade",
    "AlarmFilter",
    "AlarmRecord",
    "DeviceConfig",
    "DeviceSnapshot",
    "DeviceStatus",
    "EventKind",
    "HistoricalFilter",
    "HistoricalRecord",
    "SystemReport",
    "SystemStatus",
    "TagValue",
    "RemoteManager",
    "SimulatedDevice",
    "SimulatedManager",
    "SimulatedTag",
    "SimulationConfig",
]
