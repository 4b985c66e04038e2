"""
Manager - Interfaces.

The orchestrator consumes a Manager only through ManagerFacade.
Backends in this package (simulated, remote) implement it; tests
use hand-written stubs.
"""

from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol

from .models import (
    AlarmFilter,
    AlarmRecord,
    DeviceSnapshot,
    DeviceStatus,
    HistoricalFilter,
    HistoricalRecord,
    SystemReport,
    SystemStatus,
)


# (kind, payload); kind is a raw string so new Manager events pass through
EventListener = Callable[[str, Mapping[str, Any]], None]


class ManagerFacade(Protocol):
    """Minimum Manager contract the orchestrator requires."""

    async def initialize(self) -> bool: ...

    async def shutdown(self) -> bool: ...

    def add_listener(self, listener: EventListener) -> None: ...

    def remove_listener(self, listener: EventListener) -> None: ...

    def get_system_status(self) -> SystemStatus: ...

    async def get_device_statuses(self) -> List[DeviceStatus]: ...

    def get_all_data(self) -> Dict[str, DeviceSnapshot]: ...

    def get_device_data(self, name: str) -> Optional[DeviceSnapshot]: ...

    async def get_historical_data(
        self,
        filter: HistoricalFilter,
        start_time: datetime,
        end_time: datetime,
        limit: int,
    ) -> List[HistoricalRecord]: ...

    async def get_alarm_history(
        self,
        filter: AlarmFilter,
        limit: int,
    ) -> List[AlarmRecord]: ...

    async def generate_system_report(
        self,
        report_type: str = "summary",
        time_range: str = "24h",
    ) -> SystemReport: ...


__all__ = ["EventListener", "ManagerFacade"]
