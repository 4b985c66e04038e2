"""
Manager - Simulated Backend.

============================================================
PURPOSE
============================================================
In-process Manager for running the orchestrator without a plant.

FEATURES:
- Configurable devices, tags and alarm limits
- Configurable latency
- Error injection (initialize, shutdown, per-device connect)
- Bounded in-memory history and alarm log
- Deterministic with a seed

============================================================
"""

import asyncio
import logging
import random
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Deque, Dict, List, Optional, Set, Tuple

from core.clock import ClockFactory, ClockProtocol
from core.exceptions import ManagerError, ManagerUnavailableError

from .emitter import EventEmitter
from .models import (
    AlarmFilter,
    AlarmRecord,
    ConnectionStats,
    DataCounters,
    DeviceCounts,
    DeviceQuality,
    DeviceSnapshot,
    DeviceStatus,
    EventKind,
    HistoricalFilter,
    HistoricalRecord,
    SystemInfo,
    SystemReport,
    SystemStatus,
    TagValue,
)


logger = logging.getLogger(__name__)


TIME_RANGES: Dict[str, int] = {
    "1h": 3600,
    "24h": 24 * 3600,
    "7d": 7 * 24 * 3600,
    "30d": 30 * 24 * 3600,
}


# ============================================================
# SIMULATION CONFIGURATION
# ============================================================

@dataclass
class SimulatedTag:
    """One simulated process value."""

    name: str
    units: str
    base_value: float
    amplitude: float = 1.0
    alarm_high: Optional[float] = None
    alarm_low: Optional[float] = None
    group: str = "Process"
    decimals: int = 1

    def in_limits(self, value: float) -> bool:
        if self.alarm_high is not None and value > self.alarm_high:
            return False
        if self.alarm_low is not None and value < self.alarm_low:
            return False
        return True


@dataclass
class SimulatedDevice:
    """One simulated PLC."""

    name: str
    address: str
    port: int = 102
    description: str = ""
    priority: int = 5
    tags: List[SimulatedTag] = field(default_factory=list)
    fail_connect: bool = False
    """Connection attempts to this device always fail."""


def default_devices() -> List[SimulatedDevice]:
    """A small wastewater plant."""
    return [
        SimulatedDevice(
            name="WWTP_INLET",
            address="192.168.10.11",
            description="Inlet pumping station",
            priority=1,
            tags=[
                SimulatedTag("InletFlow", "m3/h", 420.0, 60.0, alarm_high=500.0),
                SimulatedTag("WetWellLevel", "%", 55.0, 15.0, alarm_high=85.0, alarm_low=10.0),
                SimulatedTag("InletPH", "pH", 7.2, 0.4, alarm_high=8.5, alarm_low=6.0, decimals=2),
            ],
        ),
        SimulatedDevice(
            name="WWTP_AERATION",
            address="192.168.10.12",
            description="Aeration basin",
            priority=2,
            tags=[
                SimulatedTag("DissolvedOxygen", "mg/L", 2.0, 0.8, alarm_low=1.0, decimals=2),
                SimulatedTag("BlowerSpeed", "%", 70.0, 20.0, alarm_high=95.0),
                SimulatedTag("BasinTemperature", "degC", 18.0, 3.0),
            ],
        ),
        SimulatedDevice(
            name="WWTP_OUTLET",
            address="192.168.10.13",
            description="Final effluent",
            priority=3,
            tags=[
                SimulatedTag("EffluentTurbidity", "NTU", 3.0, 2.0, alarm_high=4.5),
                SimulatedTag("EffluentFlow", "m3/h", 400.0, 50.0),
            ],
        ),
    ]


@dataclass
class SimulationConfig:
    """Configuration for the simulated Manager."""

    devices: List[SimulatedDevice] = field(default_factory=default_devices)

    update_interval_seconds: float = 1.0
    """Period of the background value update loop."""

    health_check_every: int = 30
    """Emit health_check_complete every N updates."""

    min_latency_ms: float = 5.0
    max_latency_ms: float = 50.0

    history_capacity: int = 10_000
    alarm_capacity: int = 1_000

    seed: Optional[int] = None

    # Error injection
    fail_initialize: bool = False
    fail_shutdown: bool = False


# ============================================================
# SIMULATED MANAGER
# ============================================================

class SimulatedManager(EventEmitter):
    """
    Simulated multi-device Manager.

    Emits the same event kinds as a real Manager and serves the
    status, data, history and alarm queries from memory.
    """

    def __init__(
        self,
        config: Optional[SimulationConfig] = None,
        clock: Optional[ClockProtocol] = None,
    ):
        super().__init__()
        self._config = config or SimulationConfig()
        self._clock = clock or ClockFactory.get_clock()
        self._random = random.Random(self._config.seed)

        self._devices: Dict[str, SimulatedDevice] = {
            d.name: d for d in self._config.devices
        }
        self._connected: Dict[str, bool] = {name: False for name in self._devices}
        self._values: Dict[str, Dict[str, float]] = {}
        self._samples: Dict[str, Tuple[int, int]] = {}  # name -> (good, total)

        self._history: Deque[HistoricalRecord] = deque(maxlen=self._config.history_capacity)
        self._alarms: Deque[AlarmRecord] = deque(maxlen=self._config.alarm_capacity)
        self._active_alarms: Set[Tuple[str, str, str]] = set()

        self._total_connections = 0
        self._successful_connections = 0
        self._failed_connections = 0
        self._points_logged = 0
        self._alarms_generated = 0
        self._tick_count = 0

        self._start_time: Optional[float] = None
        self._initialized = False
        self._update_task: Optional[asyncio.Task] = None

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    # --------------------------------------------------------
    # LIFECYCLE
    # --------------------------------------------------------

    async def initialize(self) -> bool:
        if self._initialized:
            return True

        logger.info("Initializing simulated Manager...")
        await self._simulate_latency()

        if self._config.fail_initialize:
            raise ManagerUnavailableError(
                "Database connection refused",
                operation="initialize",
            )

        self.emit(EventKind.DATABASE_CONNECTED)
        self.emit(EventKind.CONFIGURATIONS_LOADED, {"count": len(self._devices)})

        for device in sorted(self._devices.values(), key=lambda d: d.priority):
            self._connect_device(device)

        self._start_time = self._clock.timestamp()
        self._initialized = True

        if self._config.update_interval_seconds > 0:
            self._update_task = asyncio.create_task(self._update_loop())

        self.emit(EventKind.INITIALIZED)
        return True

    async def shutdown(self) -> bool:
        if not self._initialized:
            return True

        logger.info("Shutting down simulated Manager...")

        if self._update_task and not self._update_task.done():
            self._update_task.cancel()
            try:
                await self._update_task
            except asyncio.CancelledError:
                pass
        self._update_task = None

        for name, connected in self._connected.items():
            if connected:
                self._connected[name] = False
                self.emit(EventKind.DEVICE_DISCONNECTED, {"name": name})

        self._initialized = False

        if self._config.fail_shutdown:
            raise ManagerError("Failed to close database pool", operation="shutdown")

        return True

    def add_device(self, device: SimulatedDevice) -> None:
        """Add a device at runtime; connects it when already initialized."""
        old_count = len(self._devices)
        self._devices[device.name] = device
        self._connected.setdefault(device.name, False)
        self.emit(
            EventKind.CONFIGURATIONS_CHANGED,
            {"old_count": old_count, "new_count": len(self._devices)},
        )
        if self._initialized:
            self._connect_device(device)

    def _connect_device(self, device: SimulatedDevice) -> None:
        self._total_connections += 1

        if device.fail_connect:
            self._failed_connections += 1
            self.emit(
                EventKind.DEVICE_CONNECTION_FAILED,
                {
                    "name": device.name,
                    "error": f"Connection timed out ({device.address}:{device.port})",
                },
            )
            return

        self._successful_connections += 1
        self._connected[device.name] = True
        self._values[device.name] = {t.name: t.base_value for t in device.tags}
        self.emit(EventKind.DEVICE_CONNECTED, {"name": device.name})

    # --------------------------------------------------------
    # VALUE UPDATES
    # --------------------------------------------------------

    async def _update_loop(self) -> None:
        while True:
            await asyncio.sleep(self._config.update_interval_seconds)
            self.tick()

    def tick(self) -> None:
        """Advance every connected device by one sample."""
        now = self._clock.now()

        for name, device in self._devices.items():
            if not self._connected.get(name):
                continue

            values: Dict[str, float] = {}
            for tag in device.tags:
                value = round(
                    tag.base_value + tag.amplitude * self._random.uniform(-1.0, 1.0),
                    tag.decimals,
                )
                values[tag.name] = value
                self._record(device, tag, value, now)

            self._values[name] = values
            self.emit(EventKind.DEVICE_DATA, {"name": name, "data": dict(values)})

        self._tick_count += 1
        if self._tick_count % self._config.health_check_every == 0:
            self.emit(
                EventKind.HEALTH_CHECK_COMPLETE,
                {
                    "connected_count": sum(1 for c in self._connected.values() if c),
                    "total_count": len(self._devices),
                },
            )

    def _record(
        self,
        device: SimulatedDevice,
        tag: SimulatedTag,
        value: float,
        now: datetime,
    ) -> None:
        self._history.append(
            HistoricalRecord(
                device_name=device.name,
                tag_name=tag.name,
                value=value,
                units=tag.units,
                timestamp=now,
            )
        )
        self._points_logged += 1

        good, total = self._samples.get(device.name, (0, 0))
        in_limits = tag.in_limits(value)
        self._samples[device.name] = (good + (1 if in_limits else 0), total + 1)

        alarm_type = None
        if tag.alarm_high is not None and value > tag.alarm_high:
            alarm_type = "HIGH"
        elif tag.alarm_low is not None and value < tag.alarm_low:
            alarm_type = "LOW"

        if alarm_type is None:
            self._active_alarms = {
                key for key in self._active_alarms
                if key[:2] != (device.name, tag.name)
            }
            return

        key = (device.name, tag.name, alarm_type)
        if key in self._active_alarms:
            return

        self._active_alarms.add(key)
        self._alarms_generated += 1
        self._alarms.append(
            AlarmRecord(
                device_name=device.name,
                tag_name=tag.name,
                alarm_type=alarm_type,
                severity="HIGH" if device.priority <= 2 else "MEDIUM",
                value=value,
                active_time=now,
            )
        )
        self.emit(
            EventKind.DEVICE_ALARM,
            {"name": device.name, "type": alarm_type, "tag_name": tag.name, "value": value},
        )

    # --------------------------------------------------------
    # QUERIES
    # --------------------------------------------------------

    def get_system_status(self) -> SystemStatus:
        uptime = 0.0
        if self._start_time is not None:
            uptime = max(0.0, self._clock.timestamp() - self._start_time)

        success_rate = 0.0
        if self._total_connections:
            success_rate = self._successful_connections / self._total_connections * 100

        return SystemStatus(
            devices=DeviceCounts(
                connected=sum(1 for c in self._connected.values() if c),
                total=len(self._devices),
            ),
            data=DataCounters(
                points_logged=self._points_logged,
                alarms_generated=self._alarms_generated,
            ),
            system=SystemInfo(uptime_seconds=uptime),
            connections=ConnectionStats(success_rate_percent=success_rate),
        )

    async def get_device_statuses(self) -> List[DeviceStatus]:
        await self._simulate_latency()

        statuses = []
        for device in sorted(self._devices.values(), key=lambda d: (d.priority, d.name)):
            connected = self._connected.get(device.name, False)
            good, total = self._samples.get(device.name, (0, 0))
            statuses.append(
                DeviceStatus(
                    name=device.name,
                    address=device.address,
                    port=device.port,
                    connected=connected,
                    active_tags=len(device.tags) if connected else 0,
                    data_quality_percent=(good / total * 100) if total else 0.0,
                )
            )
        return statuses

    def get_all_data(self) -> Dict[str, DeviceSnapshot]:
        return {name: self.get_device_data(name) for name in self._devices}

    def get_device_data(self, name: str) -> Optional[DeviceSnapshot]:
        device = self._devices.get(name)
        if device is None:
            return None

        connected = self._connected.get(name, False)
        values = self._values.get(name, {}) if connected else {}
        return DeviceSnapshot(
            connected=connected,
            data={
                tag.name: TagValue(
                    formatted_value=f"{values[tag.name]:.{tag.decimals}f}",
                    units=tag.units,
                    value=values[tag.name],
                )
                for tag in device.tags
                if tag.name in values
            },
        )

    async def get_historical_data(
        self,
        filter: HistoricalFilter,
        start_time: datetime,
        end_time: datetime,
        limit: int,
    ) -> List[HistoricalRecord]:
        await self._simulate_latency()
        self._require_initialized("get_historical_data")

        groups = self._tag_groups()
        records = []
        for record in reversed(self._history):
            if not (start_time <= record.timestamp <= end_time):
                continue
            if filter.device_name and record.device_name != filter.device_name:
                continue
            if filter.tag_name and record.tag_name != filter.tag_name:
                continue
            if filter.group_name and groups.get((record.device_name, record.tag_name)) != filter.group_name:
                continue
            records.append(record)
            if len(records) >= limit:
                break
        return records

    async def get_alarm_history(
        self,
        filter: AlarmFilter,
        limit: int,
    ) -> List[AlarmRecord]:
        await self._simulate_latency()
        self._require_initialized("get_alarm_history")

        alarms = []
        for alarm in reversed(self._alarms):
            if filter.device_name and alarm.device_name != filter.device_name:
                continue
            if filter.alarm_type and alarm.alarm_type != filter.alarm_type:
                continue
            if filter.severity and alarm.severity != filter.severity:
                continue
            if filter.start_time and alarm.active_time and alarm.active_time < filter.start_time:
                continue
            alarms.append(alarm)
            if len(alarms) >= limit:
                break
        return alarms

    async def generate_system_report(
        self,
        report_type: str = "summary",
        time_range: str = "24h",
    ) -> SystemReport:
        start_time, end_time = self._clock.window(TIME_RANGES.get(time_range, TIME_RANGES["24h"]))

        counts: Dict[str, List[int]] = {}
        for record in self._history:
            if not (start_time <= record.timestamp <= end_time):
                continue
            device = self._devices.get(record.device_name)
            tag = next((t for t in device.tags if t.name == record.tag_name), None) if device else None
            good_total = counts.setdefault(record.device_name, [0, 0])
            good_total[1] += 1
            if tag is None or tag.in_limits(record.value):
                good_total[0] += 1

        quality = [
            DeviceQuality(
                device_name=name,
                quality_percent=round(good / total * 100, 2),
                good_records=good,
                total_records=total,
            )
            for name, (good, total) in sorted(counts.items())
        ]

        return SystemReport(
            report_type=report_type,
            time_range=time_range,
            generated_at=end_time,
            overview=self.get_system_status(),
            data_quality=quality,
            recent_alarms=await self.get_alarm_history(AlarmFilter(start_time=start_time), 50),
        )

    # --------------------------------------------------------
    # HELPERS
    # --------------------------------------------------------

    def _tag_groups(self) -> Dict[Tuple[str, str], str]:
        return {
            (device.name, tag.name): tag.group
            for device in self._devices.values()
            for tag in device.tags
        }

    def _require_initialized(self, operation: str) -> None:
        if not self._initialized:
            raise ManagerError("Manager is not initialized", operation=operation)

    async def _simulate_latency(self) -> None:
        low = self._config.min_latency_ms
        high = max(low, self._config.max_latency_ms)
        if high <= 0:
            return
        await asyncio.sleep(self._random.uniform(low, high) / 1000.0)


__all__ = [
    "SimulatedTag",
    "SimulatedDevice",
    "SimulationConfig",
    "SimulatedManager",
    "default_devices",
    "TIME_RANGES",
]
