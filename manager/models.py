"""
Manager - Models.

============================================================
RESPONSIBILITY
============================================================
Snapshot types returned by a Manager backend.

- Event kinds emitted on the Manager's event stream
- System / device status snapshots
- Current tag values, historical records, alarm records
- Device configuration and system report

Snapshots are read-only views. The orchestrator never mutates
or caches them beyond a single operation.

Every type offers ``from_dict`` for the camelCase JSON shape
served by the Manager's REST API.

============================================================
"""

from enum import Enum
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional


# ============================================================
# EVENT KINDS
# ============================================================

class EventKind(Enum):
    """Closed set of event kinds the orchestrator subscribes to."""

    INITIALIZED = "initialized"
    DATABASE_CONNECTED = "database_connected"
    CONFIGURATIONS_LOADED = "configurations_loaded"
    DEVICE_CONNECTED = "device_connected"
    DEVICE_DISCONNECTED = "device_disconnected"
    DEVICE_CONNECTION_FAILED = "device_connection_failed"
    DEVICE_ALARM = "device_alarm"
    DEVICE_DATA = "device_data"
    HEALTH_CHECK_COMPLETE = "health_check_complete"
    CONFIGURATIONS_CHANGED = "configurations_changed"

    @classmethod
    def parse(cls, value: Any) -> Optional["EventKind"]:
        """Map a raw kind to an EventKind, None if unknown."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            return None


def _parse_time(value: Any) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


# ============================================================
# SYSTEM STATUS
# ============================================================

@dataclass(frozen=True)
class DeviceCounts:
    connected: int = 0
    total: int = 0


@dataclass(frozen=True)
class DataCounters:
    points_logged: int = 0
    alarms_generated: int = 0


@dataclass(frozen=True)
class SystemInfo:
    uptime_seconds: float = 0.0


@dataclass(frozen=True)
class ConnectionStats:
    success_rate_percent: float = 0.0


@dataclass(frozen=True)
class SystemStatus:
    """Aggregate Manager status."""

    devices: DeviceCounts = field(default_factory=DeviceCounts)
    data: DataCounters = field(default_factory=DataCounters)
    system: SystemInfo = field(default_factory=SystemInfo)
    connections: ConnectionStats = field(default_factory=ConnectionStats)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "SystemStatus":
        devices = data.get("devices") or {}
        counters = data.get("data") or {}
        system = data.get("system") or {}
        connections = data.get("connections") or {}
        return cls(
            devices=DeviceCounts(
                connected=int(devices.get("connected", 0)),
                total=int(devices.get("total", 0)),
            ),
            data=DataCounters(
                points_logged=int(counters.get("pointsLogged", 0)),
                alarms_generated=int(counters.get("alarmsGenerated", 0)),
            ),
            system=SystemInfo(
                uptime_seconds=float(system.get("uptimeSeconds", 0.0)),
            ),
            connections=ConnectionStats(
                success_rate_percent=float(connections.get("successRatePercent", 0.0)),
            ),
        )


# ============================================================
# DEVICE STATUS
# ============================================================

@dataclass(frozen=True)
class DeviceStatus:
    """Detailed status of one device."""

    name: str
    address: str
    port: int
    connected: bool = False
    active_tags: int = 0
    data_quality_percent: float = 0.0

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "DeviceStatus":
        status = data.get("status") or {}
        statistics = data.get("statistics") or {}
        return cls(
            name=str(data["name"]),
            address=str(data.get("address", "")),
            port=int(data.get("port", 0)),
            connected=bool(status.get("connected", False)),
            active_tags=int(status.get("activeTags") or 0),
            data_quality_percent=float(statistics.get("dataQualityPercent") or 0.0),
        )


# ============================================================
# CURRENT DATA
# ============================================================

@dataclass(frozen=True)
class TagValue:
    """Current value of one tag."""

    formatted_value: str
    units: str = ""
    value: Any = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "TagValue":
        return cls(
            formatted_value=str(data.get("formattedValue", "")),
            units=str(data.get("units") or ""),
            value=data.get("value"),
        )


@dataclass(frozen=True)
class DeviceSnapshot:
    """Current data of one device."""

    connected: bool
    data: Dict[str, TagValue] = field(default_factory=dict)

    @property
    def tag_count(self) -> int:
        return len(self.data)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "DeviceSnapshot":
        tags = data.get("data") or {}
        return cls(
            connected=bool(data.get("connected", False)),
            data={name: TagValue.from_dict(tag) for name, tag in tags.items()},
        )


# ============================================================
# HISTORY
# ============================================================

@dataclass(frozen=True)
class HistoricalFilter:
    """Filter for historical queries. None means all."""

    device_name: Optional[str] = None
    tag_name: Optional[str] = None
    group_name: Optional[str] = None


@dataclass(frozen=True)
class HistoricalRecord:
    device_name: str
    tag_name: str
    value: Any
    units: str
    timestamp: datetime

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "HistoricalRecord":
        return cls(
            device_name=str(data["deviceName"]),
            tag_name=str(data["tagName"]),
            value=data.get("value"),
            units=str(data.get("units") or ""),
            timestamp=_parse_time(data.get("timestamp")) or datetime.now(timezone.utc),
        )


@dataclass(frozen=True)
class AlarmFilter:
    """Filter for alarm history. None means all."""

    device_name: Optional[str] = None
    alarm_type: Optional[str] = None
    severity: Optional[str] = None
    start_time: Optional[datetime] = None


@dataclass(frozen=True)
class AlarmRecord:
    device_name: str
    tag_name: str
    alarm_type: str
    severity: str
    value: Any = None
    active_time: Optional[datetime] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "AlarmRecord":
        return cls(
            device_name=str(data["deviceName"]),
            tag_name=str(data["tagName"]),
            alarm_type=str(data.get("alarmType", "")),
            severity=str(data.get("severity", "")),
            value=data.get("value"),
            active_time=_parse_time(data.get("activeTime")),
        )


# ============================================================
# CONFIGURATION & REPORTS
# ============================================================

@dataclass(frozen=True)
class DeviceConfig:
    """Configuration of one device as the Manager would store it."""

    name: str
    address: str
    port: int = 102
    rack: int = 0
    slot: int = 2
    description: str = ""
    location: str = ""
    department: str = ""
    system_type: str = ""
    priority: int = 5
    auto_connect: bool = True


@dataclass(frozen=True)
class DeviceQuality:
    device_name: str
    quality_percent: float
    good_records: int
    total_records: int

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "DeviceQuality":
        return cls(
            device_name=str(data["deviceName"]),
            quality_percent=float(data.get("qualityPercent", 0.0)),
            good_records=int(data.get("goodRecords", 0)),
            total_records=int(data.get("totalRecords", 0)),
        )


@dataclass(frozen=True)
class SystemReport:
    """Summary report generated by the Manager."""

    report_type: str
    time_range: str
    generated_at: datetime
    overview: SystemStatus
    data_quality: List[DeviceQuality] = field(default_factory=list)
    recent_alarms: List[AlarmRecord] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "SystemReport":
        return cls(
            report_type=str(data.get("reportType", "summary")),
            time_range=str(data.get("timeRange", "24h")),
            generated_at=_parse_time(data.get("generatedAt")) or datetime.now(timezone.utc),
            overview=SystemStatus.from_dict(data.get("systemOverview") or {}),
            data_quality=[DeviceQuality.from_dict(d) for d in data.get("dataQuality") or []],
            recent_alarms=[AlarmRecord.from_dict(a) for a in data.get("recentAlarms") or []],
        )


__all__ = [
    "EventKind",
    "DeviceCounts",
    "DataCounters",
    "SystemInfo",
    "ConnectionStats",
    "SystemStatus",
    "DeviceStatus",
    "TagValue",
    "DeviceSnapshot",
    "HistoricalFilter",
    "HistoricalRecord",
    "AlarmFilter",
    "AlarmRecord",
    "DeviceConfig",
    "DeviceQuality",
    "SystemReport",
]
