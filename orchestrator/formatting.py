"""
Orchestrator - Formatting.

Renders Manager snapshots into human-readable report lines.

All functions are pure: they return lists of lines and never
touch the Manager or the logging system.
"""

from typing import Dict, List, Sequence

from manager.models import (
    AlarmRecord,
    DeviceConfig,
    DeviceSnapshot,
    DeviceStatus,
    HistoricalRecord,
    SystemReport,
    SystemStatus,
)

from .models import StatusSummary


INDENT = "   "


def format_uptime(seconds: float) -> str:
    """Format uptime as ``<hours>h <minutes>m``."""
    total = max(0, int(seconds))
    return f"{total // 3600}h {(total % 3600) // 60}m"


def format_system_overview(status: SystemStatus) -> List[str]:
    """Overview shown on initialization and in every periodic report."""
    return [
        "System Overview:",
        f"{INDENT}Devices: {status.devices.connected}/{status.devices.total} connected",
        f"{INDENT}Data Points: {status.data.points_logged:,}",
        f"{INDENT}Alarms: {status.data.alarms_generated}",
        f"{INDENT}Uptime: {format_uptime(status.system.uptime_seconds)}",
        f"{INDENT}Success Rate: {status.connections.success_rate_percent:.1f}%",
    ]


def format_system_status(status: SystemStatus) -> List[str]:
    return [
        f"{INDENT}Devices: {status.devices.connected}/{status.devices.total} connected",
        f"{INDENT}Data Points: {status.data.points_logged:,} logged",
        f"{INDENT}Alarms: {status.data.alarms_generated} generated",
    ]


def format_device_statuses(statuses: Sequence[DeviceStatus]) -> List[str]:
    if not statuses:
        return [f"{INDENT}No devices configured"]

    lines = []
    for device in statuses:
        state = "Online" if device.connected else "Offline"
        lines.append(f"{INDENT}{device.name}: {state} ({device.address}:{device.port})")
        lines.append(
            f"{INDENT}   Tags: {device.active_tags}, "
            f"Quality: {device.data_quality_percent:.1f}%"
        )
    return lines


def format_current_data(
    all_data: Dict[str, DeviceSnapshot],
    sample_tag_count: int = 3,
) -> List[str]:
    if not all_data:
        return [f"{INDENT}No device data available"]

    lines = []
    for name, snapshot in all_data.items():
        lines.append(f"{INDENT}{name}: {'Connected' if snapshot.connected else 'Disconnected'}")
        if not snapshot.connected or not snapshot.data:
            continue

        lines.append(f"{INDENT}   Active Tags: {snapshot.tag_count}")
        for tag_name, tag in list(snapshot.data.items())[:sample_tag_count]:
            if tag.formatted_value:
                lines.append(f"{INDENT}      {tag_name}: {tag.formatted_value} {tag.units}".rstrip())
    return lines


def format_device_config(config: DeviceConfig) -> List[str]:
    return [
        f"{INDENT}Example: adding device configuration {config.name}",
        f"{INDENT}   Address: {config.address}:{config.port} (rack {config.rack}, slot {config.slot})",
        f"{INDENT}   Location: {config.location}, Department: {config.department}",
        f"{INDENT}   Type: {config.system_type}, Priority: {config.priority}",
        f"{INDENT}   Auto-connect: {'on' if config.auto_connect else 'off'}",
        f"{INDENT}(Not applied; the running configuration is unchanged)",
    ]


def format_historical(records: Sequence[HistoricalRecord]) -> List[str]:
    lines = [f"{len(records)} records found"]
    if records:
        sample = records[0]
        lines.append(
            f"{INDENT}Sample: {sample.device_name}.{sample.tag_name} = "
            f"{sample.value} {sample.units}".rstrip()
        )
    return lines


def format_alarms(alarms: Sequence[AlarmRecord]) -> List[str]:
    if not alarms:
        return ["No recent alarms"]

    lines = [f"Found {len(alarms)} recent alarms"]
    for alarm in alarms:
        lines.append(
            f"{INDENT}{alarm.device_name}.{alarm.tag_name}: "
            f"{alarm.alarm_type} ({alarm.severity})"
        )
    return lines


def format_system_report(report: SystemReport) -> List[str]:
    lines = [
        f"{INDENT}Report Type: {report.report_type}",
        f"{INDENT}Time Range: {report.time_range}",
        f"{INDENT}Generated: {report.generated_at.isoformat()}",
        f"{INDENT}Devices: {report.overview.devices.total} total, "
        f"{report.overview.devices.connected} connected",
    ]

    if report.data_quality:
        lines.append(f"{INDENT}Data Quality by Device:")
        for quality in report.data_quality:
            lines.append(
                f"{INDENT}   {quality.device_name}: {quality.quality_percent}% "
                f"({quality.good_records}/{quality.total_records})"
            )

    if report.recent_alarms:
        lines.append(
            f"{INDENT}Recent Alarms: {len(report.recent_alarms)} in last {report.time_range}"
        )
    return lines


def format_status_summary(summary: StatusSummary) -> List[str]:
    return [
        f"{INDENT}Active Tags: {summary.live_points} across "
        f"{summary.connected_devices} devices",
    ]


__all__ = [
    "format_uptime",
    "format_system_overview",
    "format_system_status",
    "format_device_statuses",
    "format_current_data",
    "format_device_config",
    "format_historical",
    "format_alarms",
    "format_system_report",
    "format_status_summary",
]
