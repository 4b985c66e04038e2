"""
Orchestrator - Models.

============================================================
RESPONSIBILITY
============================================================
Defines data models for the acquisition orchestrator.

- Manager events as delivered to the router
- Demonstration steps with strict ordering
- Step and demonstration results
- Periodic status summary
- Configuration dataclass

============================================================
"""

from enum import Enum
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, List, Mapping, Optional
import os

from manager.models import EventKind


# ============================================================
# MANAGER EVENTS
# ============================================================

@dataclass(frozen=True)
class ManagerEvent:
    """One notification from the Manager's event stream."""

    kind: str
    """Raw event kind as emitted."""

    payload: Mapping[str, Any] = field(default_factory=dict)

    @property
    def event_kind(self) -> Optional[EventKind]:
        """Known kind, or None for kinds outside EventKind."""
        return EventKind.parse(self.kind)


# ============================================================
# DEMONSTRATION STEPS
# ============================================================

class DemonstrationStep(Enum):
    """
    Demonstration steps in strict order.

    Steps are independent: a failure in one never prevents the next.
    """

    SYSTEM_STATUS = (1, "system_status", "System status")
    DEVICE_STATUSES = (2, "device_statuses", "Device statuses")
    CURRENT_DATA = (3, "current_data", "Current data")
    CONFIGURATION_EXAMPLE = (4, "configuration_example", "Configuration example")
    HISTORICAL_DATA = (5, "historical_data", "Historical data")
    ALARM_HISTORY = (6, "alarm_history", "Alarm history")
    SYSTEM_REPORT = (7, "system_report", "System report")

    def __init__(self, order: int, step_id: str, description: str):
        self._order = order
        self._step_id = step_id
        self._description = description

    @property
    def order(self) -> int:
        """Get execution order."""
        return self._order

    @property
    def step_id(self) -> str:
        """Get step identifier."""
        return self._step_id

    @property
    def description(self) -> str:
        """Get step description."""
        return self._description

    @classmethod
    def get_ordered_steps(cls, include_system_report: bool = False) -> List["DemonstrationStep"]:
        """Get the steps to run, in execution order."""
        steps = sorted(cls, key=lambda s: s.order)
        if not include_system_report:
            steps = [s for s in steps if s is not cls.SYSTEM_REPORT]
        return steps


# ============================================================
# STEP RESULT
# ============================================================

@dataclass
class StepResult:
    """Result of executing one demonstration step."""

    step: DemonstrationStep
    success: bool
    started_at: datetime
    completed_at: datetime
    duration_seconds: float
    lines: List[str] = field(default_factory=list)
    """Human-readable output of the step."""
    error: Optional[str] = None
    error_type: Optional[str] = None

    @property
    def duration(self) -> timedelta:
        """Get duration as timedelta."""
        return timedelta(seconds=self.duration_seconds)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "step": self.step.step_id,
            "success": self.success,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat(),
            "duration_seconds": self.duration_seconds,
            "lines": list(self.lines),
            "error": self.error,
            "error_type": self.error_type,
        }


@dataclass
class DemonstrationReport:
    """Results of one demonstration run."""

    started_at: datetime
    completed_at: Optional[datetime] = None
    results: List[StepResult] = field(default_factory=list)

    @property
    def success(self) -> bool:
        """True when every step succeeded."""
        return all(r.success for r in self.results)

    @property
    def steps_succeeded(self) -> int:
        return len([r for r in self.results if r.success])

    @property
    def failed_steps(self) -> List[DemonstrationStep]:
        return [r.step for r in self.results if not r.success]

    def get(self, step: DemonstrationStep) -> Optional[StepResult]:
        """Get the result of a step, None if it did not run."""
        return next((r for r in self.results if r.step is step), None)

    def add_step_result(self, result: StepResult) -> None:
        self.results.append(result)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "success": self.success,
            "steps_succeeded": self.steps_succeeded,
            "failed_steps": [s.step_id for s in self.failed_steps],
            "results": [r.to_dict() for r in self.results],
        }


# ============================================================
# STATUS SUMMARY
# ============================================================

@dataclass(frozen=True)
class StatusSummary:
    """Folded view produced by one periodic report firing."""

    generated_at: datetime
    connected_devices: int
    total_devices: int
    live_points: int
    """Tag values across connected devices."""
    points_logged: int = 0
    alarms_generated: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "generated_at": self.generated_at.isoformat(),
            "connected_devices": self.connected_devices,
            "total_devices": self.total_devices,
            "live_points": self.live_points,
            "points_logged": self.points_logged,
            "alarms_generated": self.alarms_generated,
        }


# ============================================================
# ORCHESTRATOR CONFIGURATION
# ============================================================

def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


@dataclass
class OrchestratorConfig:
    """Configuration for the orchestrator."""

    # Manager backend
    backend: str = "simulated"
    """Manager backend (simulated or remote)."""

    manager_url: str = "http://localhost:3000"
    """Base URL of the Manager API server (remote backend)."""

    poll_interval_seconds: float = 5.0
    """Snapshot poll interval (remote backend)."""

    request_timeout_seconds: float = 10.0
    """HTTP request timeout (remote backend)."""

    # Timing
    report_interval_seconds: float = 120.0
    """Period of the status report."""

    startup_delay_seconds: float = 5.0
    """Wait between initialization and the demonstration."""

    initialization_timeout_seconds: float = 120.0
    """Bound on Manager initialization."""

    shutdown_timeout_seconds: float = 30.0
    """Bound on Manager shutdown."""

    report_drain_timeout_seconds: float = 10.0
    """Bound on waiting for an in-flight report at shutdown."""

    step_timeout_seconds: float = 30.0
    """Bound on each demonstration step."""

    # Queries
    history_window_seconds: int = 3600
    """Historical query window ending now."""

    history_limit: int = 10
    alarm_limit: int = 5

    sample_tag_count: int = 3
    """Tags shown per device in the current data step."""

    # Output
    data_event_log_every: int = 100
    """Log one of every N device_data events (0 disables)."""

    include_system_report: bool = False
    """Run the system report demonstration step."""

    # Logging
    log_level: str = "INFO"
    """Logging level."""

    log_format: str = "text"
    """Logging format (json or text)."""

    @classmethod
    def from_env(cls) -> "OrchestratorConfig":
        """Load configuration from environment variables."""
        return cls(
            backend=os.getenv("MANAGER_BACKEND", "simulated"),
            manager_url=os.getenv("MANAGER_URL", "http://localhost:3000"),
            poll_interval_seconds=float(os.getenv("MANAGER_POLL_INTERVAL_SECONDS", "5")),
            request_timeout_seconds=float(os.getenv("MANAGER_REQUEST_TIMEOUT_SECONDS", "10")),
            report_interval_seconds=float(os.getenv("REPORT_INTERVAL_SECONDS", "120")),
            startup_delay_seconds=float(os.getenv("STARTUP_DELAY_SECONDS", "5")),
            initialization_timeout_seconds=float(os.getenv("INITIALIZATION_TIMEOUT_SECONDS", "120")),
            shutdown_timeout_seconds=float(os.getenv("SHUTDOWN_TIMEOUT_SECONDS", "30")),
            report_drain_timeout_seconds=float(os.getenv("REPORT_DRAIN_TIMEOUT_SECONDS", "10")),
            step_timeout_seconds=float(os.getenv("STEP_TIMEOUT_SECONDS", "30")),
            history_window_seconds=int(os.getenv("HISTORY_WINDOW_SECONDS", "3600")),
            history_limit=int(os.getenv("HISTORY_LIMIT", "10")),
            alarm_limit=int(os.getenv("ALARM_LIMIT", "5")),
            sample_tag_count=int(os.getenv("SAMPLE_TAG_COUNT", "3")),
            data_event_log_every=int(os.getenv("DATA_EVENT_LOG_EVERY", "100")),
            include_system_report=_env_bool("INCLUDE_SYSTEM_REPORT", "false"),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "text"),
        )

    def validate(self) -> List[str]:
        """Validate configuration, return list of errors."""
        errors = []

        if self.backend not in ("simulated", "remote"):
            errors.append(f"backend must be 'simulated' or 'remote', got '{self.backend}'")

        if self.backend == "remote" and not self.manager_url:
            errors.append("manager_url required for remote backend")

        if self.report_interval_seconds <= 0:
            errors.append("report_interval_seconds must be positive")

        if self.startup_delay_seconds < 0:
            errors.append("startup_delay_seconds must not be negative")

        for name in (
            "poll_interval_seconds",
            "request_timeout_seconds",
            "initialization_timeout_seconds",
            "shutdown_timeout_seconds",
            "report_drain_timeout_seconds",
            "step_timeout_seconds",
        ):
            if getattr(self, name) <= 0:
                errors.append(f"{name} must be positive")

        if self.history_window_seconds < 1:
            errors.append("history_window_seconds must be at least 1")

        for name in ("history_limit", "alarm_limit"):
            if getattr(self, name) < 1:
                errors.append(f"{name} must be at least 1")

        if self.sample_tag_count < 0:
            errors.append("sample_tag_count must not be negative")

        if self.data_event_log_every < 0:
            errors.append("data_event_log_every must not be negative")

        if self.log_format not in ("json", "text"):
            errors.append(f"log_format must be 'json' or 'text', got '{self.log_format}'")

        return errors


# ============================================================
# EXPORTS
# ============================================================

__all__ = [
    # Events
    "EventKind",
    "ManagerEvent",

    # Demonstration
    "DemonstrationStep",
    "StepResult",
    "DemonstrationReport",

    # Reporting
    "StatusSummary",

    # Configuration
    "OrchestratorConfig",
]
