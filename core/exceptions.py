"""
Core Module - Exceptions.

============================================================
RESPONSIBILITY
============================================================
Defines all custom exceptions for the orchestrator.

- Provides clear exception hierarchy
- Separates fatal startup failures from absorbed faults
- Includes context for debugging

============================================================
EXCEPTION HIERARCHY
============================================================
OrchestratorException (base)
├── ConfigurationError
├── OrchestrationError
│   ├── StartupError
│   ├── ShutdownError
│   └── StateTransitionError
└── ManagerError
    ├── ManagerUnavailableError
    └── ManagerResponseError

============================================================
"""

from enum import Enum
from datetime import datetime, timezone
from typing import Any, Dict, Optional


# ============================================================
# SEVERITY LEVELS
# ============================================================

class Severity(Enum):
    """Exception severity levels for alerting."""

    LOW = "low"
    """Minor issue, informational."""

    MEDIUM = "medium"
    """Moderate issue, requires attention."""

    HIGH = "high"
    """Serious issue, may impact operations."""

    CRITICAL = "critical"
    """Critical issue, process cannot continue."""


# ============================================================
# BASE EXCEPTION
# ============================================================

class OrchestratorException(Exception):
    """
    Base exception for all orchestrator errors.

    All exceptions carry:
    - severity: for alerting
    - context: for debugging
    - cause: the underlying error, if any
    - timestamp: when the error occurred
    """

    default_severity: Severity = Severity.MEDIUM

    def __init__(
        self,
        message: str,
        severity: Optional[Severity] = None,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message)

        self.message = message
        self.severity = severity or self.default_severity
        self.context = context or {}
        self.cause = cause
        self.timestamp = datetime.now(timezone.utc)

        if cause:
            self.context["cause_type"] = type(cause).__name__
            self.context["cause_message"] = str(cause)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize exception for logging."""
        return {
            "type": type(self).__name__,
            "message": self.message,
            "severity": self.severity.value,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "cause": str(self.cause) if self.cause else None,
        }

    def to_log_format(self) -> str:
        """Format exception for structured logging."""
        line = f"[{self.severity.value.upper()}] {type(self).__name__}: {self.message}"
        ctx_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
        if ctx_str:
            line += f" | {ctx_str}"
        return line


# ============================================================
# CONFIGURATION ERRORS
# ============================================================

class ConfigurationError(OrchestratorException):
    """Error in configuration."""

    default_severity = Severity.CRITICAL

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        actual_value: Optional[Any] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})

        if config_key:
            context["config_key"] = config_key
        if actual_value is not None:
            context["actual_value"] = str(actual_value)[:100]

        super().__init__(message, context=context, **kwargs)


# ============================================================
# ORCHESTRATION ERRORS
# ============================================================

class OrchestrationError(OrchestratorException):
    """Base for lifecycle coordination errors."""

    default_severity = Severity.HIGH


class StartupError(OrchestrationError):
    """Manager initialization was rejected; the process must exit non-zero."""

    default_severity = Severity.CRITICAL

    def __init__(
        self,
        message: str,
        stage: Optional[str] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})

        if stage:
            context["stage"] = stage

        super().__init__(message, context=context, **kwargs)


class ShutdownError(OrchestrationError):
    """Manager shutdown failed or timed out. Logged, never blocks exit."""

    default_severity = Severity.MEDIUM

    def __init__(
        self,
        message: str,
        timeout_seconds: Optional[float] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})

        if timeout_seconds is not None:
            context["timeout_seconds"] = timeout_seconds

        super().__init__(message, context=context, **kwargs)


class StateTransitionError(OrchestrationError):
    """Invalid orchestrator state transition."""

    default_severity = Severity.CRITICAL

    def __init__(
        self,
        message: str,
        from_state: Optional[str] = None,
        to_state: Optional[str] = None,
        reason: Optional[str] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})

        if from_state:
            context["from_state"] = from_state
        if to_state:
            context["to_state"] = to_state
        if reason:
            context["reason"] = reason

        super().__init__(message, context=context, **kwargs)


# ============================================================
# MANAGER ERRORS
# ============================================================

class ManagerError(OrchestratorException):
    """Error raised by a Manager backend."""

    default_severity = Severity.MEDIUM

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})

        if operation:
            context["operation"] = operation

        super().__init__(message, context=context, **kwargs)


class ManagerUnavailableError(ManagerError):
    """Manager could not be reached."""

    default_severity = Severity.HIGH


class ManagerResponseError(ManagerError):
    """Manager answered with an error status or a malformed payload."""

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})

        if status is not None:
            context["status"] = status

        super().__init__(message, context=context, **kwargs)


__all__ = [
    "Severity",
    "OrchestratorException",
    "ConfigurationError",
    "OrchestrationError",
    "StartupError",
    "ShutdownError",
    "StateTransitionError",
    "ManagerError",
    "ManagerUnavailableError",
    "ManagerResponseError",
]
