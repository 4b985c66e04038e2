"""
Core Module Package.

This package contains the core infrastructure components
that the orchestrator and the Manager backends depend on.

Components:
- clock: Unified time abstraction
- state_manager: Orchestrator lifecycle state machine
- exceptions: Custom exception hierarchy
"""

from .clock import ClockFactory, ClockProtocol, MockClock, SystemClock
from .exceptions import (
    ConfigurationError,
    ManagerError,
    OrchestrationError,
    OrchestratorException,
    ShutdownError,
    StartupError,
    StateTransitionError,
)
from .state_manager import OrchestratorState, StateManager, StateTransition

__all__ = [
    "ClockFactory",
    "ClockProtocol",
    "MockClock",
    "SystemClock",
    "ConfigurationError",
    "ManagerError",
    "OrchestrationError",
    "OrchestratorException",
    "ShutdownError",
    "StartupError",
    "StateTransitionError",
    "OrchestratorState",
    "StateManager",
    "StateTransition",
]
