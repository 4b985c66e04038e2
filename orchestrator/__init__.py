"""
Orchestrator Package - Lifecycle Coordination Layer.

============================================================
PACKAGE OVERVIEW
============================================================
Drives an external multi-device Manager from startup to exit.
It is the SINGLE ENTRYPOINT that controls startup, shutdown and
execution flow.

============================================================
CORE PRINCIPLES
============================================================
1. The orchestrator has NO device logic
2. It only consumes the Manager through ManagerFacade
3. A failing step, handler or report never stops the process
4. Only a rejected initialization exits non-zero

============================================================
ARCHITECTURE
============================================================

    +-----------------------------------------------------+
    |                LifecycleController                  |
    |-----------------------------------------------------|
    |  EventRouter         |  Manager events -> handlers  |
    |  DemonstrationRunner |  Startup query sequence      |
    |  PeriodicReporter    |  Timed status report         |
    |  CLI                 |  Command-line interface      |
    +-----------------------------------------------------+

============================================================
STATES
============================================================
UNINITIALIZED -> INITIALIZING -> RUNNING -> SHUTTING_DOWN -> STOPPED

============================================================
"""

from .models import (
    DemonstrationReport,
    DemonstrationStep,
    EventKind,
    ManagerEvent,
    OrchestratorConfig,
    StatusSummary,
    StepResult,
)
from .events import EventHandler, EventRouter, RouterStatistics
from .handlers import ManagerEventHandlers
from .demonstration import DEMO_DEVICE, DemonstrationRunner, StepExecutor
from .reporter import PeriodicReporter
from .core import LifecycleController, setup_logging
from .cli import build_config, create_parser, main, print_banner


__all__ = [
    # Models
    "EventKind",
    "ManagerEvent",
    "DemonstrationStep",
    "StepResult",
    "DemonstrationReport",
    "StatusSummary",
    "OrchestratorConfig",

    # Events
    "EventHandler",
    "EventRouter",
    "RouterStatistics",
    "ManagerEventHandlers",

    # Demonstration
    "DEMO_DEVICE",
    "DemonstrationRunner",
    "StepExecutor",

    # Reporting
    "PeriodicReporter",

    # Core
    "LifecycleController",
    "setup_logging",

    # CLI
    "create_parser",
    "build_config",
    "print_banner",
    "main",
]
