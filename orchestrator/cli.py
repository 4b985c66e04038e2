"""
Orchestrator - CLI.

============================================================
RESPONSIBILITY
============================================================
Command-line interface for the acquisition orchestrator.

- Provides argparse-based CLI
- Loads configuration from .env, environment and CLI
- Selects the Manager backend
- Entry point for the application

============================================================
USAGE
============================================================
python -m orchestrator.cli
python -m orchestrator.cli --backend remote --manager-url http://plc-gateway:3000
python -m orchestrator.cli --report-interval 30 --startup-delay 0 --system-report

============================================================
"""

import argparse
import asyncio
import logging
import sys
import uuid
from typing import List, Optional

from dotenv import load_dotenv

from core.exceptions import ConfigurationError
from manager.factory import BACKENDS, create_manager

from .core import LifecycleController, setup_logging
from .models import OrchestratorConfig


EXIT_CONFIGURATION_ERROR = 2


# ============================================================
# CLI ARGUMENT PARSER
# ============================================================

def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="plc-orchestrator",
        description="Event-driven orchestrator for a multi-device PLC Manager",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Backends:
  simulated - In-process simulated plant (default)
  remote    - Manager API server over HTTP

Every option defaults to its environment variable (see .env),
then to the built-in default.

Examples:
  %(prog)s                                   # Simulated plant
  %(prog)s --backend remote --manager-url http://localhost:3000
  %(prog)s --report-interval 30 --system-report
        """
    )

    # --------------------------------------------------------
    # Manager Options
    # --------------------------------------------------------
    manager_group = parser.add_argument_group("Manager Options")

    manager_group.add_argument(
        "--backend", "-b",
        type=str,
        choices=list(BACKENDS),
        help="Manager backend (env: MANAGER_BACKEND, default: simulated)",
    )

    manager_group.add_argument(
        "--manager-url",
        type=str,
        metavar="URL",
        help="Manager API base URL (env: MANAGER_URL)",
    )

    manager_group.add_argument(
        "--poll-interval",
        type=float,
        metavar="SECONDS",
        help="Remote snapshot poll interval (env: MANAGER_POLL_INTERVAL_SECONDS)",
    )

    # --------------------------------------------------------
    # Timing Options
    # --------------------------------------------------------
    timing_group = parser.add_argument_group("Timing Options")

    timing_group.add_argument(
        "--report-interval",
        type=float,
        metavar="SECONDS",
        help="Periodic status report interval (env: REPORT_INTERVAL_SECONDS, default: 120)",
    )

    timing_group.add_argument(
        "--startup-delay",
        type=float,
        metavar="SECONDS",
        help="Delay before the demonstration (env: STARTUP_DELAY_SECONDS, default: 5)",
    )

    timing_group.add_argument(
        "--init-timeout",
        type=float,
        metavar="SECONDS",
        help="Manager initialization timeout (env: INITIALIZATION_TIMEOUT_SECONDS)",
    )

    timing_group.add_argument(
        "--shutdown-timeout",
        type=float,
        metavar="SECONDS",
        help="Manager shutdown timeout (env: SHUTDOWN_TIMEOUT_SECONDS, default: 30)",
    )

    # --------------------------------------------------------
    # Demonstration Options
    # --------------------------------------------------------
    demo_group = parser.add_argument_group("Demonstration Options")

    demo_group.add_argument(
        "--system-report",
        action="store_true",
        default=None,
        help="Also generate a system report (env: INCLUDE_SYSTEM_REPORT)",
    )

    demo_group.add_argument(
        "--history-limit",
        type=int,
        metavar="N",
        help="Historical records to fetch (env: HISTORY_LIMIT, default: 10)",
    )

    demo_group.add_argument(
        "--alarm-limit",
        type=int,
        metavar="N",
        help="Alarms to fetch (env: ALARM_LIMIT, default: 5)",
    )

    # --------------------------------------------------------
    # Logging Options
    # --------------------------------------------------------
    logging_group = parser.add_argument_group("Logging Options")

    logging_group.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level (env: LOG_LEVEL, default: INFO)",
    )

    logging_group.add_argument(
        "--log-format",
        type=str,
        choices=["json", "text"],
        help="Logging format (env: LOG_FORMAT, default: text)",
    )

    logging_group.add_argument(
        "--data-log-every",
        type=int,
        metavar="N",
        help="Log one in N device data events, 0 to disable (env: DATA_EVENT_LOG_EVERY)",
    )

    # --------------------------------------------------------
    # Version/Info
    # --------------------------------------------------------
    parser.add_argument(
        "--version", "-v",
        action="version",
        version="%(prog)s 1.0.0",
    )

    parser.add_argument(
        "--env-file",
        type=str,
        metavar="PATH",
        help="Load environment from this file instead of ./.env",
    )

    return parser


# ============================================================
# CLI CONFIGURATION BUILDER
# ============================================================

_OVERRIDES = {
    "backend": "backend",
    "manager_url": "manager_url",
    "poll_interval": "poll_interval_seconds",
    "report_interval": "report_interval_seconds",
    "startup_delay": "startup_delay_seconds",
    "init_timeout": "initialization_timeout_seconds",
    "shutdown_timeout": "shutdown_timeout_seconds",
    "system_report": "include_system_report",
    "history_limit": "history_limit",
    "alarm_limit": "alarm_limit",
    "log_level": "log_level",
    "log_format": "log_format",
    "data_log_every": "data_event_log_every",
}


def build_config(args: argparse.Namespace) -> OrchestratorConfig:
    """
    Build orchestrator configuration.

    Environment values are the base; CLI arguments that were given
    override them.

    Args:
        args: Parsed arguments

    Returns:
        OrchestratorConfig instance
    """
    config = OrchestratorConfig.from_env()
    for arg_name, field_name in _OVERRIDES.items():
        value = getattr(args, arg_name, None)
        if value is not None:
            setattr(config, field_name, value)
    return config


def validate_config(config: OrchestratorConfig) -> List[str]:
    """Validate configuration, return list of errors."""
    return config.validate()


# ============================================================
# MAIN ENTRY POINT
# ============================================================

async def async_main(config: OrchestratorConfig) -> int:
    """
    Async main entry point.

    Args:
        config: Validated configuration

    Returns:
        Exit code
    """
    manager = create_manager(config)
    controller = LifecycleController(manager=manager, config=config)

    try:
        return await controller.run()
    except Exception as e:
        logging.error(f"Fatal error: {e}", exc_info=True)
        await controller.shutdown(reason=f"Fatal error: {e}")
        return 1


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main CLI entry point.

    Args:
        argv: Command line arguments (default: sys.argv[1:])

    Returns:
        Exit code
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    load_dotenv(dotenv_path=args.env_file)

    try:
        config = build_config(args)
    except ValueError as e:
        print(f"Error: invalid environment value: {e}", file=sys.stderr)
        return EXIT_CONFIGURATION_ERROR

    errors = validate_config(config)
    if errors:
        for error in errors:
            print(f"Error: {error}", file=sys.stderr)
        return EXIT_CONFIGURATION_ERROR

    setup_logging(
        level=config.log_level,
        log_format=config.log_format,
        correlation_id=f"run_{uuid.uuid4().hex[:8]}",
    )

    # Print startup banner
    print_banner(config)

    try:
        return asyncio.run(async_main(config))
    except ConfigurationError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return EXIT_CONFIGURATION_ERROR
    except KeyboardInterrupt:
        logging.info("Interrupted by user")
        return 130


def print_banner(config: OrchestratorConfig) -> None:
    """Print startup banner."""
    print()
    print("=" * 60)
    print("  MULTI-DEVICE ACQUISITION ORCHESTRATOR")
    print("  Dynamic device management, engineering units, logging")
    print("=" * 60)
    print(f"  Backend:         {config.backend}")
    if config.backend == "remote":
        print(f"  Manager URL:     {config.manager_url}")
    print(f"  Report Interval: {config.report_interval_seconds}s")
    print(f"  Startup Delay:   {config.startup_delay_seconds}s")
    print(f"  Log Level:       {config.log_level}")
    print("=" * 60)
    print()


# ============================================================
# MODULE EXECUTION
# ============================================================

if __name__ == "__main__":
    sys.exit(main())
