"""
Orchestrator - Core.

============================================================
RESPONSIBILITY
============================================================
Lifecycle controller - drives the Manager from startup to exit.

- Single entrypoint for the application
- Controls startup, steady state and shutdown
- Enforces correct execution order
- Handles signals (SIGINT, SIGTERM) and unhandled loop faults
- Owns the orchestrator state machine

============================================================
EXECUTION ORDER
============================================================
1. Subscribe handlers, attach router to the Manager
2. Initialize the Manager (bounded)
3. Wait the startup delay
4. Run the demonstration once
5. Start periodic reporting
6. Idle until a shutdown trigger
7. Detach router, stop reporter, shut the Manager down (bounded)

============================================================
ARCHITECTURAL POSITION
============================================================
- The controller has NO device logic
- It does NOT poll devices or compute data quality
- It is the ONLY caller of manager.shutdown()
- It never exits the process; run() returns the exit code

============================================================
"""

import asyncio
import json
import logging
import signal
import sys
from typing import Any, Dict, Optional

from core.clock import ClockFactory, ClockProtocol
from core.exceptions import (
    ConfigurationError,
    OrchestrationError,
    ShutdownError,
    StartupError,
)
from core.state_manager import OrchestratorState, StateManager
from manager.interfaces import ManagerFacade

from .demonstration import DemonstrationRunner
from .events import EventRouter
from .handlers import ManagerEventHandlers
from .models import DemonstrationReport, OrchestratorConfig
from .reporter import PeriodicReporter, SleepFunction


logger = logging.getLogger(__name__)


# ============================================================
# LOGGING SETUP
# ============================================================

def setup_logging(
    level: str = "INFO",
    log_format: str = "text",
    correlation_id: Optional[str] = None,
) -> logging.Logger:
    """
    Set up process-wide logging.

    Args:
        level: Log level
        log_format: Output format (json or text)
        correlation_id: Correlation ID stamped on every record

    Returns:
        Configured logger
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    if log_format == "json":
        formatter = logging.Formatter(
            json.dumps({
                "timestamp": "%(asctime)s",
                "level": "%(levelname)s",
                "logger": "%(name)s",
                "message": "%(message)s",
                "correlation_id": correlation_id or "",
            })
        )
    else:
        prefix = f"{correlation_id} | " if correlation_id else ""
        formatter = logging.Formatter(
            f"%(asctime)s | %(levelname)-8s | %(name)s | {prefix}%(message)s"
        )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers = [handler]

    # Per-request access lines from the HTTP client are noise here
    logging.getLogger("aiohttp").setLevel(max(log_level, logging.WARNING))

    return logging.getLogger("orchestrator")


# ============================================================
# LIFECYCLE CONTROLLER
# ============================================================

class LifecycleController:
    """
    Orchestrator lifecycle controller.

    Every state change goes through one StateManager owned by this
    instance.
    """

    def __init__(
        self,
        manager: ManagerFacade,
        config: Optional[OrchestratorConfig] = None,
        router: Optional[EventRouter] = None,
        runner: Optional[DemonstrationRunner] = None,
        reporter: Optional[PeriodicReporter] = None,
        clock: Optional[ClockProtocol] = None,
        sleep: SleepFunction = asyncio.sleep,
    ):
        """
        Initialize controller.

        Args:
            manager: Manager to drive
            config: Orchestrator configuration
            router: Event router (default: new EventRouter)
            runner: Demonstration runner
            reporter: Periodic reporter
            clock: Time source shared with runner and reporter
            sleep: Sleep function for the startup delay and reporter
        """
        self._config = config or OrchestratorConfig()

        errors = self._config.validate()
        if errors:
            raise ConfigurationError(
                message=f"Invalid configuration: {', '.join(errors)}",
            )

        clock = clock or ClockFactory.get_clock()

        self._manager = manager
        self._sleep = sleep
        self._state_manager = StateManager(initial_state=OrchestratorState.UNINITIALIZED)
        self._router = router or EventRouter()
        self._runner = runner or DemonstrationRunner(manager, self._config, clock=clock)
        self._reporter = reporter or PeriodicReporter(manager, clock=clock, sleep=sleep)
        self._handlers = ManagerEventHandlers(
            manager,
            data_event_log_every=self._config.data_event_log_every,
        )

        # Runtime state
        self._exit_code: Optional[int] = None
        self._initialize_called = False
        self._manager_shutdown_called = False
        self._startup_task: Optional[asyncio.Task] = None
        self._shutdown_task: Optional[asyncio.Task] = None
        self._stopped = asyncio.Event()
        self._demonstration_report: Optional[DemonstrationReport] = None

        # Triggers
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._original_handlers: Dict[int, Any] = {}
        self._signals_installed = False
        self._previous_exception_handler: Any = None
        self._exception_handler_installed = False

    # --------------------------------------------------------
    # Properties
    # --------------------------------------------------------

    @property
    def config(self) -> OrchestratorConfig:
        return self._config

    @property
    def state(self) -> OrchestratorState:
        """Get current orchestrator state."""
        return self._state_manager.state

    @property
    def state_manager(self) -> StateManager:
        return self._state_manager

    @property
    def exit_code(self) -> Optional[int]:
        """Process exit code once stopped, None before."""
        return self._exit_code

    @property
    def router(self) -> EventRouter:
        return self._router

    @property
    def reporter(self) -> PeriodicReporter:
        return self._reporter

    @property
    def demonstration_report(self) -> Optional[DemonstrationReport]:
        return self._demonstration_report

    # --------------------------------------------------------
    # Startup
    # --------------------------------------------------------

    async def start(self) -> None:
        """
        Run the startup sequence.

        Returns once periodic reporting has started, or early if a
        shutdown was requested meanwhile.

        Raises:
            StartupError: Manager initialization failed, returned
                False or timed out. The controller is then STOPPED
                with exit code 1.
            asyncio.CancelledError: A shutdown began before startup
                completed.
        """
        if self.state != OrchestratorState.UNINITIALIZED:
            raise OrchestrationError(
                f"Cannot start from state {self.state.value}",
            )

        # shutdown() cancels the task running the startup sequence
        owns_task = self._startup_task is None
        if owns_task:
            self._startup_task = asyncio.current_task()
        try:
            await self._run_startup()
        finally:
            if owns_task:
                self._startup_task = None

    async def _run_startup(self) -> None:
        logger.info("=== ORCHESTRATOR STARTUP SEQUENCE ===")

        self._state_manager.transition_to(
            OrchestratorState.INITIALIZING,
            reason="Startup requested",
            triggered_by="controller",
        )

        self._handlers.register(self._router)
        self._router.attach(self._manager)

        timeout = self._config.initialization_timeout_seconds
        self._initialize_called = True
        try:
            initialized = await asyncio.wait_for(self._manager.initialize(), timeout=timeout)
        except asyncio.TimeoutError as e:
            raise self._fail_startup(f"Manager initialization timed out after {timeout}s", e)
        except Exception as e:
            raise self._fail_startup(f"Manager initialization failed: {e}", e)

        if not initialized:
            raise self._fail_startup("Manager initialization returned False")

        if self.state != OrchestratorState.INITIALIZING:
            return

        self._state_manager.transition_to(
            OrchestratorState.RUNNING,
            reason="Manager initialized",
            triggered_by="controller",
        )

        delay = self._config.startup_delay_seconds
        if delay > 0:
            logger.info(f"Waiting {delay}s for device connections to settle")
            await self._sleep(delay)

        if self.state != OrchestratorState.RUNNING:
            return

        try:
            self._demonstration_report = await self._runner.run()
        except Exception as e:
            logger.error(f"Demonstration aborted: {e}", exc_info=True)

        if self.state != OrchestratorState.RUNNING:
            return

        self._reporter.start(self._config.report_interval_seconds)

        logger.info("=== ORCHESTRATOR STARTUP COMPLETE ===")
        logger.info("System running. Press Ctrl+C to stop.")

    def _fail_startup(
        self,
        message: str,
        cause: Optional[BaseException] = None,
    ) -> StartupError:
        error = StartupError(message, stage="initialize", cause=cause)
        logger.critical(error.to_log_format())

        self._router.detach()
        if self.state == OrchestratorState.INITIALIZING:
            self._state_manager.transition_to(
                OrchestratorState.STOPPED,
                reason=message,
                triggered_by="controller",
            )
            self._exit_code = 1
            self._stopped.set()
        return error

    # --------------------------------------------------------
    # Shutdown
    # --------------------------------------------------------

    async def shutdown(self, reason: str = "Shutdown requested") -> None:
        """
        Run the shutdown sequence. No-op once shutdown has begun.
        """
        if self.state.is_stopping:
            logger.debug(f"Shutdown already in progress ({self.state.value}); ignoring: {reason}")
            return

        self._state_manager.transition_to(
            OrchestratorState.SHUTTING_DOWN,
            reason=reason,
            triggered_by="controller",
        )
        logger.info(f"=== ORCHESTRATOR SHUTDOWN SEQUENCE === | reason={reason}")

        self._router.detach()
        await self._cancel_startup()

        drained = await self._reporter.stop(timeout=self._config.report_drain_timeout_seconds)
        if not drained:
            logger.warning("Periodic reporter did not drain cleanly")

        await self._shutdown_manager()

        self._state_manager.transition_to(
            OrchestratorState.STOPPED,
            reason=reason,
            triggered_by="controller",
        )
        if self._exit_code is None:
            self._exit_code = 0
        self._stopped.set()

        logger.info("=== ORCHESTRATOR SHUTDOWN COMPLETE ===")

    def request_shutdown(self, reason: str = "Shutdown requested") -> None:
        """Schedule shutdown from a synchronous context."""
        if self.state.is_stopping or self._shutdown_task is not None:
            return
        self._shutdown_task = asyncio.get_running_loop().create_task(self.shutdown(reason))

    async def _cancel_startup(self) -> None:
        task = self._startup_task
        if task is None or task.done() or task is asyncio.current_task():
            return

        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        except Exception as e:
            logger.warning(f"Startup ended with error during shutdown: {e}")

    async def _shutdown_manager(self) -> None:
        if not self._initialize_called:
            logger.info("Manager was never initialized; skipping Manager shutdown")
            return
        if self._manager_shutdown_called:
            return
        self._manager_shutdown_called = True

        timeout = self._config.shutdown_timeout_seconds
        try:
            result = await asyncio.wait_for(self._manager.shutdown(), timeout=timeout)
        except asyncio.TimeoutError:
            error = ShutdownError("Manager shutdown timed out", timeout_seconds=timeout)
            logger.error(error.to_log_format())
            return
        except Exception as e:
            error = ShutdownError(f"Manager shutdown failed: {e}", cause=e)
            logger.error(error.to_log_format(), exc_info=True)
            return

        if result is False:
            logger.warning(ShutdownError("Manager shutdown reported failure").to_log_format())
        else:
            logger.info("Manager shutdown complete")

    # --------------------------------------------------------
    # Main entry
    # --------------------------------------------------------

    async def run(self, install_signal_handlers: bool = True) -> int:
        """
        Start, idle until stopped, and return the process exit code.

        Returns:
            0 after a clean shutdown, 1 after a startup failure
        """
        self._loop = asyncio.get_running_loop()
        if install_signal_handlers:
            self._install_signal_handlers()
        self._install_exception_handler()

        try:
            self._startup_task = asyncio.create_task(self.start())
            await asyncio.wait({self._startup_task})

            task = self._startup_task
            if not task.cancelled() and task.exception() is not None:
                error = task.exception()
                if not isinstance(error, StartupError):
                    logger.error(f"Startup error: {error}", exc_info=error)
                    self._exit_code = 1
                    await self.shutdown(reason=f"Startup error: {error}")

            await self._stopped.wait()
            if self._shutdown_task is not None:
                await self._shutdown_task

            return self._exit_code if self._exit_code is not None else 0

        finally:
            self._restore_exception_handler()
            self._restore_signal_handlers()

    # --------------------------------------------------------
    # Signal Handlers
    # --------------------------------------------------------

    def _install_signal_handlers(self) -> None:
        """Install signal handlers for graceful shutdown."""
        if sys.platform == "win32":
            # No add_signal_handler on the Windows event loop
            for sig in (signal.SIGINT, signal.SIGBREAK):
                self._original_handlers[sig] = signal.signal(sig, self._signal_handler)
        else:
            loop = asyncio.get_running_loop()
            for sig in (signal.SIGTERM, signal.SIGINT):
                self._original_handlers[sig] = signal.getsignal(sig)
                loop.add_signal_handler(sig, self._on_signal, sig)
        self._signals_installed = True

    def _restore_signal_handlers(self) -> None:
        """Restore original signal handlers."""
        if not self._signals_installed:
            return

        if sys.platform == "win32":
            for sig, handler in self._original_handlers.items():
                signal.signal(sig, handler)
        else:
            loop = asyncio.get_running_loop()
            for sig, handler in self._original_handlers.items():
                try:
                    loop.remove_signal_handler(sig)
                    if handler is not None:
                        signal.signal(sig, handler)
                except (ValueError, RuntimeError) as e:
                    logger.debug(f"Could not remove handler for {sig}: {e}")
        self._original_handlers.clear()
        self._signals_installed = False

    def _signal_handler(self, signum: int, frame: Any) -> None:
        """Synchronous signal handler (Windows)."""
        if self._loop is not None:
            self._loop.call_soon_threadsafe(self._on_signal, signal.Signals(signum))

    def _on_signal(self, sig: signal.Signals) -> None:
        logger.info(f"Received signal {sig.name}")
        self.request_shutdown(reason=f"Received {sig.name}")

    # --------------------------------------------------------
    # Unhandled faults
    # --------------------------------------------------------

    def _install_exception_handler(self) -> None:
        loop = asyncio.get_running_loop()
        self._previous_exception_handler = loop.get_exception_handler()
        loop.set_exception_handler(self._handle_loop_exception)
        self._exception_handler_installed = True

    def _restore_exception_handler(self) -> None:
        if not self._exception_handler_installed:
            return
        asyncio.get_running_loop().set_exception_handler(self._previous_exception_handler)
        self._exception_handler_installed = False

    def _handle_loop_exception(
        self,
        loop: asyncio.AbstractEventLoop,
        context: Dict[str, Any],
    ) -> None:
        error = context.get("exception")
        message = context.get("message", "Unhandled exception in event loop")
        logger.error(f"Unhandled fault: {message}", exc_info=error)
        self.request_shutdown(reason=f"Unhandled fault: {error or message}")

    # --------------------------------------------------------
    # Status
    # --------------------------------------------------------

    def get_status(self) -> Dict[str, Any]:
        """Get orchestrator status."""
        report = self._demonstration_report
        return {
            "state": self.state.value,
            "exit_code": self._exit_code,
            "router": self._router.statistics.to_dict(),
            "reporter": {
                "running": self._reporter.is_running,
                "firings": self._reporter.firing_count,
                "errors": self._reporter.error_count,
                "skipped": self._reporter.skipped_firings,
            },
            "demonstration": report.to_dict() if report else None,
            "transitions": [t.to_dict() for t in self._state_manager.get_history()],
        }


# ============================================================
# EXPORTS
# ============================================================

__all__ = [
    "LifecycleController",
    "setup_logging",
]
