"""
Orchestrator - Demonstration Runner.

============================================================
RESPONSIBILITY
============================================================
Runs the fixed sequence of read/query operations against the
Manager once, after startup.

- Execute steps in order
- Never short-circuit: every step runs regardless of earlier failures
- Track timing per step
- Collect results into a DemonstrationReport

============================================================
STEPS
============================================================
1. system_status          get_system_status()
2. device_statuses        get_device_statuses()
3. current_data           get_all_data()
4. configuration_example  no Manager call
5. historical_data        get_historical_data(...)
6. alarm_history          get_alarm_history(...)
7. system_report          generate_system_report()  (optional)

============================================================
"""

import asyncio
import logging
from typing import Awaitable, Callable, Dict, List, Optional

from core.clock import ClockFactory, ClockProtocol
from core.exceptions import OrchestratorException
from manager.interfaces import ManagerFacade
from manager.models import AlarmFilter, DeviceConfig, HistoricalFilter

from .formatting import (
    format_alarms,
    format_current_data,
    format_device_config,
    format_device_statuses,
    format_historical,
    format_system_report,
    format_system_status,
)
from .models import DemonstrationReport, DemonstrationStep, OrchestratorConfig, StepResult


logger = logging.getLogger(__name__)


# ============================================================
# STEP HANDLER TYPE
# ============================================================

StepHandler = Callable[[], Awaitable[List[str]]]


DEMO_DEVICE = DeviceConfig(
    name="DEMO_PLC",
    address="192.168.1.100",
    port=102,
    rack=0,
    slot=2,
    description="Demo PLC for testing",
    location="Demo Area",
    department="Testing",
    system_type="DEMO",
    priority=9,
    auto_connect=False,
)


def _error_message(error: BaseException) -> str:
    if isinstance(error, OrchestratorException):
        return error.message
    return str(error) or type(error).__name__


# ============================================================
# STEP EXECUTOR
# ============================================================

class StepExecutor:
    """
    Executes a single step with timing and error handling.

    A raising or timed-out step becomes a failed StepResult whose
    only line is ``"<failure_label>: <message>"``.
    """

    def __init__(
        self,
        step: DemonstrationStep,
        handler: StepHandler,
        timeout_seconds: float = 30.0,
        failure_label: Optional[str] = None,
        clock: Optional[ClockProtocol] = None,
    ):
        self.step = step
        self.handler = handler
        self.timeout_seconds = timeout_seconds
        self.failure_label = failure_label or f"{step.step_id} failed"
        self._clock = clock or ClockFactory.get_clock()

    async def execute(self) -> StepResult:
        started_at = self._clock.now()

        logger.info(f"Step [{self.step.order}] START: {self.step.description}")

        try:
            lines = await asyncio.wait_for(self.handler(), timeout=self.timeout_seconds)

        except asyncio.TimeoutError:
            message = f"timed out after {self.timeout_seconds}s"
            logger.error(f"Step [{self.step.order}] TIMEOUT: {self.step.description} (>{self.timeout_seconds}s)")
            return self._failure(started_at, message, "TimeoutError")

        except Exception as e:
            message = _error_message(e)
            logger.error(
                f"Step [{self.step.order}] FAILED: {self.step.description} "
                f"- {type(e).__name__}: {message}",
                exc_info=not isinstance(e, OrchestratorException),
            )
            return self._failure(started_at, message, type(e).__name__)

        completed_at = self._clock.now()
        duration = (completed_at - started_at).total_seconds()
        logger.info(f"Step [{self.step.order}] COMPLETE: {self.step.description} ({duration:.2f}s)")

        return StepResult(
            step=self.step,
            success=True,
            started_at=started_at,
            completed_at=completed_at,
            duration_seconds=duration,
            lines=list(lines or []),
        )

    def _failure(self, started_at, message: str, error_type: str) -> StepResult:
        completed_at = self._clock.now()
        return StepResult(
            step=self.step,
            success=False,
            started_at=started_at,
            completed_at=completed_at,
            duration_seconds=(completed_at - started_at).total_seconds(),
            lines=[f"{self.failure_label}: {message}"],
            error=message,
            error_type=error_type,
        )


# ============================================================
# DEMONSTRATION RUNNER
# ============================================================

class DemonstrationRunner:
    """
    Runs every demonstration step once and reports the results.
    """

    FAILURE_LABELS: Dict[DemonstrationStep, str] = {
        DemonstrationStep.HISTORICAL_DATA: "historical data unavailable",
        DemonstrationStep.ALARM_HISTORY: "alarm history unavailable",
        DemonstrationStep.SYSTEM_REPORT: "system report unavailable",
    }

    def __init__(
        self,
        manager: ManagerFacade,
        config: Optional[OrchestratorConfig] = None,
        clock: Optional[ClockProtocol] = None,
    ):
        self._manager = manager
        self._config = config or OrchestratorConfig()
        self._clock = clock or ClockFactory.get_clock()
        self._last_report: Optional[DemonstrationReport] = None

    @property
    def last_report(self) -> Optional[DemonstrationReport]:
        return self._last_report

    def _handlers(self) -> Dict[DemonstrationStep, StepHandler]:
        return {
            DemonstrationStep.SYSTEM_STATUS: self._system_status,
            DemonstrationStep.DEVICE_STATUSES: self._device_statuses,
            DemonstrationStep.CURRENT_DATA: self._current_data,
            DemonstrationStep.CONFIGURATION_EXAMPLE: self._configuration_example,
            DemonstrationStep.HISTORICAL_DATA: self._historical_data,
            DemonstrationStep.ALARM_HISTORY: self._alarm_history,
            DemonstrationStep.SYSTEM_REPORT: self._system_report,
        }

    async def run(self) -> DemonstrationReport:
        """Run all steps in order. Never raises for a step failure."""
        report = DemonstrationReport(started_at=self._clock.now())
        handlers = self._handlers()

        logger.info("Demonstrating Manager operations...")

        steps = DemonstrationStep.get_ordered_steps(
            include_system_report=self._config.include_system_report,
        )
        for step in steps:
            executor = StepExecutor(
                step=step,
                handler=handlers[step],
                timeout_seconds=self._config.step_timeout_seconds,
                failure_label=self.FAILURE_LABELS.get(step),
                clock=self._clock,
            )
            result = await executor.execute()
            report.add_step_result(result)

            logger.info(f"{step.order}. {step.description}:")
            for line in result.lines:
                logger.info(line)

        report.completed_at = self._clock.now()
        self._last_report = report

        if report.success:
            logger.info(f"Demonstration complete | {report.steps_succeeded}/{len(report.results)} steps")
        else:
            logger.warning(
                f"Demonstration complete with failures | "
                f"{report.steps_succeeded}/{len(report.results)} steps | "
                f"failed={', '.join(s.step_id for s in report.failed_steps)}"
            )
        return report

    # --------------------------------------------------------
    # Steps
    # --------------------------------------------------------

    async def _system_status(self) -> List[str]:
        return format_system_status(self._manager.get_system_status())

    async def _device_statuses(self) -> List[str]:
        return format_device_statuses(await self._manager.get_device_statuses())

    async def _current_data(self) -> List[str]:
        return format_current_data(
            self._manager.get_all_data(),
            sample_tag_count=self._config.sample_tag_count,
        )

    async def _configuration_example(self) -> List[str]:
        return format_device_config(DEMO_DEVICE)

    async def _historical_data(self) -> List[str]:
        start_time, end_time = self._clock.window(self._config.history_window_seconds)
        records = await self._manager.get_historical_data(
            HistoricalFilter(),
            start_time,
            end_time,
            self._config.history_limit,
        )
        return format_historical(records)

    async def _alarm_history(self) -> List[str]:
        alarms = await self._manager.get_alarm_history(AlarmFilter(), self._config.alarm_limit)
        return format_alarms(alarms)

    async def _system_report(self) -> List[str]:
        report = await self._manager.generate_system_report("summary", "24h")
        return format_system_report(report)


__all__ = [
    "DEMO_DEVICE",
    "StepHandler",
    "StepExecutor",
    "DemonstrationRunner",
]
