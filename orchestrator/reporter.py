"""
Orchestrator - Periodic Reporter.

============================================================
RESPONSIBILITY
============================================================
Logs a status report at a fixed period while the orchestrator
is running.

- Firings at anchor + k * interval (k >= 1), anchored at start()
- At most one firing in flight; boundaries passed while a firing
  overran are skipped and counted
- A failing firing is logged and the schedule continues
- stop() cancels future firings and drains the in-flight one

============================================================
TIME
============================================================
Time is read from a ClockProtocol and waiting goes through an
injectable sleep function, so the schedule can run on virtual
time.

============================================================
"""

import asyncio
import logging
import math
from typing import Awaitable, Callable, Optional

from core.clock import ClockFactory, ClockProtocol
from core.exceptions import ConfigurationError, OrchestrationError
from manager.interfaces import ManagerFacade

from .formatting import format_status_summary, format_system_overview
from .models import StatusSummary


logger = logging.getLogger(__name__)


SleepFunction = Callable[[float], Awaitable[None]]


class PeriodicReporter:
    """
    Cancellable periodic status report with an overlap guard.
    """

    def __init__(
        self,
        manager: ManagerFacade,
        clock: Optional[ClockProtocol] = None,
        sleep: SleepFunction = asyncio.sleep,
    ):
        self._manager = manager
        self._clock = clock or ClockFactory.get_clock()
        self._sleep = sleep

        self._task: Optional[asyncio.Task] = None
        self._in_flight: Optional[asyncio.Task] = None
        self._interval: Optional[float] = None

        self._firing_count = 0
        self._error_count = 0
        self._skipped_firings = 0
        self._last_summary: Optional[StatusSummary] = None

    # --------------------------------------------------------
    # Properties
    # --------------------------------------------------------

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def is_firing(self) -> bool:
        return self._in_flight is not None and not self._in_flight.done()

    @property
    def interval(self) -> Optional[float]:
        return self._interval

    @property
    def firing_count(self) -> int:
        return self._firing_count

    @property
    def error_count(self) -> int:
        return self._error_count

    @property
    def skipped_firings(self) -> int:
        return self._skipped_firings

    @property
    def last_summary(self) -> Optional[StatusSummary]:
        return self._last_summary

    # --------------------------------------------------------
    # Lifecycle
    # --------------------------------------------------------

    def start(self, interval: float) -> None:
        """
        Schedule firings every ``interval`` seconds from now.

        Raises:
            OrchestrationError: Already running
            ConfigurationError: Non-positive interval
        """
        if self.is_running:
            raise OrchestrationError("Periodic reporter is already running")
        if interval <= 0:
            raise ConfigurationError(
                "Report interval must be positive",
                config_key="report_interval_seconds",
                actual_value=interval,
            )

        self._interval = interval
        anchor = self._clock.timestamp()
        self._task = asyncio.create_task(self._run_loop(anchor, interval))
        logger.info(f"Periodic reporting started | interval={interval}s")

    async def stop(self, timeout: float = 10.0) -> bool:
        """
        Cancel future firings and wait for the in-flight one.

        The in-flight firing is cancelled if it does not finish
        within ``timeout``.

        Returns:
            False if the in-flight firing had to be cancelled
        """
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
            except Exception as e:
                logger.error(f"Periodic report schedule failed: {e}", exc_info=True)

        drained = True
        in_flight = self._in_flight
        if in_flight is not None and not in_flight.done():
            try:
                await asyncio.wait_for(in_flight, timeout=timeout)
            except asyncio.TimeoutError:
                drained = False
                logger.warning(f"In-flight status report cancelled after {timeout}s")

        if task is not None:
            logger.info(
                f"Periodic reporting stopped | firings={self._firing_count} "
                f"errors={self._error_count} skipped={self._skipped_firings}"
            )
        return drained

    # --------------------------------------------------------
    # Schedule
    # --------------------------------------------------------

    async def _run_loop(self, anchor: float, interval: float) -> None:
        k = 1
        while True:
            delay = anchor + k * interval - self._clock.timestamp()
            if delay > 0:
                await self._sleep(delay)

            self._in_flight = asyncio.create_task(self._fire())
            # Shielded: cancelling the schedule leaves the firing to stop()
            await asyncio.shield(self._in_flight)

            elapsed = self._clock.timestamp() - anchor
            next_k = max(k + 1, math.ceil(elapsed / interval))
            skipped = next_k - (k + 1)
            if skipped > 0:
                self._skipped_firings += skipped
                logger.warning(f"Status report overran its period; skipped {skipped} firing(s)")
            k = next_k

    async def _fire(self) -> Optional[StatusSummary]:
        self._firing_count += 1
        try:
            summary = await self.collect()
        except Exception as e:
            self._error_count += 1
            logger.error(f"Periodic status report failed: {e}", exc_info=True)
            return None

        self._last_summary = summary
        return summary

    async def collect(self) -> StatusSummary:
        """Query the Manager, log the report and return its summary."""
        status = self._manager.get_system_status()
        all_data = self._manager.get_all_data()

        connected = [s for s in all_data.values() if s.connected]
        summary = StatusSummary(
            generated_at=self._clock.now(),
            connected_devices=len(connected),
            total_devices=len(all_data),
            live_points=sum(s.tag_count for s in connected),
            points_logged=status.data.points_logged,
            alarms_generated=status.data.alarms_generated,
        )

        logger.info("-" * 40)
        logger.info("Periodic Status Report")
        for line in format_system_overview(status):
            logger.info(line)
        for line in format_status_summary(summary):
            logger.info(line)
        logger.info("-" * 40)
        return summary


__all__ = ["SleepFunction", "PeriodicReporter"]
