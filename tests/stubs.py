"""
Shared test doubles.

- StubManager: in-memory ManagerFacade with per-method failure injection
- VirtualTimer: virtual sleep driven by a MockClock
"""

import asyncio
import heapq
from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Mapping, Optional, Tuple

from core.clock import MockClock
from manager.emitter import EventEmitter
from manager.models import (
    AlarmFilter,
    AlarmRecord,
    ConnectionStats,
    DataCounters,
    DeviceCounts,
    DeviceSnapshot,
    DeviceStatus,
    HistoricalFilter,
    HistoricalRecord,
    SystemInfo,
    SystemReport,
    SystemStatus,
    TagValue,
)


BASE_TIME = datetime(2025, 1, 1, tzinfo=timezone.utc)


def sample_status() -> SystemStatus:
    return SystemStatus(
        devices=DeviceCounts(connected=2, total=3),
        data=DataCounters(points_logged=12345, alarms_generated=4),
        system=SystemInfo(uptime_seconds=3725),
        connections=ConnectionStats(success_rate_percent=66.666),
    )


def sample_data() -> Dict[str, DeviceSnapshot]:
    return {
        "PLC_A": DeviceSnapshot(
            connected=True,
            data={
                "Flow": TagValue("420.5", "m3/h", 420.5),
                "Level": TagValue("55.0", "%", 55.0),
                "PH": TagValue("7.21", "pH", 7.21),
                "Temp": TagValue("18.2", "degC", 18.2),
            },
        ),
        "PLC_B": DeviceSnapshot(
            connected=True,
            data={"Speed": TagValue("70.0", "%", 70.0)},
        ),
        "PLC_C": DeviceSnapshot(
            connected=False,
            data={"Stale": TagValue("1.0", "", 1.0)},
        ),
    }


def sample_device_statuses() -> List[DeviceStatus]:
    return [
        DeviceStatus("PLC_A", "10.0.0.1", 102, connected=True, active_tags=4, data_quality_percent=99.5),
        DeviceStatus("PLC_B", "10.0.0.2", 102, connected=True, active_tags=1, data_quality_percent=100.0),
        DeviceStatus("PLC_C", "10.0.0.3", 102, connected=False),
    ]


class StubManager(EventEmitter):
    """
    In-memory Manager.

    ``fail(method, error)`` makes a method raise; ``hang(method)``
    makes an async method block until cancelled. Every call is
    counted in ``calls``.
    """

    def __init__(
        self,
        initialize_result: bool = True,
        initialize_events: Optional[List[Tuple[str, Mapping[str, Any]]]] = None,
    ):
        super().__init__()
        self.initialize_result = initialize_result
        self.initialize_events = list(initialize_events or [])

        self.status = sample_status()
        self.all_data = sample_data()
        self.device_statuses = sample_device_statuses()
        self.history: List[HistoricalRecord] = []
        self.alarms: List[AlarmRecord] = []

        self.calls: Counter = Counter()
        self.history_calls: List[Tuple[HistoricalFilter, datetime, datetime, int]] = []
        self.alarm_calls: List[Tuple[AlarmFilter, int]] = []

        self._errors: Dict[str, BaseException] = {}
        self._hanging: set = set()

    def fail(self, method: str, error: BaseException) -> None:
        self._errors[method] = error

    def hang(self, method: str) -> None:
        self._hanging.add(method)

    def _enter(self, method: str) -> None:
        self.calls[method] += 1
        if method in self._errors:
            raise self._errors[method]

    async def _enter_async(self, method: str) -> None:
        self._enter(method)
        if method in self._hanging:
            await asyncio.get_running_loop().create_future()

    # Lifecycle

    async def initialize(self) -> bool:
        await self._enter_async("initialize")
        for kind, payload in self.initialize_events:
            self.emit(kind, payload)
        return self.initialize_result

    async def shutdown(self) -> bool:
        await self._enter_async("shutdown")
        return True

    # Queries

    def get_system_status(self) -> SystemStatus:
        self._enter("get_system_status")
        return self.status

    async def get_device_statuses(self) -> List[DeviceStatus]:
        await self._enter_async("get_device_statuses")
        return list(self.device_statuses)

    def get_all_data(self) -> Dict[str, DeviceSnapshot]:
        self._enter("get_all_data")
        return dict(self.all_data)

    def get_device_data(self, name: str) -> Optional[DeviceSnapshot]:
        self._enter("get_device_data")
        return self.all_data.get(name)

    async def get_historical_data(
        self,
        filter: HistoricalFilter,
        start_time: datetime,
        end_time: datetime,
        limit: int,
    ) -> List[HistoricalRecord]:
        self.history_calls.append((filter, start_time, end_time, limit))
        await self._enter_async("get_historical_data")
        return self.history[:limit]

    async def get_alarm_history(self, filter: AlarmFilter, limit: int) -> List[AlarmRecord]:
        self.alarm_calls.append((filter, limit))
        await self._enter_async("get_alarm_history")
        return self.alarms[:limit]

    async def generate_system_report(
        self,
        report_type: str = "summary",
        time_range: str = "24h",
    ) -> SystemReport:
        await self._enter_async("generate_system_report")
        return SystemReport(
            report_type=report_type,
            time_range=time_range,
            generated_at=BASE_TIME,
            overview=self.status,
        )


class VirtualTimer:
    """
    Virtual sleep for code that takes an injectable sleep function.

    ``sleep`` parks the caller until ``advance`` moves the clock
    past its deadline. Deadlines resolve in order, each with the
    clock set to the deadline.
    """

    def __init__(self, clock: Optional[MockClock] = None):
        self.clock = clock or MockClock(BASE_TIME)
        self._waiters: List[Tuple[datetime, int, asyncio.Future]] = []
        self._seq = 0

    @property
    def pending(self) -> int:
        return len([w for w in self._waiters if not w[2].done()])

    async def sleep(self, delay: float) -> None:
        future = asyncio.get_running_loop().create_future()
        deadline = self.clock.now() + timedelta(seconds=max(0.0, delay))
        heapq.heappush(self._waiters, (deadline, self._seq, future))
        self._seq += 1
        await future

    async def advance(self, seconds: float) -> None:
        target = self.clock.now() + timedelta(seconds=seconds)
        await self.settle()

        while self._waiters and self._waiters[0][0] <= target:
            deadline, _, future = heapq.heappop(self._waiters)
            if future.done():
                continue
            if deadline > self.clock.now():
                self.clock.set_time(deadline)
            future.set_result(None)
            await self.settle()

        self.clock.set_time(target)
        await self.settle()

    @staticmethod
    async def settle(rounds: int = 20) -> None:
        """Let ready tasks run until they block again."""
        for _ in range(rounds):
            await asyncio.sleep(0)
