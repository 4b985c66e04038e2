"""
Manager - Remote REST Backend.

============================================================
PURPOSE
============================================================
Client for a Manager running behind its REST API server.

- Query operations map onto REST endpoints
- Sync accessors (status, current data) serve snapshots cached
  by a background poll loop
- The event stream is derived from consecutive snapshots

============================================================
ENDPOINTS
============================================================
GET /api/system/status     -> SystemStatus JSON
GET /api/plcs/status       -> {"statuses": [DeviceStatus JSON, ...]}
GET /api/data/all          -> {"data": {name: DeviceSnapshot JSON}}
GET /api/data/historical   -> {"data": [HistoricalRecord JSON, ...]}
GET /api/alarms/history    -> {"alarms": [AlarmRecord JSON, ...]}
GET /api/system/report     -> SystemReport JSON

============================================================
"""

import asyncio
import logging
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Tuple

import aiohttp

from core.exceptions import ManagerResponseError, ManagerUnavailableError

from .emitter import EventEmitter
from .models import (
    AlarmFilter,
    AlarmRecord,
    DeviceSnapshot,
    DeviceStatus,
    EventKind,
    HistoricalFilter,
    HistoricalRecord,
    SystemReport,
    SystemStatus,
)


logger = logging.getLogger(__name__)


class RemoteManager(EventEmitter):
    """
    REST-backed Manager.

    Implements ManagerFacade against the Manager's API server.
    """

    STATUS_PATH = "/api/system/status"
    DEVICES_PATH = "/api/plcs/status"
    DATA_PATH = "/api/data/all"
    HISTORY_PATH = "/api/data/historical"
    ALARMS_PATH = "/api/alarms/history"
    REPORT_PATH = "/api/system/report"

    def __init__(
        self,
        base_url: str,
        poll_interval_seconds: float = 5.0,
        request_timeout_seconds: float = 10.0,
    ):
        super().__init__()
        self._base_url = base_url.rstrip("/")
        self._poll_interval = poll_interval_seconds
        self._timeout = aiohttp.ClientTimeout(total=request_timeout_seconds)

        self._session: Optional[aiohttp.ClientSession] = None
        self._poll_task: Optional[asyncio.Task] = None

        self._status = SystemStatus()
        self._data: Dict[str, DeviceSnapshot] = {}
        self._initialized = False
        self._poll_failures = 0

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def poll_failures(self) -> int:
        return self._poll_failures

    # --------------------------------------------------------
    # LIFECYCLE
    # --------------------------------------------------------

    async def initialize(self) -> bool:
        if self._initialized:
            return True

        logger.info(f"Connecting to Manager API at {self._base_url}")
        if self._session is None:
            self._session = aiohttp.ClientSession(timeout=self._timeout)

        try:
            status, data = await self._fetch_snapshot()
        except Exception:
            await self._close_session()
            raise

        self.emit(EventKind.DATABASE_CONNECTED)
        self.emit(EventKind.CONFIGURATIONS_LOADED, {"count": status.devices.total})
        self._apply_snapshot(status, data)

        self._initialized = True
        self._poll_task = asyncio.create_task(self._poll_loop())
        self.emit(EventKind.INITIALIZED)
        return True

    async def shutdown(self) -> bool:
        if self._poll_task and not self._poll_task.done():
            self._poll_task.cancel()
            try:
                await self._poll_task
            except asyncio.CancelledError:
                pass
        self._poll_task = None

        self._initialized = False
        await self._close_session()
        logger.info("Disconnected from Manager API")
        return True

    async def _close_session(self) -> None:
        if self._session is not None:
            await self._session.close()
            self._session = None

    # --------------------------------------------------------
    # POLLING
    # --------------------------------------------------------

    async def _poll_loop(self) -> None:
        while True:
            await asyncio.sleep(self._poll_interval)
            try:
                await self.poll_once()
            except (ManagerUnavailableError, ManagerResponseError) as e:
                self._poll_failures += 1
                logger.warning(f"Manager poll failed ({self._poll_failures}): {e.message}")
            except Exception as e:
                self._poll_failures += 1
                logger.error(f"Manager poll failed ({self._poll_failures}): {e}", exc_info=True)

    async def poll_once(self) -> None:
        """Refresh cached snapshots and emit derived events."""
        status, data = await self._fetch_snapshot()
        self._apply_snapshot(status, data)

    async def _fetch_snapshot(self) -> Tuple[SystemStatus, Dict[str, DeviceSnapshot]]:
        status_body = await self._get_json(self.STATUS_PATH)
        data_body = await self._get_json(self.DATA_PATH)
        try:
            status = SystemStatus.from_dict(status_body)
            data = {
                name: DeviceSnapshot.from_dict(snapshot)
                for name, snapshot in (data_body.get("data") or {}).items()
            }
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise ManagerResponseError(
                f"Malformed snapshot: {e}",
                operation="snapshot",
                cause=e,
            )
        return status, data

    def _apply_snapshot(self, status: SystemStatus, data: Dict[str, DeviceSnapshot]) -> None:
        previous_status = self._status
        previous_data = self._data
        self._status = status
        self._data = data

        if self._initialized and status.devices.total != previous_status.devices.total:
            self.emit(
                EventKind.CONFIGURATIONS_CHANGED,
                {"old_count": previous_status.devices.total, "new_count": status.devices.total},
            )

        for name, snapshot in data.items():
            was_connected = name in previous_data and previous_data[name].connected
            if snapshot.connected and not was_connected:
                self.emit(EventKind.DEVICE_CONNECTED, {"name": name})
            elif not snapshot.connected and was_connected:
                self.emit(EventKind.DEVICE_DISCONNECTED, {"name": name})

        for name, snapshot in previous_data.items():
            if name not in data and snapshot.connected:
                self.emit(EventKind.DEVICE_DISCONNECTED, {"name": name})

        for name, snapshot in data.items():
            if snapshot.connected and snapshot.data:
                self.emit(
                    EventKind.DEVICE_DATA,
                    {"name": name, "data": {tag: v.value for tag, v in snapshot.data.items()}},
                )

        if self._initialized:
            self.emit(
                EventKind.HEALTH_CHECK_COMPLETE,
                {"connected_count": status.devices.connected, "total_count": status.devices.total},
            )

    # --------------------------------------------------------
    # QUERIES
    # --------------------------------------------------------

    def get_system_status(self) -> SystemStatus:
        return self._status

    def get_all_data(self) -> Dict[str, DeviceSnapshot]:
        return dict(self._data)

    def get_device_data(self, name: str) -> Optional[DeviceSnapshot]:
        return self._data.get(name)

    async def get_device_statuses(self) -> List[DeviceStatus]:
        body = await self._get_json(self.DEVICES_PATH)
        return [DeviceStatus.from_dict(d) for d in body.get("statuses") or []]

    async def get_historical_data(
        self,
        filter: HistoricalFilter,
        start_time: datetime,
        end_time: datetime,
        limit: int,
    ) -> List[HistoricalRecord]:
        params = {
            "start": start_time.isoformat(),
            "end": end_time.isoformat(),
            "limit": str(limit),
        }
        if filter.device_name:
            params["plc"] = filter.device_name
        if filter.tag_name:
            params["tag"] = filter.tag_name
        if filter.group_name:
            params["group"] = filter.group_name

        body = await self._get_json(self.HISTORY_PATH, params)
        return [HistoricalRecord.from_dict(r) for r in body.get("data") or []]

    async def get_alarm_history(
        self,
        filter: AlarmFilter,
        limit: int,
    ) -> List[AlarmRecord]:
        params = {"limit": str(limit)}
        if filter.device_name:
            params["plc"] = filter.device_name
        if filter.alarm_type:
            params["type"] = filter.alarm_type
        if filter.severity:
            params["severity"] = filter.severity
        if filter.start_time:
            params["start"] = filter.start_time.isoformat()

        body = await self._get_json(self.ALARMS_PATH, params)
        return [AlarmRecord.from_dict(a) for a in body.get("alarms") or []]

    async def generate_system_report(
        self,
        report_type: str = "summary",
        time_range: str = "24h",
    ) -> SystemReport:
        body = await self._get_json(
            self.REPORT_PATH,
            {"type": report_type, "range": time_range},
        )
        return SystemReport.from_dict(body)

    # --------------------------------------------------------
    # TRANSPORT
    # --------------------------------------------------------

    async def _get_json(
        self,
        path: str,
        params: Optional[Mapping[str, str]] = None,
    ) -> Dict[str, Any]:
        """Make API request."""
        if self._session is None:
            raise ManagerUnavailableError("Not connected", operation=path)

        url = f"{self._base_url}{path}"

        try:
            async with self._session.get(url, params=params) as response:
                if response.status != 200:
                    text = await response.text()
                    raise ManagerResponseError(
                        f"HTTP {response.status}: {text[:200]}",
                        status=response.status,
                        operation=path,
                    )
                try:
                    body = await response.json()
                except (aiohttp.ContentTypeError, ValueError) as e:
                    raise ManagerResponseError(
                        f"Malformed response: {e}",
                        status=response.status,
                        operation=path,
                    )

        except aiohttp.ClientError as e:
            raise ManagerUnavailableError(f"Network error: {e}", operation=path, cause=e)
        except asyncio.TimeoutError as e:
            raise ManagerUnavailableError("Request timeout", operation=path, cause=e)

        if not isinstance(body, dict):
            raise ManagerResponseError("Expected a JSON object", operation=path)
        return body


__all__ = ["RemoteManager"]
