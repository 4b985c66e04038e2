"""
Tests for the REST Manager backend.

============================================================
PURPOSE
============================================================
- Verify transport error mapping
- Verify events derived from snapshot diffs
- Verify query parameter building

============================================================
"""

import asyncio
import aiohttp
import pytest
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Tuple
from unittest.mock import AsyncMock, MagicMock

from core.exceptions import ManagerResponseError, ManagerUnavailableError
from manager.models import AlarmFilter, HistoricalFilter
from manager.remote import RemoteManager


# ============================================================
# FIXTURES
# ============================================================

def status_body(connected: int, total: int) -> Dict[str, Any]:
    return {
        "devices": {"connected": connected, "total": total},
        "data": {"pointsLogged": 100, "alarmsGenerated": 1},
        "system": {"uptimeSeconds": 60},
        "connections": {"successRatePercent": 50.0},
    }


def data_body(**devices: bool) -> Dict[str, Any]:
    return {
        "data": {
            name: {
                "connected": connected,
                "data": {"Flow": {"formattedValue": "1.0", "units": "m3/h", "value": 1.0}} if connected else {},
            }
            for name, connected in devices.items()
        }
    }


class FakeResponse:
    """Minimal aiohttp response context manager."""

    def __init__(self, status: int = 200, body: Any = None, json_error: Exception = None):
        self.status = status
        self._body = body
        self._json_error = json_error

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    async def json(self):
        if self._json_error:
            raise self._json_error
        return self._body

    async def text(self):
        return "server error"


def fake_session(response: FakeResponse = None, error: Exception = None) -> MagicMock:
    session = MagicMock()
    if error is not None:
        session.get = MagicMock(side_effect=error)
    else:
        session.get = MagicMock(return_value=response)
    session.close = AsyncMock()
    return session


class Recorder:
    def __init__(self):
        self.events: List[Tuple[str, Mapping[str, Any]]] = []

    def __call__(self, kind, payload):
        self.events.append((kind, payload))

    def kinds(self) -> List[str]:
        return [k for k, _ in self.events]


@pytest.fixture
def remote():
    manager = RemoteManager("http://manager.local:3000/", poll_interval_seconds=3600)
    return manager


# ============================================================
# TRANSPORT TESTS
# ============================================================

class TestTransport:
    """Tests for _get_json error mapping."""

    def test_base_url_normalized(self, remote):
        assert remote.base_url == "http://manager.local:3000"

    @pytest.mark.asyncio
    async def test_not_connected(self, remote):
        with pytest.raises(ManagerUnavailableError):
            await remote._get_json("/api/system/status")

    @pytest.mark.asyncio
    async def test_success(self, remote):
        remote._session = fake_session(FakeResponse(body={"ok": True}))

        body = await remote._get_json("/api/system/status", {"a": "1"})

        assert body == {"ok": True}
        remote._session.get.assert_called_once_with(
            "http://manager.local:3000/api/system/status",
            params={"a": "1"},
        )

    @pytest.mark.asyncio
    async def test_http_error_status(self, remote):
        remote._session = fake_session(FakeResponse(status=503))

        with pytest.raises(ManagerResponseError) as exc_info:
            await remote._get_json("/api/plcs/status")

        assert exc_info.value.context["status"] == 503
        assert exc_info.value.context["operation"] == "/api/plcs/status"

    @pytest.mark.asyncio
    async def test_malformed_json(self, remote):
        remote._session = fake_session(FakeResponse(json_error=ValueError("bad json")))

        with pytest.raises(ManagerResponseError):
            await remote._get_json("/api/data/all")

    @pytest.mark.asyncio
    async def test_non_object_body(self, remote):
        remote._session = fake_session(FakeResponse(body=[1, 2, 3]))

        with pytest.raises(ManagerResponseError):
            await remote._get_json("/api/data/all")

    @pytest.mark.asyncio
    async def test_network_error(self, remote):
        remote._session = fake_session(error=aiohttp.ClientConnectionError("refused"))

        with pytest.raises(ManagerUnavailableError) as exc_info:
            await remote._get_json("/api/system/status")

        assert exc_info.value.context["cause_type"] == "ClientConnectionError"


# ============================================================
# EVENT DERIVATION TESTS
# ============================================================

class TestSnapshotEvents:
    """Tests for events derived from consecutive snapshots."""

    @pytest.mark.asyncio
    async def test_initialize_emits_startup_events(self, remote):
        recorder = Recorder()
        remote.add_listener(recorder)
        remote._get_json = AsyncMock(side_effect=lambda path, params=None: {
            RemoteManager.STATUS_PATH: status_body(1, 2),
            RemoteManager.DATA_PATH: data_body(PLC_A=True, PLC_B=False),
        }[path])

        try:
            assert await remote.initialize() is True
        finally:
            await remote.shutdown()

        assert recorder.kinds() == [
            "database_connected",
            "configurations_loaded",
            "device_connected",
            "device_data",
            "initialized",
        ]
        assert recorder.events[1][1] == {"count": 2}
        assert recorder.events[2][1] == {"name": "PLC_A"}
        assert remote.get_system_status().devices.total == 2

    @pytest.mark.asyncio
    async def test_initialize_failure_propagates(self, remote):
        remote._get_json = AsyncMock(side_effect=ManagerUnavailableError("down"))

        with pytest.raises(ManagerUnavailableError):
            await remote.initialize()

        assert remote._session is None

    @pytest.mark.asyncio
    async def test_poll_diffs(self, remote):
        """Connection changes and device count changes become events."""
        recorder = Recorder()
        remote.add_listener(recorder)
        responses = {
            RemoteManager.STATUS_PATH: status_body(1, 2),
            RemoteManager.DATA_PATH: data_body(PLC_A=True, PLC_B=False),
        }
        remote._get_json = AsyncMock(side_effect=lambda path, params=None: responses[path])

        try:
            await remote.initialize()
            recorder.events.clear()

            responses[RemoteManager.STATUS_PATH] = status_body(1, 3)
            responses[RemoteManager.DATA_PATH] = data_body(PLC_A=False, PLC_B=True, PLC_C=False)
            await remote.poll_once()
        finally:
            await remote.shutdown()

        assert recorder.events == [
            ("configurations_changed", {"old_count": 2, "new_count": 3}),
            ("device_disconnected", {"name": "PLC_A"}),
            ("device_connected", {"name": "PLC_B"}),
            ("device_data", {"name": "PLC_B", "data": {"Flow": 1.0}}),
            ("health_check_complete", {"connected_count": 1, "total_count": 3}),
        ]

    @pytest.mark.asyncio
    async def test_removed_device_disconnects(self, remote):
        recorder = Recorder()
        remote.add_listener(recorder)
        responses = {
            RemoteManager.STATUS_PATH: status_body(1, 1),
            RemoteManager.DATA_PATH: data_body(PLC_A=True),
        }
        remote._get_json = AsyncMock(side_effect=lambda path, params=None: responses[path])

        try:
            await remote.initialize()
            recorder.events.clear()
            responses[RemoteManager.DATA_PATH] = data_body()
            await remote.poll_once()
        finally:
            await remote.shutdown()

        assert ("device_disconnected", {"name": "PLC_A"}) in recorder.events

    @pytest.mark.asyncio
    async def test_malformed_snapshot_is_response_error(self, remote):
        """A non-object device entry is a response error, not a crash."""
        responses = {
            RemoteManager.STATUS_PATH: status_body(1, 1),
            RemoteManager.DATA_PATH: data_body(PLC_A=True),
        }
        remote._get_json = AsyncMock(side_effect=lambda path, params=None: responses[path])

        try:
            await remote.initialize()
            responses[RemoteManager.DATA_PATH] = {"data": {"PLC_A": "offline"}}

            with pytest.raises(ManagerResponseError):
                await remote.poll_once()
        finally:
            await remote.shutdown()

        assert remote.get_system_status().devices.total == 1

    @pytest.mark.asyncio
    async def test_poll_loop_survives_bad_snapshot(self):
        """A failed poll is counted and the next poll refreshes the cache."""
        remote = RemoteManager("http://manager.local:3000", poll_interval_seconds=0)
        data_fetches = {"count": 0}

        def respond(path, params=None):
            if path == RemoteManager.STATUS_PATH:
                return status_body(1, 1 if data_fetches["count"] == 0 else 5)
            data_fetches["count"] += 1
            if data_fetches["count"] == 2:
                return {"data": {"PLC_A": "offline"}}
            return data_body(PLC_A=True)

        remote._get_json = AsyncMock(side_effect=respond)

        try:
            await remote.initialize()
            for _ in range(200):
                if remote.get_system_status().devices.total == 5:
                    break
                await asyncio.sleep(0)
            assert remote._poll_task is not None
            assert not remote._poll_task.done()
        finally:
            await remote.shutdown()

        assert remote.poll_failures == 1
        assert remote.get_system_status().devices.total == 5


# ============================================================
# QUERY TESTS
# ============================================================

class TestQueries:
    """Tests for REST query operations."""

    def test_api_routes(self):
        assert RemoteManager.DEVICES_PATH == "/api/plcs/status"
        assert RemoteManager.HISTORY_PATH == "/api/data/historical"
        assert RemoteManager.ALARMS_PATH == "/api/alarms/history"
        assert RemoteManager.REPORT_PATH == "/api/system/report"

    @pytest.mark.asyncio
    async def test_device_statuses(self, remote):
        remote._get_json = AsyncMock(return_value={
            "statuses": [
                {"name": "PLC_A", "address": "10.0.0.1", "port": 102,
                 "status": {"connected": True, "activeTags": 3},
                 "statistics": {"dataQualityPercent": 98.0}},
            ]
        })

        statuses = await remote.get_device_statuses()

        assert statuses[0].name == "PLC_A"
        assert statuses[0].active_tags == 3
        remote._get_json.assert_awaited_once_with(RemoteManager.DEVICES_PATH)

    @pytest.mark.asyncio
    async def test_historical_params(self, remote):
        remote._get_json = AsyncMock(return_value={"data": [], "recordCount": 0})
        start = datetime(2025, 1, 1, tzinfo=timezone.utc)
        end = datetime(2025, 1, 1, 1, tzinfo=timezone.utc)

        records = await remote.get_historical_data(
            HistoricalFilter(device_name="PLC_A", tag_name="Flow"),
            start,
            end,
            10,
        )

        assert records == []
        path, params = remote._get_json.await_args.args
        assert path == RemoteManager.HISTORY_PATH
        assert params == {
            "start": start.isoformat(),
            "end": end.isoformat(),
            "limit": "10",
            "plc": "PLC_A",
            "tag": "Flow",
        }

    @pytest.mark.asyncio
    async def test_alarm_history(self, remote):
        remote._get_json = AsyncMock(return_value={
            "alarms": [
                {"deviceName": "PLC_A", "tagName": "Flow", "alarmType": "HIGH", "severity": "HIGH"},
            ]
        })

        alarms = await remote.get_alarm_history(AlarmFilter(), 5)

        assert alarms[0].alarm_type == "HIGH"
        path, params = remote._get_json.await_args.args
        assert params == {"limit": "5"}

    @pytest.mark.asyncio
    async def test_system_report(self, remote):
        remote._get_json = AsyncMock(return_value={
            "reportType": "summary",
            "timeRange": "24h",
            "generatedAt": "2025-01-01T00:00:00Z",
            "systemOverview": status_body(2, 2),
        })

        report = await remote.generate_system_report()

        assert report.overview.devices.connected == 2
        remote._get_json.assert_awaited_once_with(
            RemoteManager.REPORT_PATH,
            {"type": "summary", "range": "24h"},
        )
