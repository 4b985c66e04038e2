"""
Tests for the clock abstraction.
"""

from datetime import datetime, timedelta, timezone

from core.clock import ClockFactory, MockClock, SystemClock


BASE = datetime(2025, 1, 1, tzinfo=timezone.utc)


class TestMockClock:
    """Tests for MockClock."""

    def test_advance(self):
        clock = MockClock(BASE)

        clock.advance(30)
        clock.advance(minutes=1)

        assert clock.now() == BASE + timedelta(seconds=90)
        assert clock.timestamp() == BASE.timestamp() + 90

    def test_naive_time_is_utc(self):
        clock = MockClock(BASE)

        clock.set_time(datetime(2025, 6, 1))

        assert clock.now().tzinfo == timezone.utc

    def test_window_ends_now(self):
        clock = MockClock(BASE)

        start, end = clock.window(3600)

        assert end == BASE
        assert start == BASE - timedelta(hours=1)


class TestClockFactory:
    """Tests for the global clock."""

    def test_set_and_reset(self):
        mock = MockClock(BASE)
        ClockFactory.set_clock(mock)
        try:
            assert ClockFactory.get_clock() is mock
        finally:
            ClockFactory.reset()

        assert isinstance(ClockFactory.get_clock(), SystemClock)
