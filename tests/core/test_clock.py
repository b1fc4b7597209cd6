"""Tests for clocks and time-of-day parsing."""

from datetime import datetime, time

import pytest

from home_automation.core.clock import MockClock, SystemClock, parse_time_of_day
from home_automation.core.errors import InvalidTimeError


class TestParseTimeOfDay:
    @pytest.mark.parametrize(
        "text,expected",
        [
            ("00:00", time(0, 0)),
            ("06:30", time(6, 30)),
            ("23:59", time(23, 59)),
            (" 07:05 ", time(7, 5)),
        ],
    )
    def test_valid(self, text, expected):
        assert parse_time_of_day(text) == expected

    @pytest.mark.parametrize("text", ["24:00", "6:30", "06:60", "0630", "", "noon", None, 630])
    def test_invalid(self, text):
        with pytest.raises(InvalidTimeError):
            parse_time_of_day(text)


class TestClocks:
    def test_mock_clock(self):
        clock = MockClock(datetime(2025, 1, 15, 5, 59))
        assert clock.advance(minutes=1) == datetime(2025, 1, 15, 6, 0)

        clock.set_current_time(datetime(2025, 2, 1))
        assert clock.get_current_time() == datetime(2025, 2, 1)

    def test_system_clock_is_naive_local_time(self):
        now = SystemClock().get_current_time()
        assert now.tzinfo is None
