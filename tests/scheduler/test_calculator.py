"""Tests for beacon/scheduler/calculator.py"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from beacon.core.errors import PastTimeError
from beacon.scheduler.calculator import next_fire_time, upcoming
from beacon.scheduler.schedule import Daily, Once, Weekly


# 2026-03-02 is a Monday
MONDAY_0930 = datetime(2026, 3, 2, 9, 30)


# ── Once ─────────────────────────────────────────────────────────────────────

class TestOnce:
    def test_future_returned_unchanged(self):
        at = datetime(2026, 3, 2, 9, 31)
        assert next_fire_time(Once(at), MONDAY_0930) == at

    def test_past_raises(self):
        with pytest.raises(PastTimeError) as exc_info:
            next_fire_time(Once(datetime(2026, 3, 2, 9, 0)), MONDAY_0930)
        assert exc_info.value.at == datetime(2026, 3, 2, 9, 0)
        assert exc_info.value.now == MONDAY_0930

    def test_exactly_now_raises(self):
        with pytest.raises(PastTimeError):
            next_fire_time(Once(MONDAY_0930), MONDAY_0930)


# ── Daily ────────────────────────────────────────────────────────────────────

class TestDaily:
    def test_later_today(self):
        assert next_fire_time(Daily(18, 0), MONDAY_0930) == datetime(2026, 3, 2, 18, 0)

    def test_already_passed_moves_to_tomorrow(self):
        assert next_fire_time(Daily(9, 0), MONDAY_0930) == datetime(2026, 3, 3, 9, 0)

    def test_exactly_now_moves_to_tomorrow(self):
        assert next_fire_time(Daily(9, 30), MONDAY_0930) == datetime(2026, 3, 3, 9, 30)

    def test_seconds_are_dropped(self):
        now = datetime(2026, 3, 2, 9, 29, 59, 999)
        assert next_fire_time(Daily(9, 30), now) == datetime(2026, 3, 2, 9, 30)

    def test_month_and_year_boundaries(self):
        assert next_fire_time(Daily(8), datetime(2026, 2, 28, 23, 0)) == datetime(2026, 3, 1, 8, 0)
        assert next_fire_time(Daily(0), datetime(2026, 12, 31, 12, 0)) == datetime(2027, 1, 1, 0, 0)

    def test_aware_now_keeps_tzinfo(self):
        tz = timezone(timedelta(hours=6))
        now = datetime(2026, 3, 2, 22, 0, tzinfo=tz)
        result = next_fire_time(Daily(9), now)
        assert result == datetime(2026, 3, 3, 9, 0, tzinfo=tz)
        assert result.tzinfo is tz


# ── Weekly ───────────────────────────────────────────────────────────────────

class TestWeekly:
    def test_same_day_later(self):
        assert next_fire_time(Weekly(1, 10, 0), MONDAY_0930) == datetime(2026, 3, 2, 10, 0)

    def test_same_day_passed_goes_a_week_out(self):
        assert next_fire_time(Weekly(1, 9, 0), MONDAY_0930) == datetime(2026, 3, 9, 9, 0)

    def test_later_in_week(self):
        # Friday
        assert next_fire_time(Weekly(5, 8, 0), MONDAY_0930) == datetime(2026, 3, 6, 8, 0)

    def test_sunday(self):
        assert next_fire_time(Weekly(7, 9, 0), MONDAY_0930) == datetime(2026, 3, 8, 9, 0)

    @pytest.mark.parametrize("weekday", range(1, 8))
    @pytest.mark.parametrize("day_offset", range(7))
    def test_within_a_week_and_on_the_right_day(self, weekday, day_offset):
        now = MONDAY_0930 + timedelta(days=day_offset)
        result = next_fire_time(Weekly(weekday, 9, 30), now)
        assert result.isoweekday() == weekday
        assert now < result <= now + timedelta(days=7)


# ── Properties ───────────────────────────────────────────────────────────────

class TestProperties:
    @pytest.mark.parametrize("spec", [Daily(0), Daily(9, 30), Daily(23, 59), Weekly(3, 12)])
    @pytest.mark.parametrize("minutes", [0, 1, 59, 61, 600, 1439, 2000])
    def test_strictly_after_now(self, spec, minutes):
        now = MONDAY_0930 + timedelta(minutes=minutes)
        assert next_fire_time(spec, now) > now

    @pytest.mark.parametrize("spec", [Daily(9, 30), Weekly(2, 7)])
    def test_monotonic(self, spec):
        times = [MONDAY_0930 + timedelta(hours=h) for h in range(0, 24 * 9, 5)]
        results = [next_fire_time(spec, t) for t in times]
        assert results == sorted(results)

    def test_unsupported_spec(self):
        with pytest.raises(TypeError):
            next_fire_time(object(), MONDAY_0930)


# ── Upcoming ─────────────────────────────────────────────────────────────────

class TestUpcoming:
    def test_daily_sequence(self):
        result = list(upcoming(Daily(9), MONDAY_0930, count=3))
        assert result == [
            datetime(2026, 3, 3, 9, 0),
            datetime(2026, 3, 4, 9, 0),
            datetime(2026, 3, 5, 9, 0),
        ]

    def test_weekly_sequence(self):
        result = list(upcoming(Weekly(1, 9), MONDAY_0930, count=2))
        assert result == [datetime(2026, 3, 9, 9, 0), datetime(2026, 3, 16, 9, 0)]

    def test_once_yields_at_most_one(self):
        at = datetime(2026, 3, 3)
        assert list(upcoming(Once(at), MONDAY_0930, count=5)) == [at]
        assert list(upcoming(Once(at), at, count=5)) == []
