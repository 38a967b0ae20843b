"""
Fire-time calculation for ScheduleSpec values.

Usage:
    fire_at = next_fire_time(Daily(hour=9), now=datetime(2026, 3, 2, 9, 30))
    # → 2026-03-03 09:00

``now`` is always passed in; nothing here reads the wall clock. No timezone
conversion happens either: the caller resolves ``now`` (and any ``Once.at``)
into the zone the user thinks in, and results come back in that same
representation. With an aware ``now`` the one-day steps are wall-clock steps
in its tzinfo.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Iterator

from beacon.core.errors import PastTimeError
from beacon.scheduler.schedule import Daily, Once, ScheduleSpec, Weekly

ONE_DAY = timedelta(days=1)
MAX_WEEKDAY_ADVANCES = 7


def next_fire_time(spec: ScheduleSpec, now: datetime) -> datetime:
    """
    Next absolute fire time strictly after ``now``.

    Raises:
        PastTimeError: a ``Once`` target is at or before ``now``. One-shots
            are never moved; the caller decides whether to skip or fire.
    """
    if isinstance(spec, Once):
        if spec.at <= now:
            raise PastTimeError(
                f"One-shot time {spec.at.isoformat()} is not after {now.isoformat()}",
                at=spec.at,
                now=now,
            )
        return spec.at
    if isinstance(spec, Daily):
        return _next_time_of_day(spec.hour, spec.minute, now)
    if isinstance(spec, Weekly):
        return _next_weekday(spec.weekday, spec.hour, spec.minute, now)
    raise TypeError(f"Unsupported schedule: {spec!r}")


def upcoming(spec: ScheduleSpec, now: datetime, count: int = 5) -> Iterator[datetime]:
    """
    Yield the next ``count`` fire times. A ``Once`` yields at most one, and
    none when it is already past.
    """
    if isinstance(spec, Once):
        if count > 0 and spec.at > now:
            yield spec.at
        return
    t = now
    for _ in range(count):
        t = next_fire_time(spec, t)
        yield t


def _next_time_of_day(hour: int, minute: int, now: datetime) -> datetime:
    candidate = now.replace(hour=hour, minute=minute, second=0, microsecond=0)
    if candidate <= now:
        candidate += ONE_DAY
    return candidate


def _next_weekday(weekday: int, hour: int, minute: int, now: datetime) -> datetime:
    candidate = _next_time_of_day(hour, minute, now)
    for _ in range(MAX_WEEKDAY_ADVANCES):
        if candidate.isoweekday() == weekday:
            return candidate
        candidate += ONE_DAY
    # Seven consecutive days cover every weekday, so this is unreachable.
    raise AssertionError(f"No ISO weekday {weekday} within a week of {now}")
