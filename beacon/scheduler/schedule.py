"""
ScheduleSpec — when a notification should next fire.

Three variants:
    Once(at)                      fire a single time
    Daily(hour, minute)           every day at hour:minute
    Weekly(weekday, hour, minute) every ISO weekday (1 = Monday … 7 = Sunday)

Fields are validated at construction; out-of-range values raise
InvalidScheduleFieldError instead of being clamped.

Dict shapes (for config files and the CLI):
    {"type": "once",   "at": "2026-03-01T09:00:00"}
    {"type": "daily",  "hour": 9, "minute": 0}
    {"type": "weekly", "weekday": 1, "hour": 9, "minute": 0}
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from beacon.core.errors import InvalidScheduleFieldError

WEEKDAY_NAMES = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")


def _check_range(name: str, value: object, low: int, high: int) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidScheduleFieldError(
            f"{name} must be an integer, got {type(value).__name__}",
            field=name,
            value=value,
        )
    if not low <= value <= high:
        raise InvalidScheduleFieldError(
            f"{name} must be between {low} and {high}, got {value}",
            field=name,
            value=value,
        )


class ScheduleSpec:
    """Base for the three schedule variants."""

    @property
    def recurring(self) -> bool:
        return False

    @property
    def description(self) -> str:
        raise NotImplementedError

    def to_dict(self) -> dict:
        raise NotImplementedError


@dataclass(frozen=True)
class Once(ScheduleSpec):
    at: datetime

    def __post_init__(self) -> None:
        if not isinstance(self.at, datetime):
            raise InvalidScheduleFieldError(
                f"at must be a datetime, got {type(self.at).__name__}",
                field="at",
                value=self.at,
            )

    @property
    def description(self) -> str:
        return f"once at {self.at.strftime('%Y-%m-%d %H:%M')}"

    def to_dict(self) -> dict:
        return {"type": "once", "at": self.at.isoformat()}


@dataclass(frozen=True)
class Daily(ScheduleSpec):
    hour: int
    minute: int = 0

    def __post_init__(self) -> None:
        _check_range("hour", self.hour, 0, 23)
        _check_range("minute", self.minute, 0, 59)

    @property
    def recurring(self) -> bool:
        return True

    @property
    def description(self) -> str:
        return f"every day at {self.hour:02d}:{self.minute:02d}"

    def to_dict(self) -> dict:
        return {"type": "daily", "hour": self.hour, "minute": self.minute}


@dataclass(frozen=True)
class Weekly(ScheduleSpec):
    weekday: int
    hour: int
    minute: int = 0

    def __post_init__(self) -> None:
        _check_range("weekday", self.weekday, 1, 7)
        _check_range("hour", self.hour, 0, 23)
        _check_range("minute", self.minute, 0, 59)

    @property
    def recurring(self) -> bool:
        return True

    @property
    def description(self) -> str:
        day = WEEKDAY_NAMES[self.weekday - 1]
        return f"every {day} at {self.hour:02d}:{self.minute:02d}"

    def to_dict(self) -> dict:
        return {
            "type": "weekly",
            "weekday": self.weekday,
            "hour": self.hour,
            "minute": self.minute,
        }


def make_schedule(schedule_dict: dict) -> ScheduleSpec:
    """
    Build a ScheduleSpec from its dict form.

    Raises InvalidScheduleFieldError for unknown types or bad fields.
    """
    t = schedule_dict.get("type", "")
    try:
        if t == "once":
            at = schedule_dict["at"]
            return Once(datetime.fromisoformat(at) if isinstance(at, str) else at)
        elif t == "daily":
            return Daily(int(schedule_dict["hour"]), int(schedule_dict.get("minute", 0)))
        elif t == "weekly":
            return Weekly(
                int(schedule_dict["weekday"]),
                int(schedule_dict["hour"]),
                int(schedule_dict.get("minute", 0)),
            )
    except (KeyError, ValueError) as e:
        raise InvalidScheduleFieldError(
            f"Invalid {t} schedule: {e}", field=t, value=schedule_dict
        ) from e
    raise InvalidScheduleFieldError(f"Unknown schedule type: {t!r}", field="type", value=t)
