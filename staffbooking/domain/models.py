"""
Temporal value types shared by the entities and the scheduling validator.
"""

from dataclasses import dataclass
from datetime import date, datetime, time
from enum import Enum
from typing import Callable

import pendulum
from pendulum import DateTime

from .exceptions import InvalidSlotError

# Supplies the current instant. Injected wherever "now" matters.
Clock = Callable[[], DateTime]


def system_clock() -> DateTime:
    """Default clock: the current instant in UTC."""
    return pendulum.now("UTC")


class Weekday(str, Enum):
    """Recurring weekday a slot repeats on. Values are the persisted literals."""

    SUNDAY = "sunday"
    MONDAY = "monday"
    TUESDAY = "tuesday"
    WEDNESDAY = "wednesday"
    THURSDAY = "thursday"
    FRIDAY = "friday"
    SATURDAY = "saturday"

    @classmethod
    def from_calendar_weekday(cls, day) -> "Weekday | None":
        """
        Convert a calendar weekday index (0=Monday .. 6=Sunday) to a Weekday.

        Returns None for anything that is not one of the seven indices;
        callers must check for it.
        """
        if isinstance(day, bool) or not isinstance(day, int):
            return None
        if not 0 <= day <= 6:
            return None
        return _CALENDAR_ORDER[day]

    @classmethod
    def of(cls, moment: date) -> "Weekday":
        """Weekday of a date or datetime."""
        return _CALENDAR_ORDER[moment.weekday()]

    @classmethod
    def parse(cls, value: "str | Weekday") -> "Weekday":
        """Parse a persisted literal, raising InvalidSlotError for unknown names."""
        if isinstance(value, Weekday):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise InvalidSlotError(f"invalid weekday: {value}") from None

    def calendar_index(self) -> int:
        """Inverse of from_calendar_weekday."""
        return _CALENDAR_ORDER.index(self)


_CALENDAR_ORDER = (
    Weekday.MONDAY,
    Weekday.TUESDAY,
    Weekday.WEDNESDAY,
    Weekday.THURSDAY,
    Weekday.FRIDAY,
    Weekday.SATURDAY,
    Weekday.SUNDAY,
)


@dataclass(frozen=True)
class TimeRange:
    """
    An absolute span of time, read as ``[start, end)`` unless a method says
    otherwise.

    Invariant: start must be before end.
    """
    start: DateTime
    end: DateTime

    def __post_init__(self):
        if self.start >= self.end:
            raise ValueError(f"Start time {self.start} must be before end time {self.end}")

    @classmethod
    def starting_at(cls, start: DateTime, minutes: int) -> "TimeRange":
        """Range of the given length beginning at start."""
        return cls(start=start, end=start.add(minutes=minutes))

    def overlaps(self, other: "TimeRange") -> bool:
        """Half-open overlap: ranges that only touch do not overlap."""
        return self.start < other.end and self.end > other.start

    def contains(self, other: "TimeRange") -> bool:
        """Boundary-inclusive containment."""
        return self.start <= other.start and self.end >= other.end

    def includes(self, moment: DateTime) -> bool:
        """Closed membership: both end points count."""
        return self.start <= moment <= self.end


def as_datetime(value: datetime) -> DateTime:
    """Coerce a stdlib datetime to pendulum; naive values are read as UTC."""
    if isinstance(value, DateTime):
        return value
    return pendulum.instance(value)


def format_time(value: time) -> str:
    """HH:MM rendering used for slots."""
    return value.strftime("%H:%M")
