"""
Time-of-day values for the booking engine.

Times are kept as zero-padded 24-hour "HH:MM" strings. The format is fixed
width, so ordinary string comparison orders them correctly and they can be
stored and range-queried as plain VARCHAR columns.
"""
import re
from typing import NamedTuple

_HHMM = re.compile(r"([01][0-9]|2[0-3]):[0-5][0-9]")

MINUTES_PER_DAY = 24 * 60


class TimeOfDay(str):
    __slots__ = ()

    def __new__(cls, value):
        if isinstance(value, TimeOfDay):
            return value
        if not isinstance(value, str) or not _HHMM.fullmatch(value):
            raise ValueError(f"Invalid time of day {value!r}, expected HH:MM")
        return super().__new__(cls, value)

    @classmethod
    def from_minutes(cls, minutes: int) -> "TimeOfDay":
        if not 0 <= minutes < MINUTES_PER_DAY:
            raise ValueError(f"{minutes} minutes is outside a single day")
        return cls(f"{minutes // 60:02d}:{minutes % 60:02d}")

    @classmethod
    def from_time(cls, value) -> "TimeOfDay":
        return cls(value.strftime("%H:%M"))

    @property
    def minutes(self) -> int:
        hours, minutes = self.split(":")
        return int(hours) * 60 + int(minutes)

    def plus_minutes(self, minutes: int) -> "TimeOfDay":
        """Raises ValueError when the result would cross midnight."""
        return TimeOfDay.from_minutes(self.minutes + minutes)


def parse_time_of_day(value, field="time"):
    """Like ``TimeOfDay(value)`` but raises the API's ValidationError."""
    from app.errors import ValidationError

    try:
        return TimeOfDay(value)
    except ValueError:
        raise ValidationError(f"{field} must be in HH:MM format") from None


class Interval(NamedTuple):
    """Half-open [start, end): the end instant itself is free."""

    start: TimeOfDay
    end: TimeOfDay

    def overlaps(self, other) -> bool:
        return self.start < other.end and self.end > other.start

    def to_dict(self):
        return {"start": self.start, "end": self.end}
