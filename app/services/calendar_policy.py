"""
Calendar policy: is the salon open on a given date, and with which hours.

Precedence for a date:
    1. a full-day closure closes the day, even when a forced-open day exists
    2. the weekly closed weekday closes the day unless it is forced open
    3. otherwise the day is open; weekends and forced-open days use the
       shorter weekend hours
"""
from dataclasses import dataclass, replace
from typing import Optional

from sqlalchemy import select

from app.config import OpeningHours
from app.models import Closure, ForcedOpenDay
from app.services.time_of_day import Interval, TimeOfDay
from app.utils.retry import retry_read

FULL_DAY_CLOSURE = "full_day_closure"
WEEKLY_CLOSED_DAY = "weekly_closed_day"


@dataclass(frozen=True)
class OpeningStatus:
    open: bool
    hours: Optional[OpeningHours] = None
    reason: Optional[str] = None

    def to_dict(self):
        return {
            "open": self.open,
            "hours": self.hours.to_dict() if self.hours else None,
            "reason": self.reason,
        }


class CalendarPolicy:
    def __init__(self, settings, closures=(), forced_open_days=()):
        self.settings = settings
        self.closures = list(closures)
        self._full_day = set()
        self._partial = {}
        for closure in self.closures:
            if closure.start_time is None:
                self._full_day.add(closure.date)
            else:
                window = Interval(
                    TimeOfDay(closure.start_time), TimeOfDay(closure.end_time)
                )
                self._partial.setdefault(closure.date, []).append(window)
        self._forced_open = set(forced_open_days)

    @property
    def forced_open_days(self):
        return set(self._forced_open)

    def is_open(self, day):
        if day in self._full_day:
            return OpeningStatus(False, reason=FULL_DAY_CLOSURE)

        forced_open = day in self._forced_open
        if day.weekday() == self.settings.closed_weekday and not forced_open:
            return OpeningStatus(False, reason=WEEKLY_CLOSED_DAY)

        return OpeningStatus(True, self.settings.hours_for(day, holiday=forced_open))

    def partial_closures(self, day):
        return sorted(self._partial.get(day, []))

    def is_forced_open(self, day):
        return day in self._forced_open


def with_service_cutoff(hours, service_cutoff):
    """Narrow the day's last booking time to the requested services' cutoff."""
    if service_cutoff is None or service_cutoff >= hours.last_booking_time:
        return hours
    return replace(hours, last_booking_time=service_cutoff)


def load_calendar_policy(session, settings, start, end=None):
    """Build a CalendarPolicy from the closures stored for [start, end]."""
    end = end or start

    def read():
        closures = session.scalars(
            select(Closure)
            .where(Closure.date >= start, Closure.date <= end)
            .order_by(Closure.date, Closure.start_time)
        ).all()
        forced = session.scalars(
            select(ForcedOpenDay.date).where(
                ForcedOpenDay.date >= start, ForcedOpenDay.date <= end
            )
        ).all()
        return closures, forced

    closures, forced = retry_read(session, settings, "Calendar policy", read)
    return CalendarPolicy(settings, closures, forced)
