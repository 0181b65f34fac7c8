"""
Conflict detection for a single candidate appointment.

Checks run in a fixed order and the first failure wins, so callers always
get the most actionable reason:

    past_cutoff -> elapsed -> would_exceed_closing -> overlap -> partial_closure

Intervals are half-open: an appointment ending at 11:00 does not conflict
with one starting at 11:00.
"""
from dataclasses import dataclass
from typing import Optional

from app.errors import ConflictError, PolicyError
from app.services.time_of_day import Interval

PAST_CUTOFF = "past_cutoff"
ELAPSED = "elapsed"
EXCEEDS_CLOSING = "would_exceed_closing"
OVERLAP = "overlap"
PARTIAL_CLOSURE = "partial_closure"


@dataclass(frozen=True)
class Availability:
    available: bool
    reason: Optional[str] = None
    conflict: Optional[Interval] = None
    end: Optional[str] = None


AVAILABLE = Availability(True)


def evaluate(
    candidate_start,
    candidate_end,
    existing_intervals,
    partial_closures,
    service_duration,
    hours,
    now_if_today=None,
):
    """
    Decide whether ``candidate_start`` can be booked.

    ``candidate_end`` may be None, in which case it is derived from
    ``service_duration``. ``now_if_today`` is the current time of day when the
    candidate date is today, otherwise None.
    """
    if candidate_start > hours.last_booking_time:
        return Availability(False, PAST_CUTOFF)

    if now_if_today is not None and candidate_start <= now_if_today:
        return Availability(False, ELAPSED)

    if candidate_end is None:
        try:
            candidate_end = candidate_start.plus_minutes(service_duration)
        except ValueError:
            return Availability(False, EXCEEDS_CLOSING)
    if candidate_end > hours.close_time:
        return Availability(False, EXCEEDS_CLOSING, end=candidate_end)

    candidate = Interval(candidate_start, candidate_end)
    for interval in existing_intervals:
        if candidate.overlaps(interval):
            return Availability(False, OVERLAP, conflict=interval, end=candidate_end)

    for window in partial_closures:
        if candidate.overlaps(window):
            return Availability(
                False, PARTIAL_CLOSURE, conflict=window, end=candidate_end
            )

    return Availability(True, end=candidate_end)


def raise_for_availability(availability, hours):
    """Translate an unavailable result into the matching API error."""
    if availability.available:
        return

    reason = availability.reason
    if reason == PAST_CUTOFF:
        raise PolicyError(
            reason,
            f"The last booking time for the selected services is {hours.last_booking_time}",
        )
    if reason == ELAPSED:
        raise PolicyError(reason, "This time has already passed")
    if reason == EXCEEDS_CLOSING:
        raise PolicyError(
            reason,
            f"The appointment would end after closing time ({hours.close_time})",
        )
    if reason == PARTIAL_CLOSURE:
        window = availability.conflict
        raise PolicyError(
            reason, f"The salon is closed from {window.start} to {window.end}"
        )
    conflict = availability.conflict
    raise ConflictError(
        f"This time overlaps an existing appointment ({conflict.start}-{conflict.end})",
        conflict=conflict,
    )
