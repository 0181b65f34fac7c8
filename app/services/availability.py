# Availability view for one day and a set of requested services
from dataclasses import dataclass, field
from datetime import timedelta
from typing import List, Optional

from sqlalchemy import select

from app.models import Appointment
from app.services.calendar_policy import load_calendar_policy, with_service_cutoff
from app.services.catalog import (
    ensure_distinct_categories,
    resolve_services,
    summarize_services,
)
from app.services.conflicts import evaluate
from app.services.slots import generate_slots
from app.services.time_of_day import Interval, TimeOfDay
from app.utils.retry import retry_read

# Used when availability is asked for without choosing services
DEFAULT_DURATION_MINUTES = 60

OUTSIDE_BOOKING_WINDOW = "outside_booking_window"


def confirmed_intervals(session, day, exclude_id=None):
    stmt = select(Appointment.start_time, Appointment.end_time).where(
        Appointment.date == day, Appointment.status == "CONFIRMED"
    )
    if exclude_id is not None:
        stmt = stmt.where(Appointment.id != exclude_id)
    rows = session.execute(stmt.order_by(Appointment.start_time)).all()
    return [Interval(TimeOfDay(start), TimeOfDay(end)) for start, end in rows]


def find_overlapping(session, day, start, end, exclude_id=None):
    """Range query for a CONFIRMED appointment overlapping [start, end)."""
    stmt = select(Appointment).where(
        Appointment.date == day,
        Appointment.status == "CONFIRMED",
        Appointment.start_time < end,
        Appointment.end_time > start,
    )
    if exclude_id is not None:
        stmt = stmt.where(Appointment.id != exclude_id)
    return session.scalars(stmt.order_by(Appointment.start_time).limit(1)).first()


def within_booking_window(day, today, settings):
    return today <= day <= today + timedelta(days=settings.booking_advance_days)


@dataclass
class AvailabilityView:
    date: object
    open: bool
    reason: Optional[str] = None
    hours: object = None
    slots: List[dict] = field(default_factory=list)
    total_price: int = 0
    total_duration: int = 0

    def to_dict(self):
        return {
            "date": self.date.isoformat(),
            "weekday": self.date.weekday(),
            "open": self.open,
            "reason": self.reason,
            "hours": self.hours.to_dict() if self.hours else None,
            "slots": self.slots,
            "total_price": self.total_price,
            "total_duration": self.total_duration,
        }


def build_availability(session, settings, now, day, service_ids=()):
    """Every candidate slot of ``day`` with its availability and reason."""
    if service_ids:
        services = resolve_services(session, settings, list(service_ids))
        ensure_distinct_categories(services)
        totals = summarize_services(services)
        total_price = totals.total_price
        duration = totals.total_duration
        cutoff = totals.last_booking_time
    else:
        total_price, duration, cutoff = 0, DEFAULT_DURATION_MINUTES, None

    view = AvailabilityView(
        date=day, open=False, total_price=total_price, total_duration=duration
    )

    policy = load_calendar_policy(session, settings, day)
    status = policy.is_open(day)
    if not status.open:
        view.reason = status.reason
        return view

    view.open = True
    hours = with_service_cutoff(status.hours, cutoff)
    view.hours = hours
    if not within_booking_window(day, now.date(), settings):
        view.reason = OUTSIDE_BOOKING_WINDOW
        return view

    existing = retry_read(
        session,
        settings,
        "Appointments",
        lambda: confirmed_intervals(session, day),
    )
    closures = policy.partial_closures(day)
    now_if_today = TimeOfDay.from_time(now) if day == now.date() else None

    for slot in generate_slots(day, settings.slot_interval_minutes, hours):
        result = evaluate(
            slot, None, existing, closures, duration, hours, now_if_today
        )
        view.slots.append(
            {"time": slot, "available": result.available, "reason": result.reason}
        )
    return view
