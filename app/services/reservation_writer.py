"""
Reservation writer: the only place appointments are created or rescheduled.

A request is a Draft until every check passes (Validated) and is then
persisted with its line items in the same transaction (Committed). Any
failure rolls the transaction back (Rejected) and surfaces a BookingError.

Two clients that both saw a slot as available must not both get it. Before
re-reading the day's appointments the writer locks that date's BookingDay
row (SELECT ... FOR UPDATE), so concurrent writers for one date run one after
the other and the second one sees the first one's appointment. A second
overlap query after the insert guards the same invariant on stores that
ignore row locks.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional

from flask import current_app
from sqlalchemy import select
from sqlalchemy.dialects.mysql import insert as mysql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert

from app.errors import (
    ConflictError,
    CouponError,
    ForbiddenError,
    NotFoundError,
    PolicyError,
    ValidationError,
)
from app.models import Appointment, BookingDay, ReservationItem, Service
from app.services.availability import (
    OUTSIDE_BOOKING_WINDOW,
    confirmed_intervals,
    find_overlapping,
    within_booking_window,
)
from app.services.calendar_policy import load_calendar_policy, with_service_cutoff
from app.services.catalog import (
    ensure_distinct_categories,
    resolve_services,
    summarize_services,
)
from app.services.conflicts import evaluate, raise_for_availability
from app.services.coupon_rules import validate_coupon
from app.services.email_service import notify_reservation
from app.services.time_of_day import Interval, TimeOfDay

CONFIRMED = "CONFIRMED"
CANCELLED = "CANCELLED"

ALLOWED_TRANSITIONS = {
    CONFIRMED: {CANCELLED, "COMPLETED", "NO_SHOW"},
}


@dataclass
class ReservationRequest:
    customer_id: int
    service_ids: List[int]
    date: object
    start_time: TimeOfDay
    note: Optional[str] = None
    coupon_code: Optional[str] = None
    coupon_required: bool = False
    customer_name: Optional[str] = None
    customer_email: Optional[str] = None
    # staff-only explicit end time
    end_time: Optional[TimeOfDay] = None
    enforce_booking_window: bool = True


@dataclass
class ReservationResult:
    appointment: Appointment
    coupon_error: Optional[CouponError] = None


def _seed_booking_day(session, day):
    """Insert the lock row for ``day``; a row created meanwhile by another writer is kept."""
    if session.get_bind().dialect.name == "mysql":
        stmt = mysql_insert(BookingDay).values(date=day)
        stmt = stmt.on_duplicate_key_update(date=stmt.inserted.date)
    else:
        stmt = sqlite_insert(BookingDay).values(date=day).on_conflict_do_nothing()
    session.execute(stmt)


def lock_booking_day(session, day):
    query = select(BookingDay).where(BookingDay.date == day).with_for_update()
    lock = session.scalar(query)
    if lock is None:
        _seed_booking_day(session, day)
        lock = session.scalar(query)
    return lock


def _check_open(policy, settings, now, day, enforce_window):
    status = policy.is_open(day)
    if not status.open:
        raise PolicyError(status.reason, f"The salon is closed on {day.isoformat()}")
    if enforce_window and not within_booking_window(day, now.date(), settings):
        raise PolicyError(
            OUTSIDE_BOOKING_WINDOW,
            f"Reservations can be made from today up to {settings.booking_advance_days} days ahead",
        )
    return status.hours


def _validate_slot(
    session, policy, hours, now, day, start, end, duration, exclude_id=None
):
    """Re-run the conflict detector against live rows; returns the end time."""
    now_if_today = TimeOfDay.from_time(now) if day == now.date() else None
    result = evaluate(
        start,
        end,
        confirmed_intervals(session, day, exclude_id=exclude_id),
        policy.partial_closures(day),
        duration,
        hours,
        now_if_today,
    )
    raise_for_availability(result, hours)
    return result.end


def _guard_against_overlap(session, appointment):
    clash = find_overlapping(
        session,
        appointment.date,
        appointment.start_time,
        appointment.end_time,
        exclude_id=appointment.id,
    )
    if clash is not None:
        conflict = Interval(TimeOfDay(clash.start_time), TimeOfDay(clash.end_time))
        raise ConflictError(
            f"This time overlaps an existing appointment ({conflict.start}-{conflict.end})",
            conflict=conflict,
        )


def _snapshot_items(services):
    return [
        ReservationItem(
            service_id=s.id,
            service_name=s.name,
            category=s.category,
            price=s.price,
            duration=s.duration,
            order_index=index,
        )
        for index, s in enumerate(services)
    ]


def _check_end_override(start, end):
    if end is not None and end <= start:
        raise ValidationError("end_time must be after start_time")


def _apply_coupon(session, request, services, totals, now):
    """Read-only coupon check; returns (coupon, discount, error)."""
    if not request.coupon_code:
        return None, 0, None
    try:
        result = validate_coupon(
            session,
            request.coupon_code,
            totals.total_price,
            now,
            customer_id=request.customer_id,
            service_ids=[s.id for s in services],
            categories=totals.categories,
            weekday=request.date.weekday(),
            time_of_day=request.start_time,
        )
    except CouponError as e:
        if request.coupon_required:
            raise
        current_app.logger.info(
            f"Coupon {request.coupon_code!r} ignored for customer {request.customer_id}: {e.message}"
        )
        return None, 0, e
    return result.coupon, result.discount_amount, None


def create_reservation(session, settings, clock, request):
    now = clock.now()
    _check_end_override(request.start_time, request.end_time)
    try:
        services = resolve_services(session, settings, request.service_ids)
        ensure_distinct_categories(services)
        totals = summarize_services(services)

        policy = load_calendar_policy(session, settings, request.date)
        day_hours = _check_open(
            policy, settings, now, request.date, request.enforce_booking_window
        )
        hours = with_service_cutoff(day_hours, totals.last_booking_time)

        lock_booking_day(session, request.date)
        end = _validate_slot(
            session,
            policy,
            hours,
            now,
            request.date,
            request.start_time,
            request.end_time,
            totals.total_duration,
        )

        coupon, discount, coupon_error = _apply_coupon(
            session, request, services, totals, now
        )

        appointment = Appointment(
            customer_id=request.customer_id,
            customer_name=request.customer_name,
            customer_email=request.customer_email,
            date=request.date,
            start_time=request.start_time,
            end_time=end,
            total_price=totals.total_price,
            total_duration=totals.total_duration,
            service_summary=totals.summary,
            status=CONFIRMED,
            coupon_id=coupon.id if coupon else None,
            coupon_code=coupon.code if coupon else None,
            discount_amount=discount,
            note=request.note or None,
        )
        appointment.items = _snapshot_items(services)
        session.add(appointment)
        session.flush()

        _guard_against_overlap(session, appointment)
        session.commit()
    except ConflictError as e:
        session.rollback()
        current_app.logger.warning(
            f"Reservation conflict on {request.date} at {request.start_time}: {e.message}"
        )
        raise
    except Exception:
        session.rollback()
        raise

    current_app.logger.info(
        f"Reservation {appointment.id} created for customer {appointment.customer_id} "
        f"on {appointment.date} {appointment.start_time}-{appointment.end_time}"
    )
    notify_reservation("created", appointment)
    return ReservationResult(appointment, coupon_error)


def get_reservation(session, appointment_id, customer_id=None):
    appointment = session.get(Appointment, appointment_id)
    # Customers only see their own reservations
    if appointment is None or (
        customer_id is not None and appointment.customer_id != customer_id
    ):
        raise NotFoundError("Reservation not found")
    return appointment


def check_transition(current, new):
    if current == new:
        return
    if new not in ALLOWED_TRANSITIONS.get(current, set()):
        raise ValidationError(f"Cannot change a {current} reservation to {new}")


def check_cancel_deadline(appointment, settings, now):
    deadline = datetime.combine(
        appointment.date - timedelta(days=1),
        datetime.strptime(settings.cancel_deadline_time, "%H:%M").time(),
    )
    if now >= deadline:
        raise PolicyError(
            "cancel_deadline_passed",
            f"Online cancellation closes at {settings.cancel_deadline_time} the day before, "
            "please contact the salon",
        )


def _catalog_cutoff(session, appointment):
    """Earliest last booking time of the services already on the appointment."""
    ids = [item.service_id for item in appointment.items]
    if not ids:
        return None
    cutoffs = session.scalars(
        select(Service.last_booking_time).where(Service.id.in_(ids))
    ).all()
    return min((TimeOfDay(c) for c in cutoffs), default=None)


def update_reservation(
    session, settings, clock, appointment_id, changes, admin=False, customer_id=None
):
    """
    Apply ``changes`` (service_ids, date, start_time, end_time, note, status).

    Rescheduling re-runs the same checks as creation against every other
    appointment. ``end_time`` is a staff-only override; otherwise the end is
    recomputed whenever the start time or the services change.
    """
    now = clock.now()
    appointment = get_reservation(session, appointment_id, customer_id)

    if "end_time" in changes and not admin:
        raise ValidationError("Only staff can set an explicit end time")

    new_status = changes.get("status")
    if new_status and not admin and new_status != CANCELLED:
        raise ForbiddenError(f"Only staff can mark a reservation as {new_status}")

    reschedule = any(
        key in changes for key in ("service_ids", "date", "start_time", "end_time")
    )
    if new_status:
        check_transition(appointment.status, new_status)
    if reschedule and (
        appointment.status != CONFIRMED or new_status not in (None, CONFIRMED)
    ):
        raise ValidationError("Only confirmed reservations can be rescheduled")

    status_changed = bool(new_status) and new_status != appointment.status
    if status_changed and new_status == CANCELLED and not admin:
        check_cancel_deadline(appointment, settings, now)

    coupon_error = None
    try:
        if reschedule:
            _reschedule(session, settings, now, appointment, changes, admin)
            if any(key in changes for key in ("service_ids", "date", "start_time")):
                coupon_error = _revalidate_coupon(
                    session, now, appointment, changes.get("coupon_required", False)
                )
        if "note" in changes:
            appointment.note = changes["note"] or None
        if status_changed:
            appointment.status = new_status
        session.flush()
        if reschedule:
            _guard_against_overlap(session, appointment)
        session.commit()
    except ConflictError as e:
        session.rollback()
        current_app.logger.warning(
            f"Reservation {appointment_id} reschedule conflict: {e.message}"
        )
        raise
    except Exception:
        session.rollback()
        raise

    current_app.logger.info(
        f"Reservation {appointment.id} updated: {sorted(changes)}"
    )
    if status_changed and new_status == CANCELLED:
        notify_reservation("cancelled", appointment)
    elif reschedule:
        notify_reservation("changed", appointment)
    return ReservationResult(appointment, coupon_error)


def _reschedule(session, settings, now, appointment, changes, admin):
    services = None
    if "service_ids" in changes:
        services = resolve_services(session, settings, changes["service_ids"])
        ensure_distinct_categories(services)
        totals = summarize_services(services)
        duration = totals.total_duration
        cutoff = totals.last_booking_time
    else:
        duration = sum(item.duration for item in appointment.items)
        cutoff = _catalog_cutoff(session, appointment)

    day = changes.get("date", appointment.date)
    start = TimeOfDay(changes.get("start_time", appointment.start_time))
    if "end_time" in changes:
        end = changes["end_time"]
        _check_end_override(start, end)
    elif "start_time" in changes or services is not None:
        end = None
    else:
        end = TimeOfDay(appointment.end_time)

    policy = load_calendar_policy(session, settings, day)
    day_hours = _check_open(policy, settings, now, day, enforce_window=not admin)
    hours = with_service_cutoff(day_hours, cutoff)

    lock_booking_day(session, day)
    end = _validate_slot(
        session, policy, hours, now, day, start, end, duration, appointment.id
    )

    appointment.date = day
    appointment.start_time = start
    appointment.end_time = end
    if services is not None:
        appointment.items = _snapshot_items(services)
        appointment.total_price = totals.total_price
        appointment.total_duration = totals.total_duration
        appointment.service_summary = totals.summary


def _revalidate_coupon(session, now, appointment, required):
    """
    Re-run the coupon rules against the rescheduled booking.

    The frozen discount follows the new items. A coupon that no longer
    applies is dropped and its error returned, unless ``required``.
    """
    if not appointment.coupon_code:
        return None
    items = appointment.items
    try:
        result = validate_coupon(
            session,
            appointment.coupon_code,
            sum(item.price for item in items),
            now,
            customer_id=appointment.customer_id,
            service_ids=[item.service_id for item in items],
            categories=[item.category for item in items],
            weekday=appointment.date.weekday(),
            time_of_day=appointment.start_time,
        )
    except CouponError as e:
        if required:
            raise
        current_app.logger.info(
            f"Coupon {appointment.coupon_code!r} dropped from reservation {appointment.id}: {e.message}"
        )
        appointment.coupon_id = None
        appointment.coupon_code = None
        appointment.discount_amount = 0
        return e
    appointment.discount_amount = result.discount_amount
    return None


def cancel_reservation(
    session, settings, clock, appointment_id, admin=False, customer_id=None
):
    appointment = get_reservation(session, appointment_id, customer_id)
    if appointment.status != CONFIRMED:
        raise ValidationError(
            f"This reservation is already {appointment.status.lower()}"
        )
    return update_reservation(
        session,
        settings,
        clock,
        appointment_id,
        {"status": CANCELLED},
        admin=admin,
        customer_id=customer_id,
    )


def delete_reservation(session, appointment_id):
    """Hard delete, staff only; line items go with the appointment."""
    appointment = get_reservation(session, appointment_id)
    try:
        session.delete(appointment)
        session.commit()
    except Exception:
        session.rollback()
        raise
    current_app.logger.info(f"Reservation {appointment_id} deleted")
