# Staff calendar administration: closures and special opening days
from flask import Blueprint, current_app, jsonify, request
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from app.api.booking.calendar import serialize_closure
from app.errors import ConflictError, NotFoundError, ValidationError
from app.extensions import db
from app.models import Closure, ForcedOpenDay
from app.services.availability import find_overlapping
from app.services.time_of_day import Interval, TimeOfDay
from app.utils.admin_auth import admin_required
from app.utils.request_parsing import get_json_body, parse_date, parse_time

admin_calendar_bp = Blueprint(
    "admin_calendar", __name__, url_prefix="/api/admin/calendar"
)

WHOLE_DAY = Interval(TimeOfDay("00:00"), TimeOfDay("23:59"))


def serialize_forced_open_day(day):
    return {"id": day.id, "date": day.date.isoformat(), "reason": day.reason}


def _date_range_filters(column):
    filters = []
    if request.args.get("from"):
        filters.append(column >= parse_date(request.args["from"], "from"))
    if request.args.get("to"):
        filters.append(column <= parse_date(request.args["to"], "to"))
    return filters


@admin_calendar_bp.route("/closures", methods=["GET"])
@admin_required
def list_closures():
    """
    List closures
    ---
    tags:
      - Admin Calendar
    security:
      - AdminKey: []
    parameters:
      - name: from
        in: query
        type: string
      - name: to
        in: query
        type: string
    responses:
      200:
        description: Closures ordered by date
    """
    closures = db.session.scalars(
        select(Closure)
        .where(*_date_range_filters(Closure.date))
        .order_by(Closure.date, Closure.start_time)
    ).all()
    return jsonify({"closures": [serialize_closure(c) for c in closures]}), 200


@admin_calendar_bp.route("/closures", methods=["POST"])
@admin_required
def create_closure():
    """
    Add a full-day or partial-day closure
    ---
    tags:
      - Admin Calendar
    security:
      - AdminKey: []
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required: [date]
          properties:
            date: {type: string, example: "2026-12-31"}
            start_time: {type: string, example: "14:00", description: Omit both times for a full day}
            end_time: {type: string, example: "16:00"}
            reason: {type: string}
    responses:
      201:
        description: Closure created
      400:
        description: Invalid times or a duplicate closure
      409:
        description: A confirmed reservation falls inside the closure
    """
    data = get_json_body()
    day = parse_date(data.get("date"))
    start, end = data.get("start_time"), data.get("end_time")

    if bool(start) != bool(end):
        raise ValidationError("Give both start_time and end_time, or neither")
    if start:
        start = parse_time(start, "start_time")
        end = parse_time(end, "end_time")
        if start >= end:
            raise ValidationError("start_time must be before end_time")

    existing = db.session.scalars(select(Closure).where(Closure.date == day)).all()
    for closure in existing:
        if closure.is_full_day or (
            closure.start_time == start and closure.end_time == end
        ):
            raise ValidationError(f"A closure already covers {day.isoformat()}")

    window = Interval(start, end) if start else WHOLE_DAY
    clash = find_overlapping(db.session, day, window.start, window.end)
    if clash is not None:
        raise ConflictError(
            f"Reservation {clash.id} ({clash.start_time}-{clash.end_time}) is confirmed "
            "inside this closure, move or cancel it first",
            conflict=Interval(TimeOfDay(clash.start_time), TimeOfDay(clash.end_time)),
        )

    closure = Closure(
        date=day, start_time=start or None, end_time=end or None, reason=data.get("reason")
    )
    try:
        db.session.add(closure)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    current_app.logger.info(
        f"Closure added on {day}: {'full day' if closure.is_full_day else f'{start}-{end}'}"
    )
    return jsonify({"status": "success", "closure": serialize_closure(closure)}), 201


@admin_calendar_bp.route("/closures/<int:closure_id>", methods=["DELETE"])
@admin_required
def delete_closure(closure_id):
    """
    Remove a closure
    ---
    tags:
      - Admin Calendar
    security:
      - AdminKey: []
    parameters:
      - name: closure_id
        in: path
        type: integer
        required: true
    responses:
      200:
        description: Closure removed
      404:
        description: Closure not found
    """
    closure = db.session.get(Closure, closure_id)
    if closure is None:
        raise NotFoundError("Closure not found")
    db.session.delete(closure)
    db.session.commit()
    current_app.logger.info(f"Closure {closure_id} removed")
    return jsonify({"status": "success", "message": "Closure removed"}), 200


@admin_calendar_bp.route("/forced-open-days", methods=["GET"])
@admin_required
def list_forced_open_days():
    """
    List special opening days
    ---
    tags:
      - Admin Calendar
    security:
      - AdminKey: []
    responses:
      200:
        description: Forced-open days ordered by date
    """
    days = db.session.scalars(
        select(ForcedOpenDay)
        .where(*_date_range_filters(ForcedOpenDay.date))
        .order_by(ForcedOpenDay.date)
    ).all()
    return (
        jsonify({"forced_open_days": [serialize_forced_open_day(d) for d in days]}),
        200,
    )


@admin_calendar_bp.route("/forced-open-days", methods=["POST"])
@admin_required
def create_forced_open_day():
    """
    Open the salon on its weekly closed day
    ---
    tags:
      - Admin Calendar
    security:
      - AdminKey: []
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required: [date]
          properties:
            date: {type: string, example: "2026-12-28"}
            reason: {type: string}
    responses:
      201:
        description: Special opening day created
      400:
        description: Date already registered
    """
    data = get_json_body()
    day = parse_date(data.get("date"))

    forced = ForcedOpenDay(date=day, reason=data.get("reason"))
    try:
        db.session.add(forced)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ValidationError(
            f"{day.isoformat()} is already a special opening day"
        ) from None

    current_app.logger.info(f"Forced-open day added on {day}")
    return (
        jsonify({"status": "success", "forced_open_day": serialize_forced_open_day(forced)}),
        201,
    )


@admin_calendar_bp.route("/forced-open-days/<int:day_id>", methods=["DELETE"])
@admin_required
def delete_forced_open_day(day_id):
    """
    Remove a special opening day
    ---
    tags:
      - Admin Calendar
    security:
      - AdminKey: []
    parameters:
      - name: day_id
        in: path
        type: integer
        required: true
    responses:
      200:
        description: Special opening day removed
      404:
        description: Not found
    """
    forced = db.session.get(ForcedOpenDay, day_id)
    if forced is None:
        raise NotFoundError("Forced-open day not found")
    db.session.delete(forced)
    db.session.commit()
    current_app.logger.info(f"Forced-open day {day_id} removed")
    return jsonify({"status": "success", "message": "Forced-open day removed"}), 200
