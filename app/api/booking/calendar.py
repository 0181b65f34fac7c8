# Public month view of the salon calendar
import calendar
import datetime

from flask import Blueprint, jsonify, request

from app.errors import ValidationError
from app.extensions import db
from app.services.calendar_policy import load_calendar_policy
from app.utils.request_parsing import current_clock, current_settings, parse_int

calendar_bp = Blueprint("calendar", __name__, url_prefix="/api/holidays")


def serialize_closure(closure):
    return {
        "id": closure.id,
        "date": closure.date.isoformat(),
        "full_day": closure.is_full_day,
        "start_time": closure.start_time,
        "end_time": closure.end_time,
        "reason": closure.reason,
    }


@calendar_bp.route("", methods=["GET"])
def get_month_calendar():
    """
    Opening status for every day of a month
    ---
    tags:
      - Calendar
    parameters:
      - name: year
        in: query
        type: integer
        description: Defaults to the current year
      - name: month
        in: query
        type: integer
        description: 1-12, defaults to the current month
    responses:
      200:
        description: Weekly closed day, closures, forced-open days and per-day status
      400:
        description: Invalid year or month
    """
    settings = current_settings()
    today = current_clock().now().date()
    year = parse_int(request.args.get("year", today.year), "year", minimum=1)
    month = parse_int(request.args.get("month", today.month), "month", minimum=1)
    if year > 9999 or month > 12:
        raise ValidationError("year or month is out of range")

    first = datetime.date(year, month, 1)
    last = datetime.date(year, month, calendar.monthrange(year, month)[1])
    policy = load_calendar_policy(db.session, settings, first, last)

    days = []
    day = first
    while day <= last:
        status = policy.is_open(day)
        days.append(
            {
                "date": day.isoformat(),
                **status.to_dict(),
                "forced_open": policy.is_forced_open(day),
                "partial_closures": [w.to_dict() for w in policy.partial_closures(day)],
            }
        )
        day += datetime.timedelta(days=1)

    return (
        jsonify(
            {
                "year": year,
                "month": month,
                "closed_weekday": settings.closed_weekday,
                "closures": [serialize_closure(c) for c in policy.closures],
                "forced_open_days": sorted(d.isoformat() for d in policy.forced_open_days),
                "days": days,
            }
        ),
        200,
    )
