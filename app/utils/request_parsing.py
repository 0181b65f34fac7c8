# Helpers shared by the blueprints for reading request input
import datetime

from flask import current_app, request

from app.errors import ValidationError
from app.services.clock import SystemClock
from app.services.time_of_day import parse_time_of_day


def get_json_body():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def require_fields(data, *fields):
    missing = [f for f in fields if data.get(f) in (None, "", [])]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")


def parse_date(value, field="date"):
    if not value:
        raise ValidationError(f"{field} is required (YYYY-MM-DD)")
    try:
        return datetime.date.fromisoformat(str(value))
    except ValueError:
        raise ValidationError(f"{field} must be in YYYY-MM-DD format") from None


def parse_time(value, field="time"):
    if not value:
        raise ValidationError(f"{field} is required (HH:MM)")
    return parse_time_of_day(value, field)


def parse_int(value, field, minimum=None):
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be an integer") from None
    if minimum is not None and number < minimum:
        raise ValidationError(f"{field} must be at least {minimum}")
    return number


def parse_service_ids(value, field="service_ids"):
    """Accepts a JSON list or a comma-separated query string."""
    if value is None or value == "":
        return []
    if isinstance(value, str):
        value = [part for part in value.split(",") if part.strip()]
    if not isinstance(value, list):
        raise ValidationError(f"{field} must be a list of ids")
    return [parse_int(v, field) for v in value]


def current_settings():
    return current_app.config["BUSINESS_SETTINGS"]


def current_clock():
    clock = current_app.config.get("CLOCK")
    if clock is None:
        clock = SystemClock(current_settings().timezone)
    return clock
