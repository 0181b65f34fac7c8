# Coupon check used by the booking form and the register before checkout
from flask import Blueprint, current_app, jsonify

from app.errors import CouponError, ValidationError
from app.extensions import db
from app.services.catalog import resolve_services
from app.services.coupon_rules import CouponLine, validate_coupon
from app.utils.request_parsing import (
    current_clock,
    current_settings,
    get_json_body,
    parse_date,
    parse_int,
    parse_service_ids,
    parse_time,
)

coupons_bp = Blueprint("coupons", __name__, url_prefix="/api/coupons")


def _parse_lines(raw):
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ValidationError("lines must be a list")
    lines = []
    for entry in raw:
        if not isinstance(entry, dict):
            raise ValidationError("Each line must be an object")
        lines.append(
            CouponLine(
                amount=parse_int(entry.get("amount"), "lines.amount", minimum=0),
                service_id=(
                    parse_int(entry["service_id"], "lines.service_id")
                    if entry.get("service_id") is not None
                    else None
                ),
                category=entry.get("category"),
            )
        )
    return lines


@coupons_bp.route("/validate", methods=["POST"])
def validate_coupon_endpoint():
    """
    Check a coupon against a purchase without using it
    ---
    tags:
      - Coupons
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required: [code]
          properties:
            code: {type: string, example: "WELCOME20"}
            subtotal: {type: integer, description: Defaults to the price of service_ids}
            customer_id: {type: integer}
            service_ids: {type: array, items: {type: integer}}
            categories: {type: array, items: {type: string}}
            date: {type: string, description: Visit date; sets the weekday}
            weekday: {type: integer, description: 0 is Monday}
            time: {type: string, example: "14:00"}
            lines:
              type: array
              items:
                type: object
                properties:
                  amount: {type: integer}
                  service_id: {type: integer}
                  category: {type: string}
    responses:
      200:
        description: Coupon is valid; discount amount for this purchase
        schema:
          $ref: '#/definitions/CouponValidation'
      400:
        description: Coupon rejected; reason names the failing rule
        schema:
          $ref: '#/definitions/Error'
    """
    data = get_json_body()
    settings = current_settings()
    now = current_clock().now()

    service_ids = parse_service_ids(data.get("service_ids"))
    categories = data.get("categories")
    if categories is not None and not isinstance(categories, list):
        raise ValidationError("categories must be a list")

    subtotal = data.get("subtotal")
    if service_ids and (subtotal is None or categories is None):
        services = resolve_services(db.session, settings, service_ids)
        if subtotal is None:
            subtotal = sum(s.price for s in services)
        if categories is None:
            categories = [s.category for s in services]
    if subtotal is None:
        raise ValidationError("subtotal is required when no services are given")
    subtotal = parse_int(subtotal, "subtotal", minimum=0)

    weekday = None
    if data.get("date"):
        weekday = parse_date(data["date"]).weekday()
    elif data.get("weekday") is not None:
        weekday = parse_int(data["weekday"], "weekday", minimum=0)
        if weekday > 6:
            raise ValidationError("weekday must be between 0 (Monday) and 6 (Sunday)")

    customer_id = data.get("customer_id")
    try:
        result = validate_coupon(
            db.session,
            data.get("code"),
            subtotal,
            now,
            customer_id=parse_int(customer_id, "customer_id") if customer_id else None,
            service_ids=service_ids,
            categories=categories or [],
            weekday=weekday,
            time_of_day=parse_time(data["time"], "time") if data.get("time") else None,
            lines=_parse_lines(data.get("lines")),
        )
    except CouponError as e:
        current_app.logger.info(
            f"Coupon {data.get('code')!r} rejected ({e.reason}) for customer {customer_id}"
        )
        raise

    return jsonify(result.to_dict()), 200
