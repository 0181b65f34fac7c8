# Bookable slots for a day and a set of services
from flask import Blueprint, jsonify, request

from app.extensions import db
from app.services.availability import build_availability
from app.utils.request_parsing import (
    current_clock,
    current_settings,
    parse_date,
    parse_service_ids,
)

availability_bp = Blueprint("availability", __name__, url_prefix="/api/availability")


@availability_bp.route("", methods=["GET"])
def get_availability():
    """
    Get availability for a day
    ---
    tags:
      - Availability
    parameters:
      - name: date
        in: query
        type: string
        required: true
        description: Day to check (YYYY-MM-DD)
      - name: service_ids
        in: query
        type: string
        required: false
        description: Comma-separated service ids; defaults to a 60 minute booking
    responses:
      200:
        description: Opening status, hours and every candidate slot
        schema:
          $ref: '#/definitions/Availability'
      400:
        description: Invalid date, unknown service or duplicate category
        schema:
          $ref: '#/definitions/Error'
      503:
        description: Store temporarily unavailable, safe to retry
        schema:
          $ref: '#/definitions/Error'
    """
    day = parse_date(request.args.get("date"))
    service_ids = parse_service_ids(request.args.get("service_ids"))

    view = build_availability(
        db.session,
        current_settings(),
        current_clock().now(),
        day,
        service_ids,
    )
    return jsonify(view.to_dict()), 200
