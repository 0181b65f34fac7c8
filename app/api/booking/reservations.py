# Customer reservation endpoints: book, list, view, change and cancel
from flask import Blueprint, current_app, jsonify, request
from sqlalchemy import func, select

from app.errors import ValidationError
from app.extensions import db
from app.models import APPOINTMENT_STATUSES, Appointment
from app.services.pricing import reservation_totals
from app.services.reservation_writer import (
    ReservationRequest,
    cancel_reservation,
    create_reservation,
    get_reservation,
    update_reservation,
)
from app.utils.request_parsing import (
    current_clock,
    current_settings,
    get_json_body,
    parse_date,
    parse_int,
    parse_service_ids,
    parse_time,
    require_fields,
)

reservations_bp = Blueprint("reservations", __name__, url_prefix="/api/reservations")

EDITABLE_FIELDS = ("service_ids", "date", "start_time", "note", "status")


def serialize_appointment(appointment):
    totals = reservation_totals(
        appointment.total_price,
        appointment.discount_amount,
        current_settings().tax_rate,
    )
    return {
        "id": appointment.id,
        "customer_id": appointment.customer_id,
        "customer_name": appointment.customer_name,
        "customer_email": appointment.customer_email,
        "date": appointment.date.isoformat(),
        "start_time": appointment.start_time,
        "end_time": appointment.end_time,
        "status": appointment.status,
        "total_price": appointment.total_price,
        "total_duration": appointment.total_duration,
        "service_summary": appointment.service_summary,
        "coupon_code": appointment.coupon_code,
        "discount_amount": appointment.discount_amount,
        "totals": totals.to_dict(),
        "note": appointment.note,
        "items": [
            {
                "service_id": item.service_id,
                "service_name": item.service_name,
                "category": item.category,
                "price": item.price,
                "duration": item.duration,
            }
            for item in appointment.items
        ],
        "created_at": (
            appointment.created_at.isoformat() if appointment.created_at else None
        ),
        "updated_at": (
            appointment.updated_at.isoformat() if appointment.updated_at else None
        ),
    }


def parse_changes(data, allow_end_time=False):
    """Turn a PATCH body into typed changes for the reservation writer."""
    fields = EDITABLE_FIELDS + (("end_time",) if allow_end_time else ())
    unknown = sorted(set(data) - set(fields) - {"customer_id", "coupon_required"})
    if unknown:
        raise ValidationError(f"Fields cannot be changed: {', '.join(unknown)}")

    changes = {}
    if "service_ids" in data:
        changes["service_ids"] = parse_service_ids(data["service_ids"])
    if "date" in data:
        changes["date"] = parse_date(data["date"])
    if "start_time" in data:
        changes["start_time"] = parse_time(data["start_time"], "start_time")
    if "end_time" in data:
        changes["end_time"] = parse_time(data["end_time"], "end_time")
    if "note" in data:
        changes["note"] = data["note"]
    if "status" in data:
        if data["status"] not in APPOINTMENT_STATUSES:
            raise ValidationError(
                f"status must be one of {', '.join(APPOINTMENT_STATUSES)}"
            )
        changes["status"] = data["status"]
    if not changes:
        raise ValidationError("Nothing to update")
    if "coupon_required" in data:
        changes["coupon_required"] = bool(data["coupon_required"])
    return changes


def build_reservation_request(data, admin=False):
    require_fields(data, "customer_id", "service_ids", "date", "start_time")
    return ReservationRequest(
        customer_id=parse_int(data["customer_id"], "customer_id", minimum=1),
        service_ids=parse_service_ids(data["service_ids"]),
        date=parse_date(data["date"]),
        start_time=parse_time(data["start_time"], "start_time"),
        note=data.get("note"),
        coupon_code=data.get("coupon_code") or None,
        coupon_required=bool(data.get("coupon_required", False)),
        customer_name=data.get("customer_name"),
        customer_email=data.get("customer_email"),
        end_time=(
            parse_time(data["end_time"], "end_time")
            if admin and data.get("end_time")
            else None
        ),
        enforce_booking_window=not admin,
    )


def reservation_response(result, status_code, message):
    body = {
        "status": "success",
        "message": message,
        "reservation": serialize_appointment(result.appointment),
    }
    if result.coupon_error is not None:
        body["coupon_error"] = result.coupon_error.to_dict()
    return jsonify(body), status_code


@reservations_bp.route("", methods=["GET"])
def list_reservations():
    """
    List reservations
    ---
    tags:
      - Reservations
    parameters:
      - name: customer_id
        in: query
        type: integer
      - name: date
        in: query
        type: string
      - name: status
        in: query
        type: string
        enum: [CONFIRMED, CANCELLED, COMPLETED, NO_SHOW]
      - name: page
        in: query
        type: integer
        default: 1
      - name: limit
        in: query
        type: integer
        default: 10
    responses:
      200:
        description: One page of reservations, newest first
    """
    page = parse_int(request.args.get("page", 1), "page", minimum=1)
    limit = min(parse_int(request.args.get("limit", 10), "limit", minimum=1), 100)

    filters = []
    if request.args.get("customer_id"):
        filters.append(
            Appointment.customer_id
            == parse_int(request.args["customer_id"], "customer_id")
        )
    if request.args.get("date"):
        filters.append(Appointment.date == parse_date(request.args["date"]))
    status = request.args.get("status")
    if status:
        if status not in APPOINTMENT_STATUSES:
            raise ValidationError(
                f"status must be one of {', '.join(APPOINTMENT_STATUSES)}"
            )
        filters.append(Appointment.status == status)

    total = db.session.scalar(select(func.count(Appointment.id)).where(*filters))
    appointments = db.session.scalars(
        select(Appointment)
        .where(*filters)
        .order_by(Appointment.date.desc(), Appointment.start_time.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    ).all()

    return (
        jsonify(
            {
                "reservations": [serialize_appointment(a) for a in appointments],
                "pagination": {
                    "total": total,
                    "page": page,
                    "limit": limit,
                    "total_pages": (total + limit - 1) // limit,
                },
            }
        ),
        200,
    )


@reservations_bp.route("/<int:reservation_id>", methods=["GET"])
def get_reservation_detail(reservation_id):
    """
    Get one reservation
    ---
    tags:
      - Reservations
    parameters:
      - name: reservation_id
        in: path
        type: integer
        required: true
      - name: customer_id
        in: query
        type: integer
        description: When given, only that customer's reservation is returned
    responses:
      200:
        description: Reservation with its line items
        schema:
          $ref: '#/definitions/Reservation'
      404:
        description: Reservation not found
    """
    customer_id = request.args.get("customer_id")
    appointment = get_reservation(
        db.session,
        reservation_id,
        parse_int(customer_id, "customer_id") if customer_id else None,
    )
    return jsonify({"reservation": serialize_appointment(appointment)}), 200


@reservations_bp.route("", methods=["POST"])
def create_reservation_endpoint():
    """
    Book a reservation
    ---
    tags:
      - Reservations
    parameters:
      - in: body
        name: body
        required: true
        schema:
          $ref: '#/definitions/ReservationPayload'
    responses:
      201:
        description: Reservation confirmed
      400:
        description: Invalid input, unknown service, duplicate category or a required coupon failed
      409:
        description: The slot was taken; refetch availability
      422:
        description: Closed day, past cutoff, outside the booking window or would exceed closing
      503:
        description: Store temporarily unavailable
    """
    data = get_json_body()
    reservation_request = build_reservation_request(data)

    result = create_reservation(
        db.session, current_settings(), current_clock(), reservation_request
    )
    return reservation_response(result, 201, "Reservation confirmed")


@reservations_bp.route("/<int:reservation_id>", methods=["PATCH"])
def update_reservation_endpoint(reservation_id):
    """
    Change or cancel own reservation
    ---
    tags:
      - Reservations
    parameters:
      - name: reservation_id
        in: path
        type: integer
        required: true
      - in: body
        name: body
        required: true
        schema:
          type: object
          required: [customer_id]
          properties:
            customer_id: {type: integer}
            service_ids: {type: array, items: {type: integer}}
            date: {type: string, example: "2026-10-21"}
            start_time: {type: string, example: "11:00"}
            note: {type: string}
            status: {type: string, example: "CANCELLED", description: Customers may only cancel}
            coupon_required: {type: boolean, description: Fail the change when the coupon no longer applies}
    responses:
      200:
        description: Reservation updated; coupon_error is set when the coupon was dropped
      400:
        description: Invalid change or status transition
      403:
        description: Status other than CANCELLED requested by a customer
      404:
        description: Reservation not found
      409:
        description: New time overlaps another appointment
      422:
        description: Policy violation, including a passed cancellation deadline
    """
    data = get_json_body()
    require_fields(data, "customer_id")
    customer_id = parse_int(data["customer_id"], "customer_id")
    changes = parse_changes(data)

    result = update_reservation(
        db.session,
        current_settings(),
        current_clock(),
        reservation_id,
        changes,
        customer_id=customer_id,
    )
    return reservation_response(result, 200, "Reservation updated")


@reservations_bp.route("/<int:reservation_id>", methods=["DELETE"])
def cancel_reservation_endpoint(reservation_id):
    """
    Cancel own reservation
    ---
    tags:
      - Reservations
    parameters:
      - name: reservation_id
        in: path
        type: integer
        required: true
      - name: customer_id
        in: query
        type: integer
        required: true
    responses:
      200:
        description: Reservation cancelled
      400:
        description: Reservation is not confirmed
      404:
        description: Reservation not found
      422:
        description: Cancellation deadline has passed
    """
    customer_id = parse_int(request.args.get("customer_id"), "customer_id")
    result = cancel_reservation(
        db.session,
        current_settings(),
        current_clock(),
        reservation_id,
        customer_id=customer_id,
    )
    current_app.logger.info(
        f"Customer {customer_id} cancelled reservation {reservation_id}"
    )
    return reservation_response(result, 200, "Reservation cancelled")
