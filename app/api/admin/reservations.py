# Staff reservation endpoints: phone bookings, edits and hard deletes
from flask import Blueprint, jsonify

from app.api.booking.reservations import (
    build_reservation_request,
    parse_changes,
    reservation_response,
)
from app.extensions import db
from app.services.reservation_writer import (
    create_reservation,
    delete_reservation,
    update_reservation,
)
from app.utils.admin_auth import admin_required
from app.utils.request_parsing import current_clock, current_settings, get_json_body

admin_reservations_bp = Blueprint(
    "admin_reservations", __name__, url_prefix="/api/admin/reservations"
)


@admin_reservations_bp.route("", methods=["POST"])
@admin_required
def admin_create_reservation():
    """
    Create a reservation on behalf of a customer
    ---
    tags:
      - Admin Reservations
    security:
      - AdminKey: []
    parameters:
      - in: body
        name: body
        required: true
        schema:
          $ref: '#/definitions/ReservationPayload'
    responses:
      201:
        description: Reservation confirmed; end_time may be set explicitly
      401:
        description: Missing or wrong admin key
      409:
        description: Overlaps another appointment
      422:
        description: Closed day or outside business hours
    """
    data = get_json_body()
    reservation_request = build_reservation_request(data, admin=True)

    result = create_reservation(
        db.session, current_settings(), current_clock(), reservation_request
    )
    return reservation_response(result, 201, "Reservation created")


@admin_reservations_bp.route("/<int:reservation_id>", methods=["PATCH"])
@admin_required
def admin_update_reservation(reservation_id):
    """
    Edit any reservation
    ---
    tags:
      - Admin Reservations
    security:
      - AdminKey: []
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
          properties:
            service_ids: {type: array, items: {type: integer}}
            date: {type: string}
            start_time: {type: string}
            end_time: {type: string, description: Explicit end time override}
            note: {type: string}
            status: {type: string}
    responses:
      200:
        description: Reservation updated
      400:
        description: Invalid change or status transition
      404:
        description: Reservation not found
      409:
        description: Overlaps another appointment
    """
    changes = parse_changes(get_json_body(), allow_end_time=True)

    result = update_reservation(
        db.session,
        current_settings(),
        current_clock(),
        reservation_id,
        changes,
        admin=True,
    )
    return reservation_response(result, 200, "Reservation updated")


@admin_reservations_bp.route("/<int:reservation_id>", methods=["DELETE"])
@admin_required
def admin_delete_reservation(reservation_id):
    """
    Permanently delete a reservation and its items
    ---
    tags:
      - Admin Reservations
    security:
      - AdminKey: []
    parameters:
      - name: reservation_id
        in: path
        type: integer
        required: true
    responses:
      200:
        description: Reservation deleted
      404:
        description: Reservation not found
    """
    delete_reservation(db.session, reservation_id)
    return jsonify({"status": "success", "message": "Reservation deleted"}), 200
