# Error taxonomy shared by the booking, coupon and settlement endpoints
import traceback

from flask import current_app, jsonify
from werkzeug.exceptions import HTTPException


class BookingError(Exception):
    """
    Base for every error surfaced to API callers.

    Each error carries a stable machine-readable ``kind``, the HTTP status it
    maps to and a human-readable message. Subclasses add structured extras
    (a reason code, the conflicting interval) through ``extra()``.
    """

    kind = "error"
    status_code = 400
    retryable = False

    def __init__(self, message):
        super().__init__(message)
        self.message = message

    def extra(self):
        return {}

    def to_dict(self):
        body = {"status": "error", "kind": self.kind, "message": self.message}
        if self.retryable:
            body["retryable"] = True
        body.update(self.extra())
        return body


class ValidationError(BookingError):
    kind = "validation_error"
    status_code = 400


class UnknownService(ValidationError):
    kind = "unknown_service"

    def __init__(self, service_ids):
        self.service_ids = list(service_ids)
        ids = ", ".join(str(i) for i in self.service_ids)
        super().__init__(f"Service not found or inactive: {ids}")

    def extra(self):
        return {"service_ids": self.service_ids}


class DuplicateCategory(ValidationError):
    kind = "duplicate_category"

    def __init__(self, categories):
        self.categories = list(categories)
        super().__init__(
            f"Only one service per category can be booked: {', '.join(self.categories)}"
        )

    def extra(self):
        return {"categories": self.categories}


class NotFoundError(BookingError):
    kind = "not_found"
    status_code = 404


class ForbiddenError(BookingError):
    kind = "forbidden"
    status_code = 403


class PolicyError(BookingError):
    """Closed day, past cutoff, would exceed closing and similar."""

    kind = "policy_error"
    status_code = 422

    def __init__(self, reason, message):
        super().__init__(message)
        self.reason = reason

    def extra(self):
        return {"reason": self.reason}


class ConflictError(BookingError):
    kind = "conflict"
    status_code = 409

    def __init__(self, message, conflict=None):
        super().__init__(message)
        self.conflict = conflict

    def extra(self):
        if self.conflict is None:
            return {}
        return {"conflict": self.conflict.to_dict()}


class CouponError(BookingError):
    kind = "coupon_error"
    status_code = 400

    def __init__(self, reason, message):
        super().__init__(message)
        self.reason = reason

    def extra(self):
        return {"reason": self.reason}


class UpstreamError(BookingError):
    kind = "upstream_unavailable"
    status_code = 503
    retryable = True


def register_error_handlers(app):
    @app.errorhandler(BookingError)
    def handle_booking_error(error):
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        kind = "not_found" if error.code == 404 else "http_error"
        return (
            jsonify({"status": "error", "kind": kind, "message": error.description}),
            error.code,
        )

    @app.errorhandler(Exception)
    def handle_unexpected(error):
        # Stack traces stay in the log
        current_app.logger.error(
            f"Unhandled error: {error}\n{traceback.format_exc()}"
        )
        return (
            jsonify(
                {
                    "status": "error",
                    "kind": "internal_error",
                    "message": "Internal server error",
                }
            ),
            500,
        )
