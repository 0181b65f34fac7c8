import hmac
from functools import wraps

from flask import current_app, jsonify, request


def is_admin_request():
    supplied = request.headers.get("X-ADMIN-KEY", "")
    expected = current_app.config.get("ADMIN_API_KEY") or ""
    return bool(expected) and hmac.compare_digest(supplied, expected)


def admin_required(view):
    """Reject the request with 401 unless it carries the staff key."""

    @wraps(view)
    def wrapper(*args, **kwargs):
        if not is_admin_request():
            current_app.logger.warning(
                f"Rejected admin request to {request.path} from {request.remote_addr}"
            )
            return (
                jsonify(
                    {"status": "error", "kind": "unauthorized", "message": "Unauthorized"}
                ),
                401,
            )
        return view(*args, **kwargs)

    return wrapper
