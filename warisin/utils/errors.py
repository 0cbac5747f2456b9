"""JSON error bodies for the API.

Every failure the API reports has the same shape::

    {"error": "<message for people>", "code": "ERR_…", "details": {...}}

``details`` is omitted when empty. Views and the app-level error handlers
both go through :func:`api_error`::

    from warisin.utils.errors import api_error, E

    return api_error(E.NOT_FOUND, "Program not found")
    return api_error(E.CONFLICT_STATE, "Cannot move PENDING to COMPLETED",
                     details={"allowed": ["APPROVED", "REJECTED"]})
"""

from __future__ import annotations

from flask import jsonify


class E:
    """Error codes understood by the web client."""

    VALIDATION_REQUIRED = "ERR_VALIDATION_REQUIRED"
    VALIDATION_INVALID = "ERR_VALIDATION_INVALID"
    UNAUTHENTICATED = "ERR_UNAUTHENTICATED"
    FORBIDDEN = "ERR_FORBIDDEN"
    NOT_FOUND = "ERR_NOT_FOUND"
    CONFLICT_DUPLICATE = "ERR_CONFLICT_DUPLICATE"
    CONFLICT_STATE = "ERR_CONFLICT_STATE"
    PROGRAM_CLOSED = "ERR_PROGRAM_CLOSED"
    PAYLOAD_TOO_LARGE = "ERR_PAYLOAD_TOO_LARGE"
    DATABASE = "ERR_DATABASE"
    INTERNAL = "ERR_INTERNAL"
    UPSTREAM = "ERR_UPSTREAM"


# Status used when the caller does not pass one; unknown codes get 400
STATUS_FOR_CODE: dict[str, int] = {
    E.VALIDATION_REQUIRED: 400,
    E.VALIDATION_INVALID: 400,
    E.UNAUTHENTICATED: 401,
    E.FORBIDDEN: 403,
    E.NOT_FOUND: 404,
    E.CONFLICT_DUPLICATE: 409,
    E.CONFLICT_STATE: 409,
    E.PROGRAM_CLOSED: 409,
    E.PAYLOAD_TOO_LARGE: 413,
    E.DATABASE: 500,
    E.INTERNAL: 500,
    E.UPSTREAM: 502,
}


def api_error(code: str, message: str, *, status: int | None = None, details: dict | None = None):
    """Build ``(response, status)`` for a Flask view or error handler."""
    payload: dict = {"error": message, "code": code}
    if details:
        payload["details"] = details
    return jsonify(payload), status or STATUS_FOR_CODE.get(code, 400)
