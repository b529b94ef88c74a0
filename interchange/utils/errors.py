"""Standardised API error responses.

Usage
-----
    from interchange.utils.errors import api_error, E

    return api_error(E.NOT_FOUND, "Audit log not found")
    return api_error(E.UNSUPPORTED_FORMAT, "Unsupported file format: .pp")
    return api_error(E.QUOTA_EXCEEDED, "Demo mode limited to 3 exports per session.")
"""

from __future__ import annotations

from flask import jsonify


# ── Error code constants ──────────────────────────────────────────────
class E:
    """Machine-readable error code constants.

    Convention:
     • ERR_  prefix for standard application errors
     • QUOTA_ prefix for demo-mode policy rejections
    """

    # Validation – HTTP 400
    VALIDATION_REQUIRED = "ERR_VALIDATION_REQUIRED"
    VALIDATION_INVALID = "ERR_VALIDATION_INVALID"
    UNSUPPORTED_FORMAT = "ERR_UNSUPPORTED_FORMAT"
    FILE_UNREADABLE = "ERR_FILE_UNREADABLE"

    # Business rule – HTTP 422
    QUOTA_EXCEEDED = "QUOTA_EXCEEDED"
    DATE_RANGE = "ERR_DATE_RANGE"

    # Not-found – HTTP 404
    NOT_FOUND = "ERR_NOT_FOUND"

    # Conflict – HTTP 409
    CONFLICT_STALE = "ERR_CONFLICT_STALE"

    # Server – HTTP 500
    INTERNAL = "ERR_INTERNAL"


# ── Default HTTP status mapping ───────────────────────────────────────
_DEFAULT_STATUS: dict[str, int] = {
    E.VALIDATION_REQUIRED: 400,
    E.VALIDATION_INVALID: 400,
    E.UNSUPPORTED_FORMAT: 400,
    E.FILE_UNREADABLE: 400,
    E.QUOTA_EXCEEDED: 422,
    E.DATE_RANGE: 422,
    E.NOT_FOUND: 404,
    E.CONFLICT_STALE: 409,
    E.INTERNAL: 500,
}


def status_for(code: str) -> int:
    """Return the default HTTP status for an error code (400 if unknown)."""
    return _DEFAULT_STATUS.get(code, 400)


def api_error(
    code: str,
    message: str,
    *,
    status: int | None = None,
    details: dict | None = None,
):
    """Return a standard JSON error response.

    Parameters
    ----------
    code : str
        Machine-readable error code (use ``E.*`` constants).
    message : str
        Human-readable explanation for developers / UI.
    status : int, optional
        HTTP status override.  Falls back to ``_DEFAULT_STATUS[code]``,
        then to ``400``.
    details : dict, optional
        Extra structured payload (quota status, parse warnings, etc.).

    Returns
    -------
    tuple[Response, int]
        ``(jsonify(body), http_status)`` – drop-in for Flask views.
    """

    http_status = status or status_for(code)

    body: dict = {
        "error": message,
        "code": code,
    }
    if details:
        body["details"] = details

    return jsonify(body), http_status
