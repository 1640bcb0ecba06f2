"""Standardised API error responses.

Usage
-----
    from helpdesk.utils.errors import api_error, E

    return api_error(E.NOT_FOUND, "Ticket not found")
    return api_error(E.VALIDATION_FAILED, "Validation failed", details=exc.details)

``register_domain_error_handlers(bp)`` wires every service exception to its
HTTP status on one blueprint, so views never translate exceptions themselves.
"""

from __future__ import annotations

import logging

from flask import jsonify

from helpdesk.core.exceptions import (
    InvalidTransitionError,
    NotFoundError,
    PersistenceError,
    SchemaConflictError,
    UnauthorizedError,
    ValidationFailedError,
)
from helpdesk.middleware.actor_context import AuthenticationRequired

logger = logging.getLogger(__name__)


# ── Error code constants ──────────────────────────────────────────────
class E:
    """Machine-readable error code constants (``ERR_`` prefix)."""

    # Validation – HTTP 400
    VALIDATION_REQUIRED = "ERR_VALIDATION_REQUIRED"
    VALIDATION_INVALID = "ERR_VALIDATION_INVALID"
    VALIDATION_FAILED = "ERR_VALIDATION_FAILED"

    # Authentication – HTTP 401
    UNAUTHENTICATED = "ERR_UNAUTHENTICATED"

    # Permissions – HTTP 403
    FORBIDDEN = "ERR_FORBIDDEN"

    # Not-found – HTTP 404
    NOT_FOUND = "ERR_NOT_FOUND"

    # Conflict – HTTP 409
    CONFLICT_SCHEMA = "ERR_CONFLICT_SCHEMA"
    CONFLICT_STATE = "ERR_CONFLICT_STATE"

    # Throttling – HTTP 429
    RATE_LIMITED = "ERR_RATE_LIMITED"

    # Server – HTTP 5xx
    DATABASE = "ERR_DATABASE"
    INTERNAL = "ERR_INTERNAL"


# ── Default HTTP status mapping ───────────────────────────────────────
_DEFAULT_STATUS: dict[str, int] = {
    E.VALIDATION_REQUIRED: 400,
    E.VALIDATION_INVALID: 400,
    E.VALIDATION_FAILED: 400,
    E.UNAUTHENTICATED: 401,
    E.FORBIDDEN: 403,
    E.NOT_FOUND: 404,
    E.CONFLICT_SCHEMA: 409,
    E.CONFLICT_STATE: 409,
    E.RATE_LIMITED: 429,
    E.DATABASE: 503,
    E.INTERNAL: 500,
}


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
        Extra structured payload (per-field errors, current status, ...).

    Returns
    -------
    tuple[Response, int]
        ``(jsonify(body), http_status)`` – drop-in for Flask views.
    """
    http_status = status or _DEFAULT_STATUS.get(code, 400)

    body: dict = {
        "error": message,
        "code": code,
    }
    if details:
        body["details"] = details

    return jsonify(body), http_status


def register_domain_error_handlers(bp) -> None:
    """Map service-layer exceptions to api_error responses on ``bp``."""

    @bp.errorhandler(ValidationFailedError)
    def _validation_failed(exc):
        return api_error(E.VALIDATION_FAILED, "Validation failed", details=exc.details)

    @bp.errorhandler(NotFoundError)
    def _not_found(exc):
        return api_error(E.NOT_FOUND, str(exc))

    @bp.errorhandler(SchemaConflictError)
    def _schema_conflict(exc):
        details = {"field": exc.field} if exc.field else None
        return api_error(E.CONFLICT_SCHEMA, str(exc), details=details)

    @bp.errorhandler(InvalidTransitionError)
    def _invalid_transition(exc):
        return api_error(
            E.CONFLICT_STATE, str(exc),
            details={"current_status": exc.current_status, "action": exc.action},
        )

    @bp.errorhandler(UnauthorizedError)
    def _forbidden(exc):
        return api_error(E.FORBIDDEN, str(exc))

    @bp.errorhandler(AuthenticationRequired)
    def _unauthenticated(exc):
        return api_error(E.UNAUTHENTICATED, "Authentication required")

    @bp.errorhandler(PersistenceError)
    def _persistence(exc):
        logger.error("Persistence failure surfaced to client: %s", exc)
        return api_error(E.DATABASE, "Temporary storage failure, please retry")
