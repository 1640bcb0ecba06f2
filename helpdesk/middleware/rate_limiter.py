"""
Rate limiting configuration.

Applies per-blueprint limits using Flask-Limiter. The Limiter instance is
created in helpdesk/__init__.py with no default limits; this module decides
which route groups are throttled.

Limits are keyed by the resolved actor when there is one, else by remote IP,
so users behind one branch NAT do not share a bucket.

Usage:
    from helpdesk.middleware.rate_limiter import init_rate_limits
    init_rate_limits(app, limiter)
"""

import logging

from flask import g, request as flask_request

logger = logging.getLogger(__name__)

DEFAULT_INTAKE_LIMIT = "30/minute"
DEFAULT_ADMIN_LIMIT = "60/minute"
DEFAULT_READ_LIMIT = "200/minute"


def actor_rate_limit_key():
    """Rate limit key: actor id if resolved, else remote IP."""
    actor = getattr(g, "actor", None)
    if actor is not None:
        return f"user:{actor.id}"
    return flask_request.remote_addr or "unknown"


def init_rate_limits(app, limiter):
    """
    Apply rate limits to API blueprints.

    Limits (per actor, falling back to remote IP):
        - Ticket intake/workflow:  INTAKE_RATE_LIMIT (default 30/minute)
        - Catalog administration:  60/minute
        - Catalog / master data:   200/minute
        - Health checks:           exempt

    Rate limiting is disabled in testing mode.
    """
    if app.config.get("TESTING") or not app.config.get("RATELIMIT_ENABLED", True):
        app.logger.info("Rate limiter disabled")
        return

    intake_limit = app.config.get("INTAKE_RATE_LIMIT") or DEFAULT_INTAKE_LIMIT

    bp = app.blueprints.get("tickets")
    if bp:
        limiter.limit(intake_limit, key_func=actor_rate_limit_key)(bp)

    bp = app.blueprints.get("admin_catalog")
    if bp:
        limiter.limit(DEFAULT_ADMIN_LIMIT, key_func=actor_rate_limit_key)(bp)

    for bp_name in ("catalog", "master_data"):
        bp = app.blueprints.get(bp_name)
        if bp:
            limiter.limit(DEFAULT_READ_LIMIT, key_func=actor_rate_limit_key)(bp)

    bp = app.blueprints.get("health")
    if bp:
        limiter.exempt(bp)

    app.logger.info(
        "Rate limiter configured: tickets=%s, admin=%s, read=%s",
        intake_limit, DEFAULT_ADMIN_LIMIT, DEFAULT_READ_LIMIT,
    )
