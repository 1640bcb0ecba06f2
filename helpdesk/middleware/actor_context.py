"""
Actor context middleware — resolves the calling user for every API request.

Resolution order:
  1. Authorization: Bearer <JWT>       → ``sub`` is the user id (always honoured)
  2. X-User-Id header                  → only when API_AUTH_ENABLED is False
                                         (development / testing)

The user row is loaded from the ``users`` mirror and stored as ``g.actor``.
Inactive or unknown users leave ``g.actor`` unset. Routes that need an actor
call ``current_actor()``, which raises ``AuthenticationRequired`` (401).
"""

import logging

import jwt as pyjwt
from flask import g, request

from helpdesk.models import db
from helpdesk.models.auth import User
from helpdesk.services.jwt_service import user_id_from_token

logger = logging.getLogger(__name__)

# Paths that never need an actor
ACTOR_SKIP_PREFIXES = (
    "/api/v1/health",
)


class AuthenticationRequired(Exception):
    """No usable identity was presented for a route that needs one."""


def _user_id_from_request(app):
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        try:
            return user_id_from_token(auth_header[7:])
        except pyjwt.ExpiredSignatureError:
            logger.info("Expired access token on %s", request.path)
        except pyjwt.InvalidTokenError as exc:
            logger.warning("Invalid access token on %s: %s", request.path, exc)
        return None

    if not app.config.get("API_AUTH_ENABLED", True):
        raw = request.headers.get("X-User-Id", "").strip()
        if raw.isdigit():
            return int(raw)
    return None


def init_actor_middleware(app):
    """Register the actor resolver as a before_request hook."""

    @app.before_request
    def _resolve_actor():
        g.actor = None

        path = request.path
        if not path.startswith("/api/v1/"):
            return
        for prefix in ACTOR_SKIP_PREFIXES:
            if path.startswith(prefix):
                return

        user_id = _user_id_from_request(app)
        if user_id is None:
            return
        user = db.session.get(User, user_id)
        if user is None or not user.is_active:
            logger.warning("Request with unknown or inactive user id=%s", user_id)
            return
        g.actor = user


def current_actor() -> User:
    actor = getattr(g, "actor", None)
    if actor is None:
        raise AuthenticationRequired()
    return actor
