"""
Service Desk
Flask Application Factory.

Usage:
    from helpdesk import create_app
    app = create_app()           # defaults to APP_ENV or "development"
    app = create_app("testing")  # explicit config
"""

import logging
import os

from flask import Flask, abort, request
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate

from helpdesk.config import basedir, config
from helpdesk.middleware.actor_context import init_actor_middleware
from helpdesk.middleware.logging_config import configure_logging
from helpdesk.middleware.rate_limiter import init_rate_limits
from helpdesk.middleware.timing import init_request_timing
from helpdesk.models import db
from helpdesk.services.master_data_service import SqlMasterDataSource
from helpdesk.utils.errors import E, api_error

logger = logging.getLogger(__name__)

# ── SQLite FK enforcement (global engine event) ─────────────────────────
from sqlalchemy import event as _sa_event, engine as _sa_engine  # noqa: E402


@_sa_event.listens_for(_sa_engine.Engine, "connect")
def _enable_sqlite_fk(dbapi_conn, connection_record):
    """Enable foreign key enforcement for SQLite connections."""
    if "sqlite" in type(dbapi_conn).__module__:
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


migrate = Migrate()
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[],                     # per-blueprint limits only
)


def create_app(config_name=None):
    """
    Create and configure the Flask application.

    Args:
        config_name: Configuration environment name.
                     One of: "development", "testing", "production".
                     Defaults to APP_ENV env var, or "development" if unset.

    Returns:
        Configured Flask application instance.
    """
    if config_name is None:
        config_name = os.getenv("APP_ENV", "development")

    app = Flask(__name__, instance_path=os.path.join(basedir, "instance"))
    app.config.from_object(config[config_name]())
    os.makedirs(app.instance_path, exist_ok=True)

    # ── Structured logging (must be first) ───────────────────────────────
    configure_logging(app)

    # ── Request timing + actor resolution ────────────────────────────────
    # Both run before the limiter's hook so limits can key on the actor.
    init_request_timing(app)
    init_actor_middleware(app)

    # ── Extensions ───────────────────────────────────────────────────────
    db.init_app(app)
    migrate.init_app(app, db)
    limiter.init_app(app)
    cors_origins = app.config.get("CORS_ORIGINS", "*")
    if cors_origins and cors_origins != "*":
        CORS(app, origins=[o.strip() for o in cors_origins.split(",") if o.strip()])
    else:
        CORS(app)

    # Default option provider for data_type-backed fields
    app.extensions.setdefault("master_data_source", SqlMasterDataSource())

    # ── Request guards (Content-Type) ────────────────────────────────────
    @app.before_request
    def _guard_request():
        if request.method in ("POST", "PUT", "PATCH") and request.path.startswith("/api/"):
            ct = request.content_type or ""
            if request.data and "json" not in ct:
                abort(415, description="Content-Type must be application/json")

    # ── Import all models so Alembic can detect them ─────────────────────
    from helpdesk.models import auth as _auth_models              # noqa: F401
    from helpdesk.models import catalog as _catalog_models        # noqa: F401
    from helpdesk.models import master_data as _master_data_models  # noqa: F401
    from helpdesk.models import ticket as _ticket_models          # noqa: F401

    # ── Auto-create tables (dev/test convenience; production uses migrations) ──
    if config_name != "production":
        with app.app_context():
            db.create_all()

    # ── Blueprints ───────────────────────────────────────────────────────
    from helpdesk.blueprints.admin_catalog_bp import admin_catalog_bp
    from helpdesk.blueprints.catalog_bp import catalog_bp
    from helpdesk.blueprints.health_bp import health_bp
    from helpdesk.blueprints.master_data_bp import master_data_bp
    from helpdesk.blueprints.ticket_bp import ticket_bp

    app.register_blueprint(ticket_bp)
    app.register_blueprint(catalog_bp)
    app.register_blueprint(admin_catalog_bp)
    app.register_blueprint(master_data_bp)
    app.register_blueprint(health_bp)

    # ── CLI commands ─────────────────────────────────────────────────────
    @app.cli.command("seed-demo-catalog")
    def seed_demo_catalog_cmd():
        """Seed demo users, branch/terminal master data and two catalogs."""
        from helpdesk.services.demo_seed import seed_demo_catalog
        created = seed_demo_catalog()
        logger.info("Demo catalog %s.", "seeded" if created else "already present")

    # ── Error handlers ───────────────────────────────────────────────────
    @app.errorhandler(404)
    def not_found(e):
        return api_error(E.NOT_FOUND, "Not found", details={"path": request.path})

    @app.errorhandler(405)
    def method_not_allowed(e):
        return api_error(E.VALIDATION_INVALID, "Method not allowed", status=405)

    @app.errorhandler(413)
    def too_large(e):
        return api_error(E.VALIDATION_INVALID, "Request body too large", status=413)

    @app.errorhandler(415)
    def unsupported_media_type(e):
        return api_error(E.VALIDATION_INVALID, e.description, status=415)

    @app.errorhandler(429)
    def rate_limited(e):
        return api_error(E.RATE_LIMITED, "Too many requests", details={"limit": e.description})

    @app.errorhandler(500)
    def server_error(e):
        logger.error("500 error on %s: %s", request.path, e, exc_info=True)
        return api_error(E.INTERNAL, "Internal server error")

    # ── Rate limiting (after blueprints registered) ──────────────────────
    init_rate_limits(app, limiter)

    return app
