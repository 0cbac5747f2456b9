"""
Warisin: artisan apprenticeship marketplace API.

    from warisin import create_app
    app = create_app()           # APP_ENV, else "development"
    app = create_app("testing")
"""

import logging
import os

import click
from flask import Flask, abort, request, send_from_directory
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate
from sqlalchemy import engine as _sa_engine
from sqlalchemy import event as _sa_event

from warisin.ai.gateway import LLMError
from warisin.config import config
from warisin.core.exceptions import (
    AuthenticationError,
    ConflictError,
    InvalidTransitionError,
    NotAcceptingApplicationsError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from warisin.middleware.logging_config import configure_logging
from warisin.middleware.rate_limiter import init_rate_limits
from warisin.middleware.security_headers import init_security_headers
from warisin.middleware.session_auth import init_session_auth
from warisin.middleware.timing import init_request_timing
from warisin.models import db
from warisin.services.storage_service import StorageError
from warisin.utils.errors import E, api_error

logger = logging.getLogger(__name__)

# Bodies allowed on API writes; uploads arrive as multipart
_WRITE_CONTENT_TYPES = ("json", "multipart/form-data")


@_sa_event.listens_for(_sa_engine.Engine, "connect")
def _sqlite_foreign_keys(dbapi_conn, connection_record):
    # SQLite ignores FOREIGN KEY clauses unless enabled per connection
    if "sqlite" not in type(dbapi_conn).__module__:
        return
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


migrate = Migrate()
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[],  # budgets live in middleware/rate_limiter.py
    storage_uri=os.getenv("REDIS_URL", "memory://"),
)


def _init_cors(app):
    origins = app.config.get("CORS_ORIGINS", "*")
    if not origins or origins == "*":
        CORS(app)
        return
    # Explicit origins are needed for the session cookie to cross sites
    CORS(app, origins=[o.strip() for o in origins.split(",") if o.strip()], supports_credentials=True)


def _register_blueprints(app):
    from warisin.blueprints.admin_bp import admin_bp
    from warisin.blueprints.ai_bp import ai_bp
    from warisin.blueprints.applicant_bp import applicant_bp
    from warisin.blueprints.application_bp import application_bp
    from warisin.blueprints.artisan_bp import artisan_bp
    from warisin.blueprints.auth_bp import auth_bp
    from warisin.blueprints.category_bp import category_bp
    from warisin.blueprints.health_bp import health_bp
    from warisin.blueprints.program_bp import program_bp
    from warisin.blueprints.user_bp import user_bp

    for blueprint in (
        auth_bp, user_bp, artisan_bp, applicant_bp, program_bp,
        application_bp, category_bp, admin_bp, ai_bp, health_bp,
    ):
        app.register_blueprint(blueprint)


def _register_cli(app):
    @app.cli.command("seed-categories")
    def seed_categories_cmd():
        """Seed the default heritage categories."""
        from warisin.services.category_service import seed_default_categories
        count = seed_default_categories()
        db.session.commit()
        logger.info("Seeded %s new heritage categories.", count)
        click.echo(f"Seeded {count} new heritage categories.")

    @app.cli.command("cleanup-rejected")
    @click.option("--days", default=90, show_default=True, help="Age of rejected applications to delete.")
    def cleanup_rejected_cmd(days):
        """Delete rejected applications older than --days."""
        from warisin.services.application_service import cleanup_rejected
        count = cleanup_rejected(days_old=days)
        db.session.commit()
        logger.info("Deleted %s rejected applications older than %s days.", count, days)
        click.echo(f"Deleted {count} rejected applications.")


def create_app(config_name=None):
    """Build the app for ``config_name`` (development, testing or production)."""
    config_name = config_name or os.getenv("APP_ENV", "development")
    settings = config[config_name]

    app = Flask(__name__, instance_relative_config=True)
    # ProductionConfig checks its required environment on instantiation
    app.config.from_object(settings() if config_name == "production" else settings)

    configure_logging(app)

    db.init_app(app)
    migrate.init_app(app, db)
    limiter.init_app(app)
    _init_cors(app)

    init_security_headers(app)
    init_request_timing(app)
    init_session_auth(app)

    @app.before_request
    def _guard_api_writes():
        limit = app.config.get("MAX_CONTENT_LENGTH")
        length = request.content_length
        if limit and length and length > limit:
            abort(413, description="Request body too large")
        if request.method not in ("POST", "PUT", "PATCH") or not request.path.startswith("/api/"):
            return None
        content_type = request.content_type or ""
        if length and not any(kind in content_type for kind in _WRITE_CONTENT_TYPES):
            abort(415, description="Content-Type must be application/json")
        return None

    # Model modules register their tables on db.metadata when imported
    from warisin.models import application, program, session, user  # noqa: F401

    with app.app_context():
        try:
            # Adds missing tables only; schema changes go through migrations
            db.create_all()
        except Exception as e:
            app.logger.warning("Table creation skipped: %s", e)

    _register_blueprints(app)
    _register_cli(app)

    @app.route("/uploads/<path:filename>")
    def uploaded_file(filename):
        root = app.config.get("UPLOAD_FOLDER") or os.path.join(app.instance_path, "uploads")
        return send_from_directory(root, filename)

    _register_error_handlers(app)
    init_rate_limits(app, limiter)
    return app


def _register_error_handlers(app):
    """Map service exceptions and HTTP errors to the standard JSON body."""

    @app.errorhandler(NotFoundError)
    def _not_found_error(e):
        logger.debug("Not found: %s id=%s", e.resource, e.resource_id)
        return api_error(E.NOT_FOUND, str(e))

    @app.errorhandler(ValidationError)
    def _validation_error(e):
        return api_error(E.VALIDATION_INVALID, str(e), details=e.details)

    @app.errorhandler(ConflictError)
    def _conflict_error(e):
        return api_error(E.CONFLICT_DUPLICATE, str(e))

    @app.errorhandler(NotAcceptingApplicationsError)
    def _program_closed(e):
        return api_error(E.PROGRAM_CLOSED, str(e))

    @app.errorhandler(InvalidTransitionError)
    def _invalid_transition(e):
        return api_error(
            E.CONFLICT_STATE, str(e),
            details={"current": e.current, "requested": e.requested, "allowed": e.allowed},
        )

    @app.errorhandler(AuthenticationError)
    def _unauthenticated(e):
        return api_error(E.UNAUTHENTICATED, str(e) or "Authentication required")

    @app.errorhandler(PermissionDeniedError)
    def _forbidden(e):
        return api_error(E.FORBIDDEN, str(e) or "Permission denied")

    @app.errorhandler(StorageError)
    def _storage_error(e):
        logger.error("Storage backend error: %s", e)
        return api_error(E.UPSTREAM, "File storage is unavailable")

    @app.errorhandler(LLMError)
    def _llm_error(e):
        return api_error(E.UPSTREAM, str(e), status=e.status_code)

    @app.errorhandler(404)
    def _not_found(e):
        return api_error(E.NOT_FOUND, "Not found", details={"path": request.path})

    @app.errorhandler(405)
    def _method_not_allowed(e):
        return api_error(E.VALIDATION_INVALID, "Method not allowed", status=405)

    @app.errorhandler(413)
    def _too_large(e):
        return api_error(E.PAYLOAD_TOO_LARGE, "Request body too large")

    @app.errorhandler(415)
    def _unsupported_media(e):
        return api_error(E.VALIDATION_INVALID, "Content-Type must be application/json", status=415)

    @app.errorhandler(429)
    def _rate_limited(e):
        return api_error(
            E.VALIDATION_INVALID, "Too many requests",
            status=429, details={"retry_after": e.description},
        )

    @app.errorhandler(500)
    def _server_error(e):
        logger.exception("500 error on %s", request.path)
        return api_error(E.INTERNAL, "Internal server error")
