"""
Session Auth Middleware — resolves the session cookie, sets g.current_user*.

Every request under /api/ looks up the opaque session token from the
cookie. When it maps to an active session, the user id and role are read
from the database and exposed as:

    g.current_user       User instance
    g.current_user_id    User.id
    g.current_user_role  "ARTISAN" | "APPLICANT"

A missing or stale cookie does not block the request; the route
decorators below decide.

Usage:
    @program_bp.route("/program/gallery", methods=["POST"])
    @role_required(ROLE_ARTISAN)
    def create_program(): ...
"""

import functools
import logging

from flask import current_app, g, request

from warisin.core.exceptions import AuthenticationError, PermissionDeniedError
from warisin.models import db
from warisin.models.user import User
from warisin.services import session_service

logger = logging.getLogger(__name__)

# Paths that never need the session lookup
SESSION_SKIP_PREFIXES = (
    "/api/health/",
    "/uploads/",
)


def session_cookie_name() -> str:
    return current_app.config.get("SESSION_COOKIE_NAME_WARISIN", "warisin_session")


def init_session_auth(app):
    """Register the session-resolving before_request hook."""

    @app.before_request
    def _resolve_session():
        g.current_user = None
        g.current_user_id = None
        g.current_user_role = None
        g.session_id = None

        path = request.path
        if not path.startswith("/api/") or request.method == "OPTIONS":
            return
        for prefix in SESSION_SKIP_PREFIXES:
            if path.startswith(prefix):
                return

        token = request.cookies.get(session_cookie_name())
        if not token:
            return

        session = session_service.resolve_session(token)
        if session is None:
            return
        user = db.session.get(User, session.user_id)
        if user is None:
            return

        g.current_user = user
        g.current_user_id = user.id
        g.current_user_role = user.role
        g.session_id = session.id


def login_required(f):
    """Decorator: require a resolved session."""
    @functools.wraps(f)
    def decorated(*args, **kwargs):
        if getattr(g, "current_user", None) is None:
            raise AuthenticationError("Authentication required")
        return f(*args, **kwargs)
    return decorated


def role_required(*roles: str):
    """Decorator: require a session whose user holds one of ``roles``."""
    def decorator(f):
        @functools.wraps(f)
        @login_required
        def decorated(*args, **kwargs):
            if g.current_user_role not in roles:
                logger.warning(
                    "Access denied: role '%s' on %s (needs %s)",
                    g.current_user_role, request.path, "/".join(roles),
                )
                raise PermissionDeniedError(f"Only {' or '.join(r.lower() for r in roles)}s can do this")
            return f(*args, **kwargs)
        return decorated
    return decorator
