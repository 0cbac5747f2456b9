"""
Warisin
Auth blueprint — identity-token login, server-side session, current user.

Endpoints:
    POST /api/login    — verify ID token, find-or-create user, open a session
    POST /api/logout   — revoke the session, clear the cookie
    GET  /api/me       — current user with profile and completion
"""

import logging

from flask import Blueprint, current_app, jsonify, request

from warisin.blueprints import current_user, json_body
from warisin.core.exceptions import ConflictError
from warisin.middleware.session_auth import login_required, session_cookie_name
from warisin.models.user import ROLE_ARTISAN
from warisin.services import artisan_service, identity_service, session_service, user_service
from warisin.utils.helpers import db_commit_or_error

logger = logging.getLogger(__name__)

auth_bp = Blueprint("auth", __name__, url_prefix="/api")


def _set_session_cookie(response, token):
    response.set_cookie(
        session_cookie_name(),
        token,
        max_age=int(session_service.session_ttl().total_seconds()),
        httponly=True,
        secure=current_app.config.get("SESSION_COOKIE_SECURE", False),
        samesite="Lax",
        path="/",
    )


def _find_or_create_user(claims, data):
    """Return (user, created) for verified identity claims."""
    user = user_service.get_user_by_auth_id(claims["uid"])
    if user:
        return user, False

    # Same email through another sign-in provider: link, keep the role
    user = user_service.get_user_by_email(claims.get("email"))
    if user:
        if not claims.get("email_verified"):
            logger.warning("Refused to link unverified identity %s to user %s", claims["uid"], user.id)
            raise ConflictError(
                "User", "email", claims.get("email"),
                message="An account with this email already exists; verify the email to link it",
            )
        logger.info("Linking identity %s to existing user %s (provider=%s)",
                    claims["uid"], user.id, data.get("provider"))
        user.auth_id = claims["uid"]
        return user, False

    user = user_service.create_user(
        auth_id=claims["uid"],
        email=claims.get("email"),
        name=claims.get("name"),
        role=data.get("role"),
        profile_image_url=claims.get("picture"),
    )
    if user.role == ROLE_ARTISAN:
        artisan_service.upsert_artisan_profile(user, {})
    return user, True


@auth_bp.route("/login", methods=["POST"])
def login():
    data = json_body()
    token = identity_service.bearer_token(request.headers.get("Authorization")) or data.get("idToken")
    claims = identity_service.verify_id_token(token)

    user, created = _find_or_create_user(claims, data)
    err = db_commit_or_error()
    if err:
        return err

    raw_token, _ = session_service.create_session(
        user.id,
        ip_address=request.remote_addr,
        user_agent=request.headers.get("User-Agent"),
    )
    logger.info("Login user=%s created=%s", user.id, created)

    response = jsonify({"user": user_service.serialize_user(user), "created": created})
    response.status_code = 201 if created else 200
    _set_session_cookie(response, raw_token)
    return response


@auth_bp.route("/logout", methods=["POST"])
@login_required
def logout():
    session_service.revoke_session_by_token(request.cookies.get(session_cookie_name()))
    response = jsonify({"success": True})
    response.delete_cookie(session_cookie_name(), path="/")
    return response


@auth_bp.route("/me", methods=["GET"])
@login_required
def me():
    return jsonify({"user": user_service.serialize_user(current_user())})
