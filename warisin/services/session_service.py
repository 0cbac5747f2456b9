"""
Session Service — opaque-token, server-side login sessions.

The cookie carries a random token only. Its SHA-256 hash is the lookup key
for a Session row, and the user id and role are always read from the
database, never from anything the client sends.

All session persistence belongs in this service, not in blueprints.
"""

import hashlib
import logging
import secrets
from datetime import datetime, timedelta, timezone

from flask import current_app

from warisin.models import db
from warisin.models.session import Session

logger = logging.getLogger(__name__)

DEFAULT_SESSION_TTL_DAYS = 7
# last_used_at is only rewritten once it is older than this
LAST_USED_RESOLUTION = timedelta(minutes=5)


def hash_token(token: str) -> str:
    """SHA-256 hash of a session token (never store raw tokens)."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def session_ttl() -> timedelta:
    days = current_app.config.get("SESSION_TTL_DAYS", DEFAULT_SESSION_TTL_DAYS)
    return timedelta(days=int(days))


def create_session(
    user_id: str,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> tuple[str, Session]:
    """
    Persist a new session and return ``(raw_token, session)``.

    The raw token is handed to the browser once and never stored.
    """
    raw_token = secrets.token_urlsafe(32)
    session = Session(
        user_id=user_id,
        token_hash=hash_token(raw_token),
        ip_address=ip_address,
        user_agent=(user_agent or "")[:500],
        expires_at=datetime.now(timezone.utc) + session_ttl(),
    )
    db.session.add(session)
    db.session.commit()
    logger.info("Session created user=%s session=%s", user_id, session.id)
    return raw_token, session


def resolve_session(raw_token: str | None) -> Session | None:
    """
    Return the active, unexpired session for a cookie token, or None.

    Expired sessions found on the way are deactivated.
    """
    if not raw_token:
        return None
    session = Session.query.filter_by(token_hash=hash_token(raw_token), is_active=True).first()
    if session is None:
        return None
    if session.is_expired:
        session.is_active = False
        db.session.commit()
        logger.debug("Session %s expired", session.id)
        return None
    now = datetime.now(timezone.utc)
    last_used = session.last_used_at
    if last_used is not None and last_used.tzinfo is None:
        last_used = last_used.replace(tzinfo=timezone.utc)
    if last_used is None or now - last_used >= LAST_USED_RESOLUTION:
        session.last_used_at = now
        db.session.commit()
    return session


def revoke_session_by_token(raw_token: str | None) -> bool:
    """
    Find an active session by its raw token and revoke it.

    Returns True if a session was found and revoked, False otherwise.
    """
    if not raw_token:
        return False
    session = Session.query.filter_by(token_hash=hash_token(raw_token), is_active=True).first()
    if session:
        session.is_active = False
        db.session.commit()
        logger.info("Session revoked user=%s session=%s", session.user_id, session.id)
        return True
    return False


def revoke_all_user_sessions(user_id: str) -> None:
    """Revoke all active sessions for a user (account deletion, logout-everywhere)."""
    Session.query.filter_by(user_id=user_id, is_active=True).update({"is_active": False})
    db.session.commit()
