"""
Operator API keys.

Marketplace users sign in with a session cookie (warisin.middleware.session_auth).
Category management and the platform overview are driven by scripts and
the back office, which present a static key in ``X-API-Key`` instead.

    API_KEYS          "<key>:<role>,<key>:<role>"  role is admin or viewer;
                      a key without a role is a viewer
    API_AUTH_ENABLED  "false" turns the check off (development and tests);
                      the environment variable wins over app config
"""

import functools
import logging
import os
from typing import Optional

from flask import current_app, g, request

from warisin.utils.errors import E, api_error

logger = logging.getLogger(__name__)

# What each operator role may call
ROLE_GRANTS = {
    "admin": frozenset({"admin", "viewer"}),
    "viewer": frozenset({"viewer"}),
}

_FALSEY = ("false", "0", "no", "off")


def load_api_keys() -> dict[str, str]:
    """Read API_KEYS into ``{key: role}``; read on every call so rotation needs no restart."""
    keys = {}
    for entry in filter(None, (part.strip() for part in os.getenv("API_KEYS", "").split(","))):
        key, _, role = entry.rpartition(":") if ":" in entry else (entry, "", "viewer")
        role = role.strip().lower()
        if role not in ROLE_GRANTS:
            logger.warning("API key with unknown role %r treated as viewer", role)
            role = "viewer"
        keys[key.strip()] = role
    return keys


def api_auth_enabled() -> bool:
    flag = os.getenv("API_AUTH_ENABLED") or str(current_app.config.get("API_AUTH_ENABLED", "true"))
    return flag.strip().lower() not in _FALSEY


def _presented_key() -> Optional[str]:
    return request.headers.get("X-API-Key", "").strip() or None


def require_api_key(minimum_role: str = "viewer"):
    """
    Guard an operator endpoint. The matched role is stored on
    ``g.operator_role``; with auth switched off every caller is an admin.

        @category_bp.route("", methods=["POST"])
        @require_api_key("admin")
        def create_category(): ...
    """
    def decorator(view):
        @functools.wraps(view)
        def guarded(*args, **kwargs):
            if not api_auth_enabled():
                g.operator_role = "admin"
                return view(*args, **kwargs)

            presented = _presented_key()
            if presented is None:
                return api_error(E.UNAUTHENTICATED, "Authentication required. Provide X-API-Key header.")

            known = load_api_keys()
            if not known:
                logger.error("API key auth is on but API_KEYS is empty")
                return api_error(E.INTERNAL, "Server authentication not configured")

            role = known.get(presented)
            if role is None:
                logger.warning("Rejected API key %s... on %s", presented[:8], request.path)
                return api_error(E.UNAUTHENTICATED, "Invalid API key")

            if minimum_role not in ROLE_GRANTS[role]:
                logger.warning("Operator role %s denied on %s (needs %s)", role, request.path, minimum_role)
                return api_error(E.FORBIDDEN, "Insufficient permissions")

            g.operator_role = role
            return view(*args, **kwargs)
        return guarded
    return decorator
