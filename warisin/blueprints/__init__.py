"""
Warisin
Blueprint registry helpers.
"""

from flask import g, request


def json_body():
    """Request JSON as a dict; ``{}`` for an empty or non-JSON body."""
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def parse_limit(default=None, max_limit=100):
    """Read ?limit= as a positive int capped at ``max_limit``."""
    try:
        limit = int(request.args.get("limit", default or 0))
    except (TypeError, ValueError):
        return default
    if limit <= 0:
        return default
    return min(limit, max_limit)


def current_user():
    """User resolved by the session middleware (set on g)."""
    return g.current_user
