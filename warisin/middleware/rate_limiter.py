"""
Per-blueprint rate limits (Flask-Limiter).

The Limiter in warisin/__init__.py has no default limit; each blueprint
gets the budget of its traffic class here, keyed by remote address. Health
probes are exempt. Nothing is limited under TESTING.

Usage:
    from warisin.middleware.rate_limiter import init_rate_limits
    init_rate_limits(app, limiter)
"""

import logging

logger = logging.getLogger(__name__)

AI_LIMIT = "10/minute"        # each call may reach the LLM provider
AUTH_LIMIT = "20/minute"      # login verifies a token against the IdP key set
WRITE_LIMIT = "60/minute"
OPERATOR_LIMIT = "200/minute"

BLUEPRINT_LIMITS = {
    "ai": AI_LIMIT,
    "auth": AUTH_LIMIT,
    "user": WRITE_LIMIT,
    "artisan": WRITE_LIMIT,
    "applicant": WRITE_LIMIT,
    "program": WRITE_LIMIT,
    "application": WRITE_LIMIT,
    "category": WRITE_LIMIT,
    "admin": OPERATOR_LIMIT,
}

EXEMPT_BLUEPRINTS = ("health",)


def init_rate_limits(app, limiter):
    """Attach BLUEPRINT_LIMITS to the registered blueprints; call after registration."""
    if app.config.get("TESTING"):
        logger.debug("Rate limits skipped (TESTING)")
        return

    applied = {}
    for name, limit in BLUEPRINT_LIMITS.items():
        blueprint = app.blueprints.get(name)
        if blueprint is None:
            continue
        limiter.limit(limit)(blueprint)
        applied[name] = limit

    for name in EXEMPT_BLUEPRINTS:
        blueprint = app.blueprints.get(name)
        if blueprint is not None:
            limiter.exempt(blueprint)

    logger.info("Rate limits applied: %s", ", ".join(f"{k}={v}" for k, v in applied.items()))
