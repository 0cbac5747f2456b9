"""
Identity Service — verification of federated-identity ID tokens.

The front end signs users in with the identity provider (Firebase / Google
Secure Token) and sends the resulting ID token as ``Authorization: Bearer``.
We verify it ourselves:

  1. fetch the provider's JSON Web Key Set (httpx, cached for an hour)
  2. pick the key named by the token's ``kid`` header
  3. verify signature (RS256), expiry, ``aud`` == project id and
     ``iss`` == https://securetoken.google.com/<project id>

Returns the claims the rest of the app needs: uid, email, name, picture.
"""

import logging
import threading
import time

import httpx
import jwt as pyjwt
from flask import current_app

from warisin.core.exceptions import AuthenticationError

logger = logging.getLogger(__name__)

DEFAULT_JWKS_URL = (
    "https://www.googleapis.com/service_accounts/v1/jwk/securetoken@system.gserviceaccount.com"
)
ISSUER_PREFIX = "https://securetoken.google.com/"
JWKS_CACHE_SECONDS = 3600

_jwks_lock = threading.Lock()
_jwks_cache: dict = {"keys": None, "fetched_at": 0.0, "url": None}


def _fetch_jwks(url: str) -> pyjwt.PyJWKSet:
    try:
        resp = httpx.get(url, timeout=10)
        resp.raise_for_status()
        return pyjwt.PyJWKSet.from_dict(resp.json())
    except (httpx.HTTPError, ValueError, pyjwt.PyJWTError) as e:
        logger.error("JWKS fetch failed for %s: %s", url, e)
        raise AuthenticationError("Identity provider keys unavailable") from e


def _get_jwks(url: str, force: bool = False) -> pyjwt.PyJWKSet:
    with _jwks_lock:
        fresh = (
            _jwks_cache["keys"] is not None
            and _jwks_cache["url"] == url
            and time.time() - _jwks_cache["fetched_at"] < JWKS_CACHE_SECONDS
        )
        if force or not fresh:
            _jwks_cache["keys"] = _fetch_jwks(url)
            _jwks_cache["fetched_at"] = time.time()
            _jwks_cache["url"] = url
        return _jwks_cache["keys"]


def _signing_key(token: str, url: str):
    try:
        kid = pyjwt.get_unverified_header(token).get("kid")
    except pyjwt.DecodeError as e:
        raise AuthenticationError("Malformed identity token") from e
    if not kid:
        raise AuthenticationError("Identity token has no key id")

    for force in (False, True):
        # Keys rotate; refetch once before giving up on an unknown kid
        jwks = _get_jwks(url, force=force)
        for key in jwks.keys:
            if key.key_id == kid:
                return key.key
    raise AuthenticationError("Identity token signed with an unknown key")


def verify_id_token(token: str) -> dict:
    """
    Verify an identity-provider ID token.

    Returns:
        {"uid", "email", "email_verified", "name", "picture"}

    Raises:
        AuthenticationError: token missing, malformed, expired or not ours.
    """
    if not token:
        raise AuthenticationError("Missing identity token")

    project_id = current_app.config.get("FIREBASE_PROJECT_ID")
    if not project_id:
        logger.error("FIREBASE_PROJECT_ID is not configured")
        raise AuthenticationError("Identity provider not configured")
    url = current_app.config.get("FIREBASE_JWKS_URL") or DEFAULT_JWKS_URL

    key = _signing_key(token, url)
    try:
        claims = pyjwt.decode(
            token,
            key,
            algorithms=["RS256"],
            audience=project_id,
            issuer=f"{ISSUER_PREFIX}{project_id}",
            options={"require": ["exp", "iat", "sub"]},
            leeway=30,
        )
    except pyjwt.ExpiredSignatureError as e:
        raise AuthenticationError("Identity token expired") from e
    except pyjwt.InvalidTokenError as e:
        logger.warning("Identity token rejected: %s", e)
        raise AuthenticationError("Invalid identity token") from e

    return {
        "uid": claims.get("user_id") or claims["sub"],
        "email": claims.get("email"),
        # Only a provider-verified address may be matched to an existing account
        "email_verified": claims.get("email_verified") is True,
        "name": claims.get("name"),
        "picture": claims.get("picture"),
    }


def bearer_token(header_value: str | None) -> str | None:
    """Extract the token from an ``Authorization: Bearer <token>`` header."""
    if not header_value or not header_value.startswith("Bearer "):
        return None
    return header_value[7:].strip() or None
