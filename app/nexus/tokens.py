"""
Signed session tokens (HS256 JWT) carried in the auth cookie.
"""
from __future__ import annotations

import logging
import re
from datetime import datetime, timedelta, timezone
from typing import Any

import jwt

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 24 * 60 * 60
_UNIT_SECONDS = {"d": 86400, "h": 3600, "m": 60, "s": 1}
_EXPIRES_IN_RE = re.compile(r"^(\d+)([dhms])$")


def parse_expires_in(expires_in: str | int) -> int:
    """
    Lifetime in seconds for values like "24h", "30d", "60m", "3600s" or bare seconds.
    Unparseable values fall back to 24 hours.
    """
    if isinstance(expires_in, int):
        return expires_in
    raw = (expires_in or "").strip()
    if raw.isdigit():
        return int(raw)
    m = _EXPIRES_IN_RE.match(raw)
    if not m:
        return DEFAULT_TTL_SECONDS
    return int(m.group(1)) * _UNIT_SECONDS[m.group(2)]


def sign_token(
    payload: dict[str, Any],
    *,
    secret: str,
    issuer: str,
    expires_in: str | int = "24h",
    now: datetime | None = None,
) -> str:
    issued = now or datetime.now(timezone.utc)
    claims = dict(payload)
    claims["iat"] = issued
    claims["iss"] = issuer
    claims["exp"] = issued + timedelta(seconds=parse_expires_in(expires_in))
    return jwt.encode(claims, secret, algorithm="HS256")


def verify_token(token: str, *, secret: str, issuer: str) -> dict[str, Any] | None:
    """Decoded claims, or None when the token is expired, tampered with or from another issuer."""
    try:
        return jwt.decode(token, secret, algorithms=["HS256"], issuer=issuer)
    except jwt.ExpiredSignatureError:
        logger.debug("Session token expired")
        return None
    except jwt.InvalidTokenError as e:
        logger.debug("Session token rejected: %s", e)
        return None


def identity_claims(user) -> dict[str, Any]:
    """Claims stored in the session token for a user."""
    return {
        "user_id": user.id,
        "email": user.email,
        "name": user.name,
        "username": user.username,
        "role": user.role,
        "admin_id": user.admin_id,
    }
