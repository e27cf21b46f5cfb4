"""
Bearer tokens for SkillSwap sessions.

HS256, ``sub`` carries the user id, lifetime is ``jwt_expire_days``.
There are no refresh tokens: a client logs in again when the token expires.
"""

from __future__ import annotations

from datetime import timedelta

import jwt

from skillswap.config import get_settings
from skillswap.exceptions import AuthenticationError
from skillswap.timeutils import utcnow


def create_access_token(user_id: int) -> str:
    settings = get_settings()
    now = utcnow()
    return jwt.encode(
        {"sub": str(user_id), "iat": now, "exp": now + timedelta(days=settings.jwt_expire_days), "iss": settings.jwt_issuer},
        settings.jwt_secret,
        algorithm=settings.jwt_algorithm,
    )


def user_id_from_token(token: str) -> int:
    """
    Decode a bearer token and return the user id it was issued for.

    Raises:
        AuthenticationError: Bad signature, wrong issuer, expired, or no usable ``sub``.
    """
    settings = get_settings()
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            issuer=settings.jwt_issuer,
            options={"require": ["sub", "exp"]},
        )
        return int(payload["sub"])
    except (jwt.InvalidTokenError, ValueError) as e:
        msg = "Invalid or expired token. Please login again."
        raise AuthenticationError(msg) from e
