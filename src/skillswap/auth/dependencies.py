"""FastAPI authentication dependencies."""

from __future__ import annotations

from fastapi import Depends, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from skillswap.auth.jwt import user_id_from_token
from skillswap.auth.service import get_user_by_id
from skillswap.database import get_session
from skillswap.db.models import User
from skillswap.exceptions import AuthenticationError, AuthorizationError

_bearer = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Security(_bearer),
    db: AsyncSession = Depends(get_session),
) -> User:
    """
    Resolve the Bearer token to an active user.

    Raises 401 when the header is missing or the token is bad, 403 for
    deactivated accounts.
    """
    if credentials is None:
        msg = "Not authorized to access this route. Please login."
        raise AuthenticationError(msg)

    user = await get_user_by_id(db, user_id_from_token(credentials.credentials))
    if user is None:
        msg = "User not found. Please login again."
        raise AuthenticationError(msg)
    if not user.is_active:
        msg = "Account is deactivated"
        raise AuthorizationError(msg)
    return user


async def get_current_admin(user: User = Depends(get_current_user)) -> User:
    if not user.is_admin:
        msg = "Admin access required"
        raise AuthorizationError(msg)
    return user
