"""
Authentication business logic.

Handles registration, login, password changes and the recovery flows
(reset link, email verification, OTP).
"""

from __future__ import annotations

import hashlib
import secrets
from datetime import timedelta
from typing import TYPE_CHECKING

import structlog
from sqlalchemy import func, or_, select, update

from skillswap.auth.password import check_password_policy, hash_password, needs_rehash, verify_password
from skillswap.config import get_settings
from skillswap.db.models import (
    DEFAULT_BIO,
    EmailVerificationToken,
    PasswordResetToken,
    User,
    UserBadge,
    default_email_notifications,
)
from skillswap.exceptions import AuthenticationError, AuthorizationError, NotFoundError, ValidationError
from skillswap.timeutils import as_utc, utcnow
from skillswap.users.ledger import credit_tokens

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()

NEW_MEMBER_BADGE = "New Member"


def _hash_token(raw: str) -> str:
    return hashlib.sha256(raw.encode()).hexdigest()


def mask_email(email: str) -> str:
    """``jane.doe@example.com`` -> ``ja***@example.com``."""
    local, _, domain = email.partition("@")
    return f"{local[:2]}***@{domain}"


# ---------------------------------------------------------------------------
# User queries
# ---------------------------------------------------------------------------


async def get_user_by_id(db: AsyncSession, user_id: int) -> User | None:
    """Fetch a user by ID."""
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def get_user_by_email(db: AsyncSession, email: str) -> User | None:
    """Fetch a user by email (case-insensitive)."""
    result = await db.execute(select(User).where(func.lower(User.email) == email.lower().strip()))
    return result.scalar_one_or_none()


async def find_user_by_identifier(db: AsyncSession, identifier: str) -> User | None:
    """Resolve an email, username or phone number to a user."""
    value = identifier.strip()
    result = await db.execute(
        select(User).where(
            or_(
                func.lower(User.email) == value.lower(),
                func.lower(User.username) == value.lower(),
                User.phone == value,
            )
        )
    )
    return result.scalars().first()


# ---------------------------------------------------------------------------
# Registration / login
# ---------------------------------------------------------------------------


async def register_user(
    db: AsyncSession,
    name: str,
    email: str,
    password: str,
    username: str | None = None,
    phone: str | None = None,
    location: str | None = None,
    bio: str | None = None,
) -> User:
    """
    Register a new user, credit the welcome bonus and award "New Member".

    Raises:
        ValidationError: Missing name, weak password, or email/username taken.
    """
    if not name or not name.strip():
        msg = "Please provide a name"
        raise ValidationError(msg)
    check_password_policy(password)

    if await get_user_by_email(db, email) is not None:
        msg = "Email already registered"
        raise ValidationError(msg)
    if username:
        taken = await db.execute(select(User.id).where(func.lower(User.username) == username.lower()))
        if taken.scalar_one_or_none() is not None:
            msg = "Username already taken"
            raise ValidationError(msg)

    now = utcnow()
    user = User(
        name=name.strip(),
        email=email.lower().strip(),
        username=username,
        phone=phone,
        location=location,
        bio=bio or DEFAULT_BIO,
        password_hash=hash_password(password),
        email_notifications=default_email_notifications(),
        token_balance=0,
        tokens_spent=0,
        skills=[],
        badges=[UserBadge(badge=NEW_MEMBER_BADGE, earned_at=now)],
        created_at=now,
        last_login=now,
    )
    db.add(user)
    await db.flush()

    settings = get_settings()
    await credit_tokens(
        db,
        user,
        settings.welcome_bonus_tokens,
        "bonus",
        "Welcome bonus",
        idempotency_key=f"user:{user.id}:welcome-bonus",
    )
    logger.info("user_registered", user_id=user.id, email=user.email)
    return user


async def authenticate_user(db: AsyncSession, email: str, password: str) -> User:
    """
    Authenticate with email + password and stamp ``last_login``.

    Raises:
        AuthenticationError: Unknown email or wrong password.
        AuthorizationError: Account deactivated.
    """
    user = await get_user_by_email(db, email)
    if user is None or not verify_password(password, user.password_hash):
        msg = "Invalid email or password"
        raise AuthenticationError(msg)
    if not user.is_active:
        msg = "Account is deactivated"
        raise AuthorizationError(msg)

    if needs_rehash(user.password_hash):
        user.password_hash = hash_password(password)
    user.last_login = utcnow()
    await db.flush()
    logger.info("user_logged_in", user_id=user.id)
    return user


async def update_account(
    db: AsyncSession,
    user: User,
    name: str | None = None,
    username: str | None = None,
    phone: str | None = None,
    bio: str | None = None,
    location: str | None = None,
    avatar_url: str | None = None,
) -> User:
    """Update basic account fields. Only provided fields change."""
    if name is not None:
        if not name.strip():
            msg = "Name cannot be empty"
            raise ValidationError(msg)
        user.name = name.strip()
    if username is not None and username != user.username:
        taken = await db.execute(
            select(User.id).where(func.lower(User.username) == username.lower(), User.id != user.id)
        )
        if taken.scalar_one_or_none() is not None:
            msg = "Username already taken"
            raise ValidationError(msg)
        user.username = username
    if phone is not None:
        user.phone = phone
    if bio is not None:
        user.bio = bio
    if location is not None:
        user.location = location
    if avatar_url is not None:
        user.avatar_url = avatar_url
    await db.flush()
    return user


async def change_password(db: AsyncSession, user: User, current_password: str, new_password: str) -> None:
    """
    Change password after verifying the current one.

    Raises:
        AuthenticationError: Current password incorrect.
        ValidationError: New password too weak.
    """
    if not verify_password(current_password, user.password_hash):
        msg = "Current password is incorrect"
        raise AuthenticationError(msg)
    check_password_policy(new_password)
    user.password_hash = hash_password(new_password)
    await db.flush()
    logger.info("password_changed", user_id=user.id)


# ---------------------------------------------------------------------------
# Password reset tokens
# ---------------------------------------------------------------------------


async def create_reset_token(db: AsyncSession, user: User) -> str:
    """Invalidate outstanding reset tokens and issue a new one. Returns the raw token."""
    settings = get_settings()
    await clear_reset_tokens(db, user)
    raw = secrets.token_hex(32)
    db.add(
        PasswordResetToken(
            user_id=user.id,
            token_hash=_hash_token(raw),
            expires_at=utcnow() + timedelta(minutes=settings.password_reset_token_ttl_minutes),
            created_at=utcnow(),
        )
    )
    await db.flush()
    return raw


async def clear_reset_tokens(db: AsyncSession, user: User) -> None:
    """Mark every unused reset token for the user as used."""
    await db.execute(
        update(PasswordResetToken)
        .where(PasswordResetToken.user_id == user.id, PasswordResetToken.used_at.is_(None))
        .values(used_at=utcnow())
    )


async def reset_password(db: AsyncSession, raw_token: str, new_password: str) -> User:
    """
    Consume a reset token and set the new password.

    Raises:
        ValidationError: Token unknown, used or expired; or weak password.
    """
    result = await db.execute(
        select(PasswordResetToken).where(PasswordResetToken.token_hash == _hash_token(raw_token))
    )
    token = result.scalar_one_or_none()
    if token is None or token.used_at is not None or as_utc(token.expires_at) < utcnow():
        msg = "Invalid or expired reset token"
        raise ValidationError(msg)
    check_password_policy(new_password)

    user = await get_user_by_id(db, token.user_id)
    if user is None:
        msg = "Invalid or expired reset token"
        raise ValidationError(msg)
    user.password_hash = hash_password(new_password)
    user.reset_method = None
    token.used_at = utcnow()
    await db.flush()
    logger.info("password_reset_completed", user_id=user.id)
    return user


# ---------------------------------------------------------------------------
# Email verification + OTP
# ---------------------------------------------------------------------------


async def create_verification_token(db: AsyncSession, user: User) -> str:
    settings = get_settings()
    raw = secrets.token_hex(32)
    db.add(
        EmailVerificationToken(
            user_id=user.id,
            token_hash=_hash_token(raw),
            expires_at=utcnow() + timedelta(minutes=settings.email_verification_token_ttl_minutes),
            created_at=utcnow(),
        )
    )
    await db.flush()
    return raw


async def verify_email_token(db: AsyncSession, raw_token: str) -> User:
    """
    Consume a verification token and mark the email verified.

    Raises:
        ValidationError: Token unknown, used or expired.
    """
    result = await db.execute(
        select(EmailVerificationToken).where(EmailVerificationToken.token_hash == _hash_token(raw_token))
    )
    token = result.scalar_one_or_none()
    if token is None or token.used_at is not None or as_utc(token.expires_at) < utcnow():
        msg = "Invalid or expired verification token"
        raise ValidationError(msg)
    user = await get_user_by_id(db, token.user_id)
    if user is None:
        msg = "Invalid or expired verification token"
        raise ValidationError(msg)
    token.used_at = utcnow()
    user.email_verified = True
    await db.flush()
    return user


def generate_otp() -> str:
    return f"{secrets.randbelow(1_000_000):06d}"


async def issue_otp(db: AsyncSession, user: User, method: str) -> str:
    """Store a fresh OTP hash for the user. Returns the raw 6-digit code."""
    if method not in ("email", "sms"):
        msg = "Method must be 'email' or 'sms'"
        raise ValidationError(msg)
    if method == "sms" and not user.phone:
        msg = "No phone number on file for SMS delivery"
        raise ValidationError(msg)
    settings = get_settings()
    otp = generate_otp()
    user.otp_hash = _hash_token(otp)
    user.otp_expires_at = utcnow() + timedelta(minutes=settings.otp_ttl_minutes)
    user.otp_attempts = 0
    user.reset_method = method
    await db.flush()
    return otp


async def verify_otp(db: AsyncSession, user: User, otp: str) -> None:
    """
    Check an OTP, counting failed attempts.

    Raises:
        ValidationError: No OTP pending, expired, too many attempts, or mismatch.
    """
    settings = get_settings()
    if user.otp_hash is None or user.otp_expires_at is None:
        msg = "No OTP requested. Please request a new one."
        raise ValidationError(msg)
    if as_utc(user.otp_expires_at) < utcnow():
        msg = "OTP has expired. Please request a new one."
        raise ValidationError(msg)
    if user.otp_attempts >= settings.otp_max_attempts:
        msg = "Too many failed attempts. Please request a new OTP."
        raise ValidationError(msg)

    if not secrets.compare_digest(user.otp_hash, _hash_token(otp.strip())):
        user.otp_attempts += 1
        await db.flush()
        remaining = settings.otp_max_attempts - user.otp_attempts
        msg = f"Invalid OTP. {remaining} attempts remaining."
        raise ValidationError(msg, attempts_remaining=remaining)

    user.otp_hash = None
    user.otp_expires_at = None
    user.otp_attempts = 0
    await db.flush()


async def require_user_by_identifier(db: AsyncSession, identifier: str) -> User:
    user = await find_user_by_identifier(db, identifier)
    if user is None:
        msg = "No account found with that information"
        raise NotFoundError(msg)
    return user
