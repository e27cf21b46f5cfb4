"""Argon2id password hashing and the account password policy."""

from __future__ import annotations

import argon2

from skillswap.config import get_settings
from skillswap.exceptions import ValidationError

_hasher = argon2.PasswordHasher(type=argon2.Type.ID)


def hash_password(password: str) -> str:
    return _hasher.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """True when ``password`` matches. Malformed stored hashes count as a mismatch."""
    try:
        return _hasher.verify(password_hash, password)
    except (argon2.exceptions.VerifyMismatchError, argon2.exceptions.InvalidHashError):
        return False


def needs_rehash(password_hash: str) -> bool:
    """Stored hash was produced with weaker parameters than the current hasher."""
    return _hasher.check_needs_rehash(password_hash)


def check_password_policy(password: str) -> None:
    """
    Enforce the configured length bounds.

    Raises:
        ValidationError: Blank, too short or too long.
    """
    settings = get_settings()
    if not password or not password.strip():
        msg = "Password cannot be empty"
        raise ValidationError(msg)
    if len(password) < settings.password_min_length:
        msg = f"Password must be at least {settings.password_min_length} characters"
        raise ValidationError(msg)
    if len(password) > settings.password_max_length:
        msg = f"Password must not exceed {settings.password_max_length} characters"
        raise ValidationError(msg)
