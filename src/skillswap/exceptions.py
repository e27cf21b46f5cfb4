"""Domain error hierarchy.

Services raise these; the global error handlers translate them into
``{"success": false, "message": ...}`` responses with the matching status.
"""

from __future__ import annotations

from typing import Any


class SkillSwapError(Exception):
    """Base class for errors that map directly onto an HTTP status."""

    status_code = 400

    def __init__(self, message: str, **extra: Any) -> None:  # noqa: ANN401
        super().__init__(message)
        self.message = message
        self.extra = extra


class ValidationError(SkillSwapError):
    """Missing or malformed input."""

    status_code = 400


class AuthenticationError(SkillSwapError):
    """Missing, invalid or expired credentials."""

    status_code = 401


class AuthorizationError(SkillSwapError):
    """Authenticated, but not the right actor for this resource."""

    status_code = 403


class NotFoundError(SkillSwapError):
    status_code = 404


class ConflictError(SkillSwapError):
    status_code = 409


class TransientError(SkillSwapError):
    """Infrastructure failure worth retrying later (email/SMS delivery)."""

    status_code = 503
