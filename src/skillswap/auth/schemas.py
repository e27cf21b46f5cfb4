"""Request/response schemas for authentication endpoints."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, EmailStr, Field, field_validator

from skillswap.users.schemas import UserResponse


class RegisterRequest(BaseModel):
    """Registration request."""

    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=1, max_length=128)
    username: str | None = Field(None, min_length=3, max_length=50)
    phone: str | None = Field(None, max_length=32)
    location: str | None = Field(None, max_length=100)
    bio: str | None = Field(None, max_length=500)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        """Normalize email to lowercase."""
        return v.lower().strip()


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1, max_length=128)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.lower().strip()


class AuthResponse(BaseModel):
    """Successful register/login."""

    success: bool = True
    message: str | None = None
    token: str
    user: UserResponse


class MeResponse(BaseModel):
    success: bool = True
    user: UserResponse


class ChangePasswordRequest(BaseModel):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=1, max_length=128)


class ForgotPasswordRequest(BaseModel):
    """Identifier may be an email, username or phone number."""

    identifier: str = Field(..., min_length=1, max_length=320)


class ResetPasswordRequest(BaseModel):
    password: str = Field(..., min_length=1, max_length=128)


class EmailVerificationRequest(BaseModel):
    identifier: str = Field(..., min_length=1, max_length=320)


class VerifyEmailRequest(BaseModel):
    method: Literal["email", "sms"] = "email"


class VerifyOtpRequest(BaseModel):
    email: EmailStr
    otp: str = Field(..., min_length=6, max_length=6)


class ResendOtpRequest(BaseModel):
    email: EmailStr


class MessageResponse(BaseModel):
    """Generic acknowledgement. Development-only fields stay unset in production."""

    success: bool = True
    message: str
    email: str | None = None
    method: str | None = None
    reset_token: str | None = None
    reset_url: str | None = None
    verification_token: str | None = None
