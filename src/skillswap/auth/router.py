"""Authentication router: all /api/auth/* endpoints."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from skillswap.auth.dependencies import get_current_user
from skillswap.auth.jwt import create_access_token
from skillswap.auth.schemas import (
    AuthResponse,
    ChangePasswordRequest,
    EmailVerificationRequest,
    ForgotPasswordRequest,
    LoginRequest,
    MeResponse,
    MessageResponse,
    RegisterRequest,
    ResendOtpRequest,
    ResetPasswordRequest,
    VerifyEmailRequest,
    VerifyOtpRequest,
)
from skillswap.auth.service import (
    authenticate_user,
    change_password,
    clear_reset_tokens,
    create_reset_token,
    create_verification_token,
    get_user_by_email,
    issue_otp,
    mask_email,
    register_user,
    require_user_by_identifier,
    reset_password,
    update_account,
    verify_email_token,
    verify_otp,
)
from skillswap.config import get_settings
from skillswap.database import get_session
from skillswap.db.models import User
from skillswap.dependencies import get_notifier
from skillswap.exceptions import NotFoundError, TransientError, ValidationError
from skillswap.notifications.dispatcher import NotificationDispatcher, app_url
from skillswap.sms.service import mask_phone
from skillswap.users.schemas import ProfileUpdateRequest, user_response

logger = structlog.get_logger()

router = APIRouter(prefix="/api/auth", tags=["Authentication"])


# ---------------------------------------------------------------------------
# Registration / session
# ---------------------------------------------------------------------------


@router.post("/register", response_model=AuthResponse, status_code=201)
async def register(
    body: RegisterRequest,
    db: AsyncSession = Depends(get_session),
    notifier: NotificationDispatcher = Depends(get_notifier),
) -> AuthResponse:
    """Register with name, email and password. Sends a welcome email in the background."""
    user = await register_user(
        db,
        name=body.name,
        email=body.email,
        password=body.password,
        username=body.username,
        phone=body.phone,
        location=body.location,
        bio=body.bio,
    )
    await db.commit()

    notifier.notify_email(user.email, "welcome", {"name": user.name, "dashboard_url": app_url("dashboard")})
    return AuthResponse(message="Registration successful", token=create_access_token(user.id), user=user_response(user))


@router.post("/login", response_model=AuthResponse)
async def login(
    body: LoginRequest,
    db: AsyncSession = Depends(get_session),
) -> AuthResponse:
    """Login with email + password."""
    user = await authenticate_user(db, body.email, body.password)
    await db.commit()
    return AuthResponse(message="Login successful", token=create_access_token(user.id), user=user_response(user))


@router.get("/me", response_model=MeResponse)
async def me(user: User = Depends(get_current_user)) -> MeResponse:
    """Current user profile."""
    return MeResponse(user=user_response(user))


@router.put("/update", response_model=MeResponse)
async def update_me(
    body: ProfileUpdateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> MeResponse:
    """Update account details."""
    user = await update_account(db, user, **body.model_dump(exclude_unset=True))
    await db.commit()
    return MeResponse(user=user_response(user))


@router.put("/change-password", response_model=MessageResponse)
async def change_my_password(
    body: ChangePasswordRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    notifier: NotificationDispatcher = Depends(get_notifier),
) -> MessageResponse:
    """Change password (requires the current one)."""
    await change_password(db, user, body.current_password, body.new_password)
    await db.commit()
    notifier.notify_email(user.email, "password_changed", {"name": user.name})
    return MessageResponse(message="Password updated successfully")


# ---------------------------------------------------------------------------
# Password reset link
# ---------------------------------------------------------------------------


@router.post("/forgot-password", response_model=MessageResponse, response_model_exclude_none=True)
async def forgot_password(
    body: ForgotPasswordRequest,
    db: AsyncSession = Depends(get_session),
    notifier: NotificationDispatcher = Depends(get_notifier),
) -> MessageResponse:
    """
    Send a password reset link.

    If delivery fails, production clears the token and answers 503;
    development hands the token back in the body instead.
    """
    settings = get_settings()
    user = await require_user_by_identifier(db, body.identifier)
    raw_token = await create_reset_token(db, user)
    await db.commit()

    reset_url = app_url(f"reset-password/{raw_token}")
    try:
        await notifier.email.send_template(
            user.email,
            "password_reset",
            {
                "name": user.name,
                "reset_url": reset_url,
                "expires_minutes": settings.password_reset_token_ttl_minutes,
            },
        )
    except (TransientError, ValidationError) as e:
        logger.warning("password_reset_email_failed", user_id=user.id, error=e.message)
        if settings.is_production:
            await clear_reset_tokens(db, user)
            await db.commit()
            msg = "Email could not be sent. Please try again later."
            raise TransientError(msg) from e
        return MessageResponse(
            message="Email delivery failed; use the reset link below (development only)",
            email=mask_email(user.email),
            reset_token=raw_token,
            reset_url=reset_url,
        )

    return MessageResponse(
        message="Password reset link sent to your email",
        email=mask_email(user.email),
        reset_token=None if settings.is_production else raw_token,
    )


@router.put("/reset-password/{token}", response_model=AuthResponse)
async def reset_password_with_token(
    token: str,
    body: ResetPasswordRequest,
    db: AsyncSession = Depends(get_session),
    notifier: NotificationDispatcher = Depends(get_notifier),
) -> AuthResponse:
    """Set a new password using a reset token. Logs the user in."""
    user = await reset_password(db, token, body.password)
    await db.commit()
    notifier.notify_email(user.email, "password_changed", {"name": user.name})
    return AuthResponse(message="Password reset successful", token=create_access_token(user.id), user=user_response(user))


# ---------------------------------------------------------------------------
# Email verification + OTP
# ---------------------------------------------------------------------------


async def _deliver_otp(notifier: NotificationDispatcher, user: User, otp: str, method: str) -> str:
    """Send the OTP by the chosen method. Returns the masked destination."""
    settings = get_settings()
    if method == "sms":
        await notifier.sms.send(
            user.phone or "",
            f"Your SkillSwap verification code is {otp}. It expires in {settings.otp_ttl_minutes} minutes.",
        )
        return mask_phone(user.phone or "")
    await notifier.email.send_template(
        user.email, "otp_code", {"name": user.name, "otp": otp, "expires_minutes": settings.otp_ttl_minutes}
    )
    return mask_email(user.email)


@router.post("/request-email-verification", response_model=MessageResponse, response_model_exclude_none=True)
async def request_email_verification(
    body: EmailVerificationRequest,
    db: AsyncSession = Depends(get_session),
    notifier: NotificationDispatcher = Depends(get_notifier),
) -> MessageResponse:
    """Email a verification link; verifying it issues an OTP."""
    settings = get_settings()
    user = await require_user_by_identifier(db, body.identifier)
    raw_token = await create_verification_token(db, user)
    await db.commit()

    await notifier.email.send_template(
        user.email,
        "verify_email",
        {
            "name": user.name,
            "verify_url": app_url(f"verify-email/{raw_token}"),
            "expires_minutes": settings.email_verification_token_ttl_minutes,
        },
    )
    return MessageResponse(
        message="Verification email sent",
        email=mask_email(user.email),
        verification_token=None if settings.is_production else raw_token,
    )


@router.post("/verify-email/{token}", response_model=MessageResponse, response_model_exclude_none=True)
async def verify_email(
    token: str,
    body: VerifyEmailRequest,
    db: AsyncSession = Depends(get_session),
    notifier: NotificationDispatcher = Depends(get_notifier),
) -> MessageResponse:
    """Confirm the email address, then send an OTP by email or SMS."""
    user = await verify_email_token(db, token)
    otp = await issue_otp(db, user, body.method)
    await db.commit()

    destination = await _deliver_otp(notifier, user, otp, body.method)
    return MessageResponse(
        message=f"Email verified. OTP sent via {body.method}",
        email=destination,
        method=body.method,
    )


@router.post("/verify-otp", response_model=MessageResponse, response_model_exclude_none=True)
async def verify_otp_code(
    body: VerifyOtpRequest,
    db: AsyncSession = Depends(get_session),
) -> MessageResponse:
    """Check the OTP and issue a password reset token."""
    settings = get_settings()
    user = await get_user_by_email(db, body.email)
    if user is None:
        msg = "No account found with that information"
        raise NotFoundError(msg)
    try:
        await verify_otp(db, user, body.otp)
    except ValidationError:
        await db.commit()  # keep the failed-attempt counter
        raise

    raw_token = await create_reset_token(db, user)
    await db.commit()
    return MessageResponse(
        message="OTP verified. You can now reset your password.",
        reset_token=None if settings.is_production else raw_token,
        reset_url=None if settings.is_production else app_url(f"reset-password/{raw_token}"),
    )


@router.post("/resend-otp", response_model=MessageResponse, response_model_exclude_none=True)
async def resend_otp(
    body: ResendOtpRequest,
    db: AsyncSession = Depends(get_session),
    notifier: NotificationDispatcher = Depends(get_notifier),
) -> MessageResponse:
    """Issue a fresh OTP using the method chosen at verification time."""
    user = await get_user_by_email(db, body.email)
    if user is None:
        msg = "No account found with that information"
        raise NotFoundError(msg)
    if not user.email_verified:
        msg = "Please verify your email first"
        raise ValidationError(msg)
    method = user.reset_method or "email"
    otp = await issue_otp(db, user, method)
    await db.commit()

    destination = await _deliver_otp(notifier, user, otp, method)
    return MessageResponse(message=f"New OTP sent via {method}", email=destination, method=method)
