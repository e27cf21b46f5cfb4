"""
Email delivery over SMTP.

``EmailService`` renders templates and wraps the transport in a per-attempt
timeout and bounded retries. Transient failures surface as TransientError
(HTTP 503); refused recipients and unknown templates are not retried.
"""

from __future__ import annotations

import asyncio
import re
import ssl
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Any

import aiosmtplib
import structlog

from skillswap.config import Settings, get_settings
from skillswap.email.templates import (
    exchange_accepted,
    exchange_completed,
    exchange_request,
    new_message,
    new_rating,
    otp_code,
    password_changed,
    password_reset,
    verify_email,
    welcome_email,
)
from skillswap.exceptions import TransientError, ValidationError
from skillswap.notifications.retry import with_retries

logger = structlog.get_logger()

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

# Template registry: name -> template function (keyword context)
_TEMPLATE_REGISTRY: dict[str, Callable[..., tuple[str, str, str]]] = {
    "welcome": welcome_email,
    "password_reset": password_reset,
    "verify_email": verify_email,
    "otp_code": otp_code,
    "password_changed": password_changed,
    "exchange_request": exchange_request,
    "exchange_accepted": exchange_accepted,
    "exchange_completed": exchange_completed,
    "new_rating": new_rating,
    "new_message": new_message,
}


class EmailDeliveryError(Exception):
    """Retryable transport failure."""


class InvalidRecipientError(ValueError):
    """The server refused the recipient address. Not retried."""


class BaseEmailProvider(ABC):
    """Abstract base class for email transports."""

    @abstractmethod
    async def send(self, to_email: str, subject: str, html_body: str, text_body: str) -> None:
        """Deliver one message or raise EmailDeliveryError / InvalidRecipientError."""
        ...


class SMTPProvider(BaseEmailProvider):
    """Send emails via SMTP using aiosmtplib."""

    def __init__(
        self,
        host: str,
        port: int,
        username: str,
        password: str,
        from_address: str,
        from_name: str,
        use_tls: bool = True,
    ) -> None:
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.from_address = from_address
        self.from_name = from_name
        self.use_tls = use_tls

    async def send(self, to_email: str, subject: str, html_body: str, text_body: str) -> None:
        """Send via SMTP."""
        msg = MIMEMultipart("alternative")
        msg["From"] = f"{self.from_name} <{self.from_address}>"
        msg["To"] = to_email
        msg["Subject"] = subject
        msg.attach(MIMEText(text_body, "plain", "utf-8"))
        msg.attach(MIMEText(html_body, "html", "utf-8"))

        try:
            tls_context = ssl.create_default_context() if self.use_tls else None
            await aiosmtplib.send(
                msg,
                hostname=self.host,
                port=self.port,
                username=self.username or None,
                password=self.password or None,
                start_tls=self.use_tls,
                tls_context=tls_context,
            )
        except aiosmtplib.SMTPRecipientsRefused as e:
            raise InvalidRecipientError(f"Recipient refused: {to_email}") from e
        except (aiosmtplib.SMTPException, OSError) as e:
            raise EmailDeliveryError(str(e)) from e


class EmailService:
    """
    High-level email service for SkillSwap.

    Handles address validation, template rendering, timeouts and retries.
    """

    def __init__(
        self,
        provider: BaseEmailProvider | None,
        *,
        timeout: float = 15.0,
        max_attempts: int = 3,
        backoff_base: float = 1.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.provider = provider
        self.timeout = timeout
        self.max_attempts = max_attempts
        self.backoff_base = backoff_base
        self._sleep = sleep

    @property
    def enabled(self) -> bool:
        return self.provider is not None

    async def send_email(self, to: str, subject: str, html_body: str, text_body: str) -> None:
        """
        Send an email with timeout and retries.

        Raises:
            ValidationError: Malformed or refused recipient address.
            TransientError: Not configured, or every attempt failed.
        """
        if not _EMAIL_RE.match(to or ""):
            msg = f"Invalid email address: {to}"
            raise ValidationError(msg)
        if self.provider is None:
            logger.warning("email_not_configured", to=to, subject=subject)
            msg = "Email service is not configured"
            raise TransientError(msg)

        provider = self.provider
        try:
            await with_retries(
                lambda: provider.send(to, subject, html_body, text_body),
                event="email_send",
                retry_on=(EmailDeliveryError,),
                attempts=self.max_attempts,
                backoff_base=self.backoff_base,
                timeout=self.timeout,
                sleep=self._sleep,
                failure_message="Email delivery failed. Please try again later.",
            )
        except InvalidRecipientError as e:
            raise ValidationError(str(e)) from e
        logger.info("email_sent", to=to, subject=subject)

    async def send_template(self, to: str, template_name: str, context: dict[str, Any]) -> None:
        """
        Render a template and send.

        Raises:
            ValueError: If the template name is unknown.
        """
        template_func = _TEMPLATE_REGISTRY.get(template_name)
        if template_func is None:
            msg = f"Unknown template: {template_name}"
            raise ValueError(msg)
        subject, html_body, text_body = template_func(**context)
        await self.send_email(to, subject, html_body, text_body)


def create_email_service(settings: Settings | None = None) -> EmailService:
    """Build the email service from configuration. No SMTP host means disabled."""
    settings = settings or get_settings()
    provider: BaseEmailProvider | None = None
    if settings.smtp_host:
        provider = SMTPProvider(
            host=settings.smtp_host,
            port=settings.smtp_port,
            username=settings.smtp_username,
            password=settings.smtp_password,
            from_address=settings.email_from_address,
            from_name=settings.email_from_name,
            use_tls=settings.smtp_use_tls,
        )
    return EmailService(
        provider,
        timeout=settings.email_send_timeout_seconds,
        max_attempts=settings.email_max_attempts,
        backoff_base=settings.email_backoff_base_seconds,
    )
