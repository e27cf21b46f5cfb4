"""
SMS delivery through the Twilio REST API.

Without credentials the service runs in simulated mode: messages are logged
and reported as delivered, so local development needs no account.
"""

from __future__ import annotations

import asyncio
import re
from collections.abc import Awaitable, Callable

import httpx
import structlog

from skillswap.config import Settings, get_settings
from skillswap.exceptions import ValidationError
from skillswap.notifications.retry import with_retries

logger = structlog.get_logger()

_PHONE_RE = re.compile(r"^\+?[1-9]\d{9,14}$")

TWILIO_API_BASE = "https://api.twilio.com/2010-04-01"


class SMSDeliveryError(Exception):
    """Retryable Twilio failure (network error or 5xx)."""


def normalize_phone(phone: str) -> str:
    """Strip formatting characters and validate an E.164-style number."""
    cleaned = re.sub(r"[\s\-().]", "", phone or "")
    if not _PHONE_RE.match(cleaned):
        msg = "Invalid phone number format"
        raise ValidationError(msg)
    return cleaned if cleaned.startswith("+") else f"+{cleaned}"


def mask_phone(phone: str) -> str:
    digits = re.sub(r"\D", "", phone)
    return f"***-***-{digits[-4:]}" if len(digits) >= 4 else "***"


class SMSService:
    """Send text messages, with retries, via Twilio."""

    def __init__(
        self,
        account_sid: str = "",
        auth_token: str = "",
        from_number: str = "",
        *,
        max_attempts: int = 3,
        backoff_base: float = 1.0,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.from_number = from_number
        self.max_attempts = max_attempts
        self.backoff_base = backoff_base
        self.timeout = timeout
        self._transport = transport
        self._sleep = sleep

    @property
    def configured(self) -> bool:
        return bool(self.account_sid and self.auth_token and self.from_number)

    async def send(self, to_phone: str, body: str) -> str:
        """
        Send one SMS. Returns the message SID ("simulated" without credentials).

        Raises:
            ValidationError: Bad number, or Twilio rejected the request (4xx).
            TransientError: Every attempt failed.
        """
        to = normalize_phone(to_phone)
        if not self.configured:
            logger.info("sms_simulated", to=mask_phone(to), body_length=len(body))
            return "simulated"

        sid: str = await with_retries(
            lambda: self._post(to, body),
            event="sms_send",
            retry_on=(SMSDeliveryError,),
            attempts=self.max_attempts,
            backoff_base=self.backoff_base,
            sleep=self._sleep,
            failure_message="SMS delivery failed. Please try again later.",
        )
        logger.info("sms_sent", to=mask_phone(to), sid=sid)
        return sid

    async def _post(self, to: str, body: str) -> str:
        url = f"{TWILIO_API_BASE}/Accounts/{self.account_sid}/Messages.json"
        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=self.timeout) as client:
                response = await client.post(
                    url,
                    data={"To": to, "From": self.from_number, "Body": body},
                    auth=(self.account_sid, self.auth_token),
                )
        except httpx.TransportError as e:
            raise SMSDeliveryError(str(e)) from e

        if response.status_code >= 500:
            raise SMSDeliveryError(f"Twilio returned {response.status_code}")
        if response.status_code >= 400:
            detail = response.json().get("message", "SMS rejected") if response.content else "SMS rejected"
            raise ValidationError(detail)
        return str(response.json().get("sid", ""))


def create_sms_service(settings: Settings | None = None) -> SMSService:
    settings = settings or get_settings()
    return SMSService(
        account_sid=settings.twilio_account_sid,
        auth_token=settings.twilio_auth_token,
        from_number=settings.twilio_from_number,
        max_attempts=settings.email_max_attempts,
        backoff_base=settings.email_backoff_base_seconds,
    )
