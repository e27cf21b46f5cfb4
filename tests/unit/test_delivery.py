"""Unit tests for email/SMS delivery, retries and the notification dispatcher."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

import httpx
import pytest

from skillswap.email.service import EmailDeliveryError, EmailService, InvalidRecipientError
from skillswap.exceptions import TransientError, ValidationError
from skillswap.notifications.dispatcher import NotificationDispatcher
from skillswap.notifications.retry import with_retries
from skillswap.sms.service import SMSService, mask_phone, normalize_phone


class TestWithRetries:
    async def test_succeeds_after_transient_failures(self):
        sleep = AsyncMock()
        operation = AsyncMock(side_effect=[EmailDeliveryError("boom"), EmailDeliveryError("boom"), "ok"])
        result = await with_retries(operation, event="test", retry_on=(EmailDeliveryError,), sleep=sleep)
        assert result == "ok"
        assert operation.await_count == 3
        assert [c.args[0] for c in sleep.await_args_list] == [1.0, 2.0]

    async def test_gives_up_with_transient_error(self):
        operation = AsyncMock(side_effect=EmailDeliveryError("down"))
        with pytest.raises(TransientError, match="try again later"):
            await with_retries(operation, event="test", retry_on=(EmailDeliveryError,), sleep=AsyncMock())
        assert operation.await_count == 3

    async def test_other_errors_propagate_immediately(self):
        operation = AsyncMock(side_effect=KeyError("nope"))
        with pytest.raises(KeyError):
            await with_retries(operation, event="test", retry_on=(EmailDeliveryError,), sleep=AsyncMock())
        assert operation.await_count == 1

    async def test_timeout_counts_as_failure(self):
        async def hang() -> None:
            await asyncio.sleep(10)

        with pytest.raises(TransientError):
            await with_retries(hang, event="test", retry_on=(), attempts=2, timeout=0.01, sleep=AsyncMock())


class TestEmailService:
    async def test_send_through_provider(self):
        provider = AsyncMock()
        service = EmailService(provider)
        await service.send_email("ann@example.com", "Hi", "<p>Hi</p>", "Hi")
        provider.send.assert_awaited_once_with("ann@example.com", "Hi", "<p>Hi</p>", "Hi")

    async def test_invalid_address(self):
        service = EmailService(AsyncMock())
        with pytest.raises(ValidationError, match="Invalid email address"):
            await service.send_email("not-an-address", "Hi", "", "")

    async def test_not_configured(self):
        service = EmailService(None)
        assert not service.enabled
        with pytest.raises(TransientError, match="not configured"):
            await service.send_email("ann@example.com", "Hi", "", "")

    async def test_refused_recipient_is_a_validation_error(self):
        provider = AsyncMock()
        provider.send.side_effect = InvalidRecipientError("Recipient refused")
        service = EmailService(provider, sleep=AsyncMock())
        with pytest.raises(ValidationError, match="Recipient refused"):
            await service.send_email("ann@example.com", "Hi", "", "")
        assert provider.send.await_count == 1

    async def test_retries_then_fails(self):
        provider = AsyncMock()
        provider.send.side_effect = EmailDeliveryError("421 try later")
        service = EmailService(provider, max_attempts=3, sleep=AsyncMock())
        with pytest.raises(TransientError, match="Email delivery failed"):
            await service.send_email("ann@example.com", "Hi", "", "")
        assert provider.send.await_count == 3

    async def test_send_template(self):
        provider = AsyncMock()
        service = EmailService(provider)
        await service.send_template("ann@example.com", "otp_code", {"name": "Ann", "otp": "123456"})
        subject, html, text = provider.send.await_args.args[1:]
        assert "123456" in html
        assert "123456" in text

    async def test_unknown_template(self):
        with pytest.raises(ValueError, match="Unknown template"):
            await EmailService(AsyncMock()).send_template("ann@example.com", "nope", {})


class TestSMS:
    def test_normalize_phone(self):
        assert normalize_phone("+1 (555) 123-4567") == "+15551234567"
        assert normalize_phone("447911123456") == "+447911123456"

    def test_rejects_bad_numbers(self):
        with pytest.raises(ValidationError, match="Invalid phone number"):
            normalize_phone("12345")

    def test_mask_phone(self):
        assert mask_phone("+15551234567") == "***-***-4567"

    async def test_simulated_without_credentials(self):
        service = SMSService()
        assert not service.configured
        assert await service.send("+15551234567", "Your code is 123456") == "simulated"

    async def test_posts_to_twilio(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(201, json={"sid": "SM123"})

        service = SMSService("AC1", "token", "+15550000000", transport=httpx.MockTransport(handler))
        assert await service.send("+15551234567", "hello") == "SM123"
        assert seen[0].url.path.endswith("/Accounts/AC1/Messages.json")

    async def test_retries_server_errors(self):
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            if calls < 3:
                return httpx.Response(503)
            return httpx.Response(201, json={"sid": "SM9"})

        service = SMSService(
            "AC1", "token", "+15550000000", transport=httpx.MockTransport(handler), sleep=AsyncMock()
        )
        assert await service.send("+15551234567", "hello") == "SM9"
        assert calls == 3

    async def test_client_error_is_not_retried(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(400, json={"message": "The 'To' number is not a valid phone number."})

        service = SMSService("AC1", "token", "+15550000000", transport=httpx.MockTransport(handler))
        with pytest.raises(ValidationError, match="not a valid phone number"):
            await service.send("+15551234567", "hello")


class TestNotificationDispatcher:
    async def test_failures_never_escape(self):
        provider = AsyncMock()
        provider.send.side_effect = EmailDeliveryError("down")
        dispatcher = NotificationDispatcher(EmailService(provider, max_attempts=1), SMSService())
        queued = dispatcher.notify_email("ann@example.com", "otp_code", {"name": "Ann", "otp": "1"})
        assert queued
        await dispatcher.drain()
        assert dispatcher.pending == 0

    async def test_respects_opt_out(self):
        provider = AsyncMock()
        dispatcher = NotificationDispatcher(EmailService(provider), SMSService())
        queued = dispatcher.notify_email(
            "ann@example.com",
            "otp_code",
            {"name": "Ann", "otp": "1"},
            preferences={"new_messages": False},
            preference_key="new_messages",
        )
        await dispatcher.drain()
        assert queued is False
        provider.send.assert_not_awaited()
