"""Fire-and-forget notification dispatch.

State transitions schedule sends here and return immediately. A failed send
is logged and never reaches the request that triggered it. The dispatcher is
created by the app factory and drained on shutdown.
"""

from __future__ import annotations

import asyncio
from collections.abc import Coroutine
from typing import Any

import structlog

from skillswap.config import get_settings
from skillswap.email.service import EmailService
from skillswap.sms.service import SMSService

logger = structlog.get_logger()


class NotificationDispatcher:
    """Schedule email/SMS sends as background tasks."""

    def __init__(self, email: EmailService, sms: SMSService) -> None:
        self.email = email
        self.sms = sms
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def dispatch(self, coro: Coroutine[Any, Any, Any], *, event: str, **log_context: Any) -> None:  # noqa: ANN401
        task = asyncio.create_task(self._run(coro, event, log_context))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run(self, coro: Coroutine[Any, Any, Any], event: str, log_context: dict[str, Any]) -> None:
        try:
            await coro
        except Exception:
            logger.exception("notification_failed", notification=event, **log_context)

    def notify_email(
        self,
        to: str,
        template: str,
        context: dict[str, Any],
        *,
        preferences: dict[str, Any] | None = None,
        preference_key: str | None = None,
    ) -> bool:
        """Queue a templated email unless the recipient opted out. Returns True if queued."""
        if preference_key and preferences is not None and not preferences.get(preference_key, True):
            logger.debug("notification_skipped_by_preference", notification=template, preference=preference_key)
            return False
        self.dispatch(self.email.send_template(to, template, context), event=template)
        return True

    def notify_sms(self, to_phone: str, body: str, *, event: str = "sms") -> None:
        self.dispatch(self.sms.send(to_phone, body), event=event)

    async def drain(self) -> None:
        """Wait for every queued send to settle."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def aclose(self) -> None:
        await self.drain()


def app_url(path: str) -> str:
    """Absolute client URL for links embedded in notifications."""
    return f"{get_settings().frontend_base_url.rstrip('/')}/{path.lstrip('/')}"
