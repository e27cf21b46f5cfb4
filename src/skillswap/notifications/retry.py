"""Bounded retry with exponential backoff for outbound deliveries."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

import structlog

from skillswap.exceptions import TransientError

logger = structlog.get_logger()

T = TypeVar("T")


async def with_retries(
    operation: Callable[[], Awaitable[T]],
    *,
    event: str,
    retry_on: tuple[type[BaseException], ...],
    attempts: int = 3,
    backoff_base: float = 1.0,
    timeout: float | None = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    failure_message: str = "Delivery failed. Please try again later.",
) -> T:
    """Run ``operation`` up to ``attempts`` times.

    Waits ``backoff_base * 2**n`` seconds between attempts (1s, 2s, 4s with the
    defaults). Timeouts count as retryable failures. Exceptions outside
    ``retry_on`` propagate immediately. Raises TransientError once every
    attempt has failed.
    """
    last_error: BaseException | None = None
    for attempt in range(1, attempts + 1):
        try:
            if timeout is None:
                return await operation()
            return await asyncio.wait_for(operation(), timeout=timeout)
        except (asyncio.TimeoutError, *retry_on) as exc:
            last_error = exc
            logger.warning(
                f"{event}_attempt_failed",
                attempt=attempt,
                max_attempts=attempts,
                error=str(exc) or type(exc).__name__,
            )
            if attempt < attempts:
                await sleep(backoff_base * 2 ** (attempt - 1))

    logger.error(f"{event}_failed", attempts=attempts, error=str(last_error))
    raise TransientError(failure_message)
