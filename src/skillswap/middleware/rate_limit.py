"""Per-IP request limit: 100 requests per 15 minutes in production, off elsewhere."""

import time
from dataclasses import dataclass
from typing import Any

import structlog
from redis.exceptions import RedisError
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from skillswap.redis_client import get_redis

logger = structlog.get_logger()

_EXEMPT_PATHS = frozenset({"/health", "/ready", "/version"})


@dataclass(frozen=True)
class WindowCount:
    count: int
    limit: int
    resets_in: int

    @property
    def exceeded(self) -> bool:
        return self.count > self.limit

    @property
    def remaining(self) -> int:
        return max(0, self.limit - self.count)

    def headers(self) -> dict[str, str]:
        return {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(self.resets_in),
        }


def client_address(request: Request) -> str:
    """First hop of X-Forwarded-For when behind a proxy, else the socket peer."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


class RateLimitMiddleware(BaseHTTPMiddleware):
    def __init__(
        self,
        app: Any,  # noqa: ANN401
        requests_per_window: int = 100,
        window_seconds: int = 900,
        enabled: bool = True,
    ) -> None:
        super().__init__(app)
        self.requests_per_window = requests_per_window
        self.window_seconds = window_seconds
        self.enabled = enabled

    async def _count(self, address: str) -> WindowCount:
        now = int(time.time())
        window_start = now - now % self.window_seconds
        key = f"skillswap:ratelimit:{address}:{window_start}"
        async with get_redis().pipeline(transaction=True) as pipe:
            pipe.incr(key)
            pipe.expire(key, self.window_seconds)
            count, _ = await pipe.execute()
        return WindowCount(int(count), self.requests_per_window, window_start + self.window_seconds - now)

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if not self.enabled or request.url.path in _EXEMPT_PATHS:
            return await call_next(request)

        try:
            window = await self._count(client_address(request))
        except (RuntimeError, RedisError) as exc:
            # Fail open.
            logger.warning("rate_limit_unavailable", error=str(exc))
            return await call_next(request)

        if window.exceeded:
            logger.info("rate_limited", client=client_address(request), count=window.count)
            return JSONResponse(
                status_code=429,
                content={"success": False, "message": "Too many requests from this IP, please try again later."},
                headers={**window.headers(), "Retry-After": str(window.resets_in)},
            )

        response = await call_next(request)
        response.headers.update(window.headers())
        return response
