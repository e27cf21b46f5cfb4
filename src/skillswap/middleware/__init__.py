"""Middleware registration."""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from skillswap.config import Settings
from skillswap.middleware.cache import ResponseCacheMiddleware
from skillswap.middleware.error_handler import setup_error_handlers
from skillswap.middleware.logging import setup_logging
from skillswap.middleware.rate_limit import RateLimitMiddleware
from skillswap.middleware.request_context import RequestContextMiddleware


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """Register middleware. Starlette runs them in reverse-add order (last added = outermost).

    The cache is innermost so rate limiting also counts cache hits. The request
    context wraps both so the access log sees the final status and X-Cache.
    CORS is outermost so 429 responses still carry CORS headers.
    """
    setup_logging(settings)
    setup_error_handlers(app, settings)
    app.add_middleware(ResponseCacheMiddleware)
    app.add_middleware(
        RateLimitMiddleware,
        requests_per_window=settings.rate_limit_requests,
        window_seconds=settings.rate_limit_window_seconds,
        enabled=settings.is_production,
    )
    app.add_middleware(RequestContextMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "X-Request-Id"],
        expose_headers=[
            "X-Request-Id",
            "X-RateLimit-Limit",
            "X-RateLimit-Remaining",
            "X-RateLimit-Reset",
            "X-Cache",
            "X-Cache-Age",
        ],
    )
