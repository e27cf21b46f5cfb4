"""Response cache middleware.

Serves cached GET responses and invalidates dependent route groups after
successful writes. The cache itself lives on ``app.state.cache``.
"""

import hashlib

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from skillswap.cache.response_cache import ResponseCache, invalidation_targets, ttl_for_path

logger = structlog.get_logger()

_MUTATING_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})


def cache_key(request: Request) -> str:
    """Responses are per-caller, so the credential is part of the key."""
    credential = request.headers.get("Authorization", "")
    digest = hashlib.sha256(credential.encode()).hexdigest()[:16]
    return f"{digest}|{request.url.path}?{request.url.query}"


class ResponseCacheMiddleware(BaseHTTPMiddleware):
    """Cache GET 200 responses with per-route TTLs; clear related groups on writes."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        cache: ResponseCache | None = getattr(request.app.state, "cache", None)
        if cache is None:
            return await call_next(request)

        if request.method in _MUTATING_METHODS:
            response = await call_next(request)
            if response.status_code < 400:
                for prefix in invalidation_targets(request.url.path):
                    cache.clear(prefix)
            return response

        ttl = ttl_for_path(request.url.path) if request.method == "GET" else None
        if ttl is None:
            return await call_next(request)

        key = cache_key(request)
        entry = cache.get(key)
        if entry is not None:
            headers = dict(entry.headers)
            headers["X-Cache"] = "HIT"
            headers["X-Cache-Age"] = str(cache.age(entry))
            return Response(
                content=entry.body,
                status_code=entry.status_code,
                media_type=entry.media_type,
                headers=headers,
            )

        response = await call_next(request)
        if response.status_code != 200:
            return response

        body = b"".join([chunk async for chunk in response.body_iterator])  # type: ignore[attr-defined]
        media_type = response.headers.get("content-type", "application/json")
        headers = {
            k: v for k, v in response.headers.items() if k.lower() not in ("content-length", "content-type")
        }
        cache.set(key, body, status_code=200, media_type=media_type, ttl=ttl, headers=headers)
        headers = {**headers, "X-Cache": "MISS"}
        return Response(
            content=body,
            status_code=response.status_code,
            media_type=media_type,
            headers=headers,
        )
