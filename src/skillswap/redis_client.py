"""Redis connection pool. Only the production rate limiter depends on it."""

import redis.asyncio as redis

_pool: redis.Redis | None = None


async def init_redis(url: str) -> None:
    """Create the pool. Connections are opened lazily, so an unreachable Redis does not block startup."""
    global _pool  # noqa: PLW0603
    _pool = redis.from_url(url, encoding="utf-8", decode_responses=True, max_connections=20)  # type: ignore[no-untyped-call]


async def close_redis() -> None:
    global _pool  # noqa: PLW0603
    if _pool is not None:
        await _pool.aclose()
        _pool = None


def get_redis() -> redis.Redis:
    """The shared client. Raises RuntimeError before ``init_redis``."""
    if _pool is None:
        msg = "Redis not initialized. Call init_redis() first."
        raise RuntimeError(msg)
    return _pool


async def redis_status() -> str:
    """``"ok"``, ``"not initialized"`` or ``"error: ..."`` for the readiness probe."""
    if _pool is None:
        return "not initialized"
    try:
        await _pool.ping()
    except redis.RedisError as exc:
        return f"error: {exc}"
    return "ok"
