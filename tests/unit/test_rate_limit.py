"""Unit tests for the per-IP rate limiter."""

from __future__ import annotations

from collections import Counter

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from redis.exceptions import ConnectionError as RedisConnectionError
from starlette.requests import Request

from skillswap.middleware import rate_limit
from skillswap.middleware.rate_limit import RateLimitMiddleware, WindowCount, client_address


class FakePipeline:
    def __init__(self, store: Counter) -> None:
        self.store = store
        self.ops: list[str] = []

    async def __aenter__(self) -> FakePipeline:
        return self

    async def __aexit__(self, *exc: object) -> None:
        return None

    def incr(self, key: str) -> None:
        self.ops.append(key)

    def expire(self, key: str, seconds: int) -> None:
        pass

    async def execute(self) -> list[int]:
        key = self.ops[0]
        self.store[key] += 1
        return [self.store[key], True]


class FakeRedis:
    def __init__(self) -> None:
        self.store: Counter = Counter()

    def pipeline(self, transaction: bool = True) -> FakePipeline:
        return FakePipeline(self.store)


class BrokenRedis:
    def pipeline(self, transaction: bool = True) -> FakePipeline:
        raise RedisConnectionError("connection refused")


def _app(limit: int, enabled: bool = True) -> FastAPI:
    app = FastAPI()
    app.add_middleware(RateLimitMiddleware, requests_per_window=limit, window_seconds=900, enabled=enabled)

    @app.get("/api/skills")
    async def skills() -> dict[str, bool]:
        return {"success": True}

    @app.get("/health")
    async def health() -> dict[str, bool]:
        return {"success": True}

    return app


async def _get(app: FastAPI, path: str, ip: str = "10.0.0.1"):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        return await client.get(path, headers={"X-Forwarded-For": ip})


class TestWindowCount:
    def test_remaining_and_exceeded(self):
        within = WindowCount(count=3, limit=3, resets_in=60)
        assert within.remaining == 0
        assert not within.exceeded
        over = WindowCount(count=4, limit=3, resets_in=60)
        assert over.exceeded
        assert over.headers()["X-RateLimit-Remaining"] == "0"
        assert over.headers()["X-RateLimit-Reset"] == "60"


class TestClientAddress:
    def _request(self, headers: list[tuple[bytes, bytes]]) -> Request:
        return Request({"type": "http", "headers": headers, "client": ("192.168.1.9", 5000)})

    def test_forwarded_first_hop(self):
        request = self._request([(b"x-forwarded-for", b"203.0.113.7, 10.0.0.2")])
        assert client_address(request) == "203.0.113.7"

    def test_socket_peer(self):
        assert client_address(self._request([])) == "192.168.1.9"


class TestMiddleware:
    @pytest.fixture
    def fake_redis(self, monkeypatch) -> FakeRedis:
        redis = FakeRedis()
        monkeypatch.setattr(rate_limit, "get_redis", lambda: redis)
        return redis

    async def test_blocks_after_limit(self, fake_redis):
        app = _app(limit=2)
        assert (await _get(app, "/api/skills")).headers["X-RateLimit-Remaining"] == "1"
        assert (await _get(app, "/api/skills")).status_code == 200
        blocked = await _get(app, "/api/skills")
        assert blocked.status_code == 429
        assert blocked.json()["success"] is False
        assert "Retry-After" in blocked.headers

    async def test_counts_per_address(self, fake_redis):
        app = _app(limit=1)
        assert (await _get(app, "/api/skills", ip="1.1.1.1")).status_code == 200
        assert (await _get(app, "/api/skills", ip="2.2.2.2")).status_code == 200

    async def test_probes_exempt(self, fake_redis):
        app = _app(limit=1)
        for _ in range(3):
            assert (await _get(app, "/health")).status_code == 200
        assert not fake_redis.store

    async def test_disabled_outside_production(self, fake_redis):
        app = _app(limit=1, enabled=False)
        for _ in range(3):
            assert (await _get(app, "/api/skills")).status_code == 200
        assert not fake_redis.store

    async def test_fails_open_without_redis(self, monkeypatch):
        monkeypatch.setattr(rate_limit, "get_redis", lambda: BrokenRedis())
        response = await _get(_app(limit=1), "/api/skills")
        assert response.status_code == 200
