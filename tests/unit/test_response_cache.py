"""Unit tests for the bounded response cache."""

from __future__ import annotations

from fastapi import FastAPI, Response
from httpx import ASGITransport, AsyncClient

from skillswap.cache.response_cache import ResponseCache, invalidation_targets, ttl_for_path
from skillswap.middleware.cache import ResponseCacheMiddleware


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class TestResponseCache:
    def test_hit_and_miss(self):
        cache = ResponseCache()
        assert cache.get("a") is None
        cache.set("a", b"{}")
        entry = cache.get("a")
        assert entry is not None
        assert entry.body == b"{}"
        assert cache.stats["hits"] == 1
        assert cache.stats["misses"] == 1

    def test_entries_expire(self):
        clock = FakeClock()
        cache = ResponseCache(default_ttl=60, clock=clock)
        cache.set("a", b"1")
        clock.now += 59
        assert cache.get("a") is not None
        clock.now += 1
        assert cache.get("a") is None
        assert "a" not in cache

    def test_least_recently_used_is_evicted(self):
        cache = ResponseCache(max_entries=2)
        cache.set("a", b"1")
        cache.set("b", b"2")
        cache.get("a")
        cache.set("c", b"3")
        assert "a" in cache
        assert "b" not in cache
        assert len(cache) == 2
        assert cache.stats["evictions"] == 1

    def test_expired_entries_swept_before_eviction(self):
        clock = FakeClock()
        cache = ResponseCache(max_entries=2, clock=clock)
        cache.set("old", b"1", ttl=10)
        cache.set("live", b"2", ttl=100)
        clock.now += 20
        cache.set("new", b"3")
        assert "live" in cache
        assert "new" in cache
        assert cache.stats["evictions"] == 0

    def test_clear_by_pattern(self):
        cache = ResponseCache()
        cache.set("k1|/api/skills?", b"1")
        cache.set("k2|/api/skills/3?", b"2")
        cache.set("k1|/api/users?", b"3")
        assert cache.clear("/api/skills") == 2
        assert len(cache) == 1
        cache.clear_all()
        assert len(cache) == 0

    def test_age(self):
        clock = FakeClock()
        cache = ResponseCache(clock=clock)
        cache.set("a", b"1")
        clock.now += 42
        assert cache.age(cache.get("a")) == 42


class TestRoutePolicies:
    def test_ttl_for_path(self):
        assert ttl_for_path("/api/skills") == 300
        assert ttl_for_path("/api/skills/12/videos") == 300
        assert ttl_for_path("/api/users/3") == 600
        assert ttl_for_path("/api/conversations") == 120
        assert ttl_for_path("/api/auth/me") is None
        assert ttl_for_path("/api/skillset") is None

    def test_invalidation_targets(self):
        assert "/api/learning-paths" in invalidation_targets("/api/exchanges/4/status")
        assert invalidation_targets("/api/auth/register") == ("/api/users",)
        assert invalidation_targets("/health") == ()


class TestMiddleware:
    def _app(self) -> FastAPI:
        app = FastAPI()
        app.state.cache = ResponseCache()
        app.add_middleware(ResponseCacheMiddleware)

        @app.get("/api/skills/page")
        async def page(response: Response) -> dict[str, bool]:
            response.headers["X-Total-Count"] = "42"
            return {"success": True}

        return app

    async def test_hit_replays_route_headers(self):
        async with AsyncClient(transport=ASGITransport(app=self._app()), base_url="http://test") as client:
            first = await client.get("/api/skills/page")
            second = await client.get("/api/skills/page")
        assert first.headers["X-Cache"] == "MISS"
        assert second.headers["X-Cache"] == "HIT"
        assert second.headers["X-Total-Count"] == "42"
        assert second.headers["content-type"] == "application/json"
        assert second.json() == {"success": True}
