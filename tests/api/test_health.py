"""Tests for probes and the response cache middleware."""

from __future__ import annotations

from httpx import AsyncClient

from tests.conftest import auth, make_admin, register


class TestProbes:
    async def test_health(self, client: AsyncClient):
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"success": True, "status": "healthy"}

    async def test_ready_without_redis_outside_production(self, client: AsyncClient, catalog):
        response = await client.get("/ready")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ready"
        assert body["checks"]["database"] == "ok"
        assert body["checks"]["catalog_skills"] == 5
        assert body["checks"]["redis"] == "not initialized"
        assert body["checks"]["sms"] == "simulated"

    async def test_version(self, client: AsyncClient):
        body = (await client.get("/version")).json()
        assert body["name"] == "skillswap-api"
        assert body["environment"] == "test"

    async def test_unknown_route_uses_error_envelope(self, client: AsyncClient):
        response = await client.get("/api/nothing-here")
        assert response.status_code == 404
        assert response.json()["success"] is False


class TestResponseCache:
    async def test_second_read_is_a_hit(self, client: AsyncClient, catalog):
        first = await client.get("/api/skills")
        assert first.headers["X-Cache"] == "MISS"
        second = await client.get("/api/skills")
        assert second.headers["X-Cache"] == "HIT"
        assert second.json() == first.json()

    async def test_auth_routes_are_not_cached(self, client: AsyncClient):
        token, _ = await register(client, "Ann", "ann@example.com")
        response = await client.get("/api/auth/me", headers=auth(token))
        assert "X-Cache" not in response.headers

    async def test_entries_are_per_credential(self, client: AsyncClient):
        ann, _ = await register(client, "Ann", "ann@example.com")
        bob, _ = await register(client, "Bob", "bob@example.com")
        await client.get("/api/users/email-preferences", headers=auth(ann))
        response = await client.get("/api/users/email-preferences", headers=auth(bob))
        assert response.headers["X-Cache"] == "MISS"

    async def test_write_invalidates_dependent_routes(self, client: AsyncClient, catalog):
        token, user = await register(client, "Admin", "admin@example.com")
        await make_admin(user["id"])
        await client.get("/api/skills")
        assert (await client.get("/api/skills")).headers["X-Cache"] == "HIT"

        created = await client.post(
            "/api/skills",
            json={"name": "Knitting", "category": "Arts & Crafts", "description": "Yarn and needles"},
            headers=auth(token),
        )
        assert created.status_code == 201

        after = await client.get("/api/skills")
        assert after.headers["X-Cache"] == "MISS"
        assert "Knitting" in [s["name"] for s in after.json()["skills"]]

    async def test_failed_write_keeps_cache(self, client: AsyncClient, catalog):
        token, _ = await register(client, "Ann", "ann@example.com")
        await client.get("/api/skills")
        forbidden = await client.post(
            "/api/skills",
            json={"name": "Ukulele", "category": "Music", "description": "Four strings"},
            headers=auth(token),
        )
        assert forbidden.status_code == 403
        assert (await client.get("/api/skills")).headers["X-Cache"] == "HIT"
