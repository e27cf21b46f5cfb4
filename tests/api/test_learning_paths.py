"""Tests for learning paths, module progress and exchange completion propagation."""

from __future__ import annotations

import pytest
from httpx import AsyncClient
from sqlalchemy import delete, update
from sqlalchemy.dialects import postgresql

from skillswap.database import get_session_factory
from skillswap.db.models import Exchange, LearningModule, LearningPath
from skillswap.exceptions import NotFoundError
from skillswap.learning_paths.service import exchange_lock_query, lock_exchange
from tests.conftest import add_skill, auth, create_exchange, make_admin, register, set_status


@pytest.fixture
async def active(client: AsyncClient, catalog) -> dict:
    """An accepted Guitar <-> Spanish exchange between Ann (requester) and Bob (provider)."""
    ann, ann_user = await register(client, "Ann", "ann@example.com")
    bob, bob_user = await register(client, "Bob", "bob@example.com")
    await add_skill(client, ann, "offered", "Spanish", "Advanced", "Languages")
    await add_skill(client, bob, "offered", "Guitar", "Expert", "Music")
    exchange = await create_exchange(client, ann, bob_user["id"])
    accepted = await set_status(client, bob, exchange["id"], "active")
    assert accepted.status_code == 200
    ex = accepted.json()["exchange"]
    return {
        "ann": ann,
        "bob": bob,
        "ann_id": ann_user["id"],
        "bob_id": bob_user["id"],
        "exchange_id": ex["id"],
        "ann_path": ex["requester_learning_path_id"],
        "bob_path": ex["provider_learning_path_id"],
    }


async def _drop_paths(*path_ids: int) -> None:
    async with get_session_factory()() as session:
        await session.execute(delete(LearningModule).where(LearningModule.learning_path_id.in_(path_ids)))
        await session.execute(delete(LearningPath).where(LearningPath.id.in_(path_ids)))
        await session.commit()


async def _path(client: AsyncClient, token: str, path_id: int) -> dict:
    response = await client.get(f"/api/learning-paths/{path_id}", headers=auth(token))
    assert response.status_code == 200, response.text
    return response.json()["learning_path"]


async def _complete(client: AsyncClient, token: str, path_id: int, module_id: int, **body) -> dict:
    response = await client.put(
        f"/api/learning-paths/{path_id}/modules/{module_id}/complete", json=body, headers=auth(token)
    )
    assert response.status_code == 200, response.text
    return response.json()


async def _complete_all(client: AsyncClient, token: str, path_id: int) -> dict:
    path = await _path(client, token, path_id)
    result: dict = {}
    for module in path["modules"]:
        if not module["is_completed"]:
            result = await _complete(client, token, path_id, module["id"])
    return result


class TestPathCreation:
    async def test_paths_derived_from_catalog_videos(self, client: AsyncClient, active):
        path = await _path(client, active["ann"], active["ann_path"])
        assert path["user_role"] == "learner"
        assert path["skill_name"] == "Guitar"
        assert path["learner_id"] == active["ann_id"]
        assert path["instructor_id"] == active["bob_id"]
        assert path["status"] == "not-started"
        assert path["total_modules"] == 5
        assert [m["title"] for m in path["modules"]] == [
            "Holding the Guitar",
            "Open Chords",
            "Strumming Patterns",
            "Barre Chords",
            "Playing Songs",
        ]
        assert path["estimated_duration"] == 170

    async def test_placeholder_modules_for_unknown_skill(self, client: AsyncClient, active):
        exchange = await create_exchange(
            client, active["ann"], active["bob_id"], requested="Underwater Basket Weaving", offered="Spanish"
        )
        accepted = (await set_status(client, active["bob"], exchange["id"], "active")).json()["exchange"]
        path = await _path(client, active["ann"], accepted["requester_learning_path_id"])
        assert len(path["modules"]) == 5
        assert path["modules"][0]["title"] == "Module 1: Underwater Basket Weaving"
        assert path["modules"][0]["video_url"] == ""

    async def test_instructor_view_and_outsider_denied(self, client: AsyncClient, active):
        as_instructor = await _path(client, active["bob"], active["ann_path"])
        assert as_instructor["user_role"] == "instructor"

        eve, _ = await register(client, "Eve", "eve@example.com")
        response = await client.get(f"/api/learning-paths/{active['ann_path']}", headers=auth(eve))
        assert response.status_code == 403
        assert response.json()["message"] == "Not authorized to view this learning path"

    async def test_create_path_conflicts_when_present(self, client: AsyncClient, active):
        response = await client.post(
            "/api/learning-paths", json={"exchange_id": active["exchange_id"]}, headers=auth(active["ann"])
        )
        assert response.status_code == 409
        assert response.json()["message"] == "Learning path already exists for this exchange"

    async def test_create_path_after_removal(self, client: AsyncClient, active):
        await _drop_paths(active["ann_path"])
        response = await client.post(
            "/api/learning-paths", json={"exchange_id": active["exchange_id"]}, headers=auth(active["ann"])
        )
        assert response.status_code == 201
        assert response.json()["learning_path"]["learner_id"] == active["ann_id"]

    async def test_create_path_requires_active_exchange(self, client: AsyncClient, active):
        pending = await create_exchange(client, active["ann"], active["bob_id"], requested="Photography")
        response = await client.post(
            "/api/learning-paths", json={"exchange_id": pending["id"]}, headers=auth(active["ann"])
        )
        assert response.status_code == 400
        assert response.json()["message"] == "Learning paths can only be created for active exchanges"

    async def test_exchange_view_backfills_missing_path(self, client: AsyncClient, active):
        await _drop_paths(active["bob_path"])
        response = await client.get(
            f"/api/learning-paths/exchange/{active['exchange_id']}", headers=auth(active["bob"])
        )
        body = response.json()
        assert body["exchange_status"] == "active"
        assert body["learning_path"]["learner_id"] == active["bob_id"]
        assert body["learning_path"]["skill_name"] == "Spanish"
        assert len(body["learning_paths"]) == 2

    async def test_user_paths_by_role(self, client: AsyncClient, active):
        learning = await client.get("/api/learning-paths/user", params={"role": "learner"}, headers=auth(active["ann"]))
        assert [p["id"] for p in learning.json()["learning_paths"]] == [active["ann_path"]]
        teaching = await client.get(
            "/api/learning-paths/user", params={"role": "instructor"}, headers=auth(active["ann"])
        )
        assert [p["id"] for p in teaching.json()["learning_paths"]] == [active["bob_path"]]
        bad = await client.get("/api/learning-paths/user", params={"role": "student"}, headers=auth(active["ann"]))
        assert bad.status_code == 400


class TestModuleProgress:
    async def test_first_completion_starts_path(self, client: AsyncClient, active):
        path = await _path(client, active["ann"], active["ann_path"])
        body = await _complete(client, active["ann"], active["ann_path"], path["modules"][0]["id"], score=150)
        assert body["message"] == "Module completed"
        assert body["module"]["is_completed"] is True
        assert body["module"]["score"] == 100
        assert body["learning_path"]["status"] == "in-progress"
        assert body["learning_path"]["progress_percentage"] == 20
        assert body["learning_path"]["started_at"] is not None
        assert body["exchange_status"] == "active"

    async def test_only_learner_completes(self, client: AsyncClient, active):
        path = await _path(client, active["ann"], active["ann_path"])
        response = await client.put(
            f"/api/learning-paths/{active['ann_path']}/modules/{path['modules'][0]['id']}/complete",
            headers=auth(active["bob"]),
        )
        assert response.status_code == 403
        assert response.json()["message"] == "Unauthorized: You can only complete modules in your own learning path"

    async def test_unknown_module(self, client: AsyncClient, active):
        response = await client.put(
            f"/api/learning-paths/{active['ann_path']}/modules/9999/complete", headers=auth(active["ann"])
        )
        assert response.status_code == 404
        assert response.json()["message"] == "Module not found"

    async def test_progress_summary(self, client: AsyncClient, active):
        path = await _path(client, active["ann"], active["ann_path"])
        await _complete(client, active["ann"], active["ann_path"], path["modules"][0]["id"], score=80)
        await _complete(client, active["ann"], active["ann_path"], path["modules"][1]["id"], score=91)
        response = await client.get(f"/api/learning-paths/{active['ann_path']}/progress", headers=auth(active["ann"]))
        progress = response.json()["progress"]
        assert progress["completed_modules"] == 2
        assert progress["remaining_modules"] == 3
        assert progress["progress_percentage"] == 40
        assert progress["average_score"] == 86
        assert progress["next_module_id"] == path["modules"][2]["id"]

    async def test_single_module_view(self, client: AsyncClient, active):
        path = await _path(client, active["ann"], active["ann_path"])
        module_id = path["modules"][3]["id"]
        response = await client.get(
            f"/api/learning-paths/{active['ann_path']}/modules/{module_id}", headers=auth(active["bob"])
        )
        assert response.json()["module"]["title"] == "Barre Chords"

    async def test_finishing_one_path_keeps_exchange_active(self, client: AsyncClient, active):
        body = await _complete_all(client, active["ann"], active["ann_path"])
        assert body["message"] == "Module completed. Learning path finished!"
        assert body["learning_path"]["status"] == "completed"
        assert body["learning_path"]["actual_duration"] is not None
        assert body["exchange_status"] == "active"
        assert body["exchange_completed"] is False

    async def test_finishing_both_paths_completes_exchange(self, client: AsyncClient, active):
        await _complete_all(client, active["ann"], active["ann_path"])
        body = await _complete_all(client, active["bob"], active["bob_path"])
        assert body["message"] == "Module completed. Both learning paths are finished and the exchange is complete!"
        assert body["exchange_status"] == "completed"
        assert body["exchange_completed"] is True
        # Bob learned Spanish from Ann, who teaches it at Advanced level.
        assert body["tokens_earned"] == 15

    async def test_uncompleting_reverts_exchange_without_double_reward(self, client: AsyncClient, active):
        await _complete_all(client, active["ann"], active["ann_path"])
        await _complete_all(client, active["bob"], active["bob_path"])
        balance = (await client.get("/api/auth/me", headers=auth(active["ann"]))).json()["user"]["token_balance"]
        assert balance == 70

        path = await _path(client, active["ann"], active["ann_path"])
        last = path["modules"][-1]["id"]
        undo = await client.put(
            f"/api/learning-paths/{active['ann_path']}/modules/{last}/incomplete", headers=auth(active["ann"])
        )
        assert undo.status_code == 200
        assert undo.json()["learning_path"]["status"] == "in-progress"
        assert undo.json()["exchange_status"] == "active"

        exchange = (await client.get(f"/api/exchanges/{active['exchange_id']}", headers=auth(active["ann"]))).json()
        assert exchange["exchange"]["status"] == "active"
        assert exchange["exchange"]["learning_completed"] is False

        redo = await _complete(client, active["ann"], active["ann_path"], last)
        assert redo["exchange_status"] == "completed"
        assert redo["tokens_earned"] is None
        me = (await client.get("/api/auth/me", headers=auth(active["ann"]))).json()["user"]
        assert me["token_balance"] == 70
        assert me["total_exchanges"] == 1

    async def test_cancelled_path_is_read_only(self, client: AsyncClient, active):
        await set_status(client, active["ann"], active["exchange_id"], "cancelled")
        path = await _path(client, active["ann"], active["ann_path"])
        response = await client.put(
            f"/api/learning-paths/{active['ann_path']}/modules/{path['modules'][0]['id']}/complete",
            headers=auth(active["ann"]),
        )
        assert response.status_code == 400
        assert response.json()["message"] == "This learning path has been cancelled"


class TestCompleteLearning:
    async def test_requires_all_modules(self, client: AsyncClient, active):
        response = await client.put(f"/api/learning-paths/{active['ann_path']}/complete", headers=auth(active["ann"]))
        assert response.status_code == 400
        assert response.json()["message"] == "Complete all modules first. 5 module(s) remaining."
        assert response.json()["remaining_modules"] == 5

    async def test_confirms_finished_path(self, client: AsyncClient, active):
        await _complete_all(client, active["ann"], active["ann_path"])
        response = await client.put(f"/api/learning-paths/{active['ann_path']}/complete", headers=auth(active["ann"]))
        assert response.status_code == 200
        assert response.json()["learning_path"]["status"] == "completed"


class TestAdmin:
    async def _admin(self, client: AsyncClient) -> str:
        token, user = await register(client, "Admin", "admin@example.com")
        await make_admin(user["id"])
        return token

    async def test_non_admin_denied(self, client: AsyncClient, active):
        response = await client.get("/api/learning-paths/admin/all", headers=auth(active["ann"]))
        assert response.status_code == 403

    async def test_list_all(self, client: AsyncClient, active):
        admin = await self._admin(client)
        response = await client.get("/api/learning-paths/admin/all", headers=auth(admin))
        assert response.json()["count"] == 2

    async def test_create_missing(self, client: AsyncClient, active):
        admin = await self._admin(client)
        await _drop_paths(active["ann_path"], active["bob_path"])
        response = await client.post("/api/learning-paths/admin/create-missing", headers=auth(admin))
        body = response.json()
        assert body["message"] == "Created 2 learning paths"
        assert {p["learner_id"] for p in body["created_paths"]} == {active["ann_id"], active["bob_id"]}

    async def test_add_and_delete_module(self, client: AsyncClient, active):
        admin = await self._admin(client)
        added = await client.post(
            f"/api/learning-paths/admin/{active['ann_path']}/modules",
            json={"title": "Fingerpicking", "duration": 30},
            headers=auth(admin),
        )
        assert added.status_code == 201
        assert added.json()["module"]["position"] == 6
        assert added.json()["learning_path"]["total_modules"] == 6
        assert added.json()["learning_path"]["estimated_duration"] == 200

        path = await _path(client, active["ann"], active["ann_path"])
        first = path["modules"][0]["id"]
        removed = await client.delete(
            f"/api/learning-paths/admin/{active['ann_path']}/modules/{first}", headers=auth(admin)
        )
        assert removed.status_code == 200
        modules = removed.json()["learning_path"]["modules"]
        assert [m["position"] for m in modules] == [1, 2, 3, 4, 5]
        assert modules[0]["title"] == "Open Chords"

    async def test_update_module(self, client: AsyncClient, active):
        admin = await self._admin(client)
        path = await _path(client, active["ann"], active["ann_path"])
        module_id = path["modules"][0]["id"]
        response = await client.put(
            f"/api/learning-paths/admin/{active['ann_path']}/modules/{module_id}",
            json={"title": "Posture"},
            headers=auth(admin),
        )
        assert response.json()["module"]["title"] == "Posture"
        empty = await client.put(
            f"/api/learning-paths/admin/{active['ann_path']}/modules/{module_id}", json={}, headers=auth(admin)
        )
        assert empty.status_code == 400

    async def test_deleting_last_open_module_completes_exchange(
        self, client: AsyncClient, app, mailbox, active
    ):
        admin = await self._admin(client)
        await _complete_all(client, active["bob"], active["bob_path"])
        path = await _path(client, active["ann"], active["ann_path"])
        for module in path["modules"][:-1]:
            await _complete(client, active["ann"], active["ann_path"], module["id"])

        removed = await client.delete(
            f"/api/learning-paths/admin/{active['ann_path']}/modules/{path['modules'][-1]['id']}",
            headers=auth(admin),
        )
        assert removed.status_code == 200
        finished = removed.json()["learning_path"]
        assert finished["status"] == "completed"
        assert finished["progress_percentage"] == 100
        assert finished["started_at"] is not None
        assert finished["actual_duration"] is not None

        exchange = (await client.get(f"/api/exchanges/{active['exchange_id']}", headers=auth(active["ann"]))).json()
        assert exchange["exchange"]["status"] == "completed"
        me = (await client.get("/api/auth/me", headers=auth(active["ann"]))).json()["user"]
        assert me["token_balance"] == 70

        await app.state.notifier.drain()
        for address in ("ann@example.com", "bob@example.com"):
            subjects = [m["subject"] for m in mailbox.to(address)]
            assert "Exchange completed: you earned tokens!" in subjects

    async def test_adding_module_to_finished_path_reopens_exchange(self, client: AsyncClient, app, mailbox, active):
        admin = await self._admin(client)
        await _complete_all(client, active["ann"], active["ann_path"])
        await _complete_all(client, active["bob"], active["bob_path"])
        await app.state.notifier.drain()
        sent = len(mailbox.to("ann@example.com"))

        added = await client.post(
            f"/api/learning-paths/admin/{active['ann_path']}/modules",
            json={"title": "Fingerpicking"},
            headers=auth(admin),
        )
        assert added.json()["learning_path"]["status"] == "in-progress"
        exchange = (await client.get(f"/api/exchanges/{active['exchange_id']}", headers=auth(active["ann"]))).json()
        assert exchange["exchange"]["status"] == "active"

        await app.state.notifier.drain()
        assert len(mailbox.to("ann@example.com")) == sent


class TestExchangeLock:
    def test_query_locks_the_row(self):
        sql = str(exchange_lock_query(7).compile(dialect=postgresql.dialect()))
        assert "FOR UPDATE" in sql

    async def test_locked_read_sees_committed_status(self, active):
        async with get_session_factory()() as session:
            exchange = await session.get(Exchange, active["exchange_id"])
            assert exchange.status == "active"
            await session.execute(
                update(Exchange)
                .where(Exchange.id == active["exchange_id"])
                .values(status="completed")
                .execution_options(synchronize_session=False)
            )
            assert exchange.status == "active"

            locked = await lock_exchange(session, active["exchange_id"])
            assert locked is exchange
            assert locked.status == "completed"
            await session.rollback()

    async def test_missing_exchange(self, database):
        async with get_session_factory()() as session:
            with pytest.raises(NotFoundError):
                await lock_exchange(session, 9999)
