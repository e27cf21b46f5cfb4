"""Shared test fixtures."""

from __future__ import annotations

import os
from collections.abc import AsyncGenerator

# Must be set before the app reads its settings.
os.environ["SKILLSWAP_DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["SKILLSWAP_ENVIRONMENT"] = "test"
os.environ["SKILLSWAP_SMTP_HOST"] = ""
os.environ["SKILLSWAP_TWILIO_ACCOUNT_SID"] = ""

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from skillswap.config import get_settings
from skillswap.database import close_db, get_engine, get_session_factory, init_db
from skillswap.db.base import Base
from skillswap.db.models import User
from skillswap.email.service import BaseEmailProvider, EmailService
from skillswap.main import create_app
from skillswap.notifications.dispatcher import NotificationDispatcher
from skillswap.skills.seed import seed_skills
from skillswap.sms.service import SMSService

get_settings.cache_clear()

PASSWORD = "secret123"


class RecordingEmailProvider(BaseEmailProvider):
    """Keeps every message instead of delivering it."""

    def __init__(self) -> None:
        self.sent: list[dict[str, str]] = []

    async def send(self, to_email: str, subject: str, html_body: str, text_body: str) -> None:
        self.sent.append({"to": to_email, "subject": subject, "html": html_body, "text": text_body})

    def to(self, address: str) -> list[dict[str, str]]:
        return [m for m in self.sent if m["to"] == address]


async def _no_sleep(_seconds: float) -> None:
    return None


@pytest_asyncio.fixture
async def database() -> AsyncGenerator[None, None]:
    """Fresh in-memory schema per test."""
    await init_db(get_settings().database_url)
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await close_db()


@pytest_asyncio.fixture
async def db_session(database: None) -> AsyncGenerator[AsyncSession, None]:
    async with get_session_factory()() as session:
        yield session


@pytest.fixture
def mailbox() -> RecordingEmailProvider:
    return RecordingEmailProvider()


@pytest_asyncio.fixture
async def app(database: None, mailbox: RecordingEmailProvider) -> AsyncGenerator[FastAPI, None]:
    application = create_app()
    application.state.notifier = NotificationDispatcher(
        EmailService(mailbox, max_attempts=1, sleep=_no_sleep),
        SMSService(sleep=_no_sleep),
    )
    yield application
    await application.state.notifier.drain()


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client bound to the app (no network)."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture
async def catalog(database: None) -> int:
    """Seed the starter skill catalog."""
    async with get_session_factory()() as session:
        return await seed_skills(session)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def auth(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


async def register(client: AsyncClient, name: str, email: str, **extra: str) -> tuple[str, dict]:
    """Register a user. Returns (token, user payload)."""
    response = await client.post(
        "/api/auth/register",
        json={"name": name, "email": email, "password": PASSWORD, **extra},
    )
    assert response.status_code == 201, response.text
    data = response.json()
    return data["token"], data["user"]


async def make_admin(user_id: int) -> None:
    async with get_session_factory()() as session:
        await session.execute(update(User).where(User.id == user_id).values(is_admin=True))
        await session.commit()


async def add_skill(
    client: AsyncClient, token: str, skill_type: str, name: str, level: str = "Intermediate", category: str | None = None
) -> dict:
    response = await client.post(
        "/api/users/skills",
        json={"skill_type": skill_type, "name": name, "experience_level": level, "category": category},
        headers=auth(token),
    )
    assert response.status_code == 201, response.text
    return response.json()["skill"]


async def create_exchange(
    client: AsyncClient, token: str, provider_id: int, requested: str = "Guitar", offered: str = "Spanish"
) -> dict:
    response = await client.post(
        "/api/exchanges",
        json={"provider_id": provider_id, "requested_skill": requested, "offered_skill": offered},
        headers=auth(token),
    )
    assert response.status_code == 201, response.text
    return response.json()["exchange"]


async def set_status(client: AsyncClient, token: str, exchange_id: int, status: str):
    return await client.put(f"/api/exchanges/{exchange_id}/status", json={"status": status}, headers=auth(token))
