"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from skillswap.auth.router import router as auth_router
from skillswap.cache.response_cache import ResponseCache
from skillswap.config import get_settings
from skillswap.conversations.router import router as conversations_router
from skillswap.database import close_db, get_session, init_db
from skillswap.email.service import create_email_service
from skillswap.exchanges.router import router as exchanges_router
from skillswap.health.router import router as health_router
from skillswap.learning_paths.router import router as learning_paths_router
from skillswap.middleware import setup_middleware
from skillswap.notifications.dispatcher import NotificationDispatcher
from skillswap.redis_client import close_redis, init_redis
from skillswap.skills.router import router as skills_router
from skillswap.skills.seed import seed_skills
from skillswap.sms.service import create_sms_service
from skillswap.users.router import router as users_router


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings = get_settings()
    await init_db(settings.database_url)
    await init_redis(settings.redis_url)

    # Seed the skill catalog (idempotent)
    try:
        async for db in get_session():
            await seed_skills(db)
            break
    except Exception:
        logging.getLogger(__name__).warning("Skill seeding failed (tables may not exist yet)", exc_info=True)

    yield

    await app.state.notifier.aclose()
    await close_db()
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="SkillSwap API",
        description="Peer-to-peer skill exchange marketplace",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )
    app.state.cache = ResponseCache(
        max_entries=settings.cache_max_entries,
        default_ttl=settings.cache_default_ttl_seconds,
    )
    app.state.notifier = NotificationDispatcher(create_email_service(settings), create_sms_service(settings))

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(auth_router)
    app.include_router(users_router)
    app.include_router(skills_router)
    app.include_router(exchanges_router)
    app.include_router(learning_paths_router)
    app.include_router(conversations_router)

    return app


app = create_app()
