"""Liveness, readiness and version probes."""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from skillswap.config import get_settings
from skillswap.database import get_session
from skillswap.db.models import Skill
from skillswap.redis_client import redis_status

router = APIRouter()


@router.get("/health")
async def health() -> dict[str, object]:
    """The process is up."""
    return {"success": True, "status": "healthy"}


@router.get("/ready")
async def readiness(
    request: Request,
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> JSONResponse:
    """Database reachable and catalog queryable; Redis is only required in production."""
    settings = get_settings()
    checks: dict[str, object] = {}
    required = {"database"}

    try:
        skills = (await db.execute(select(func.count(Skill.id)))).scalar_one()
        checks["database"] = "ok"
        checks["catalog_skills"] = int(skills)
    except Exception as exc:
        checks["database"] = f"error: {exc}"

    if settings.is_production:
        required.add("redis")
    checks["redis"] = await redis_status()

    notifier = request.app.state.notifier
    checks["email"] = "configured" if notifier.email.enabled else "disabled"
    checks["sms"] = "configured" if notifier.sms.configured else "simulated"
    checks["pending_notifications"] = notifier.pending
    checks["cache"] = request.app.state.cache.stats

    ready = all(checks.get(name) == "ok" for name in required)
    return JSONResponse(
        status_code=200 if ready else 503,
        content={"success": ready, "status": "ready" if ready else "degraded", "checks": checks},
    )


@router.get("/version")
async def version() -> dict[str, object]:
    settings = get_settings()
    return {"success": True, "name": "skillswap-api", "version": settings.app_version, "environment": settings.environment}
