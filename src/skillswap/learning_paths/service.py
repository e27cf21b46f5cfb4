"""Learning path business logic.

Paths are created per (exchange, learner) from ``derive_modules``. Every
module mutation recomputes the path counters and then re-reads both sibling
paths so the exchange status follows them: both completed means the exchange
is completed (and rewarded once), anything less means it is active.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

import structlog
from sqlalchemy import Select, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from skillswap.db.models import Exchange, LearningModule, LearningPath, Skill, User
from skillswap.exceptions import AuthorizationError, ConflictError, NotFoundError, ValidationError
from skillswap.exchanges.rewards import CompletionReward, complete_exchange
from skillswap.learning_paths.derivation import (
    DEFAULT_MODULE_DURATION,
    derive_modules,
    elapsed_minutes,
    recompute_progress,
    renumber,
)
from skillswap.timeutils import as_utc, utcnow

logger = structlog.get_logger()

PATH_STATUSES = ("not-started", "in-progress", "completed", "cancelled")
ROLES = ("learner", "instructor")


@dataclass
class ModuleChange:
    """Result of completing or un-completing a module."""

    path: LearningPath
    module: LearningModule
    exchange: Exchange
    path_completed: bool = False
    exchange_completed: bool = False
    exchange_reverted: bool = False
    reward: CompletionReward | None = None


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------


async def get_path(db: AsyncSession, path_id: int) -> LearningPath:
    path = await db.get(LearningPath, path_id)
    if path is None:
        msg = "Learning path not found"
        raise NotFoundError(msg)
    return path


def get_module(path: LearningPath, module_id: int) -> LearningModule:
    module = path.module_by_id(module_id)
    if module is None:
        msg = "Module not found"
        raise NotFoundError(msg)
    return module


async def get_exchange(db: AsyncSession, exchange_id: int) -> Exchange:
    exchange = await db.get(Exchange, exchange_id)
    if exchange is None:
        msg = "Exchange not found"
        raise NotFoundError(msg)
    return exchange


def exchange_lock_query(exchange_id: int) -> Select[tuple[Exchange]]:
    return (
        select(Exchange)
        .where(Exchange.id == exchange_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )


async def lock_exchange(db: AsyncSession, exchange_id: int) -> Exchange:
    """Load the exchange row locked for the rest of the transaction.

    Concurrent module updates on the two sibling paths queue here, so each
    re-reads the other path only after the earlier transaction committed.
    SQLite ignores FOR UPDATE and serialises writers instead.
    """
    exchange = (await db.execute(exchange_lock_query(exchange_id))).scalar_one_or_none()
    if exchange is None:
        msg = "Exchange not found"
        raise NotFoundError(msg)
    return exchange


async def paths_of_exchange(db: AsyncSession, exchange_id: int) -> list[LearningPath]:
    """Fresh read of the sibling paths of an exchange."""
    result = await db.execute(
        select(LearningPath)
        .where(LearningPath.exchange_id == exchange_id)
        .order_by(LearningPath.id)
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


def viewer_role(path: LearningPath, user: User) -> str:
    """'learner' or 'instructor'. Admins view as instructor."""
    if path.learner_id == user.id:
        return "learner"
    if path.instructor_id == user.id or user.is_admin:
        return "instructor"
    msg = "Not authorized to view this learning path"
    raise AuthorizationError(msg)


async def get_path_for_viewer(db: AsyncSession, path_id: int, user: User) -> tuple[LearningPath, str]:
    path = await get_path(db, path_id)
    return path, viewer_role(path, user)


async def user_paths(db: AsyncSession, user_id: int, role: str | None = None) -> list[LearningPath]:
    """Paths where the user learns, teaches, or either."""
    if role is not None and role not in ROLES:
        msg = "Role must be 'learner' or 'instructor'"
        raise ValidationError(msg)
    query = select(LearningPath)
    if role == "learner":
        query = query.where(LearningPath.learner_id == user_id)
    elif role == "instructor":
        query = query.where(LearningPath.instructor_id == user_id)
    else:
        query = query.where(or_(LearningPath.learner_id == user_id, LearningPath.instructor_id == user_id))
    result = await db.execute(query.order_by(LearningPath.id.desc()))
    return list(result.scalars().all())


async def all_paths(db: AsyncSession, status: str | None = None, limit: int = 100, offset: int = 0) -> list[LearningPath]:
    query = select(LearningPath)
    if status:
        query = query.where(LearningPath.status == status)
    result = await db.execute(query.order_by(LearningPath.id.desc()).limit(limit).offset(offset))
    return list(result.scalars().all())


# ---------------------------------------------------------------------------
# Creation
# ---------------------------------------------------------------------------


def _learning_side(exchange: Exchange, learner_id: int) -> tuple[int, str, int | None]:
    """(instructor_id, skill name, catalog skill id) for the learner's side."""
    if learner_id == exchange.requester_id:
        return exchange.provider_id, exchange.requested_skill, exchange.requested_skill_id
    return exchange.requester_id, exchange.offered_skill, exchange.offered_skill_id


def _link_path(exchange: Exchange, path: LearningPath) -> None:
    if path.learner_id == exchange.requester_id:
        exchange.requester_learning_path_id = path.id
        exchange.learning_path_id = path.id
    else:
        exchange.provider_learning_path_id = path.id


async def build_path(db: AsyncSession, exchange: Exchange, learner_id: int) -> LearningPath:
    """Create one learner's path with derived modules and link it to the exchange."""
    instructor_id, skill_name, skill_id = _learning_side(exchange, learner_id)
    skill = await db.get(Skill, skill_id) if skill_id is not None else None
    path = LearningPath(
        exchange_id=exchange.id,
        skill_id=skill_id,
        skill_name=skill_name,
        learner_id=learner_id,
        instructor_id=instructor_id,
        status="not-started",
        modules=[spec.to_model() for spec in derive_modules(skill, skill_name)],
        created_at=utcnow(),
    )
    recompute_progress(path)
    db.add(path)
    await db.flush()
    _link_path(exchange, path)
    logger.info(
        "learning_path_created",
        path_id=path.id,
        exchange_id=exchange.id,
        learner_id=learner_id,
        skill=skill_name,
        modules=path.total_modules,
        from_videos=bool(path.modules and path.modules[0].video_url),
    )
    return path


async def ensure_paths(db: AsyncSession, exchange: Exchange) -> list[LearningPath]:
    """Create whichever of the two paths is missing. Returns both."""
    existing = {p.learner_id: p for p in await paths_of_exchange(db, exchange.id)}
    for learner_id in (exchange.requester_id, exchange.provider_id):
        if learner_id not in existing:
            existing[learner_id] = await build_path(db, exchange, learner_id)
        else:
            _link_path(exchange, existing[learner_id])
    await db.flush()
    return [existing[exchange.requester_id], existing[exchange.provider_id]]


async def create_learning_path(db: AsyncSession, exchange_id: int, user: User) -> LearningPath:
    """Create the caller's own path for an exchange they take part in."""
    exchange = await get_exchange(db, exchange_id)
    if not exchange.is_participant(user.id):
        msg = "You are not part of this exchange"
        raise AuthorizationError(msg)
    if exchange.status not in ("active", "completed"):
        msg = "Learning paths can only be created for active exchanges"
        raise ValidationError(msg)
    if any(p.learner_id == user.id for p in await paths_of_exchange(db, exchange.id)):
        msg = "Learning path already exists for this exchange"
        raise ConflictError(msg)
    return await build_path(db, exchange, user.id)


async def paths_for_exchange(db: AsyncSession, exchange_id: int, user: User) -> tuple[Exchange, list[LearningPath]]:
    """Both paths of an exchange; creates the caller's path if it is missing."""
    exchange = await get_exchange(db, exchange_id)
    if not exchange.is_participant(user.id) and not user.is_admin:
        msg = "You do not have access to this exchange"
        raise AuthorizationError(msg)
    paths = await paths_of_exchange(db, exchange.id)
    if (
        exchange.is_participant(user.id)
        and exchange.status in ("active", "completed")
        and not any(p.learner_id == user.id for p in paths)
    ):
        logger.info("learning_path_backfilled", exchange_id=exchange.id, learner_id=user.id)
        paths.append(await build_path(db, exchange, user.id))
    return exchange, paths


async def create_missing_paths(db: AsyncSession) -> list[dict[str, int]]:
    """Backfill paths for every active or completed exchange."""
    result = await db.execute(
        select(Exchange).where(Exchange.status.in_(("active", "completed"))).order_by(Exchange.id)
    )
    created: list[dict[str, int]] = []
    for exchange in result.scalars().all():
        have = {p.learner_id for p in await paths_of_exchange(db, exchange.id)}
        for learner_id in (exchange.requester_id, exchange.provider_id):
            if learner_id not in have:
                path = await build_path(db, exchange, learner_id)
                created.append({"exchange_id": exchange.id, "learning_path_id": path.id, "learner_id": learner_id})
    await db.flush()
    return created


# ---------------------------------------------------------------------------
# Completion propagation
# ---------------------------------------------------------------------------


async def sync_exchange_status(db: AsyncSession, exchange: Exchange) -> tuple[bool, bool, CompletionReward | None]:
    """Align the exchange with its paths.

    Returns (completed_now, reverted_now, reward). Cancelled, rejected and
    pending exchanges are left alone.
    """
    if exchange.status not in ("active", "completed"):
        return False, False, None
    paths = await paths_of_exchange(db, exchange.id)
    both_done = len(paths) == 2 and all(p.status == "completed" for p in paths)

    if both_done and exchange.status == "active":
        reward = await complete_exchange(db, exchange)
        logger.info("exchange_completed_by_paths", exchange_id=exchange.id, rewarded=reward is not None)
        return True, False, reward
    if not both_done and exchange.status == "completed":
        exchange.status = "active"
        exchange.learning_completed = False
        exchange.completed_at = None
        exchange.updated_at = utcnow()
        await db.flush()
        logger.info("exchange_reverted_to_active", exchange_id=exchange.id)
        return False, True, None
    return False, False, None


def _require_learner(path: LearningPath, user: User) -> None:
    if path.learner_id != user.id:
        msg = "Unauthorized: You can only complete modules in your own learning path"
        raise AuthorizationError(msg)
    if path.status == "cancelled":
        msg = "This learning path has been cancelled"
        raise ValidationError(msg)


def _stamp_completed(path: LearningPath, now: datetime) -> None:
    """Mark a path finished. A path that was never started counts as started now."""
    path.status = "completed"
    path.completed_at = now
    path.started_at = path.started_at or now
    path.actual_duration = elapsed_minutes(as_utc(path.started_at) or now, now)


async def complete_module(
    db: AsyncSession,
    path_id: int,
    module_id: int,
    user: User,
    score: int | None = None,
    notes: str | None = None,
) -> ModuleChange:
    """Mark a module complete and propagate to the path and exchange. The caller commits."""
    path = await get_path(db, path_id)
    _require_learner(path, user)
    module = get_module(path, module_id)
    exchange = await lock_exchange(db, path.exchange_id)

    now = utcnow()
    if not module.is_completed:
        module.is_completed = True
        module.completed_at = now
    if score is not None:
        module.score = max(0, min(100, int(score)))
    if notes is not None:
        module.notes = notes

    was_completed = path.status == "completed"
    recompute_progress(path)
    if path.status == "not-started":
        path.status = "in-progress"
        path.started_at = path.started_at or now
    if path.progress_percentage >= 100 and path.status != "completed":
        _stamp_completed(path, now)
    path.updated_at = now
    await db.flush()

    completed_now, _, reward = await sync_exchange_status(db, exchange)
    return ModuleChange(
        path=path,
        module=module,
        exchange=exchange,
        path_completed=path.status == "completed" and not was_completed,
        exchange_completed=completed_now,
        reward=reward,
    )


async def incomplete_module(db: AsyncSession, path_id: int, module_id: int, user: User) -> ModuleChange:
    """Undo a module completion. A completed path and exchange step back; rewards stay."""
    path = await get_path(db, path_id)
    _require_learner(path, user)
    module = get_module(path, module_id)
    exchange = await lock_exchange(db, path.exchange_id)

    module.is_completed = False
    module.completed_at = None
    module.score = None

    recompute_progress(path)
    if path.status == "completed":
        path.status = "in-progress"
        path.completed_at = None
    path.updated_at = utcnow()
    await db.flush()

    _, reverted, _ = await sync_exchange_status(db, exchange)
    return ModuleChange(path=path, module=module, exchange=exchange, exchange_reverted=reverted)


async def complete_learning(db: AsyncSession, path_id: int, user: User) -> tuple[LearningPath, Exchange, CompletionReward | None]:
    """Confirm a fully finished path. Fails while modules remain."""
    path = await get_path(db, path_id)
    _require_learner(path, user)
    if path.progress_percentage < 100:
        remaining = path.total_modules - path.completed_modules
        msg = f"Complete all modules first. {remaining} module(s) remaining."
        raise ValidationError(msg, remaining_modules=remaining)
    exchange = await lock_exchange(db, path.exchange_id)
    if path.status != "completed":
        _stamp_completed(path, utcnow())
        await db.flush()
    _, _, reward = await sync_exchange_status(db, exchange)
    return path, exchange, reward


def progress_summary(path: LearningPath) -> dict[str, Any]:
    next_module = next((m for m in path.modules if not m.is_completed), None)
    return {
        "learning_path_id": path.id,
        "status": path.status,
        "total_modules": path.total_modules,
        "completed_modules": path.completed_modules,
        "remaining_modules": path.total_modules - path.completed_modules,
        "progress_percentage": path.progress_percentage,
        "average_score": path.average_score,
        "estimated_duration": path.estimated_duration,
        "actual_duration": path.actual_duration,
        "next_module_id": next_module.id if next_module else None,
    }


# ---------------------------------------------------------------------------
# Admin module editing
# ---------------------------------------------------------------------------


@dataclass
class StructureChange:
    """Result of an admin module edit. ``exchange`` is set when the path is not cancelled."""

    path: LearningPath
    module: LearningModule | None = None
    exchange: Exchange | None = None
    reward: CompletionReward | None = None


async def _after_structure_change(db: AsyncSession, path: LearningPath) -> StructureChange:
    """Recompute counters and status after modules were added, edited or removed."""
    recompute_progress(path)
    now = utcnow()
    if path.status == "cancelled":
        await db.flush()
        return StructureChange(path=path)
    exchange = await lock_exchange(db, path.exchange_id)
    if path.total_modules and path.progress_percentage >= 100:
        if path.status != "completed":
            _stamp_completed(path, now)
    elif path.status == "completed":
        path.status = "in-progress"
        path.completed_at = None
    path.updated_at = now
    await db.flush()
    _, _, reward = await sync_exchange_status(db, exchange)
    return StructureChange(path=path, exchange=exchange, reward=reward)


async def add_module(db: AsyncSession, path_id: int, fields: dict[str, Any]) -> StructureChange:
    path = await get_path(db, path_id)
    module = LearningModule(
        position=len(path.modules) + 1,
        title=fields["title"],
        description=fields.get("description") or "",
        video_url=fields.get("video_url") or "",
        video_title=fields.get("video_title"),
        duration=fields.get("duration") or DEFAULT_MODULE_DURATION,
        is_completed=False,
        created_at=utcnow(),
    )
    path.modules.append(module)
    change = await _after_structure_change(db, path)
    change.module = module
    return change


async def update_module(db: AsyncSession, path_id: int, module_id: int, fields: dict[str, Any]) -> StructureChange:
    path = await get_path(db, path_id)
    module = get_module(path, module_id)
    editable = {"title", "description", "video_url", "video_title", "duration"}
    changes = {k: v for k, v in fields.items() if k in editable and v is not None}
    if not changes:
        msg = "No valid fields to update"
        raise ValidationError(msg)
    for key, value in changes.items():
        setattr(module, key, value)
    change = await _after_structure_change(db, path)
    change.module = module
    return change


async def delete_module(db: AsyncSession, path_id: int, module_id: int) -> StructureChange:
    """Remove a module, renumber the rest and recompute progress.

    Removing the last unfinished module finishes the path and may complete
    the exchange.
    """
    path = await get_path(db, path_id)
    module = get_module(path, module_id)
    path.modules.remove(module)
    renumber(path)
    return await _after_structure_change(db, path)
