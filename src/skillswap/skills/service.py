"""Skill catalog business logic."""

from __future__ import annotations

from typing import Any

import structlog
from sqlalchemy import String, cast, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from skillswap.db.models import Skill, SkillVideo
from skillswap.exceptions import ConflictError, NotFoundError, ValidationError
from skillswap.skills.schemas import SKILL_CATEGORIES, VideoIn
from skillswap.timeutils import utcnow

logger = structlog.get_logger()

SORTABLE_FIELDS = frozenset({"name", "created_at", "updated_at", "category"})
MAX_LIST_LIMIT = 100


def _videos(videos: list[VideoIn]) -> list[SkillVideo]:
    return [SkillVideo(title=v.title, url=v.url, duration=v.duration, position=i) for i, v in enumerate(videos)]


async def get_skill(db: AsyncSession, skill_id: int) -> Skill:
    result = await db.execute(select(Skill).where(Skill.id == skill_id))
    skill = result.scalar_one_or_none()
    if skill is None:
        msg = "Skill not found"
        raise NotFoundError(msg)
    return skill


async def get_skill_by_name(db: AsyncSession, name: str) -> Skill | None:
    """Case-insensitive exact lookup."""
    result = await db.execute(select(Skill).where(Skill.name_normalized == name.strip().lower()))
    return result.scalar_one_or_none()


async def list_skills(
    db: AsyncSession,
    search: str | None = None,
    category: str | None = None,
    is_active: bool | None = None,
    sort: str = "name",
    limit: int = MAX_LIST_LIMIT,
) -> list[Skill]:
    """
    List catalog skills.

    ``search`` matches name, description or tags; ``sort`` accepts a leading
    ``-`` for descending order.

    Raises:
        ValidationError: Unknown sort field.
    """
    field = sort.lstrip("-")
    if field not in SORTABLE_FIELDS:
        msg = "Invalid sort field"
        raise ValidationError(msg, allowed=sorted(SORTABLE_FIELDS))
    column = getattr(Skill, field)
    order = column.desc() if sort.startswith("-") else column.asc()

    query = select(Skill)
    if search:
        pattern = f"%{search.lower()}%"
        # tags is JSON; match against its text form
        query = query.where(
            or_(
                func.lower(Skill.name).like(pattern),
                func.lower(Skill.description).like(pattern),
                func.lower(cast(Skill.tags, String)).like(pattern),
            )
        )
    if category:
        query = query.where(Skill.category == category)
    if is_active is not None:
        query = query.where(Skill.is_active.is_(is_active))
    query = query.order_by(order, Skill.id).limit(min(limit, MAX_LIST_LIMIT))
    result = await db.execute(query)
    return list(result.scalars().all())


async def create_skill(
    db: AsyncSession,
    name: str,
    category: str,
    description: str,
    subcategory: str | None = None,
    tags: list[str] | None = None,
    videos: list[VideoIn] | None = None,
) -> Skill:
    """
    Create a catalog skill.

    Raises:
        ConflictError: A skill with the same name (case-insensitive) exists.
    """
    if await get_skill_by_name(db, name) is not None:
        msg = "A skill with this name already exists"
        raise ConflictError(msg)
    now = utcnow()
    skill = Skill(
        name=name.strip(),
        name_normalized=name.strip().lower(),
        category=category,
        subcategory=subcategory,
        description=description.strip(),
        tags=list(tags or []),
        is_active=True,
        usage_count=0,
        videos=_videos(videos or []),
        created_at=now,
        updated_at=now,
    )
    db.add(skill)
    await db.flush()
    logger.info("skill_created", skill_id=skill.id, name=skill.name)
    return skill


async def update_skill(db: AsyncSession, skill_id: int, changes: dict[str, Any]) -> Skill:
    """
    Apply a partial update.

    Raises:
        ValidationError: Nothing to update.
        ConflictError: Renaming onto an existing skill name.
    """
    allowed = {"name", "category", "description", "subcategory", "tags", "is_active", "videos"}
    changes = {k: v for k, v in changes.items() if k in allowed}
    if not changes:
        msg = "No valid fields to update"
        raise ValidationError(msg)

    skill = await get_skill(db, skill_id)
    if "name" in changes and changes["name"].strip().lower() != skill.name_normalized:
        if await get_skill_by_name(db, changes["name"]) is not None:
            msg = "A skill with this name already exists"
            raise ConflictError(msg)
        skill.name = changes["name"].strip()
        skill.name_normalized = skill.name.lower()
    for key in ("category", "description", "subcategory", "is_active"):
        if key in changes:
            setattr(skill, key, changes[key])
    if "tags" in changes:
        skill.tags = list(changes["tags"] or [])
    if "videos" in changes:
        skill.videos = _videos([v if isinstance(v, VideoIn) else VideoIn(**v) for v in changes["videos"] or []])
    skill.updated_at = utcnow()
    await db.flush()
    return skill


async def delete_skill(db: AsyncSession, skill_id: int) -> None:
    skill = await get_skill(db, skill_id)
    await db.delete(skill)
    await db.flush()
    logger.info("skill_deleted", skill_id=skill_id)


async def popular_skills(db: AsyncSession, limit: int = 10) -> list[Skill]:
    result = await db.execute(
        select(Skill)
        .where(Skill.is_active.is_(True))
        .order_by(Skill.usage_count.desc(), Skill.name)
        .limit(min(limit, MAX_LIST_LIMIT))
    )
    return list(result.scalars().all())


async def skills_by_category(db: AsyncSession, category: str) -> list[Skill]:
    if category not in SKILL_CATEGORIES:
        msg = "Invalid category"
        raise ValidationError(msg)
    result = await db.execute(
        select(Skill).where(Skill.category == category, Skill.is_active.is_(True)).order_by(Skill.name)
    )
    return list(result.scalars().all())


async def category_counts(db: AsyncSession) -> list[dict[str, Any]]:
    """Every known category with its active-skill count (zero included)."""
    result = await db.execute(
        select(Skill.category, func.count(Skill.id)).where(Skill.is_active.is_(True)).group_by(Skill.category)
    )
    counts = dict(result.tuples().all())
    return [{"name": name, "count": int(counts.get(name, 0))} for name in SKILL_CATEGORIES]


async def bulk_create_skills(db: AsyncSession, items: list[dict[str, Any]]) -> tuple[list[Skill], list[dict[str, str]]]:
    """Create many skills; duplicates are reported, not fatal."""
    created: list[Skill] = []
    errors: list[dict[str, str]] = []
    for item in items:
        try:
            created.append(await create_skill(db, **item))
        except ConflictError as e:
            errors.append({"name": item["name"], "error": e.message})
    return created, errors


async def increment_usage(db: AsyncSession, *skill_ids: int | None) -> None:
    for skill_id in {s for s in skill_ids if s is not None}:
        skill = await db.get(Skill, skill_id)
        if skill is not None:
            skill.usage_count += 1
    await db.flush()
