"""Skill catalog router: all /api/skills/* endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from skillswap.auth.dependencies import get_current_admin
from skillswap.database import get_session
from skillswap.db.models import User
from skillswap.skills.schemas import (
    BulkCreateEnvelope,
    CategoryCount,
    CategoryListEnvelope,
    SkillCreateRequest,
    SkillEnvelope,
    SkillListEnvelope,
    SkillUpdateRequest,
    VideoListEnvelope,
    VideoOut,
    skill_response,
)
from skillswap.skills.service import (
    bulk_create_skills,
    category_counts,
    create_skill,
    delete_skill,
    get_skill,
    list_skills,
    popular_skills,
    skills_by_category,
    update_skill,
)

router = APIRouter(prefix="/api/skills", tags=["Skills"])


def _create_kwargs(body: SkillCreateRequest) -> dict:
    return {**body.model_dump(exclude={"videos"}), "videos": body.videos}


# ---------------------------------------------------------------------------
# Public catalog
# ---------------------------------------------------------------------------


@router.get("", response_model=SkillListEnvelope)
async def get_skills(
    search: str | None = Query(None, max_length=100),
    category: str | None = None,
    is_active: bool | None = None,
    sort: str = "name",
    limit: int = Query(100, ge=1, le=100),
    db: AsyncSession = Depends(get_session),
) -> SkillListEnvelope:
    """List skills with search, category filter and sorting."""
    skills = await list_skills(db, search=search, category=category, is_active=is_active, sort=sort, limit=limit)
    return SkillListEnvelope(count=len(skills), skills=[skill_response(s) for s in skills])


@router.get("/popular", response_model=SkillListEnvelope)
async def get_popular_skills(
    limit: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_session),
) -> SkillListEnvelope:
    """Most used skills first."""
    skills = await popular_skills(db, limit=limit)
    return SkillListEnvelope(count=len(skills), skills=[skill_response(s) for s in skills])


@router.get("/categories", response_model=CategoryListEnvelope)
async def get_categories(db: AsyncSession = Depends(get_session)) -> CategoryListEnvelope:
    """All categories with active skill counts."""
    counts = await category_counts(db)
    return CategoryListEnvelope(categories=[CategoryCount(**c) for c in counts])


@router.get("/category/{category}", response_model=SkillListEnvelope)
async def get_skills_in_category(category: str, db: AsyncSession = Depends(get_session)) -> SkillListEnvelope:
    skills = await skills_by_category(db, category)
    return SkillListEnvelope(count=len(skills), skills=[skill_response(s) for s in skills])


@router.get("/{skill_id}", response_model=SkillEnvelope)
async def get_one_skill(skill_id: int, db: AsyncSession = Depends(get_session)) -> SkillEnvelope:
    return SkillEnvelope(skill=skill_response(await get_skill(db, skill_id)))


@router.get("/{skill_id}/videos", response_model=VideoListEnvelope)
async def get_skill_videos(skill_id: int, db: AsyncSession = Depends(get_session)) -> VideoListEnvelope:
    skill = await get_skill(db, skill_id)
    return VideoListEnvelope(
        skill_id=skill.id,
        skill_name=skill.name,
        videos=[VideoOut(id=v.id, title=v.title, url=v.url, duration=v.duration) for v in skill.videos],
    )


# ---------------------------------------------------------------------------
# Admin
# ---------------------------------------------------------------------------


@router.post("", response_model=SkillEnvelope, status_code=201)
async def post_skill(
    body: SkillCreateRequest,
    _admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_session),
) -> SkillEnvelope:
    skill = await create_skill(db, **_create_kwargs(body))
    await db.commit()
    return SkillEnvelope(message="Skill created successfully", skill=skill_response(skill))


@router.post("/bulk", response_model=BulkCreateEnvelope, status_code=201)
async def post_skills_bulk(
    body: list[SkillCreateRequest],
    _admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_session),
) -> BulkCreateEnvelope:
    created, errors = await bulk_create_skills(db, [_create_kwargs(item) for item in body])
    await db.commit()
    return BulkCreateEnvelope(created=[skill_response(s) for s in created], errors=errors)


@router.put("/{skill_id}", response_model=SkillEnvelope)
async def put_skill(
    skill_id: int,
    body: SkillUpdateRequest,
    _admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_session),
) -> SkillEnvelope:
    skill = await update_skill(db, skill_id, body.model_dump(exclude_unset=True))
    await db.commit()
    return SkillEnvelope(message="Skill updated successfully", skill=skill_response(skill))


@router.delete("/{skill_id}")
async def remove_skill(
    skill_id: int,
    _admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_session),
) -> dict[str, object]:
    await delete_skill(db, skill_id)
    await db.commit()
    return {"success": True, "message": "Skill deleted successfully"}
