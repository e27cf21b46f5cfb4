"""Request/response schemas for the skill catalog."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from skillswap.db.models import Skill

SKILL_CATEGORIES: tuple[str, ...] = (
    "Programming",
    "Design",
    "Marketing",
    "Business",
    "Languages",
    "Music",
    "Arts & Crafts",
    "Cooking",
    "Fitness",
    "Photography",
    "Writing",
    "Teaching",
    "Technology",
    "Other",
)


def _check_category(value: str | None) -> str | None:
    if value is not None and value not in SKILL_CATEGORIES:
        msg = f"Category must be one of: {', '.join(SKILL_CATEGORIES)}"
        raise ValueError(msg)
    return value


class VideoIn(BaseModel):
    title: str | None = Field(None, max_length=200)
    url: str = Field(..., min_length=1, max_length=500)
    duration: int | None = Field(None, ge=0)


class VideoOut(BaseModel):
    id: int
    title: str | None = None
    url: str
    duration: int | None = None


class SkillCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    category: str
    description: str = Field(..., min_length=1)
    subcategory: str | None = Field(None, max_length=50)
    tags: list[str] = []
    videos: list[VideoIn] = []

    @field_validator("name", "description")
    @classmethod
    def not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            msg = "Field cannot be blank"
            raise ValueError(msg)
        return v

    @field_validator("category")
    @classmethod
    def valid_category(cls, v: str) -> str:
        return _check_category(v) or v


class SkillUpdateRequest(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=100)
    category: str | None = None
    description: str | None = None
    subcategory: str | None = Field(None, max_length=50)
    tags: list[str] | None = None
    is_active: bool | None = None
    videos: list[VideoIn] | None = None

    @field_validator("category")
    @classmethod
    def valid_category(cls, v: str | None) -> str | None:
        return _check_category(v)


class SkillResponse(BaseModel):
    id: int
    name: str
    category: str
    subcategory: str | None = None
    description: str
    tags: list[str] = []
    is_active: bool
    usage_count: int
    videos: list[VideoOut] = []
    created_at: datetime | None = None
    updated_at: datetime | None = None


class SkillEnvelope(BaseModel):
    success: bool = True
    message: str | None = None
    skill: SkillResponse


class SkillListEnvelope(BaseModel):
    success: bool = True
    count: int
    skills: list[SkillResponse]


class CategoryCount(BaseModel):
    name: str
    count: int


class CategoryListEnvelope(BaseModel):
    success: bool = True
    categories: list[CategoryCount]


class VideoListEnvelope(BaseModel):
    success: bool = True
    skill_id: int
    skill_name: str
    videos: list[VideoOut]


class BulkCreateEnvelope(BaseModel):
    success: bool = True
    created: list[SkillResponse]
    errors: list[dict[str, str]]


def skill_response(skill: Skill) -> SkillResponse:
    return SkillResponse(
        id=skill.id,
        name=skill.name,
        category=skill.category,
        subcategory=skill.subcategory,
        description=skill.description,
        tags=list(skill.tags or []),
        is_active=skill.is_active,
        usage_count=skill.usage_count,
        videos=[VideoOut(id=v.id, title=v.title, url=v.url, duration=v.duration) for v in skill.videos],
        created_at=skill.created_at,
        updated_at=skill.updated_at,
    )
