"""Request/response schemas for user endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

from skillswap.db.models import User, UserSkill
from skillswap.skills.schemas import SkillResponse

ExperienceLevel = Literal["Beginner", "Intermediate", "Advanced", "Expert"]
SkillKind = Literal["offered", "wanted"]


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------


class EndorsementResponse(BaseModel):
    user_id: int
    user_name: str
    comment: str | None = None
    date: datetime


class UserSkillResponse(BaseModel):
    id: int
    name: str
    category: str | None = None
    subcategory: str | None = None
    experience_level: str
    years_of_experience: int | None = None
    description: str | None = None
    tags: list[str] = []
    verified: bool = False
    verified_at: datetime | None = None
    proficiency_score: int | None = None
    endorsements: list[EndorsementResponse] = []


class PublicUserResponse(BaseModel):
    """Profile as other users see it."""

    id: int
    name: str
    username: str | None = None
    bio: str
    location: str | None = None
    avatar_url: str | None = None
    rating: float
    total_exchanges: int
    badges: list[str]
    skills_offered: list[UserSkillResponse]
    skills_wanted: list[UserSkillResponse]
    created_at: datetime | None = None


class UserResponse(PublicUserResponse):
    """Full profile for the account owner."""

    email: str
    phone: str | None = None
    token_balance: int
    tokens_spent: int
    is_active: bool
    is_admin: bool
    email_verified: bool
    email_notifications: dict[str, Any]
    last_login: datetime | None = None


def skill_entry_response(skill: UserSkill) -> UserSkillResponse:
    return UserSkillResponse(
        id=skill.id,
        name=skill.name,
        category=skill.category,
        subcategory=skill.subcategory,
        experience_level=skill.experience_level,
        years_of_experience=skill.years_of_experience,
        description=skill.description,
        tags=list(skill.tags or []),
        verified=skill.verified,
        verified_at=skill.verified_at,
        proficiency_score=skill.proficiency_score,
        endorsements=[
            EndorsementResponse(
                user_id=e.endorser_id, user_name=e.endorser_name, comment=e.comment, date=e.created_at
            )
            for e in skill.endorsements
        ],
    )


def public_user_response(user: User) -> PublicUserResponse:
    return PublicUserResponse(
        id=user.id,
        name=user.name,
        username=user.username,
        bio=user.bio,
        location=user.location,
        avatar_url=user.avatar_url,
        rating=user.rating,
        total_exchanges=user.total_exchanges,
        badges=user.badge_names,
        skills_offered=[skill_entry_response(s) for s in user.skills_offered],
        skills_wanted=[skill_entry_response(s) for s in user.skills_wanted],
        created_at=user.created_at,
    )


def user_response(user: User) -> UserResponse:
    """Build a UserResponse from a User model."""
    public = public_user_response(user)
    return UserResponse(
        **public.model_dump(),
        email=user.email,
        phone=user.phone,
        token_balance=user.token_balance,
        tokens_spent=user.tokens_spent,
        is_active=user.is_active,
        is_admin=user.is_admin,
        email_verified=user.email_verified,
        email_notifications=dict(user.email_notifications or {}),
        last_login=user.last_login,
    )


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


class ProfileUpdateRequest(BaseModel):
    """Update own profile. Only provided fields change."""

    name: str | None = Field(None, min_length=1, max_length=100)
    username: str | None = Field(None, min_length=3, max_length=50)
    phone: str | None = Field(None, max_length=32)
    bio: str | None = Field(None, max_length=500)
    location: str | None = Field(None, max_length=100)
    avatar_url: str | None = Field(None, max_length=2048)


class UserSkillCreateRequest(BaseModel):
    skill_type: SkillKind
    name: str = Field(..., min_length=1, max_length=100)
    category: str | None = Field(None, max_length=50)
    subcategory: str | None = Field(None, max_length=50)
    experience_level: ExperienceLevel = "Intermediate"
    years_of_experience: int | None = Field(None, ge=0, le=80)
    description: str | None = Field(None, max_length=500)
    tags: list[str] = []

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            msg = "Skill name is required"
            raise ValueError(msg)
        return v


class UserSkillUpdateRequest(BaseModel):
    category: str | None = Field(None, max_length=50)
    subcategory: str | None = Field(None, max_length=50)
    experience_level: ExperienceLevel | None = None
    years_of_experience: int | None = Field(None, ge=0, le=80)
    description: str | None = Field(None, max_length=500)
    tags: list[str] | None = None


class EndorseRequest(BaseModel):
    comment: str | None = Field(None, max_length=500)


class EmailPreferencesUpdate(BaseModel):
    exchange_requests: bool | None = None
    exchange_accepted: bool | None = None
    exchange_completed: bool | None = None
    new_ratings: bool | None = None
    new_messages: bool | None = None
    marketing_emails: bool | None = None


# ---------------------------------------------------------------------------
# Envelopes
# ---------------------------------------------------------------------------


class UserListEnvelope(BaseModel):
    success: bool = True
    count: int
    total_pages: int
    current_page: int
    users: list[PublicUserResponse]


class PublicUserEnvelope(BaseModel):
    success: bool = True
    user: PublicUserResponse


class ProfileEnvelope(BaseModel):
    success: bool = True
    message: str | None = None
    user: UserResponse


class SkillEntryEnvelope(BaseModel):
    success: bool = True
    message: str | None = None
    skill: UserSkillResponse


class OwnerSummary(BaseModel):
    id: int
    name: str
    avatar_url: str | None = None
    rating: float


class OfferedSkillResponse(UserSkillResponse):
    user: OwnerSummary


class OfferedSkillListEnvelope(BaseModel):
    success: bool = True
    count: int
    skills: list[OfferedSkillResponse]


class CategoryNamesEnvelope(BaseModel):
    success: bool = True
    categories: list[str]


class MatchResponse(BaseModel):
    user: PublicUserResponse
    score: float
    compatibility: str
    bidirectional_match: bool
    matched_skills: list[dict[str, Any]]


class MatchListEnvelope(BaseModel):
    success: bool = True
    message: str | None = None
    matches: list[MatchResponse]
    total_matches: int


class LedgerEntryResponse(BaseModel):
    id: int
    amount: int
    entry_type: str
    reason: str
    exchange_id: int | None = None
    created_at: datetime | None = None


class TokenSummary(BaseModel):
    current: int
    spent: int
    total_earned: int
    history: list[LedgerEntryResponse]


class TokenHistoryEnvelope(BaseModel):
    success: bool = True
    tokens: TokenSummary


class EmailPreferencesEnvelope(BaseModel):
    success: bool = True
    message: str | None = None
    email_notifications: dict[str, Any]


class EndorsementEnvelope(BaseModel):
    success: bool = True
    message: str | None = None
    endorsement: EndorsementResponse


class SkillRecommendationsEnvelope(BaseModel):
    success: bool = True
    recommendations: dict[str, list[SkillResponse]]
