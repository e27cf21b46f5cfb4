"""User router: all /api/users/* endpoints."""

from __future__ import annotations

import math

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from skillswap.auth.dependencies import get_current_admin, get_current_user
from skillswap.auth.service import update_account
from skillswap.database import get_session
from skillswap.db.models import User
from skillswap.matching.scoring import match_payload
from skillswap.skills.schemas import skill_response
from skillswap.users.ledger import get_token_history
from skillswap.users.schemas import (
    CategoryNamesEnvelope,
    EmailPreferencesEnvelope,
    EmailPreferencesUpdate,
    EndorseRequest,
    EndorsementEnvelope,
    EndorsementResponse,
    LedgerEntryResponse,
    MatchListEnvelope,
    MatchResponse,
    OfferedSkillListEnvelope,
    OfferedSkillResponse,
    OwnerSummary,
    ProfileEnvelope,
    ProfileUpdateRequest,
    PublicUserEnvelope,
    SkillEntryEnvelope,
    SkillRecommendationsEnvelope,
    TokenHistoryEnvelope,
    TokenSummary,
    UserListEnvelope,
    UserSkillCreateRequest,
    UserSkillUpdateRequest,
    public_user_response,
    skill_entry_response,
    user_response,
)
from skillswap.users.service import (
    add_user_skill,
    all_offered_skills,
    delete_user_skill,
    endorse_skill,
    get_user,
    list_users,
    offered_categories,
    recommend_matches,
    skill_recommendations,
    update_email_preferences,
    update_user_skill,
    verify_skill,
)

router = APIRouter(prefix="/api/users", tags=["Users"])


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------


@router.get("", response_model=UserListEnvelope)
async def get_users(
    search: str | None = Query(None, max_length=100),
    category: str | None = None,
    level: str | None = None,
    is_active: bool = True,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_session),
) -> UserListEnvelope:
    """Browse members, best rated first."""
    users, total = await list_users(
        db, search=search, category=category, level=level, is_active=is_active, page=page, limit=limit
    )
    return UserListEnvelope(
        count=total,
        total_pages=math.ceil(total / limit),
        current_page=page,
        users=[public_user_response(u) for u in users],
    )


@router.get("/skills", response_model=OfferedSkillListEnvelope)
async def get_all_offered_skills(db: AsyncSession = Depends(get_session)) -> OfferedSkillListEnvelope:
    """Every skill on offer across active members."""
    rows = await all_offered_skills(db)
    skills = [
        OfferedSkillResponse(
            **skill_entry_response(entry).model_dump(),
            user=OwnerSummary(id=owner.id, name=owner.name, avatar_url=owner.avatar_url, rating=owner.rating),
        )
        for entry, owner in rows
    ]
    return OfferedSkillListEnvelope(count=len(skills), skills=skills)


@router.get("/categories", response_model=CategoryNamesEnvelope)
async def get_offered_categories(db: AsyncSession = Depends(get_session)) -> CategoryNamesEnvelope:
    return CategoryNamesEnvelope(categories=await offered_categories(db))


@router.get("/matches/recommendations", response_model=MatchListEnvelope)
async def get_match_recommendations(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> MatchListEnvelope:
    """Top partners for the current user, scored on mutual skill fit."""
    if not user.skills_wanted:
        return MatchListEnvelope(
            message="Add skills you want to learn to get recommendations", matches=[], total_matches=0
        )
    matches, total = await recommend_matches(db, user)
    return MatchListEnvelope(
        matches=[MatchResponse(user=public_user_response(m.user), **match_payload(m)) for m in matches],
        total_matches=total,
    )


@router.get("/skills/recommendations", response_model=SkillRecommendationsEnvelope)
async def get_skill_recommendations(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> SkillRecommendationsEnvelope:
    groups = await skill_recommendations(db, user)
    return SkillRecommendationsEnvelope(
        recommendations={name: [skill_response(s) for s in skills] for name, skills in groups.items()}
    )


# ---------------------------------------------------------------------------
# Own account
# ---------------------------------------------------------------------------


@router.put("/profile", response_model=ProfileEnvelope)
async def put_profile(
    body: ProfileUpdateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> ProfileEnvelope:
    user = await update_account(db, user, **body.model_dump(exclude_unset=True))
    await db.commit()
    return ProfileEnvelope(message="Profile updated successfully", user=user_response(user))


@router.get("/tokens/history", response_model=TokenHistoryEnvelope)
async def get_my_token_history(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> TokenHistoryEnvelope:
    """Balance plus the ledger, newest first."""
    entries = await get_token_history(db, user.id)
    return TokenHistoryEnvelope(
        tokens=TokenSummary(
            current=user.token_balance,
            spent=user.tokens_spent,
            total_earned=user.token_balance + user.tokens_spent,
            history=[
                LedgerEntryResponse(
                    id=e.id,
                    amount=e.amount,
                    entry_type=e.entry_type,
                    reason=e.reason,
                    exchange_id=e.exchange_id,
                    created_at=e.created_at,
                )
                for e in entries
            ],
        )
    )


@router.get("/email-preferences", response_model=EmailPreferencesEnvelope)
async def get_email_preferences(user: User = Depends(get_current_user)) -> EmailPreferencesEnvelope:
    return EmailPreferencesEnvelope(email_notifications=dict(user.email_notifications or {}))


@router.put("/email-preferences", response_model=EmailPreferencesEnvelope)
async def put_email_preferences(
    body: EmailPreferencesUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> EmailPreferencesEnvelope:
    prefs = await update_email_preferences(db, user, body.model_dump(exclude_unset=True))
    await db.commit()
    return EmailPreferencesEnvelope(message="Email preferences updated successfully", email_notifications=prefs)


@router.post("/skills", response_model=SkillEntryEnvelope, status_code=201)
async def post_user_skill(
    body: UserSkillCreateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> SkillEntryEnvelope:
    entry = await add_user_skill(db, user, body.skill_type, body.model_dump(exclude={"skill_type"}))
    await db.commit()
    return SkillEntryEnvelope(
        message=f"Skill added to {body.skill_type} skills successfully", skill=skill_entry_response(entry)
    )


@router.put("/skills/{skill_id}", response_model=SkillEntryEnvelope)
async def put_user_skill(
    skill_id: int,
    body: UserSkillUpdateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> SkillEntryEnvelope:
    entry = await update_user_skill(db, user, skill_id, body.model_dump(exclude_unset=True))
    await db.commit()
    return SkillEntryEnvelope(message="Skill updated successfully", skill=skill_entry_response(entry))


@router.delete("/skills/{skill_id}")
async def remove_user_skill(
    skill_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> dict[str, object]:
    await delete_user_skill(db, user, skill_id)
    await db.commit()
    return {"success": True, "message": "Skill deleted successfully"}


# ---------------------------------------------------------------------------
# Other users
# ---------------------------------------------------------------------------


@router.get("/{user_id}", response_model=PublicUserEnvelope)
async def get_one_user(user_id: int, db: AsyncSession = Depends(get_session)) -> PublicUserEnvelope:
    return PublicUserEnvelope(user=public_user_response(await get_user(db, user_id)))


@router.post("/{user_id}/skills/{skill_id}/endorse", response_model=EndorsementEnvelope, status_code=201)
async def post_endorsement(
    user_id: int,
    skill_id: int,
    body: EndorseRequest | None = None,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> EndorsementEnvelope:
    comment = body.comment if body else None
    endorsement = await endorse_skill(db, user, user_id, skill_id, comment)
    await db.commit()
    return EndorsementEnvelope(
        message="Skill endorsed successfully",
        endorsement=EndorsementResponse(
            user_id=endorsement.endorser_id,
            user_name=endorsement.endorser_name,
            comment=endorsement.comment,
            date=endorsement.created_at,
        ),
    )


@router.put("/{user_id}/skills/{skill_id}/verify", response_model=SkillEntryEnvelope)
async def put_verify_skill(
    user_id: int,
    skill_id: int,
    _admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_session),
) -> SkillEntryEnvelope:
    entry = await verify_skill(db, user_id, skill_id)
    await db.commit()
    return SkillEntryEnvelope(message="Skill verified successfully", skill=skill_entry_response(entry))
