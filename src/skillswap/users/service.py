"""User discovery, skill lists, endorsements and recommendations."""

from __future__ import annotations

from typing import Any

import structlog
from sqlalchemy import and_, exists, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from skillswap.db.models import Skill, SkillEndorsement, User, UserSkill
from skillswap.exceptions import NotFoundError, ValidationError
from skillswap.matching.scoring import Match, rank_matches
from skillswap.timeutils import utcnow

logger = structlog.get_logger()

MAX_PAGE_SIZE = 100
PREFERENCE_KEYS = (
    "exchange_requests",
    "exchange_accepted",
    "exchange_completed",
    "new_ratings",
    "new_messages",
    "marketing_emails",
)


async def get_user(db: AsyncSession, user_id: int) -> User:
    user = await db.get(User, user_id)
    if user is None:
        msg = "User not found"
        raise NotFoundError(msg)
    return user


async def list_users(
    db: AsyncSession,
    search: str | None = None,
    category: str | None = None,
    level: str | None = None,
    is_active: bool = True,
    page: int = 1,
    limit: int = 20,
) -> tuple[list[User], int]:
    """
    Discover users, best rated first.

    ``search`` matches the user's name or any offered skill name;
    ``category`` and ``level`` filter on offered skills.

    Returns:
        (users on this page, total matching users)
    """
    page = max(1, page)
    limit = max(1, min(MAX_PAGE_SIZE, limit))

    conditions = [User.is_active.is_(is_active)]
    offered = [UserSkill.user_id == User.id, UserSkill.kind == "offered"]
    if search and search.strip():
        pattern = f"%{search.strip().lower()}%"
        conditions.append(
            or_(
                func.lower(User.name).like(pattern),
                exists().where(and_(*offered, func.lower(UserSkill.name).like(pattern))),
            )
        )
    if category and category.strip():
        conditions.append(exists().where(and_(*offered, UserSkill.category == category.strip())))
    if level and level.strip():
        conditions.append(exists().where(and_(*offered, UserSkill.experience_level == level.strip())))

    total = (await db.execute(select(func.count(User.id)).where(*conditions))).scalar_one()
    result = await db.execute(
        select(User)
        .where(*conditions)
        .order_by(User.rating.desc(), User.total_exchanges.desc(), User.id)
        .limit(limit)
        .offset((page - 1) * limit)
    )
    return list(result.scalars().all()), int(total)


async def all_offered_skills(db: AsyncSession) -> list[tuple[UserSkill, User]]:
    """Every skill offered by an active user, with its owner."""
    result = await db.execute(
        select(UserSkill, User)
        .join(User, User.id == UserSkill.user_id)
        .where(User.is_active.is_(True), UserSkill.kind == "offered")
        .order_by(UserSkill.name, UserSkill.id)
    )
    return list(result.tuples().all())


async def offered_categories(db: AsyncSession) -> list[str]:
    result = await db.execute(
        select(UserSkill.category)
        .where(UserSkill.kind == "offered", UserSkill.category.is_not(None))
        .distinct()
        .order_by(UserSkill.category)
    )
    return [c for c in result.scalars().all() if c]


# ---------------------------------------------------------------------------
# Own skill lists
# ---------------------------------------------------------------------------


def _find_entry(user: User, skill_id: int) -> UserSkill:
    entry = next((s for s in user.skills if s.id == skill_id), None)
    if entry is None:
        msg = "Skill not found"
        raise NotFoundError(msg)
    return entry


async def add_user_skill(db: AsyncSession, user: User, kind: str, fields: dict[str, Any]) -> UserSkill:
    """Add an offered or wanted skill. Names are unique per list, ignoring case."""
    name = fields["name"].strip()
    same_kind = user.skills_offered if kind == "offered" else user.skills_wanted
    if any(s.name.strip().lower() == name.lower() for s in same_kind):
        msg = f"Skill already exists in your {kind} list"
        raise ValidationError(msg)
    entry = UserSkill(
        user_id=user.id,
        kind=kind,
        name=name,
        category=fields.get("category"),
        subcategory=fields.get("subcategory"),
        experience_level=fields.get("experience_level") or "Intermediate",
        years_of_experience=fields.get("years_of_experience"),
        description=fields.get("description"),
        tags=list(fields.get("tags") or []),
        verified=False,
        endorsements=[],
        created_at=utcnow(),
    )
    user.skills.append(entry)
    await db.flush()
    logger.info("user_skill_added", user_id=user.id, kind=kind, skill=name)
    return entry


async def update_user_skill(db: AsyncSession, user: User, skill_id: int, changes: dict[str, Any]) -> UserSkill:
    entry = _find_entry(user, skill_id)
    editable = {"category", "subcategory", "experience_level", "years_of_experience", "description", "tags"}
    changes = {k: v for k, v in changes.items() if k in editable}
    if not changes:
        msg = "No valid fields to update"
        raise ValidationError(msg)
    for key, value in changes.items():
        setattr(entry, key, list(value or []) if key == "tags" else value)
    await db.flush()
    return entry


async def delete_user_skill(db: AsyncSession, user: User, skill_id: int) -> None:
    entry = _find_entry(user, skill_id)
    user.skills.remove(entry)
    await db.flush()
    logger.info("user_skill_deleted", user_id=user.id, skill_id=skill_id)


async def endorse_skill(
    db: AsyncSession, endorser: User, user_id: int, skill_id: int, comment: str | None = None
) -> SkillEndorsement:
    """Endorse another user's offered skill, once per endorser."""
    if endorser.id == user_id:
        msg = "You cannot endorse your own skill"
        raise ValidationError(msg)
    owner = await get_user(db, user_id)
    entry = next((s for s in owner.skills_offered if s.id == skill_id), None)
    if entry is None:
        msg = "Skill not found"
        raise NotFoundError(msg)
    if any(e.endorser_id == endorser.id for e in entry.endorsements):
        msg = "You have already endorsed this skill"
        raise ValidationError(msg)
    endorsement = SkillEndorsement(
        user_skill_id=entry.id,
        endorser_id=endorser.id,
        endorser_name=endorser.name,
        comment=comment or "",
        created_at=utcnow(),
    )
    entry.endorsements.append(endorsement)
    await db.flush()
    return endorsement


async def verify_skill(db: AsyncSession, user_id: int, skill_id: int) -> UserSkill:
    owner = await get_user(db, user_id)
    entry = _find_entry(owner, skill_id)
    entry.verified = True
    entry.verified_at = utcnow()
    await db.flush()
    return entry


# ---------------------------------------------------------------------------
# Preferences
# ---------------------------------------------------------------------------


async def update_email_preferences(db: AsyncSession, user: User, changes: dict[str, bool]) -> dict[str, Any]:
    changes = {k: v for k, v in changes.items() if k in PREFERENCE_KEYS and v is not None}
    if not changes:
        msg = "Please provide email notification preferences"
        raise ValidationError(msg)
    # Reassign so the JSON column is flagged dirty.
    user.email_notifications = {**(user.email_notifications or {}), **changes}
    await db.flush()
    return dict(user.email_notifications)


# ---------------------------------------------------------------------------
# Recommendations
# ---------------------------------------------------------------------------


async def recommend_matches(db: AsyncSession, user: User) -> tuple[list[Match], int]:
    """Score every active user sharing a skill name with ``user``."""
    wanted = {s.name.strip().lower() for s in user.skills_wanted}
    offered = {s.name.strip().lower() for s in user.skills_offered}
    if not wanted:
        return [], 0

    clauses = [and_(UserSkill.kind == "offered", func.lower(UserSkill.name).in_(wanted))]
    if offered:
        clauses.append(and_(UserSkill.kind == "wanted", func.lower(UserSkill.name).in_(offered)))
    result = await db.execute(
        select(User).where(
            User.id != user.id,
            User.is_active.is_(True),
            exists().where(UserSkill.user_id == User.id, or_(*clauses)),
        )
    )
    return rank_matches(user, list(result.scalars().all()))


async def skill_recommendations(db: AsyncSession, user: User) -> dict[str, list[Skill]]:
    """Catalog skills the user does not list yet: popular, complementary and trending."""
    result = await db.execute(
        select(Skill).where(Skill.is_active.is_(True)).order_by(Skill.usage_count.desc(), Skill.name)
    )
    have = {s.name.strip().lower() for s in user.skills}
    candidates = [s for s in result.scalars().all() if s.name_normalized not in have]
    categories = {s.category for s in user.skills_offered if s.category}
    return {
        "popular": candidates[:10],
        "complementary": [s for s in candidates if s.category in categories][:10],
        "trending": candidates[:5],
    }
