"""Resolve free-text skill names to catalog skills.

Names come from what users typed when requesting an exchange, so the
lookup cascades from strict to loose matching:

1. exact, case-sensitive
2. exact, case-insensitive
3. strip a trailing language/"programming" suffix, then case-insensitive
   prefix match ("REACT JS" -> "React")
4. any word longer than three characters contained in a skill name

The first candidate carrying at least ``min_videos`` videos wins. When no
candidate is that rich, the first candidate found at all is still reported
so callers can record the catalog link.
"""

from __future__ import annotations

import re
from collections.abc import Iterator, Sequence
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from skillswap.db.models import Skill

MIN_VIDEOS_FOR_MODULES = 5

_SUFFIX_RE = re.compile(r"\s+(JS|JAVA|CPP|PY|PROGRAMMING)$", re.IGNORECASE)


@dataclass(frozen=True)
class SkillMatch:
    skill: Skill
    strategy: str

    @property
    def has_enough_videos(self) -> bool:
        return len(self.skill.videos) >= MIN_VIDEOS_FOR_MODULES


def strip_suffix(name: str) -> str:
    return _SUFFIX_RE.sub("", name.strip())


def _candidates(name: str, skills: Sequence[Skill]) -> Iterator[tuple[str, Skill]]:
    lowered = name.lower()
    for skill in skills:
        if skill.name == name:
            yield "exact", skill
    for skill in skills:
        if skill.name.lower() == lowered:
            yield "case-insensitive", skill

    stripped = strip_suffix(name).lower()
    if stripped:
        for skill in skills:
            if skill.name.lower() == stripped:
                yield "suffix-stripped", skill
        for skill in skills:
            if skill.name.lower().startswith(stripped):
                yield "suffix-stripped", skill

    for word in (w.lower() for w in name.split() if len(w) > 3):
        for skill in skills:
            if word in skill.name.lower():
                yield "word", skill


def match_skill(name: str, skills: Sequence[Skill], min_videos: int = MIN_VIDEOS_FOR_MODULES) -> SkillMatch | None:
    """Run the cascade over an in-memory catalog."""
    if not name or not name.strip():
        return None
    first: SkillMatch | None = None
    for strategy, skill in _candidates(name.strip(), skills):
        if len(skill.videos) >= min_videos:
            return SkillMatch(skill, strategy)
        if first is None:
            first = SkillMatch(skill, strategy)
    return first


async def resolve_skill(db: AsyncSession, name: str) -> SkillMatch | None:
    """Run the cascade against the active catalog."""
    result = await db.execute(select(Skill).where(Skill.is_active.is_(True)).order_by(Skill.id))
    return match_skill(name, list(result.scalars().all()))
