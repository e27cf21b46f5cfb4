"""Match scoring between two users' offered and wanted skills.

Pure functions over loaded ``User`` objects. Scores:

* +50 for each skill the candidate offers that I want, +20 if the
  categories agree, +15 if their level covers the level I want (else +5)
* +100 for each skill I offer that they want, +30 if my level covers theirs
* +5 per rating point and +2 per completed exchange
* -50 for a poorly rated (< 2) but busy (> 5 exchanges) candidate
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from skillswap.db.models import User, UserSkill

LEVEL_ORDER: dict[str, int] = {"beginner": 1, "intermediate": 2, "advanced": 3, "expert": 4}
UNKNOWN_LEVEL = 2
MAX_MATCHES = 10


def level_rank(level: str | None) -> int:
    return LEVEL_ORDER.get((level or "").lower(), UNKNOWN_LEVEL)


def compatibility(score: float) -> str:
    if score > 150:
        return "high"
    if score > 100:
        return "medium"
    return "low"


@dataclass
class MatchedSkill:
    name: str
    match_type: str  # they_offer | they_want
    category: str | None
    their_level: str | None
    wanted_level: str | None


@dataclass
class Match:
    user: User
    score: float
    matched_skills: list[MatchedSkill] = field(default_factory=list)
    bidirectional_match: bool = False

    @property
    def compatibility(self) -> str:
        return compatibility(self.score)


def _by_name(skills: list[UserSkill]) -> dict[str, UserSkill]:
    index: dict[str, UserSkill] = {}
    for skill in skills:
        index.setdefault(skill.name.strip().lower(), skill)
    return index


def is_candidate(me: User, other: User) -> bool:
    """Other offers something I want, or wants something I offer."""
    if other.id == me.id or not other.is_active:
        return False
    my_wanted = set(_by_name(me.skills_wanted))
    my_offered = set(_by_name(me.skills_offered))
    return bool(my_wanted & set(_by_name(other.skills_offered)) or my_offered & set(_by_name(other.skills_wanted)))


def score_match(me: User, other: User) -> Match:
    """Score ``other`` as a partner for ``me``."""
    match = Match(user=other, score=0)
    my_wanted = _by_name(me.skills_wanted)
    their_wanted = _by_name(other.skills_wanted)

    for offered in other.skills_offered:
        wanted = my_wanted.get(offered.name.strip().lower())
        if wanted is None:
            continue
        match.score += 50
        if wanted.category == offered.category:
            match.score += 20
        match.score += 15 if level_rank(offered.experience_level) >= level_rank(wanted.experience_level) else 5
        match.matched_skills.append(
            MatchedSkill(
                name=offered.name,
                match_type="they_offer",
                category=offered.category,
                their_level=offered.experience_level,
                wanted_level=wanted.experience_level,
            )
        )

    for mine in me.skills_offered:
        theirs = their_wanted.get(mine.name.strip().lower())
        if theirs is None:
            continue
        match.bidirectional_match = True
        match.score += 100
        if level_rank(mine.experience_level) >= level_rank(theirs.experience_level):
            match.score += 30
        match.matched_skills.append(
            MatchedSkill(
                name=mine.name,
                match_type="they_want",
                category=mine.category,
                their_level=mine.experience_level,
                wanted_level=theirs.experience_level,
            )
        )

    rating = other.rating or 0
    exchanges = other.total_exchanges or 0
    match.score += rating * 5 + exchanges * 2
    if rating < 2 and exchanges > 5:
        match.score -= 50
    return match


def rank_matches(me: User, candidates: list[User], limit: int = MAX_MATCHES) -> tuple[list[Match], int]:
    """Positive-score matches, best first. Returns (top ``limit``, total)."""
    scored = [score_match(me, other) for other in candidates if is_candidate(me, other)]
    valid = [m for m in scored if m.score > 0]
    valid.sort(key=lambda m: m.score, reverse=True)
    return valid[:limit], len(valid)


def match_payload(match: Match) -> dict[str, Any]:
    return {
        "score": match.score,
        "compatibility": match.compatibility,
        "bidirectional_match": match.bidirectional_match,
        "matched_skills": [vars(s) for s in match.matched_skills],
    }
