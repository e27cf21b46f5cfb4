"""Unit tests for partner match scoring."""

from __future__ import annotations

from skillswap.db.models import User, UserSkill
from skillswap.matching.scoring import compatibility, is_candidate, level_rank, rank_matches, score_match

_ids = iter(range(1, 1000))


def _user(
    offered: list[tuple[str, str, str | None]] = (),
    wanted: list[tuple[str, str, str | None]] = (),
    rating: float = 0.0,
    total_exchanges: int = 0,
    is_active: bool = True,
) -> User:
    skills = [UserSkill(kind="offered", name=n, experience_level=lvl, category=cat) for n, lvl, cat in offered]
    skills += [UserSkill(kind="wanted", name=n, experience_level=lvl, category=cat) for n, lvl, cat in wanted]
    user_id = next(_ids)
    return User(
        id=user_id,
        name=f"user{user_id}",
        email=f"user{user_id}@example.com",
        password_hash="x",
        rating=rating,
        total_exchanges=total_exchanges,
        is_active=is_active,
        skills=skills,
        badges=[],
    )


class TestLevels:
    def test_level_rank(self):
        assert level_rank("Beginner") < level_rank("Intermediate") < level_rank("Advanced") < level_rank("Expert")
        assert level_rank(None) == level_rank("Intermediate")

    def test_compatibility_thresholds(self):
        assert compatibility(151) == "high"
        assert compatibility(150) == "medium"
        assert compatibility(101) == "medium"
        assert compatibility(100) == "low"


class TestScoreMatch:
    def test_one_way_match(self):
        me = _user(wanted=[("Guitar", "Beginner", "Music")])
        other = _user(offered=[("guitar", "Expert", "Music")], rating=4.0, total_exchanges=3)
        match = score_match(me, other)
        # 50 name + 20 category + 15 level + 4*5 rating + 3*2 exchanges
        assert match.score == 111
        assert match.bidirectional_match is False
        assert match.compatibility == "medium"
        assert match.matched_skills[0].match_type == "they_offer"

    def test_level_below_wanted_scores_less(self):
        me = _user(wanted=[("Guitar", "Expert", None)])
        other = _user(offered=[("Guitar", "Beginner", "Music")])
        assert score_match(me, other).score == 55

    def test_bidirectional_match(self):
        me = _user(offered=[("Spanish", "Advanced", "Languages")], wanted=[("Guitar", "Beginner", "Music")])
        other = _user(offered=[("Guitar", "Expert", "Music")], wanted=[("Spanish", "Intermediate", "Languages")])
        match = score_match(me, other)
        assert match.bidirectional_match is True
        # they offer: 50 + 20 + 15; they want: 100 + 30
        assert match.score == 215
        assert match.compatibility == "high"
        assert {s.match_type for s in match.matched_skills} == {"they_offer", "they_want"}

    def test_busy_poorly_rated_candidate_penalised(self):
        me = _user(wanted=[("Chess", "Beginner", None)])
        other = _user(offered=[("Chess", "Beginner", None)], rating=1.0, total_exchanges=6)
        # 50 + 20 (both uncategorised) + 15 + 5 + 12 - 50
        assert score_match(me, other).score == 52


class TestRankMatches:
    def test_excludes_self_inactive_and_unrelated(self):
        me = _user(wanted=[("Guitar", "Beginner", None)])
        inactive = _user(offered=[("Guitar", "Expert", None)], is_active=False)
        unrelated = _user(offered=[("Cooking", "Expert", None)])
        assert not is_candidate(me, me)
        assert not is_candidate(me, inactive)
        assert not is_candidate(me, unrelated)

    def test_sorted_and_limited(self):
        me = _user(offered=[("Spanish", "Advanced", None)], wanted=[("Guitar", "Beginner", None)])
        best = _user(offered=[("Guitar", "Expert", None)], wanted=[("Spanish", "Beginner", None)])
        good = _user(offered=[("Guitar", "Expert", None)], rating=5.0)
        okay = _user(offered=[("Guitar", "Beginner", None)])
        top, total = rank_matches(me, [okay, good, best], limit=2)
        assert total == 3
        assert [m.user for m in top] == [best, good]
