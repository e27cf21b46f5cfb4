"""Unit tests for the skill name resolution cascade."""

from __future__ import annotations

from skillswap.db.models import Skill, SkillVideo
from skillswap.skills.lookup import match_skill, strip_suffix


def _skill(name: str, videos: int = 5) -> Skill:
    return Skill(
        name=name,
        name_normalized=name.lower(),
        category="Programming",
        description=f"{name} course",
        videos=[SkillVideo(title=f"{name} {i}", url=f"https://v/{name}/{i}", position=i) for i in range(videos)],
    )


CATALOG = [_skill("React"), _skill("Python"), _skill("Guitar"), _skill("Spanish", videos=2)]


class TestStripSuffix:
    def test_strips_known_suffixes(self):
        assert strip_suffix("React JS") == "React"
        assert strip_suffix("Python programming") == "Python"
        assert strip_suffix("C CPP") == "C"

    def test_leaves_plain_names(self):
        assert strip_suffix("  Guitar ") == "Guitar"


class TestMatchSkill:
    def test_exact_match(self):
        match = match_skill("React", CATALOG)
        assert match is not None
        assert match.skill.name == "React"
        assert match.strategy == "exact"

    def test_case_insensitive_match(self):
        match = match_skill("guitar", CATALOG)
        assert match.skill.name == "Guitar"
        assert match.strategy == "case-insensitive"

    def test_suffix_stripped_match(self):
        """'REACT JS' resolves to React once the suffix is removed."""
        match = match_skill("REACT JS", CATALOG)
        assert match.skill.name == "React"
        assert match.strategy == "suffix-stripped"

    def test_word_match(self):
        match = match_skill("Learn Python today", CATALOG)
        assert match.skill.name == "Python"
        assert match.strategy == "word"

    def test_no_match(self):
        assert match_skill("Underwater Basket Weaving", CATALOG) is None

    def test_blank_name(self):
        assert match_skill("   ", CATALOG) is None

    def test_prefers_skill_with_enough_videos(self):
        catalog = [_skill("Piano", videos=1), _skill("Piano Jazz")]
        match = match_skill("piano", catalog)
        assert match.skill.name == "Piano Jazz"
        assert match.has_enough_videos

    def test_falls_back_to_first_candidate(self):
        match = match_skill("Spanish", CATALOG)
        assert match.skill.name == "Spanish"
        assert not match.has_enough_videos
