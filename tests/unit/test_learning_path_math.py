"""Unit tests for module derivation and progress recomputation."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from skillswap.db.models import LearningModule, LearningPath, Skill, SkillVideo
from skillswap.learning_paths.derivation import (
    DEFAULT_MODULE_DURATION,
    MODULES_PER_PATH,
    derive_modules,
    elapsed_minutes,
    progress_percentage,
    recompute_progress,
    renumber,
)


def _skill(videos: list[tuple[str | None, int | None]]) -> Skill:
    return Skill(
        name="Guitar",
        name_normalized="guitar",
        category="Music",
        description="Guitar",
        videos=[
            SkillVideo(title=title, url=f"https://videos/{i}", duration=duration, position=i)
            for i, (title, duration) in enumerate(videos)
        ],
    )


def _path(modules: list[tuple[bool, int | None, int]]) -> LearningPath:
    path = LearningPath(skill_name="Guitar", learner_id=1, instructor_id=2, exchange_id=1)
    path.modules = [
        LearningModule(position=i + 1, title=f"M{i + 1}", duration=duration, is_completed=done, score=score)
        for i, (done, score, duration) in enumerate(modules)
    ]
    return path


class TestDeriveModules:
    def test_uses_first_five_videos(self):
        skill = _skill([(f"Lesson {i}", 10 + i) for i in range(7)])
        specs = derive_modules(skill, "guitar")
        assert len(specs) == MODULES_PER_PATH
        assert [s.position for s in specs] == [1, 2, 3, 4, 5]
        assert specs[0].title == "Lesson 0"
        assert specs[0].description == "Learn Guitar - Lesson 0"
        assert specs[0].video_url == "https://videos/0"
        assert specs[4].duration == 14

    def test_untitled_video_gets_generated_title(self):
        skill = _skill([(None, None)] + [(f"Lesson {i}", 20) for i in range(4)])
        first = derive_modules(skill, "Guitar")[0]
        assert first.title == "Module 1: Guitar"
        assert first.description == "Learn Guitar - Part 1"
        assert first.duration == DEFAULT_MODULE_DURATION

    def test_placeholders_without_skill(self):
        specs = derive_modules(None, "Underwater Basket Weaving")
        assert len(specs) == 5
        assert specs[2].title == "Module 3: Underwater Basket Weaving"
        assert specs[2].description == "Learn Underwater Basket Weaving - Part 3"
        assert all(s.video_url == "" and s.duration == DEFAULT_MODULE_DURATION for s in specs)

    def test_placeholders_when_too_few_videos(self):
        skill = _skill([("Only", 30), ("Two", 30)])
        specs = derive_modules(skill, "Guitar Basics")
        assert specs[0].title == "Module 1: Guitar Basics"
        assert specs[0].video_title is None

    def test_to_model(self):
        module = derive_modules(None, "Chess")[0].to_model()
        assert isinstance(module, LearningModule)
        assert module.is_completed is False
        assert module.position == 1


class TestProgress:
    def test_progress_percentage(self):
        assert progress_percentage(0, 5) == 0
        assert progress_percentage(1, 5) == 20
        assert progress_percentage(5, 5) == 100
        assert progress_percentage(1, 3) == 33
        assert progress_percentage(2, 3) == 67
        assert progress_percentage(1, 8) == 13

    def test_empty_path_is_zero(self):
        assert progress_percentage(0, 0) == 0

    def test_recompute_counters(self):
        path = _path([(True, 80, 30), (True, 91, 40), (False, None, 45), (False, None, 20), (False, None, 10)])
        recompute_progress(path)
        assert path.total_modules == 5
        assert path.completed_modules == 2
        assert path.progress_percentage == 40
        assert path.estimated_duration == 145
        assert path.average_score == 86

    def test_recompute_without_scores(self):
        path = _path([(True, None, 45), (False, None, 45)])
        recompute_progress(path)
        assert path.average_score is None
        assert path.progress_percentage == 50

    def test_elapsed_minutes(self):
        start = datetime(2024, 1, 1, tzinfo=timezone.utc)
        assert elapsed_minutes(start, start + timedelta(minutes=90, seconds=40)) == 91

    def test_renumber_after_removal(self):
        path = _path([(False, None, 10)] * 4)
        path.modules.pop(1)
        renumber(path)
        assert sorted(m.position for m in path.modules) == [1, 2, 3]
