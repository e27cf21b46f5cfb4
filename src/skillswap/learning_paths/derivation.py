"""Pure learning-path math: module derivation and progress recomputation.

Every entry point that builds modules goes through ``derive_modules`` and
every module mutation ends with ``recompute_progress``, so the derived
counters never disagree with the module list.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from skillswap.db.models import LearningModule, LearningPath, Skill
from skillswap.skills.lookup import MIN_VIDEOS_FOR_MODULES

MODULES_PER_PATH = 5
DEFAULT_MODULE_DURATION = 45  # minutes


@dataclass(frozen=True)
class ModuleSpec:
    position: int
    title: str
    description: str
    video_url: str
    video_title: str | None
    duration: int

    def to_model(self) -> LearningModule:
        return LearningModule(
            position=self.position,
            title=self.title,
            description=self.description,
            video_url=self.video_url,
            video_title=self.video_title,
            duration=self.duration,
            is_completed=False,
        )


def derive_modules(skill: Skill | None, fallback_name: str) -> list[ModuleSpec]:
    """Five modules from the skill's first five videos, or five placeholders.

    Placeholders, named after ``fallback_name``, are used when there is no
    catalog skill or it has fewer than five videos.
    """
    if skill is not None and len(skill.videos) >= MIN_VIDEOS_FOR_MODULES:
        specs = []
        for i, video in enumerate(skill.videos[:MODULES_PER_PATH], start=1):
            specs.append(
                ModuleSpec(
                    position=i,
                    title=video.title or f"Module {i}: {skill.name}",
                    description=f"Learn {skill.name} - {video.title or f'Part {i}'}",
                    video_url=video.url,
                    video_title=video.title,
                    duration=video.duration or DEFAULT_MODULE_DURATION,
                )
            )
        return specs

    name = fallback_name
    return [
        ModuleSpec(
            position=i,
            title=f"Module {i}: {name}",
            description=f"Learn {name} - Part {i}",
            video_url="",
            video_title=None,
            duration=DEFAULT_MODULE_DURATION,
        )
        for i in range(1, MODULES_PER_PATH + 1)
    ]


def progress_percentage(completed: int, total: int) -> int:
    """round(completed / total * 100), with half-up rounding; 0 for an empty path."""
    if total <= 0:
        return 0
    return int(completed * 100 / total + 0.5)


def recompute_progress(path: LearningPath) -> None:
    """Refresh every derived counter from the module list."""
    modules = path.modules
    path.total_modules = len(modules)
    path.completed_modules = sum(1 for m in modules if m.is_completed)
    path.progress_percentage = progress_percentage(path.completed_modules, path.total_modules)
    path.estimated_duration = sum(m.duration or 0 for m in modules)
    scores = [m.score for m in modules if m.score is not None]
    path.average_score = int(sum(scores) / len(scores) + 0.5) if scores else None


def elapsed_minutes(start: datetime, end: datetime) -> int:
    return int((end - start).total_seconds() / 60 + 0.5)


def renumber(path: LearningPath) -> None:
    for i, module in enumerate(sorted(path.modules, key=lambda m: m.position), start=1):
        module.position = i
