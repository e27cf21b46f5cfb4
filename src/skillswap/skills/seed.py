"""Starter catalog: a few skills with five lessons each."""

from __future__ import annotations

import logging
from urllib.parse import quote_plus

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from skillswap.db.models import Skill, SkillVideo
from skillswap.timeutils import utcnow

logger = logging.getLogger(__name__)

SKILL_SEED_DATA: list[dict] = [
    {
        "name": "React",
        "category": "Programming",
        "description": "Build component-based user interfaces with React.",
        "tags": ["javascript", "frontend", "web"],
        "lessons": [("Components and JSX", 40), ("Props and State", 45), ("Hooks", 50), ("Routing", 35), ("Data Fetching", 45)],
    },
    {
        "name": "Python",
        "category": "Programming",
        "description": "General-purpose programming with Python.",
        "tags": ["backend", "scripting", "data"],
        "lessons": [("Syntax Basics", 30), ("Functions", 40), ("Data Structures", 45), ("Modules and Packages", 35), ("Testing", 40)],
    },
    {
        "name": "Guitar",
        "category": "Music",
        "description": "Acoustic and electric guitar from first chords to songs.",
        "tags": ["instrument", "chords", "strumming"],
        "lessons": [("Holding the Guitar", 20), ("Open Chords", 35), ("Strumming Patterns", 30), ("Barre Chords", 40), ("Playing Songs", 45)],
    },
    {
        "name": "Spanish",
        "category": "Languages",
        "description": "Conversational Spanish for beginners.",
        "tags": ["language", "conversation", "grammar"],
        "lessons": [("Greetings", 25), ("Present Tense", 40), ("Everyday Vocabulary", 35), ("Past Tense", 45), ("Conversation Practice", 50)],
    },
    {
        "name": "Photography",
        "category": "Photography",
        "description": "Camera basics, composition and editing.",
        "tags": ["camera", "composition", "editing"],
        "lessons": [("Exposure Triangle", 35), ("Composition", 30), ("Lighting", 40), ("Portraits", 45), ("Editing", 50)],
    },
]


def _lesson_url(skill_name: str, lesson: str) -> str:
    return f"https://www.youtube.com/results?search_query={quote_plus(f'{skill_name} {lesson} tutorial')}"


async def seed_skills(db: AsyncSession) -> int:
    """Insert missing starter skills. Returns the number inserted."""
    existing = set((await db.execute(select(Skill.name_normalized))).scalars().all())
    seeded = 0
    for data in SKILL_SEED_DATA:
        if data["name"].lower() in existing:
            continue
        now = utcnow()
        db.add(
            Skill(
                name=data["name"],
                name_normalized=data["name"].lower(),
                category=data["category"],
                description=data["description"],
                tags=list(data["tags"]),
                is_active=True,
                usage_count=0,
                created_at=now,
                updated_at=now,
                videos=[
                    SkillVideo(title=title, url=_lesson_url(data["name"], title), duration=minutes, position=i)
                    for i, (title, minutes) in enumerate(data["lessons"])
                ],
            )
        )
        seeded += 1

    await db.commit()
    logger.info("Seeded %d catalog skills", seeded)
    return seeded
