"""Request/response schemas for learning path endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from skillswap.db.models import LearningModule, LearningPath


class ModuleResponse(BaseModel):
    id: int
    position: int
    title: str
    description: str
    video_url: str
    video_title: str | None = None
    duration: int
    is_completed: bool
    completed_at: datetime | None = None
    score: int | None = None
    notes: str | None = None


class LearningPathResponse(BaseModel):
    id: int
    exchange_id: int
    skill_id: int | None = None
    skill_name: str
    learner_id: int
    instructor_id: int
    status: str
    total_modules: int
    completed_modules: int
    progress_percentage: int
    estimated_duration: int
    actual_duration: int | None = None
    average_score: int | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    created_at: datetime | None = None
    modules: list[ModuleResponse] = []
    user_role: str | None = None


class LearningPathEnvelope(BaseModel):
    success: bool = True
    message: str | None = None
    learning_path: LearningPathResponse


class LearningPathListEnvelope(BaseModel):
    success: bool = True
    count: int
    learning_paths: list[LearningPathResponse]


class ExchangePathsEnvelope(BaseModel):
    success: bool = True
    exchange_id: int
    exchange_status: str
    learning_path: LearningPathResponse | None = None
    learning_paths: list[LearningPathResponse]


class ModuleEnvelope(BaseModel):
    success: bool = True
    message: str | None = None
    module: ModuleResponse
    learning_path: LearningPathResponse | None = None
    exchange_status: str | None = None
    exchange_completed: bool = False
    tokens_earned: int | None = None


class ProgressEnvelope(BaseModel):
    success: bool = True
    progress: dict[str, Any]


class CreateMissingEnvelope(BaseModel):
    success: bool = True
    message: str
    created_paths: list[dict[str, int]]


class CreateLearningPathRequest(BaseModel):
    exchange_id: int


class CompleteModuleRequest(BaseModel):
    score: int | None = None
    notes: str | None = Field(None, max_length=2000)


class ModuleCreateRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: str | None = Field(None, max_length=2000)
    video_url: str | None = Field(None, max_length=500)
    video_title: str | None = Field(None, max_length=200)
    duration: int | None = Field(None, ge=1, le=1440)


class ModuleUpdateRequest(BaseModel):
    title: str | None = Field(None, min_length=1, max_length=200)
    description: str | None = Field(None, max_length=2000)
    video_url: str | None = Field(None, max_length=500)
    video_title: str | None = Field(None, max_length=200)
    duration: int | None = Field(None, ge=1, le=1440)


def module_response(module: LearningModule) -> ModuleResponse:
    return ModuleResponse(
        id=module.id,
        position=module.position,
        title=module.title,
        description=module.description,
        video_url=module.video_url,
        video_title=module.video_title,
        duration=module.duration,
        is_completed=module.is_completed,
        completed_at=module.completed_at,
        score=module.score,
        notes=module.notes,
    )


def path_response(path: LearningPath, user_role: str | None = None) -> LearningPathResponse:
    return LearningPathResponse(
        id=path.id,
        exchange_id=path.exchange_id,
        skill_id=path.skill_id,
        skill_name=path.skill_name,
        learner_id=path.learner_id,
        instructor_id=path.instructor_id,
        status=path.status,
        total_modules=path.total_modules,
        completed_modules=path.completed_modules,
        progress_percentage=path.progress_percentage,
        estimated_duration=path.estimated_duration,
        actual_duration=path.actual_duration,
        average_score=path.average_score,
        started_at=path.started_at,
        completed_at=path.completed_at,
        created_at=path.created_at,
        modules=[module_response(m) for m in path.modules],
        user_role=user_role,
    )
