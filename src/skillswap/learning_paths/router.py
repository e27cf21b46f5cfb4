"""Learning path router: all /api/learning-paths/* endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from skillswap.auth.dependencies import get_current_admin, get_current_user
from skillswap.database import get_session
from skillswap.db.models import User
from skillswap.dependencies import get_notifier
from skillswap.exchanges.rewards import notify_completion
from skillswap.learning_paths.schemas import (
    CompleteModuleRequest,
    CreateLearningPathRequest,
    CreateMissingEnvelope,
    ExchangePathsEnvelope,
    LearningPathEnvelope,
    LearningPathListEnvelope,
    ModuleCreateRequest,
    ModuleEnvelope,
    ModuleUpdateRequest,
    ProgressEnvelope,
    module_response,
    path_response,
)
from skillswap.learning_paths.service import (
    add_module,
    all_paths,
    complete_learning,
    complete_module,
    create_learning_path,
    create_missing_paths,
    delete_module,
    get_module,
    get_path_for_viewer,
    incomplete_module,
    paths_for_exchange,
    progress_summary,
    update_module,
    user_paths,
)
from skillswap.notifications.dispatcher import NotificationDispatcher

router = APIRouter(prefix="/api/learning-paths", tags=["Learning Paths"])


# ---------------------------------------------------------------------------
# Admin (declared first so /admin/* is not captured by /{path_id})
# ---------------------------------------------------------------------------


@router.get("/admin/all", response_model=LearningPathListEnvelope)
async def admin_list_paths(
    status: str | None = None,
    limit: int = Query(100, ge=1, le=100),
    offset: int = Query(0, ge=0),
    _admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_session),
) -> LearningPathListEnvelope:
    paths = await all_paths(db, status=status, limit=limit, offset=offset)
    return LearningPathListEnvelope(count=len(paths), learning_paths=[path_response(p) for p in paths])


@router.post("/admin/create-missing", response_model=CreateMissingEnvelope)
async def admin_create_missing(
    _admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_session),
) -> CreateMissingEnvelope:
    created = await create_missing_paths(db)
    await db.commit()
    return CreateMissingEnvelope(message=f"Created {len(created)} learning paths", created_paths=created)


@router.post("/admin/{path_id}/modules", response_model=ModuleEnvelope, status_code=201)
async def admin_add_module(
    path_id: int,
    body: ModuleCreateRequest,
    _admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_session),
    notifier: NotificationDispatcher = Depends(get_notifier),
) -> ModuleEnvelope:
    change = await add_module(db, path_id, body.model_dump())
    await db.commit()
    if change.exchange is not None:
        notify_completion(notifier, change.exchange, change.reward)
    return ModuleEnvelope(
        message="Module added",
        module=module_response(change.module),
        learning_path=path_response(change.path),
    )


@router.put("/admin/{path_id}/modules/{module_id}", response_model=ModuleEnvelope)
async def admin_update_module(
    path_id: int,
    module_id: int,
    body: ModuleUpdateRequest,
    _admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_session),
    notifier: NotificationDispatcher = Depends(get_notifier),
) -> ModuleEnvelope:
    change = await update_module(db, path_id, module_id, body.model_dump(exclude_unset=True))
    await db.commit()
    if change.exchange is not None:
        notify_completion(notifier, change.exchange, change.reward)
    return ModuleEnvelope(message="Module updated", module=module_response(change.module))


@router.delete("/admin/{path_id}/modules/{module_id}", response_model=LearningPathEnvelope)
async def admin_delete_module(
    path_id: int,
    module_id: int,
    _admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_session),
    notifier: NotificationDispatcher = Depends(get_notifier),
) -> LearningPathEnvelope:
    change = await delete_module(db, path_id, module_id)
    await db.commit()
    if change.exchange is not None:
        notify_completion(notifier, change.exchange, change.reward)
    return LearningPathEnvelope(message="Module deleted", learning_path=path_response(change.path))


# ---------------------------------------------------------------------------
# Learner / instructor
# ---------------------------------------------------------------------------


@router.post("", response_model=LearningPathEnvelope, status_code=201)
async def post_learning_path(
    body: CreateLearningPathRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> LearningPathEnvelope:
    """Create the caller's learning path for an active exchange."""
    path = await create_learning_path(db, body.exchange_id, user)
    await db.commit()
    return LearningPathEnvelope(message="Learning path created", learning_path=path_response(path, "learner"))


@router.get("/user", response_model=LearningPathListEnvelope)
async def get_my_paths(
    role: str | None = None,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> LearningPathListEnvelope:
    paths = await user_paths(db, user.id, role)
    return LearningPathListEnvelope(
        count=len(paths),
        learning_paths=[path_response(p, "learner" if p.learner_id == user.id else "instructor") for p in paths],
    )


@router.get("/exchange/{exchange_id}", response_model=ExchangePathsEnvelope)
async def get_exchange_paths(
    exchange_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> ExchangePathsEnvelope:
    """Both paths of an exchange. The caller's own path is created if missing."""
    exchange, paths = await paths_for_exchange(db, exchange_id, user)
    await db.commit()
    mine = next((p for p in paths if p.learner_id == user.id), None)
    return ExchangePathsEnvelope(
        exchange_id=exchange.id,
        exchange_status=exchange.status,
        learning_path=path_response(mine, "learner") if mine else None,
        learning_paths=[path_response(p, "learner" if p.learner_id == user.id else "instructor") for p in paths],
    )


@router.get("/{path_id}", response_model=LearningPathEnvelope)
async def get_one_path(
    path_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> LearningPathEnvelope:
    path, role = await get_path_for_viewer(db, path_id, user)
    return LearningPathEnvelope(learning_path=path_response(path, role))


@router.get("/{path_id}/progress", response_model=ProgressEnvelope)
async def get_progress(
    path_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> ProgressEnvelope:
    path, _ = await get_path_for_viewer(db, path_id, user)
    return ProgressEnvelope(progress=progress_summary(path))


@router.get("/{path_id}/modules/{module_id}", response_model=ModuleEnvelope)
async def get_module_details(
    path_id: int,
    module_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> ModuleEnvelope:
    path, _ = await get_path_for_viewer(db, path_id, user)
    return ModuleEnvelope(module=module_response(get_module(path, module_id)))


@router.put("/{path_id}/modules/{module_id}/complete", response_model=ModuleEnvelope)
async def put_module_complete(
    path_id: int,
    module_id: int,
    body: CompleteModuleRequest | None = None,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    notifier: NotificationDispatcher = Depends(get_notifier),
) -> ModuleEnvelope:
    """Complete a module. Finishing the last module of both paths completes the exchange."""
    body = body or CompleteModuleRequest()
    change = await complete_module(db, path_id, module_id, user, score=body.score, notes=body.notes)
    await db.commit()
    notify_completion(notifier, change.exchange, change.reward)

    if change.exchange_completed:
        message = "Module completed. Both learning paths are finished and the exchange is complete!"
    elif change.path_completed:
        message = "Module completed. Learning path finished!"
    else:
        message = "Module completed"
    return ModuleEnvelope(
        message=message,
        module=module_response(change.module),
        learning_path=path_response(change.path, "learner"),
        exchange_status=change.exchange.status,
        exchange_completed=change.exchange_completed,
        tokens_earned=change.reward.tokens.get(user.id) if change.reward else None,
    )


@router.put("/{path_id}/modules/{module_id}/incomplete", response_model=ModuleEnvelope)
async def put_module_incomplete(
    path_id: int,
    module_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> ModuleEnvelope:
    change = await incomplete_module(db, path_id, module_id, user)
    await db.commit()
    return ModuleEnvelope(
        message="Module marked as incomplete",
        module=module_response(change.module),
        learning_path=path_response(change.path, "learner"),
        exchange_status=change.exchange.status,
    )


@router.put("/{path_id}/complete", response_model=LearningPathEnvelope)
async def put_path_complete(
    path_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    notifier: NotificationDispatcher = Depends(get_notifier),
) -> LearningPathEnvelope:
    path, exchange, reward = await complete_learning(db, path_id, user)
    await db.commit()
    notify_completion(notifier, exchange, reward)
    return LearningPathEnvelope(message="Learning path completed", learning_path=path_response(path, "learner"))
