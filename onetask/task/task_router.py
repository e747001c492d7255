import logging
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Response

from onetask.auth.auth_router import get_current_user_id
from onetask.board.registry import WorkspaceRegistry
from onetask.board.workspace import WorkspaceError
from onetask.project.project_router import board_http_error, get_registry
from onetask.schemas.workspace_schema import (
    CompletedTask,
    PendingDeletionRead,
    Settings,
    Task,
    TaskUpdate,
    UndoResult,
)
from onetask.storage.kv_store import StorageError

logger = logging.getLogger("onetask.task")


# ==========================
#  ROUTER
# ==========================
router = APIRouter(
    prefix="/api",
    tags=["tasks"],
)


@router.patch("/tasks/{task_id}", response_model=Task, response_model_exclude_none=True)
def update_task(
    task_id: str,
    data: TaskUpdate,
    user_id: str = Depends(get_current_user_id),
    registry: WorkspaceRegistry = Depends(get_registry),
):
    try:
        return registry.get(user_id).edit_task(task_id, data)
    except (WorkspaceError, StorageError) as exc:
        raise board_http_error(exc)


@router.delete("/tasks/{task_id}", response_model=PendingDeletionRead, status_code=202)
def delete_task(
    task_id: str,
    user_id: str = Depends(get_current_user_id),
    registry: WorkspaceRegistry = Depends(get_registry),
):
    try:
        pending = registry.get(user_id).delete_task(task_id)
    except (WorkspaceError, StorageError) as exc:
        raise board_http_error(exc)
    return pending.to_read()


@router.post("/tasks/{task_id}/complete", response_model=CompletedTask, response_model_exclude_none=True)
def complete_task(
    task_id: str,
    user_id: str = Depends(get_current_user_id),
    registry: WorkspaceRegistry = Depends(get_registry),
):
    try:
        return registry.get(user_id).complete_task(task_id)
    except (WorkspaceError, StorageError) as exc:
        raise board_http_error(exc)


# ==========================
#  COMPLETED HISTORY
# ==========================
@router.get("/completed", response_model=list[CompletedTask], response_model_exclude_none=True)
def list_completed(
    period: Literal["day", "week", "month", "all"] = "day",
    user_id: str = Depends(get_current_user_id),
    registry: WorkspaceRegistry = Depends(get_registry),
):
    try:
        return registry.get(user_id).completed_tasks(period)
    except (WorkspaceError, StorageError) as exc:
        raise board_http_error(exc)


@router.delete("/completed/{task_id}", status_code=204)
def delete_completed(
    task_id: str,
    user_id: str = Depends(get_current_user_id),
    registry: WorkspaceRegistry = Depends(get_registry),
):
    try:
        registry.get(user_id).delete_completed_task(task_id)
    except (WorkspaceError, StorageError) as exc:
        raise board_http_error(exc)
    return Response(status_code=204)


# ==========================
#  UNDO
# ==========================
@router.get("/undo", response_model=Optional[PendingDeletionRead])
def get_pending_deletion(
    user_id: str = Depends(get_current_user_id),
    registry: WorkspaceRegistry = Depends(get_registry),
):
    try:
        pending = registry.get(user_id).pending_deletion()
    except StorageError as exc:
        raise board_http_error(exc)
    return pending.to_read() if pending else None


@router.post("/undo", response_model=UndoResult)
def undo_deletion(
    user_id: str = Depends(get_current_user_id),
    registry: WorkspaceRegistry = Depends(get_registry),
):
    try:
        restored = registry.get(user_id).undo()
    except StorageError as exc:
        raise board_http_error(exc)
    if restored is None:
        logger.info("undo_noop", extra={"user_id": user_id})
        return UndoResult(restored=False)
    return UndoResult(restored=True, item=restored.to_read())


# ==========================
#  SETTINGS
# ==========================
@router.get("/settings", response_model=Settings)
def get_settings(
    user_id: str = Depends(get_current_user_id),
    registry: WorkspaceRegistry = Depends(get_registry),
):
    try:
        return registry.get(user_id).settings
    except StorageError as exc:
        raise board_http_error(exc)


@router.put("/settings", response_model=Settings)
def update_settings(
    data: Settings,
    user_id: str = Depends(get_current_user_id),
    registry: WorkspaceRegistry = Depends(get_registry),
):
    try:
        return registry.get(user_id).update_settings(data)
    except StorageError as exc:
        raise board_http_error(exc)
