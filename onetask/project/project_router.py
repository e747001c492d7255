# onetask/project/project_router.py

from fastapi import APIRouter, Depends, HTTPException

from onetask.auth.auth_router import account_book, get_current_user_id
from onetask.board.registry import WorkspaceRegistry
from onetask.board.workspace import (
    ProjectNotFoundError,
    ReorderDisabledError,
    TaskNotFoundError,
    WorkspaceError,
)
from onetask.schemas.workspace_schema import (
    BoardView,
    PendingDeletionRead,
    Project,
    ProjectCreate,
    ProjectOrder,
    ProjectRename,
    ProjectSummary,
    Task,
    TaskDraft,
)
from onetask.storage.kv_store import StorageError

# ==========================
#  WORKSPACES
# ==========================
workspace_registry = WorkspaceRegistry(account_book)


def get_registry() -> WorkspaceRegistry:
    return workspace_registry


def board_http_error(exc: Exception) -> HTTPException:
    if isinstance(exc, (ProjectNotFoundError, TaskNotFoundError)):
        return HTTPException(404, str(exc))
    if isinstance(exc, ReorderDisabledError):
        return HTTPException(409, str(exc))
    if isinstance(exc, StorageError):
        return HTTPException(507, "Could not save your changes, please try again")
    return HTTPException(400, str(exc))


router = APIRouter(prefix="/api/projects", tags=["projects"])


# ==========================
#  SIDEBAR
# ==========================
@router.get("", response_model=list[ProjectSummary])
def list_projects(
    user_id: str = Depends(get_current_user_id),
    registry: WorkspaceRegistry = Depends(get_registry),
):
    try:
        return registry.get(user_id).sidebar()
    except StorageError as exc:
        raise board_http_error(exc)


# ==========================
#  CREATE PROJECT
# ==========================
@router.post("", response_model=Project, status_code=201)
def create_project(
    data: ProjectCreate,
    user_id: str = Depends(get_current_user_id),
    registry: WorkspaceRegistry = Depends(get_registry),
):
    try:
        return registry.get(user_id).add_project(data.name)
    except (WorkspaceError, StorageError) as exc:
        raise board_http_error(exc)


# ==========================
#  REORDER (drag and drop)
# ==========================
@router.put("/order", response_model=list[ProjectSummary])
def reorder_projects(
    data: ProjectOrder,
    user_id: str = Depends(get_current_user_id),
    registry: WorkspaceRegistry = Depends(get_registry),
):
    try:
        workspace = registry.get(user_id)
        workspace.reorder_projects(data.project_ids)
        return workspace.sidebar()
    except (WorkspaceError, StorageError) as exc:
        raise board_http_error(exc)


# ==========================
#  RENAME PROJECT (PATCH)
# ==========================
@router.patch("/{project_id}", response_model=Project)
def rename_project(
    project_id: str,
    data: ProjectRename,
    user_id: str = Depends(get_current_user_id),
    registry: WorkspaceRegistry = Depends(get_registry),
):
    try:
        return registry.get(user_id).rename_project(project_id, data.name)
    except (WorkspaceError, StorageError) as exc:
        raise board_http_error(exc)


@router.post("/{project_id}/activate", response_model=Project)
def activate_project(
    project_id: str,
    user_id: str = Depends(get_current_user_id),
    registry: WorkspaceRegistry = Depends(get_registry),
):
    try:
        return registry.get(user_id).select_project(project_id)
    except (WorkspaceError, StorageError) as exc:
        raise board_http_error(exc)


# ==========================
#  DELETE PROJECT (undoable)
# ==========================
@router.delete("/{project_id}", response_model=PendingDeletionRead, status_code=202)
def delete_project(
    project_id: str,
    user_id: str = Depends(get_current_user_id),
    registry: WorkspaceRegistry = Depends(get_registry),
):
    try:
        pending = registry.get(user_id).delete_project(project_id)
    except (WorkspaceError, StorageError) as exc:
        raise board_http_error(exc)
    return pending.to_read()


# ==========================
#  BOARD
# ==========================
@router.get("/{project_id}/board", response_model=BoardView, response_model_exclude_none=True)
def get_board(
    project_id: str,
    user_id: str = Depends(get_current_user_id),
    registry: WorkspaceRegistry = Depends(get_registry),
):
    try:
        return registry.get(user_id).board(project_id)
    except (WorkspaceError, StorageError) as exc:
        raise board_http_error(exc)


@router.get("/{project_id}/scheduled", response_model=list[Task], response_model_exclude_none=True)
def get_scheduled_tasks(
    project_id: str,
    user_id: str = Depends(get_current_user_id),
    registry: WorkspaceRegistry = Depends(get_registry),
):
    try:
        return registry.get(user_id).scheduled_tasks(project_id)
    except (WorkspaceError, StorageError) as exc:
        raise board_http_error(exc)


@router.post("/{project_id}/tasks", response_model=Task, status_code=201, response_model_exclude_none=True)
def create_task(
    project_id: str,
    data: TaskDraft,
    user_id: str = Depends(get_current_user_id),
    registry: WorkspaceRegistry = Depends(get_registry),
):
    try:
        return registry.get(user_id).add_task(data, project_id)
    except (WorkspaceError, StorageError) as exc:
        raise board_http_error(exc)
