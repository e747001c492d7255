# onetask/data/data_router.py

from fastapi import APIRouter, Depends, HTTPException

from onetask.auth.auth_router import get_current_user_id
from onetask.board.registry import WorkspaceRegistry
from onetask.project.project_router import get_registry
from onetask.schemas.workspace_schema import UserData
from onetask.storage.kv_store import StorageError

router = APIRouter(prefix="/api/data", tags=["data"])


# ==========================
#  GET CURRENT USER DATA
# ==========================
@router.get("")
def get_user_data(
    user_id: str = Depends(get_current_user_id),
    registry: WorkspaceRegistry = Depends(get_registry),
):
    try:
        return registry.get(user_id).snapshot().to_document()
    except StorageError:
        raise HTTPException(507, "Could not save your data, please try again")


# ==========================
#  REPLACE USER DATA
# ==========================
@router.post("")
def replace_user_data(
    data: UserData,
    user_id: str = Depends(get_current_user_id),
    registry: WorkspaceRegistry = Depends(get_registry),
):
    try:
        registry.replace(user_id, data)
    except StorageError:
        raise HTTPException(507, "Could not save your data, please try again")
    return {"message": "Data saved successfully"}
