# onetask/users/users_router.py

from fastapi import APIRouter, Depends, HTTPException

from onetask.accounts.account_book import (
    AccountBook,
    AccountError,
    AccountExistsError,
    AccountNotFoundError,
    InvalidCredentialsError,
)
from onetask.auth.auth_router import auth_response, get_account_book, get_current_user_id
from onetask.board.registry import WorkspaceRegistry
from onetask.project.project_router import get_registry
from onetask.schemas.user_schema import (
    AccountUpdateRequest,
    AuthResponse,
    CheckEmailRequest,
    DeleteAccountRequest,
    ResetPasswordRequest,
    SignUpRequest,
    UserEnvelope,
)
from onetask.storage.kv_store import StorageError

router = APIRouter(prefix="/api/users", tags=["users"])


def _account_http_error(exc: Exception) -> HTTPException:
    if isinstance(exc, AccountExistsError):
        return HTTPException(409, str(exc))
    if isinstance(exc, InvalidCredentialsError):
        return HTTPException(403, str(exc))
    if isinstance(exc, AccountNotFoundError):
        return HTTPException(404, str(exc))
    if isinstance(exc, StorageError):
        return HTTPException(507, "Could not save your changes, please try again")
    return HTTPException(400, str(exc))


# ==========================
#  SIGN UP
# ==========================
@router.post("", response_model=AuthResponse, status_code=201)
def create_account(request: SignUpRequest, book: AccountBook = Depends(get_account_book)):
    try:
        user = book.create(request.name, request.email, request.password)
    except (AccountError, StorageError) as exc:
        raise _account_http_error(exc)
    return auth_response(user)


# ==========================
#  FORGOT PASSWORD FLOW
# ==========================
@router.post("/check-email")
def check_email(request: CheckEmailRequest, book: AccountBook = Depends(get_account_book)):
    return {"exists": book.email_exists(request.email)}


@router.post("/reset-password")
def reset_password(request: ResetPasswordRequest, book: AccountBook = Depends(get_account_book)):
    try:
        book.reset_password(request.email, request.new_password)
    except (AccountError, StorageError) as exc:
        raise _account_http_error(exc)
    return {"message": "Password updated successfully."}


# ==========================
#  UPDATE ACCOUNT (PATCH)
# ==========================
@router.patch("/me", response_model=UserEnvelope)
def update_account(
    request: AccountUpdateRequest,
    user_id: str = Depends(get_current_user_id),
    book: AccountBook = Depends(get_account_book),
):
    try:
        user = book.update(user_id, request.updates, request.current_password)
    except (AccountError, StorageError) as exc:
        raise _account_http_error(exc)
    return UserEnvelope(user=user.public())


# ==========================
#  DELETE ACCOUNT
# ==========================
@router.delete("/me")
def delete_account(
    request: DeleteAccountRequest,
    user_id: str = Depends(get_current_user_id),
    book: AccountBook = Depends(get_account_book),
    registry: WorkspaceRegistry = Depends(get_registry),
):
    try:
        book.delete(user_id, request.password)
    except (AccountError, StorageError) as exc:
        raise _account_http_error(exc)
    registry.discard(user_id)
    return {"message": "Account deleted successfully"}
