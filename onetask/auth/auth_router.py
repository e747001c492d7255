# onetask/auth/auth_router.py

from datetime import datetime, timedelta, timezone

from fastapi import APIRouter, Depends, HTTPException
from fastapi.security import OAuth2PasswordBearer
from jose import jwt, JWTError

from onetask.accounts.account_book import AccountBook, AccountNotFoundError, InvalidCredentialsError
from onetask.config import ACCESS_TOKEN_EXPIRE_MINUTES, ALGORITHM, SECRET_KEY
from onetask.database import SessionLocal
from onetask.schemas.user_schema import AuthResponse, LoginRequest, UserRecord
from onetask.storage.kv_store import SqlKeyValueStore

if not SECRET_KEY:
    raise RuntimeError("SECRET_KEY missing in .env!")

# ================= SECURITY =================
router = APIRouter(prefix="/api", tags=["auth"])
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth")

# ================= ACCOUNTS =================
account_book = AccountBook(SqlKeyValueStore(SessionLocal))


def get_account_book() -> AccountBook:
    return account_book


# ================= HELPERS =================
def create_access_token(sub: str, minutes: int = ACCESS_TOKEN_EXPIRE_MINUTES):
    exp = datetime.now(timezone.utc) + timedelta(minutes=minutes)
    return jwt.encode({"sub": sub, "exp": exp}, SECRET_KEY, algorithm=ALGORITHM)


def auth_response(user: UserRecord) -> AuthResponse:
    return AuthResponse(user=user.public(), access_token=create_access_token(user.id))


def get_current_user_id(
    token: str = Depends(oauth2_scheme),
    book: AccountBook = Depends(get_account_book),
) -> str:
    try:
        data = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
        user_id = str(data["sub"])
    except (JWTError, KeyError):
        raise HTTPException(401, "Invalid or expired token")

    try:
        book.get(user_id)
    except AccountNotFoundError:
        raise HTTPException(401, "Unauthorized: account no longer exists")
    return user_id


# ================= ROUTES =================
@router.post("/auth", response_model=AuthResponse)
def authenticate(request: LoginRequest, book: AccountBook = Depends(get_account_book)):
    try:
        user = book.authenticate(request.email, request.password)
    except InvalidCredentialsError as exc:
        raise HTTPException(401, str(exc))
    return auth_response(user)
