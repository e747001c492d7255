# onetask/schemas/user_schema.py
from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from pydantic import EmailStr, Field, field_validator

from onetask.config import MIN_PASSWORD_LENGTH
from onetask.schemas.workspace_schema import CamelModel, PartialUpdate, new_id

PASSWORD_TOO_SHORT = f"Password must be at least {MIN_PASSWORD_LENGTH} characters long"


def _check_password(value: str) -> str:
    if len(value) < MIN_PASSWORD_LENGTH:
        raise ValueError(PASSWORD_TOO_SHORT)
    return value


# --------- Stored record ----------
class UserRecord(CamelModel):
    id: str = Field(default_factory=new_id)
    name: str
    email: str
    password_hash: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    profile_picture: Optional[str] = None  # data URL

    def public(self) -> "UserRead":
        return UserRead(**self.model_dump(exclude={"password_hash"}))


# --------- For READ (responses) ----------
class UserRead(CamelModel):
    id: str
    name: str
    email: str
    created_at: datetime
    profile_picture: Optional[str] = None


class AuthResponse(CamelModel):
    user: UserRead
    access_token: str
    token_type: str = "bearer"


class UserEnvelope(CamelModel):
    user: UserRead


# --------- Requests ----------
class SignUpRequest(CamelModel):
    name: str = Field(min_length=1)
    email: EmailStr
    password: str

    @field_validator("password")
    @classmethod
    def validate_password(cls, value):
        return _check_password(value)


class LoginRequest(CamelModel):
    email: EmailStr
    password: str


class CheckEmailRequest(CamelModel):
    email: EmailStr


class ResetPasswordRequest(CamelModel):
    email: EmailStr
    new_password: str

    @field_validator("new_password")
    @classmethod
    def validate_password(cls, value):
        return _check_password(value)


class AccountUpdate(PartialUpdate):
    """Account fields to change; only ``profilePicture`` may be sent as null (clear it)."""

    name: Optional[str] = None
    email: Optional[EmailStr] = None
    new_password: Optional[str] = None
    profile_picture: Optional[str] = None

    @field_validator("name", "email")
    @classmethod
    def _not_null(cls, value):
        if value is None:
            raise ValueError("This field cannot be cleared")
        return value

    @field_validator("new_password")
    @classmethod
    def validate_password(cls, value):
        if value is None:
            raise ValueError(PASSWORD_TOO_SHORT)
        return _check_password(value)

    @property
    def requires_password(self) -> bool:
        return bool(self.model_fields_set & {"name", "email", "new_password"})

    def to_payload(self) -> dict:
        return self.model_dump(by_alias=True, include=self.model_fields_set, mode="json")


class AccountUpdateRequest(CamelModel):
    updates: AccountUpdate
    current_password: Optional[str] = None


class DeleteAccountRequest(CamelModel):
    password: str
