# onetask/accounts/account_book.py
"""Account rules over a key-value store.

The same rules serve the HTTP API (SQL-backed store) and the client's
offline fallback (file-backed store). Keys follow the layout

    user:<email>      -> UserRecord document
    user-id:<id>      -> email, for lookups by id
    data:<id>         -> UserData document
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from passlib.context import CryptContext

from onetask.config import BCRYPT_ROUNDS, MIN_PASSWORD_LENGTH
from onetask.schemas.user_schema import PASSWORD_TOO_SHORT, AccountUpdate, UserRecord
from onetask.schemas.workspace_schema import UserData
from onetask.storage.kv_store import KeyValueStore

logger = logging.getLogger("onetask.accounts")

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=BCRYPT_ROUNDS)


class AccountError(Exception):
    """A user-facing account failure; ``str(exc)`` is shown to the user."""


class AccountExistsError(AccountError):
    pass


class AccountNotFoundError(AccountError):
    pass


class InvalidCredentialsError(AccountError):
    pass


# ================= HELPERS =================
def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain: str, hashed: str) -> bool:
    try:
        return pwd_context.verify(plain, hashed)
    except ValueError:
        # unknown or malformed hash
        return False


def user_key(email: str) -> str:
    return f"user:{email.lower()}"


def user_id_key(user_id: str) -> str:
    return f"user-id:{user_id}"


def data_key(user_id: str) -> str:
    return f"data:{user_id}"


def _check_password(password: str) -> None:
    if len(password) < MIN_PASSWORD_LENGTH:
        raise AccountError(PASSWORD_TOO_SHORT)


class AccountBook:
    def __init__(self, store: KeyValueStore):
        self.store = store

    # ---- lookups ----
    def find_by_email(self, email: str) -> Optional[UserRecord]:
        raw = self.store.load(user_key(email))
        return UserRecord.model_validate(raw) if raw else None

    def get(self, user_id: str) -> UserRecord:
        email = self.store.load(user_id_key(user_id))
        user = self.find_by_email(email) if email else None
        if user is None or user.id != user_id:
            raise AccountNotFoundError("User not found.")
        return user

    def email_exists(self, email: str) -> bool:
        return self.store.exists(user_key(email))

    def _save_user(self, user: UserRecord) -> None:
        self.store.save(user_key(user.email), user.model_dump(by_alias=True, mode="json"))
        self.store.save(user_id_key(user.id), user.email)

    # ---- flows ----
    def create(self, name: str, email: str, password: str) -> UserRecord:
        _check_password(password)
        if not name.strip():
            raise AccountError("Name is required.")
        if self.email_exists(email):
            raise AccountExistsError("An account with this email already exists")

        user = UserRecord(name=name.strip(), email=email.lower(), password_hash=hash_password(password))
        self._save_user(user)
        self.store.save(data_key(user.id), UserData().to_document())
        logger.info("account_created", extra={"user_id": user.id})
        return user

    def authenticate(self, email: str, password: str) -> UserRecord:
        user = self.find_by_email(email)
        if user is None or not verify_password(password, user.password_hash):
            raise InvalidCredentialsError("Invalid email or password")
        return user

    def reset_password(self, email: str, new_password: str) -> None:
        _check_password(new_password)
        user = self.find_by_email(email)
        if user is None:
            raise AccountNotFoundError("User not found")
        user.password_hash = hash_password(new_password)
        self._save_user(user)
        logger.info("password_reset", extra={"user_id": user.id})

    def update(
        self,
        user_id: str,
        updates: AccountUpdate,
        current_password: Optional[str] = None,
    ) -> UserRecord:
        user = self.get(user_id)

        if updates.requires_password:
            if not current_password:
                raise InvalidCredentialsError("Password is required to make this change.")
            if not verify_password(current_password, user.password_hash):
                raise InvalidCredentialsError("The password you entered is incorrect.")

        changes = updates.changes()
        old_email = user.email
        if "email" in changes and changes["email"].lower() != old_email:
            if self.email_exists(changes["email"]):
                raise AccountExistsError("This email is already in use.")
            user.email = changes["email"].lower()
        if (changes.get("name") or "").strip():
            user.name = changes["name"].strip()
        if "new_password" in changes:
            _check_password(changes["new_password"])
            user.password_hash = hash_password(changes["new_password"])
        if "profile_picture" in changes:
            user.profile_picture = changes["profile_picture"]

        self._save_user(user)
        if user.email != old_email:
            self.store.delete(user_key(old_email))
        logger.info("account_updated", extra={"user_id": user.id, "fields": sorted(updates.to_payload())})
        return user

    def delete(self, user_id: str, password: str) -> None:
        user = self.get(user_id)
        if not password or not verify_password(password, user.password_hash):
            raise InvalidCredentialsError("The password you entered is incorrect.")
        self.store.delete(user_key(user.email))
        self.store.delete(user_id_key(user.id))
        self.store.delete(data_key(user.id))
        logger.info("account_deleted", extra={"user_id": user.id})

    # ---- per-user data ----
    def load_data(self, user_id: str) -> Dict[str, Any]:
        """Return the user's data document, creating the default one if missing."""
        document = self.store.load(data_key(user_id))
        if document is None:
            document = UserData().to_document()
            self.store.save(data_key(user_id), document)
        return document

    def save_data(self, user_id: str, document: Dict[str, Any]) -> None:
        self.store.save(data_key(user_id), document)
