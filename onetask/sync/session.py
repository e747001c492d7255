# onetask/sync/session.py
"""Client-side account session.

Every operation tries the remote API first. When the API cannot be reached
(timeout, network, non-JSON, 5xx) the same operation runs against the local
account book instead and the session is marked offline. Rejections from the
API (wrong password, duplicate email) are real answers and surface as
``AccountError``.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Optional, Tuple, TypeVar

from onetask.accounts.account_book import AccountBook, AccountError, data_key
from onetask.board.dates import Clock, local_today
from onetask.board.undo import Scheduler
from onetask.board.workspace import Workspace
from onetask.config import API_BASE_URL, DATA_DIR
from onetask.schemas.user_schema import AccountUpdate, UserRead
from onetask.schemas.workspace_schema import UserData
from onetask.storage.kv_store import JsonFileStore, KeyValueStore, StorageError
from onetask.sync.persister import DebouncedPersister
from onetask.sync.remote_client import (
    RemoteClient,
    RemoteRejectedError,
    RemoteSyncError,
    RemoteUnavailableError,
)

logger = logging.getLogger("onetask.session")

T = TypeVar("T")


class SyncSession:
    def __init__(self, local_store: KeyValueStore, remote: Optional[RemoteClient] = None):
        self.local_store = local_store
        self.local = AccountBook(local_store)
        self.remote = remote
        self.user: Optional[UserRead] = None
        self.offline = remote is None

    def _try_remote(self, operation: str, call: Callable[[], T]) -> Tuple[bool, Optional[T]]:
        if self.remote is None:
            return False, None
        try:
            return True, call()
        except RemoteRejectedError as exc:
            raise AccountError(exc.message) from exc
        except RemoteUnavailableError:
            logger.warning("remote_fallback", extra={"operation": operation})
            self.offline = True
            return False, None

    def _require_user(self) -> UserRead:
        if self.user is None:
            raise AccountError("No user is logged in.")
        return self.user

    # -------------------- accounts --------------------
    def sign_up(self, name: str, email: str, password: str) -> UserRead:
        ok, auth = self._try_remote("sign_up", lambda: self.remote.create_account(name, email, password))
        if ok:
            self.offline = False
            self.user = auth.user
        else:
            self.user = self.local.create(name, email, password).public()
        return self.user

    def sign_in(self, email: str, password: str) -> UserRead:
        ok, auth = self._try_remote("sign_in", lambda: self.remote.authenticate(email, password))
        if ok:
            self.offline = False
            self.user = auth.user
        else:
            self.user = self.local.authenticate(email, password).public()
        return self.user

    def sign_out(self) -> None:
        self.user = None
        if self.remote is not None:
            self.remote.token = None

    def update_account(self, updates: AccountUpdate, current_password: Optional[str] = None) -> UserRead:
        user = self._require_user()
        ok, updated = (False, None)
        if not self.offline:
            ok, updated = self._try_remote(
                "update_account", lambda: self.remote.update_account(updates, current_password)
            )
        if not ok:
            updated = self.local.update(user.id, updates, current_password).public()
        self.user = updated
        return updated

    def delete_account(self, password: str) -> None:
        user = self._require_user()
        ok = False
        if not self.offline:
            ok, _ = self._try_remote("delete_account", lambda: self.remote.delete_account(password))
        if ok:
            # drop the local mirror too, it is keyed by the same id
            self.local_store.delete(data_key(user.id))
        else:
            self.local.delete(user.id, password)
        self.sign_out()

    # -------------------- user data --------------------
    def load_data(self) -> UserData:
        user = self._require_user()
        if not self.offline:
            ok, data = self._try_remote("load_data", self.remote.fetch_user_data)
            if ok:
                try:
                    self.local_store.save(data_key(user.id), data.to_document())
                except StorageError:
                    logger.warning("local_mirror_failed", extra={"user_id": user.id}, exc_info=True)
                return data
        return UserData.model_validate(self.local.load_data(user.id))

    def push_remote(self, data: UserData) -> None:
        """One best-effort upload; failures only get logged."""
        if self.offline or self.remote is None or self.user is None:
            return
        try:
            self.remote.push_user_data(data)
        except RemoteSyncError:
            logger.warning("remote_push_failed", extra={"user_id": self.user.id}, exc_info=True)

    def open_workspace(
        self,
        *,
        scheduler: Optional[Scheduler] = None,
        clock: Clock = local_today,
    ) -> Tuple[Workspace, DebouncedPersister]:
        """Load the signed-in user's board wired to debounced persistence."""
        user = self._require_user()
        persister = DebouncedPersister(
            self.local_store,
            data_key(user.id),
            push=self.push_remote,
            scheduler=scheduler,
        )
        workspace = Workspace(
            self.load_data(),
            clock=clock,
            scheduler=scheduler,
            on_change=persister.schedule,
        )
        return workspace, persister


def local_session(data_dir: Optional[Path] = None, api_url: str = API_BASE_URL) -> SyncSession:
    """A session that keeps its offline copy as JSON files under ``data_dir``."""
    return SyncSession(JsonFileStore(data_dir or DATA_DIR), RemoteClient(api_url))
