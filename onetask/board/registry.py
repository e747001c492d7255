"""Per-user workspaces for the HTTP API.

Each user's workspace is loaded once from the store and kept in memory so
that the undo timer outlives the request that started it. Every change is
written straight back to the store.
"""
from __future__ import annotations

import logging
import threading
from typing import Dict, Optional

from onetask.accounts.account_book import AccountBook
from onetask.board.dates import Clock, local_today
from onetask.board.undo import Scheduler
from onetask.board.workspace import Workspace
from onetask.config import UNDO_GRACE_SECONDS
from onetask.schemas.workspace_schema import UserData

logger = logging.getLogger("onetask.registry")


class WorkspaceRegistry:
    def __init__(
        self,
        book: AccountBook,
        *,
        scheduler: Optional[Scheduler] = None,
        clock: Clock = local_today,
        grace_seconds: float = UNDO_GRACE_SECONDS,
    ):
        self.book = book
        self._scheduler = scheduler
        self._clock = clock
        self._grace_seconds = grace_seconds
        self._workspaces: Dict[str, Workspace] = {}
        self._lock = threading.Lock()

    def get(self, user_id: str) -> Workspace:
        with self._lock:
            workspace = self._workspaces.get(user_id)
            if workspace is None:
                data = UserData.model_validate(self.book.load_data(user_id))
                workspace = self._open(user_id, data)
                self._workspaces[user_id] = workspace
                logger.info("workspace_loaded", extra={"user_id": user_id})
            else:
                # cached across requests, so the date may have changed
                workspace.reconcile()
            return workspace

    def replace(self, user_id: str, data: UserData) -> Workspace:
        """Swap in a whole document sent by a client; it wins over pending undo."""
        with self._lock:
            previous = self._workspaces.pop(user_id, None)
            if previous is not None:
                previous.close(commit_pending=False)
            self.book.save_data(user_id, data.to_document())
            workspace = self._open(user_id, data)
            self._workspaces[user_id] = workspace
            return workspace

    def discard(self, user_id: str) -> None:
        with self._lock:
            workspace = self._workspaces.pop(user_id, None)
        if workspace is not None:
            workspace.close(commit_pending=False)

    def _open(self, user_id: str, data: UserData) -> Workspace:
        return Workspace(
            data,
            clock=self._clock,
            scheduler=self._scheduler,
            grace_seconds=self._grace_seconds,
            on_change=lambda snapshot: self.book.save_data(user_id, snapshot.to_document()),
        )
