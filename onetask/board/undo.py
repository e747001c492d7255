"""Soft-delete with a grace period.

A deletion is parked in a single pending slot and committed by a timer
unless ``undo`` runs first. The owner keeps the item in its collection and
hides it from every read while it is pending, so undo needs no copy.

States: IDLE -> PENDING_UNDO -> (commit) IDLE, or PENDING_UNDO -> (undo) IDLE.
A second ``delete`` while one is pending commits the first straight away.
"""
from __future__ import annotations

import itertools
import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Protocol, Union

from onetask.config import UNDO_GRACE_SECONDS
from onetask.schemas.workspace_schema import PendingDeletionRead, Project, Task

logger = logging.getLogger("onetask.undo")


class ItemKind(str, Enum):
    TASK = "task"
    PROJECT = "project"


class UndoState(str, Enum):
    IDLE = "idle"
    PENDING_UNDO = "pending_undo"


# -------------------- scheduling --------------------
class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle: ...


class ThreadingScheduler:
    """Runs callbacks on daemon ``threading.Timer`` threads."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        timer = threading.Timer(delay, callback)
        timer.daemon = True
        timer.start()
        return timer


# -------------------- pending slot --------------------
@dataclass(frozen=True)
class PendingDeletion:
    kind: ItemKind
    item: Union[Task, Project]
    project_id: Optional[str]  # owning project, for tasks
    index: int  # position in the owning collection when deleted
    token: int

    @property
    def item_id(self) -> str:
        return self.item.id

    @property
    def label(self) -> str:
        return self.item.title if isinstance(self.item, Task) else self.item.name

    def to_read(self) -> PendingDeletionRead:
        return PendingDeletionRead(
            kind=self.kind.value,
            item_id=self.item_id,
            label=self.label,
            project_id=self.project_id,
        )


CommitCallback = Callable[[PendingDeletion], None]


class SoftDeleteCoordinator:
    def __init__(
        self,
        commit: CommitCallback,
        *,
        scheduler: Optional[Scheduler] = None,
        grace_seconds: float = UNDO_GRACE_SECONDS,
        lock: Optional[threading.RLock] = None,
    ):
        self._commit = commit
        self._scheduler = scheduler or ThreadingScheduler()
        self.grace_seconds = grace_seconds
        # shared with the owner so timer commits and user actions serialize
        self._lock = lock or threading.RLock()
        self._tokens = itertools.count(1)
        self._pending: Optional[PendingDeletion] = None
        self._timer: Optional[TimerHandle] = None

    @property
    def state(self) -> UndoState:
        return UndoState.PENDING_UNDO if self._pending else UndoState.IDLE

    @property
    def pending(self) -> Optional[PendingDeletion]:
        return self._pending

    def is_pending(self, kind: ItemKind, item_id: str) -> bool:
        pending = self._pending
        return pending is not None and pending.kind is kind and pending.item_id == item_id

    def delete(
        self,
        kind: ItemKind,
        item: Union[Task, Project],
        *,
        index: int,
        project_id: Optional[str] = None,
    ) -> PendingDeletion:
        with self._lock:
            if self._pending is not None:
                logger.info(
                    "deletion_superseded",
                    extra={"kind": self._pending.kind.value, "item_id": self._pending.item_id},
                )
                self._commit_now()

            pending = PendingDeletion(kind, item, project_id, index, next(self._tokens))
            self._pending = pending
            self._timer = self._scheduler.call_later(
                self.grace_seconds, lambda: self._expire(pending.token)
            )
            logger.info(
                "deletion_pending",
                extra={"kind": kind.value, "item_id": item.id, "grace_seconds": self.grace_seconds},
            )
            return pending

    def undo(self) -> Optional[PendingDeletion]:
        """Cancel the pending deletion; a no-op once it has been committed."""
        with self._lock:
            pending = self._pending
            if pending is None:
                return None
            self._clear()
            logger.info("deletion_undone", extra={"kind": pending.kind.value, "item_id": pending.item_id})
            return pending

    def flush(self) -> Optional[PendingDeletion]:
        """Commit the pending deletion immediately."""
        with self._lock:
            return self._commit_now()

    # ---- internals ----
    def _expire(self, token: int) -> None:
        with self._lock:
            # a cancelled or superseded timer may still get here
            if self._pending is None or self._pending.token != token:
                return
            self._commit_now()

    def _commit_now(self) -> Optional[PendingDeletion]:
        pending = self._pending
        if pending is None:
            return None
        self._clear()
        self._commit(pending)
        logger.info("deletion_committed", extra={"kind": pending.kind.value, "item_id": pending.item_id})
        return pending

    def _clear(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
        self._timer = None
        self._pending = None
