"""Debounced, best-effort persistence of a workspace snapshot."""
from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

from onetask.board.undo import Scheduler, ThreadingScheduler, TimerHandle
from onetask.config import PERSIST_DEBOUNCE_SECONDS
from onetask.schemas.workspace_schema import UserData
from onetask.storage.kv_store import KeyValueStore, StorageError
from onetask.sync.remote_client import RemoteSyncError

logger = logging.getLogger("onetask.persist")


class DebouncedPersister:
    """Batches changes and writes the latest snapshot after a quiet period.

    Writes go to the local store first, then ``push`` (the remote API) gets
    one best-effort attempt. Use it as a workspace's ``on_change`` hook.
    """

    def __init__(
        self,
        store: KeyValueStore,
        key: str,
        *,
        push: Optional[Callable[[UserData], None]] = None,
        scheduler: Optional[Scheduler] = None,
        delay: float = PERSIST_DEBOUNCE_SECONDS,
    ):
        self.store = store
        self.key = key
        self.push = push
        self.delay = delay
        self.last_error: Optional[StorageError] = None
        self._scheduler = scheduler or ThreadingScheduler()
        self._lock = threading.Lock()
        self._latest: Optional[UserData] = None
        self._timer: Optional[TimerHandle] = None
        self._generation = 0

    @property
    def dirty(self) -> bool:
        return self._latest is not None

    def schedule(self, data: UserData) -> None:
        with self._lock:
            self._latest = data
            self._generation += 1
            generation = self._generation
            if self._timer is not None:
                self._timer.cancel()
            self._timer = self._scheduler.call_later(self.delay, lambda: self._fire(generation))

    def __call__(self, data: UserData) -> None:
        self.schedule(data)

    def flush(self) -> None:
        """Write now. Raises ``StorageError`` if the local save fails."""
        with self._lock:
            data = self._take()
        if data is not None:
            self._write(data)

    def _fire(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation:
                return
            data = self._take()
        if data is None:
            return
        try:
            self._write(data)
        except StorageError as exc:
            self.last_error = exc
            logger.error("debounced_save_failed", extra={"key": self.key}, exc_info=True)

    def _take(self) -> Optional[UserData]:
        data, self._latest = self._latest, None
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        return data

    def _write(self, data: UserData) -> None:
        try:
            self.store.save(self.key, data.to_document())
        except StorageError:
            # keep it so the next flush retries
            with self._lock:
                if self._latest is None:
                    self._latest = data
            raise
        self.last_error = None

        if self.push is None:
            return
        try:
            self.push(data)
        except RemoteSyncError:
            logger.warning("remote_push_failed", extra={"key": self.key}, exc_info=True)
