"""In-memory board state for one user and every action the UI can take.

Projects, tasks, completed history and settings live here. After each
mutation the Priority Rule Engine reconciles the tasks on the board and
``on_change`` receives a snapshot, but only if something actually changed.

Deletions go through the soft-delete coordinator: the item stays in
``projects`` until committed, and every read below skips it.
"""
from __future__ import annotations

import logging
import threading
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Literal, Optional, Sequence, Tuple

from onetask.board import ordering, priority_rules
from onetask.board.dates import Clock, as_utc, local_today, utc_now
from onetask.board.undo import ItemKind, PendingDeletion, Scheduler, SoftDeleteCoordinator
from onetask.config import UNDO_GRACE_SECONDS
from onetask.schemas.workspace_schema import (
    BoardView,
    CompletedTask,
    Priority,
    Project,
    ProjectSummary,
    Settings,
    Task,
    TaskDraft,
    TaskUpdate,
    UserData,
)
from onetask.storage.kv_store import StorageError

logger = logging.getLogger("onetask.workspace")

CompletedPeriod = Literal["day", "week", "month", "all"]

PERIODS: Dict[str, Optional[timedelta]] = {
    "day": timedelta(days=1),
    "week": timedelta(days=7),
    "month": timedelta(days=30),
    "all": None,
}


class WorkspaceError(Exception):
    pass


class ProjectNotFoundError(WorkspaceError):
    pass


class TaskNotFoundError(WorkspaceError):
    pass


class ReorderDisabledError(WorkspaceError):
    pass


class Workspace:
    def __init__(
        self,
        data: Optional[UserData] = None,
        *,
        clock: Clock = local_today,
        now: Callable[[], datetime] = utc_now,
        scheduler: Optional[Scheduler] = None,
        grace_seconds: float = UNDO_GRACE_SECONDS,
        on_change: Optional[Callable[[UserData], None]] = None,
    ):
        data = (data or UserData()).model_copy(deep=True)
        self.projects: List[Project] = data.projects
        self.completed: List[CompletedTask] = data.completed_tasks
        self.active_project_id: Optional[str] = data.active_project_id
        self.is_sidebar_open: bool = data.is_sidebar_open
        self.settings: Settings = data.settings

        self._clock = clock
        self._now = now
        self._on_change = on_change
        self._lock = threading.RLock()
        self._undo = SoftDeleteCoordinator(
            self._commit_deletion,
            scheduler=scheduler,
            grace_seconds=grace_seconds,
            lock=self._lock,
        )
        with self._lock:
            changed = self._ensure_active()
            if self._reconcile():
                changed = True
            if changed:
                self._notify()

    # -------------------- snapshot / notify --------------------
    def snapshot(self) -> UserData:
        with self._lock:
            return UserData(
                projects=self.projects,
                completed_tasks=self.completed,
                active_project_id=self.active_project_id,
                is_sidebar_open=self.is_sidebar_open,
                settings=self.settings,
            ).model_copy(deep=True)

    def _notify(self) -> None:
        if self._on_change is not None:
            self._on_change(self.snapshot())

    def _changed(self) -> None:
        self._reconcile()
        self._ensure_active()
        self._notify()

    def reconcile(self) -> List[priority_rules.PriorityChange]:
        """Run the Priority Rule Engine now, e.g. when the day rolls over."""
        with self._lock:
            changes = self._reconcile()
            if changes:
                self._notify()
            return changes

    def _reconcile(self) -> List[priority_rules.PriorityChange]:
        today = self._clock()
        return priority_rules.reconcile(
            self.projects,
            self.settings,
            today,
            skip=lambda project, task: (
                self._is_hidden(project, task) or not ordering.is_visible(task, today)
            ),
        )

    # -------------------- lookups --------------------
    def _is_hidden(self, project: Project, task: Optional[Task] = None) -> bool:
        if self._undo.is_pending(ItemKind.PROJECT, project.id):
            return True
        return task is not None and self._undo.is_pending(ItemKind.TASK, task.id)

    def _live_projects(self) -> List[Project]:
        """Projects with pending deletions filtered out, at project and task level."""
        live = []
        for project in self.projects:
            if self._is_hidden(project):
                continue
            tasks = [t for t in project.tasks if not self._is_hidden(project, t)]
            if len(tasks) != len(project.tasks):
                project = project.model_copy(update={"tasks": tasks})
            live.append(project)
        return live

    def _project(self, project_id: Optional[str]) -> Project:
        project_id = project_id or self._active_id()
        for project in self.projects:
            if project.id == project_id and not self._is_hidden(project):
                return project
        raise ProjectNotFoundError(f"Project {project_id} not found")

    def _locate_task(self, task_id: str) -> Tuple[Project, int, Task]:
        for project in self.projects:
            if self._is_hidden(project):
                continue
            for index, task in enumerate(project.tasks):
                if task.id == task_id and not self._is_hidden(project, task):
                    return project, index, task
        raise TaskNotFoundError(f"Task {task_id} not found")

    def _ensure_active(self) -> bool:
        ids = [p.id for p in self.projects]
        if self.active_project_id in ids:
            return False
        previous = self.active_project_id
        self.active_project_id = ids[0] if ids else None
        return previous != self.active_project_id

    def _active_id(self) -> Optional[str]:
        """Stored active project, or the first live one while it is pending deletion."""
        live = [p.id for p in self.projects if not self._is_hidden(p)]
        if self.active_project_id in live:
            return self.active_project_id
        return live[0] if live else None

    def _refresh(self) -> None:
        # the day may have rolled over since the last pass
        if self._reconcile():
            self._notify()

    # -------------------- projects --------------------
    def add_project(self, name: str) -> Project:
        name = name.strip()
        if not name:
            raise WorkspaceError("Project name is required")
        with self._lock:
            project = Project(name=name)
            self.projects.append(project)
            self.active_project_id = project.id
            self._changed()
            return project

    def rename_project(self, project_id: str, name: str) -> Project:
        with self._lock:
            project = self._project(project_id)
            if name.strip():
                project.name = name.strip()
                self._changed()
            return project

    def select_project(self, project_id: str) -> Project:
        with self._lock:
            project = self._project(project_id)
            if self.active_project_id != project.id:
                self.active_project_id = project.id
                self._notify()
            return project

    def reorder_projects(self, project_ids: Sequence[str]) -> List[Project]:
        """Persist a drag-and-drop order; only allowed without auto-rotation."""
        with self._lock:
            if self.settings.is_auto_rotation_enabled:
                raise ReorderDisabledError("Projects are ordered automatically while auto-rotation is on")
            live = {p.id: p for p in self.projects if not self._is_hidden(p)}
            if sorted(project_ids) != sorted(live):
                raise WorkspaceError("Reorder must list every project exactly once")

            reordered = [live[pid] for pid in project_ids]
            # a project waiting for undo keeps its slot
            for index, project in enumerate(self.projects):
                if project.id not in live:
                    reordered.insert(min(index, len(reordered)), project)
            self.projects[:] = reordered
            self._changed()
            return list(self.projects)

    def delete_project(self, project_id: str) -> PendingDeletion:
        with self._lock:
            # only one deletion waits for undo at a time
            self._undo.flush()
            project = self._project(project_id)
            index = self.projects.index(project)
            return self._undo.delete(ItemKind.PROJECT, project, index=index)

    # -------------------- tasks --------------------
    def add_task(self, draft: TaskDraft, project_id: Optional[str] = None) -> Task:
        with self._lock:
            project = self._project(project_id)
            fields = draft.model_dump()
            if draft.priority is not Priority.LOW:
                fields["auto_promote_date"] = None
            task = Task(**fields)
            project.tasks.append(task)
            self._changed()
            return self._locate_task(task.id)[2]

    def edit_task(self, task_id: str, update: TaskUpdate) -> Task:
        """Apply edits; the edited priority becomes user-controlled again."""
        with self._lock:
            project, index, task = self._locate_task(task_id)
            fields = task.model_dump()
            fields.update(update.changes())
            fields["original_priority"] = None
            if fields["priority"] is not Priority.LOW:
                fields["auto_promote_date"] = None
            project.tasks[index] = Task(**fields)
            self._changed()
            return self._locate_task(task_id)[2]

    def delete_task(self, task_id: str) -> PendingDeletion:
        with self._lock:
            self._undo.flush()
            project, index, task = self._locate_task(task_id)
            return self._undo.delete(ItemKind.TASK, task, index=index, project_id=project.id)

    def complete_task(self, task_id: str) -> CompletedTask:
        with self._lock:
            project, index, task = self._locate_task(task_id)
            completed = CompletedTask(
                **task.model_dump(),
                completed_at=self._now(),
                project_id=project.id,
                project_name=project.name,
            )
            del project.tasks[index]
            self.completed.insert(0, completed)
            logger.info("task_completed", extra={"task_id": task_id, "project_id": project.id})
            self._changed()
            return completed

    def completed_tasks(self, period: CompletedPeriod = "all") -> List[CompletedTask]:
        if period not in PERIODS:
            raise WorkspaceError(f"Unknown period {period!r}")
        window = PERIODS[period]
        now = as_utc(self._now())
        with self._lock:
            tasks = sorted(self.completed, key=lambda t: as_utc(t.completed_at), reverse=True)
        if window is None:
            return tasks
        return [t for t in tasks if now - as_utc(t.completed_at) <= window]

    def delete_completed_task(self, task_id: str) -> None:
        with self._lock:
            for index, task in enumerate(self.completed):
                if task.id == task_id:
                    del self.completed[index]
                    self._notify()
                    return
        raise TaskNotFoundError(f"Completed task {task_id} not found")

    # -------------------- undo --------------------
    def pending_deletion(self) -> Optional[PendingDeletion]:
        return self._undo.pending

    def undo(self) -> Optional[PendingDeletion]:
        with self._lock:
            restored = self._undo.undo()
            if restored is not None:
                self._changed()
            return restored

    def flush_deletions(self) -> Optional[PendingDeletion]:
        return self._undo.flush()

    def close(self, commit_pending: bool = True) -> None:
        """Stop the undo timer, committing or dropping what is pending."""
        with self._lock:
            if commit_pending:
                self._undo.flush()
            else:
                self._undo.undo()

    def _commit_deletion(self, pending: PendingDeletion) -> None:
        if pending.kind is ItemKind.PROJECT:
            self.projects = [p for p in self.projects if p.id != pending.item_id]
            if self.active_project_id == pending.item_id:
                nearest = min(pending.index, len(self.projects) - 1)
                self.active_project_id = self.projects[nearest].id if self.projects else None
        else:
            for project in self.projects:
                if project.id == pending.project_id:
                    project.tasks[:] = [t for t in project.tasks if t.id != pending.item_id]
        try:
            self._changed()
        except StorageError:
            # no caller to report to when the grace timer commits
            logger.error("deletion_persist_failed", extra={"item_id": pending.item_id}, exc_info=True)

    # -------------------- settings --------------------
    def update_settings(self, settings: Settings) -> Settings:
        with self._lock:
            self.settings = settings.model_copy(deep=True)
            logger.info(
                "settings_updated",
                extra={
                    "auto_priority": settings.is_auto_priority_mode_enabled,
                    "auto_rotation": settings.is_auto_rotation_enabled,
                },
            )
            self._changed()
            return self.settings

    def set_sidebar_open(self, is_open: bool) -> None:
        with self._lock:
            if self.is_sidebar_open != is_open:
                self.is_sidebar_open = is_open
                self._notify()

    # -------------------- reads --------------------
    def active_project(self) -> Optional[Project]:
        with self._lock:
            self._refresh()
            active_id = self._active_id()
            for project in self._live_projects():
                if project.id == active_id:
                    return project
            return None

    def sidebar(self) -> List[ProjectSummary]:
        today = self._clock()
        with self._lock:
            self._refresh()
            active_id = self._active_id()
            projects = ordering.sort_projects(
                self._live_projects(), self.settings.is_auto_rotation_enabled, today
            )
            summaries = []
            for project in projects:
                badge = ordering.project_badge(project, today)
                summaries.append(
                    ProjectSummary(
                        id=project.id,
                        name=project.name,
                        priority=badge.priority,
                        overdue=badge.overdue,
                        task_count=badge.task_count,
                        is_active=project.id == active_id,
                    )
                )
            return summaries

    def board(self, project_id: Optional[str] = None) -> BoardView:
        today = self._clock()
        with self._lock:
            self._refresh()
            project_id = project_id or self._active_id()
            project = next(
                (p for p in self._live_projects() if p.id == project_id),
                None,
            )
            if project is None:
                raise ProjectNotFoundError(f"Project {project_id} not found")
            columns = ordering.priority_columns(
                ordering.visible_tasks(project, today), self.settings.is_auto_rotation_enabled
            )
            return BoardView(
                project_id=project.id,
                project_name=project.name,
                high=columns[Priority.HIGH],
                medium=columns[Priority.MEDIUM],
                low=columns[Priority.LOW],
            )

    def scheduled_tasks(self, project_id: Optional[str] = None) -> List[Task]:
        today = self._clock()
        with self._lock:
            self._refresh()
            projects = self._live_projects()
            if project_id is not None:
                projects = [p for p in projects if p.id == project_id]
                if not projects:
                    raise ProjectNotFoundError(f"Project {project_id} not found")
            hidden: List[Task] = []
            for project in projects:
                hidden.extend(ordering.scheduled_tasks(project, today))
            return hidden
