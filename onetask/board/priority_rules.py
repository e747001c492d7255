"""Priority Rule Engine.

Derives each task's effective priority from its stored priority and the
auto-priority settings. Two rules apply, in order:

1. Low -> Medium once ``autoPromoteDate`` is reached. One-shot: the trigger
   date is consumed and the toggle in settings does not matter.
2. Medium -> High while auto-priority mode is on and the due date is inside
   the hour window or falls on one of the chosen weekdays. Reversible: the
   Medium base is kept in ``originalPriority`` and restored as soon as the
   condition stops holding.

Evaluation is a pure function of (task, settings, today); ``reconcile``
writes back only the tasks whose result differs.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Callable, Iterable, List, Optional

from onetask.board.dates import js_weekday, parse_day
from onetask.schemas.workspace_schema import Priority, Project, Settings, Task

logger = logging.getLogger("onetask.priority")

SkipRule = Callable[[Project, Task], bool]


@dataclass(frozen=True)
class PriorityChange:
    project_id: str
    task_id: str
    before: Priority
    after: Priority


def due_within(due: date, hours: int, today: date) -> bool:
    """True when the due day is overdue or starts within ``hours`` of today."""
    return (due - today).days * 24 <= hours


def should_escalate(task: Task, settings: Settings, today: date) -> bool:
    if not settings.is_auto_priority_mode_enabled:
        return False
    base = task.original_priority or task.priority
    if base is not Priority.MEDIUM:
        return False
    due = parse_day(task.due_date)
    if due is None:
        return False
    return (
        due_within(due, settings.auto_priority_hours, today)
        or js_weekday(due) in settings.auto_priority_days
    )


def evaluate_task(task: Task, settings: Settings, today: date) -> Task:
    """Return the reconciled task, or ``task`` itself when nothing changes."""
    updates = {}
    current = task

    if task.priority is Priority.LOW and task.auto_promote_date:
        trigger = parse_day(task.auto_promote_date)
        if trigger is not None and today >= trigger:
            updates.update(priority=Priority.MEDIUM, auto_promote_date=None)
            current = task.model_copy(update=updates)

    escalate = should_escalate(current, settings, today)
    if escalate and current.priority is not Priority.HIGH:
        updates.update(
            priority=Priority.HIGH,
            original_priority=current.original_priority or current.priority,
        )
    elif current.original_priority is not None and not escalate:
        updates.update(priority=current.original_priority, original_priority=None)

    if not updates:
        return task
    return task.model_copy(update=updates)


def reconcile(
    projects: Iterable[Project],
    settings: Settings,
    today: date,
    skip: Optional[SkipRule] = None,
) -> List[PriorityChange]:
    """Evaluate every task in place and report what changed."""
    changes: List[PriorityChange] = []
    for project in projects:
        for index, task in enumerate(project.tasks):
            if skip is not None and skip(project, task):
                continue
            updated = evaluate_task(task, settings, today)
            if updated is task:
                continue
            project.tasks[index] = updated
            changes.append(PriorityChange(project.id, task.id, task.priority, updated.priority))

    if changes:
        logger.info(
            "priorities_reconciled",
            extra={"changed": len(changes), "today": today.isoformat()},
        )
    return changes
