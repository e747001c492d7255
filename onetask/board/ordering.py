"""Ordering Engine: display order for board columns and the project list.

Orders are computed on read and never written back. When auto-rotation is
off, callers get their input order untouched.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Dict, List, Optional, Sequence, Tuple

from onetask.board.dates import parse_day
from onetask.schemas.workspace_schema import (
    PRIORITY_COLUMNS,
    PRIORITY_RANK,
    Priority,
    Project,
    Task,
)

FAR_FUTURE = date.max


# -------------------- visibility --------------------
def is_visible(task: Task, today: date) -> bool:
    """Scheduled tasks stay off the board until their scheduled day."""
    scheduled = parse_day(task.scheduled_date)
    return scheduled is None or scheduled <= today


def visible_tasks(project: Project, today: date) -> List[Task]:
    return [task for task in project.tasks if is_visible(task, today)]


def scheduled_tasks(project: Project, today: date) -> List[Task]:
    hidden = [task for task in project.tasks if not is_visible(task, today)]
    return sorted(hidden, key=lambda task: parse_day(task.scheduled_date) or FAR_FUTURE)


# -------------------- tasks --------------------
def task_sort_key(task: Task) -> Tuple[bool, date, int]:
    due = parse_day(task.due_date)
    return (due is None, due or FAR_FUTURE, -(task.estimated_time or 0))


def sort_tasks(tasks: Sequence[Task], auto_rotation: bool) -> List[Task]:
    if not auto_rotation:
        return list(tasks)
    return sorted(tasks, key=task_sort_key)


def priority_columns(tasks: Sequence[Task], auto_rotation: bool) -> Dict[Priority, List[Task]]:
    return {
        priority: sort_tasks([t for t in tasks if t.priority is priority], auto_rotation)
        for priority in PRIORITY_COLUMNS
    }


# -------------------- projects --------------------
@dataclass(frozen=True)
class ProjectSortKey:
    earliest_due_date: date
    highest_priority: int
    time_for_urgent_task: int

    def as_tuple(self) -> Tuple[date, int, int]:
        return (self.earliest_due_date, -self.highest_priority, -self.time_for_urgent_task)


def project_sort_key(project: Project, today: date) -> ProjectSortKey:
    tasks = visible_tasks(project, today)
    dues = [due for due in (parse_day(t.due_date) for t in tasks) if due is not None]
    if dues:
        earliest = min(dues)
        considered = [t for t in tasks if parse_day(t.due_date) == earliest]
    else:
        earliest = FAR_FUTURE
        considered = tasks

    highest = max((PRIORITY_RANK[t.priority] for t in considered), default=0)
    urgent_time = max(
        (t.estimated_time or 0 for t in considered if PRIORITY_RANK[t.priority] == highest),
        default=0,
    )
    return ProjectSortKey(earliest, highest, urgent_time)


def sort_projects(projects: Sequence[Project], auto_rotation: bool, today: date) -> List[Project]:
    if not auto_rotation:
        return list(projects)
    return sorted(projects, key=lambda p: project_sort_key(p, today).as_tuple())


# -------------------- sidebar badge --------------------
@dataclass(frozen=True)
class ProjectBadge:
    priority: Optional[Priority]
    overdue: bool
    task_count: int


def project_badge(project: Project, today: date) -> ProjectBadge:
    tasks = visible_tasks(project, today)
    overdue = False
    for task in tasks:
        due = parse_day(task.due_date)
        if due is not None and due < today:
            overdue = True
            break
    top = max(tasks, key=lambda t: PRIORITY_RANK[t.priority], default=None)
    return ProjectBadge(top.priority if top else None, overdue, len(tasks))
