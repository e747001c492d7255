# onetask/schemas/workspace_schema.py
from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Literal, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from onetask.config import DEFAULT_AUTO_PRIORITY_HOURS


# --------- Shared helpers ----------
class CamelModel(BaseModel):
    """Base for documents stored and served with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PartialUpdate(CamelModel):
    """Update request where only the fields the caller sent are applied.

    A field left out of the body is not in ``model_fields_set``; a field sent
    as null is, so "clear it" and "leave it alone" stay distinct.
    """

    def changes(self) -> Dict[str, Any]:
        return {
            name: getattr(self, name)
            for name in type(self).model_fields
            if name in self.model_fields_set
        }


def new_id() -> str:
    return str(uuid4())


def _iso_day(value: Any) -> Any:
    # dates are stored as text; malformed values are kept and ignored later
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if value == "":
        return None
    return value


DAY_FIELDS = ("due_date", "auto_promote_date", "scheduled_date")


class Priority(str, Enum):
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


PRIORITY_RANK: Dict[Optional[Priority], int] = {
    Priority.HIGH: 3,
    Priority.MEDIUM: 2,
    Priority.LOW: 1,
    None: 0,
}

# column order on the board
PRIORITY_COLUMNS = (Priority.HIGH, Priority.MEDIUM, Priority.LOW)


# --------- Tasks ----------
class Task(CamelModel):
    id: str = Field(default_factory=new_id)
    title: str = Field(min_length=1)
    due_date: Optional[str] = None
    priority: Priority = Priority.MEDIUM
    # present only while the task is auto-promoted
    original_priority: Optional[Priority] = None
    estimated_time: Optional[int] = Field(default=None, ge=0)  # minutes
    auto_promote_date: Optional[str] = None
    scheduled_date: Optional[str] = None

    @field_validator(*DAY_FIELDS, mode="before")
    @classmethod
    def _days_as_text(cls, value):
        return _iso_day(value)


class TaskDraft(CamelModel):
    """Fields a user supplies when adding a task."""

    title: str = Field(min_length=1)
    priority: Priority = Priority.MEDIUM
    due_date: Optional[str] = None
    estimated_time: Optional[int] = Field(default=None, ge=0)
    auto_promote_date: Optional[str] = None
    scheduled_date: Optional[str] = None

    @field_validator("title")
    @classmethod
    def _title_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Title is required")
        return value.strip()

    @field_validator(*DAY_FIELDS, mode="before")
    @classmethod
    def _days_as_text(cls, value):
        return _iso_day(value)


class TaskUpdate(PartialUpdate):
    title: Optional[str] = None
    priority: Optional[Priority] = None
    due_date: Optional[str] = None
    estimated_time: Optional[int] = None
    auto_promote_date: Optional[str] = None
    scheduled_date: Optional[str] = None

    @field_validator("title")
    @classmethod
    def _title_not_blank(cls, value):
        if value is None or not value.strip():
            raise ValueError("Title is required")
        return value.strip()

    @field_validator("priority")
    @classmethod
    def _priority_required(cls, value):
        if value is None:
            raise ValueError("Priority cannot be cleared")
        return value

    @field_validator("estimated_time")
    @classmethod
    def _minutes_not_negative(cls, value):
        if isinstance(value, int) and value < 0:
            raise ValueError("Estimated time must be zero or more minutes")
        return value

    @field_validator(*DAY_FIELDS, mode="before")
    @classmethod
    def _days_as_text(cls, value):
        return _iso_day(value)


class CompletedTask(Task):
    completed_at: datetime
    project_id: str
    project_name: str


# --------- Projects ----------
class Project(CamelModel):
    id: str = Field(default_factory=new_id)
    name: str = Field(min_length=1)
    tasks: List[Task] = Field(default_factory=list)


class ProjectCreate(CamelModel):
    name: str = Field(min_length=1)


class ProjectRename(CamelModel):
    name: str


class ProjectOrder(CamelModel):
    project_ids: List[str]


# --------- Settings ----------
Theme = Literal["light", "dark", "system"]


class Settings(CamelModel):
    theme: Theme = "system"
    is_auto_priority_mode_enabled: bool = False
    # 0 = Sunday ... 6 = Saturday
    auto_priority_days: List[int] = Field(default_factory=list)
    auto_priority_hours: int = Field(default=DEFAULT_AUTO_PRIORITY_HOURS, gt=0)
    is_auto_rotation_enabled: bool = False

    @field_validator("auto_priority_days")
    @classmethod
    def _valid_weekdays(cls, value: List[int]) -> List[int]:
        for day in value:
            if not 0 <= day <= 6:
                raise ValueError("Weekdays must be between 0 (Sunday) and 6 (Saturday)")
        return sorted(set(value))


# --------- Per-user document ----------
class UserData(CamelModel):
    projects: List[Project] = Field(default_factory=list)
    completed_tasks: List[CompletedTask] = Field(default_factory=list)
    active_project_id: Optional[str] = None
    is_sidebar_open: bool = True
    settings: Settings = Field(default_factory=Settings)

    def to_document(self) -> Dict[str, Any]:
        document = self.model_dump(by_alias=True, exclude_none=True, mode="json")
        document["activeProjectId"] = self.active_project_id
        return document


# --------- Read models ----------
class ProjectSummary(CamelModel):
    id: str
    name: str
    priority: Optional[Priority] = None
    overdue: bool = False
    task_count: int = 0
    is_active: bool = False


class BoardView(CamelModel):
    project_id: str
    project_name: str
    high: List[Task] = Field(default_factory=list)
    medium: List[Task] = Field(default_factory=list)
    low: List[Task] = Field(default_factory=list)


class PendingDeletionRead(CamelModel):
    kind: Literal["task", "project"]
    item_id: str
    label: str
    project_id: Optional[str] = None


class UndoResult(CamelModel):
    restored: bool
    item: Optional[PendingDeletionRead] = None
