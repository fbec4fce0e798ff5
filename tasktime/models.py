"""
Read/write models for tasks, work logs, projects and roster members.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional


class TaskStatus(str, Enum):
    BACKLOG = "BACKLOG"
    TODO = "TODO"
    IN_PROGRESS = "IN_PROGRESS"
    IN_REVIEW = "IN_REVIEW"
    DONE = "DONE"


class TaskPriority(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


@dataclass
class Task:
    id: str
    code: str
    title: str
    project_id: str
    workspace_id: str
    created_by: str
    description: Optional[str] = None
    task_type_code: Optional[str] = None
    task_type_name: Optional[str] = None
    chapter: Optional[str] = None
    page_range: Optional[str] = None
    status: str = TaskStatus.TODO.value
    priority: str = TaskPriority.MEDIUM.value
    assigned_to: Optional[str] = None
    due_date: Optional[datetime] = None

    # timer state
    first_started_at: Optional[datetime] = None
    active_start_at: Optional[datetime] = None
    is_running: bool = False
    last_stopped_at: Optional[datetime] = None
    total_seconds_spent: int = 0
    total_minutes_spent: int = 0
    pages_completed: Optional[int] = None
    remarks: Optional[str] = None

    version: int = 0

    @property
    def is_done(self) -> bool:
        return self.status == TaskStatus.DONE.value

    def is_overdue(self, now: datetime) -> bool:
        return (
            self.due_date is not None and self.due_date < now and not self.is_done
        )


@dataclass(frozen=True)
class WorkLogEntry:
    id: str
    task_id: str
    user_id: str
    started_at: datetime
    stopped_at: datetime
    duration_minutes: int
    pages_completed: Optional[int] = None
    remarks: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)

    def __post_init__(self):
        if self.stopped_at < self.started_at:
            raise ValueError("stopped_at must not be earlier than started_at")
        if self.duration_minutes < 1:
            raise ValueError("duration_minutes must be at least 1")

    @property
    def activity_at(self) -> datetime:
        return self.stopped_at or self.started_at


@dataclass
class Project:
    id: str
    workspace_id: str
    name: str
    client_id: Optional[str] = None
    client_name: Optional[str] = None
    project_code: Optional[str] = None
    total_chapters: Optional[int] = None
    emoji: str = "📊"

    def summary(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "client_id": self.client_id,
            "client_name": self.client_name,
        }


@dataclass(frozen=True)
class Member:
    user_id: str
    workspace_id: str
    name: Optional[str] = None
    role: Optional[str] = None


@dataclass(frozen=True)
class TimerSnapshot:
    task_id: str
    is_running: bool
    first_started_at: Optional[datetime]
    active_start_at: Optional[datetime]
    last_stopped_at: Optional[datetime]
    total_seconds_spent: int
    total_minutes_spent: int
    pages_completed: Optional[int]
    remarks: Optional[str]
    live_elapsed_seconds: int
    work_log: Optional[WorkLogEntry] = None
