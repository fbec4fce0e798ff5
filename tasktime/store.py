"""
Store contract consumed by the timer and analytics engines.
Both the PostgreSQL backend and the in-process memory backend implement it.
"""

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from datetime import datetime
from typing import List, Optional

from tasktime.models import Member, Project, Task, WorkLogEntry


class TimerTransaction(ABC):
    """
    Unit of work for one timer transition on one task.

    `task` is a private working copy loaded under the task's lock.
    Nothing written through `save_task` / `append_work_log` becomes visible
    until the surrounding `timer_transaction` block exits cleanly; an error
    inside the block discards both.
    """

    task: Task

    @abstractmethod
    def save_task(self, task: Task) -> None: ...

    @abstractmethod
    def append_work_log(self, entry: WorkLogEntry) -> None: ...


class TaskStore(ABC):
    # ----- writes -----
    @abstractmethod
    def timer_transaction(self, task_id: str) -> AbstractContextManager:
        """Lock `task_id` and yield a TimerTransaction. Raises NotFoundError."""

    # ----- reads -----
    @abstractmethod
    def workspace_exists(self, workspace_id: str) -> bool: ...

    @abstractmethod
    def get_task(self, task_id: str) -> Optional[Task]: ...

    @abstractmethod
    def find_tasks(
        self,
        workspace_id: str,
        project_id: Optional[str] = None,
        assigned_to: Optional[str] = None,
    ) -> List[Task]: ...

    @abstractmethod
    def query_work_logs(
        self,
        workspace_id: str,
        start: datetime,
        end: datetime,
        user_id: Optional[str] = None,
        project_id: Optional[str] = None,
    ) -> List[WorkLogEntry]:
        """
        Work-log rows whose task currently belongs to `workspace_id`
        (and `project_id` when given) with activity time inside [start, end].
        """

    @abstractmethod
    def find_projects(
        self, workspace_id: str, project_id: Optional[str] = None
    ) -> List[Project]: ...

    @abstractmethod
    def get_project(self, project_id: str) -> Optional[Project]: ...

    @abstractmethod
    def list_members(self, workspace_id: str) -> List[Member]: ...
