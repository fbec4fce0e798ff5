"""
In-process store. Used by the test-suite and for running the API without a
database. Per-task locks serialize timer transitions; a version check on
commit catches anything that slipped past them.
"""

import logging
import threading
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime
from typing import Dict, List, Optional

from tasktime.errors import ConflictError, NotFoundError
from tasktime.models import Member, Project, Task, WorkLogEntry
from tasktime.store import TaskStore, TimerTransaction

logger = logging.getLogger("db")


class MemoryTimerTransaction(TimerTransaction):
    def __init__(self, task: Task):
        self.task = task
        self.saved_task: Optional[Task] = None
        self.pending_logs: List[WorkLogEntry] = []

    def save_task(self, task: Task) -> None:
        self.saved_task = task

    def append_work_log(self, entry: WorkLogEntry) -> None:
        self.pending_logs.append(entry)


class MemoryStore(TaskStore):
    def __init__(self):
        self._lock = threading.RLock()
        # one lock per known task id; tasks are never removed from this store
        self._task_locks: Dict[str, threading.Lock] = {}

        self.workspaces: Dict[str, str] = {}
        self.tasks: Dict[str, Task] = {}
        self.projects: Dict[str, Project] = {}
        self.members: List[Member] = []
        self.work_logs: List[WorkLogEntry] = []

    # -------------------------------------------------
    # Seeding (workspace / project / task CRUD lives elsewhere)
    # -------------------------------------------------
    def add_workspace(self, workspace_id: str, name: str = "") -> None:
        with self._lock:
            self.workspaces[workspace_id] = name or workspace_id

    def add_project(self, project: Project) -> Project:
        with self._lock:
            self.workspaces.setdefault(project.workspace_id, project.workspace_id)
            self.projects[project.id] = replace(project)
        return project

    def add_task(self, task: Task) -> Task:
        with self._lock:
            self.workspaces.setdefault(task.workspace_id, task.workspace_id)
            self.tasks[task.id] = replace(task)
        return task

    def add_member(self, member: Member) -> Member:
        with self._lock:
            self.workspaces.setdefault(member.workspace_id, member.workspace_id)
            self.members.append(member)
        return member

    def update_task(self, task_id: str, **changes) -> Task:
        """Collaborator-side edit (status, assignee, project link...)."""
        with self._lock:
            current = self.tasks.get(task_id)
            if current is None:
                raise NotFoundError("Task not found")
            updated = replace(current, version=current.version + 1, **changes)
            self.tasks[task_id] = updated
            return replace(updated)

    # -------------------------------------------------
    # Timer writes
    # -------------------------------------------------
    def _task_lock(self, task_id: str) -> threading.Lock:
        with self._lock:
            if task_id not in self.tasks:
                raise NotFoundError("Task not found")
            lock = self._task_locks.get(task_id)
            if lock is None:
                lock = self._task_locks[task_id] = threading.Lock()
            return lock

    @contextmanager
    def timer_transaction(self, task_id: str):
        with self._task_lock(task_id):
            with self._lock:
                current = self.tasks.get(task_id)
                if current is None:
                    raise NotFoundError("Task not found")
                expected_version = current.version

            tx = MemoryTimerTransaction(replace(current))
            yield tx
            self._commit(task_id, expected_version, tx)

    def _commit(
        self, task_id: str, expected_version: int, tx: MemoryTimerTransaction
    ) -> None:
        with self._lock:
            stored = self.tasks.get(task_id)
            if stored is None:
                raise NotFoundError("Task not found")
            if stored.version != expected_version:
                logger.warning(
                    f"⚠️ Version mismatch on task {task_id} "
                    f"(expected {expected_version}, found {stored.version})"
                )
                raise ConflictError("task was modified concurrently")

            if tx.saved_task is not None:
                self.tasks[task_id] = replace(
                    tx.saved_task, version=expected_version + 1
                )
            self.work_logs.extend(tx.pending_logs)

    # -------------------------------------------------
    # Reads
    # -------------------------------------------------
    def workspace_exists(self, workspace_id: str) -> bool:
        with self._lock:
            return workspace_id in self.workspaces

    def get_task(self, task_id: str) -> Optional[Task]:
        with self._lock:
            task = self.tasks.get(task_id)
            return replace(task) if task else None

    def find_tasks(
        self,
        workspace_id: str,
        project_id: Optional[str] = None,
        assigned_to: Optional[str] = None,
    ) -> List[Task]:
        with self._lock:
            return [
                replace(t)
                for t in self.tasks.values()
                if t.workspace_id == workspace_id
                and (project_id is None or t.project_id == project_id)
                and (assigned_to is None or t.assigned_to == assigned_to)
            ]

    def query_work_logs(
        self,
        workspace_id: str,
        start: datetime,
        end: datetime,
        user_id: Optional[str] = None,
        project_id: Optional[str] = None,
    ) -> List[WorkLogEntry]:
        with self._lock:
            rows = []
            for entry in self.work_logs:
                task = self.tasks.get(entry.task_id)
                if task is None or task.workspace_id != workspace_id:
                    continue
                if project_id is not None and task.project_id != project_id:
                    continue
                if user_id is not None and entry.user_id != user_id:
                    continue
                if not (start <= entry.activity_at <= end):
                    continue
                rows.append(entry)
            return rows

    def find_projects(
        self, workspace_id: str, project_id: Optional[str] = None
    ) -> List[Project]:
        with self._lock:
            return [
                replace(p)
                for p in self.projects.values()
                if p.workspace_id == workspace_id
                and (project_id is None or p.id == project_id)
            ]

    def get_project(self, project_id: str) -> Optional[Project]:
        with self._lock:
            project = self.projects.get(project_id)
            return replace(project) if project else None

    def list_members(self, workspace_id: str) -> List[Member]:
        with self._lock:
            return [m for m in self.members if m.workspace_id == workspace_id]

    def work_logs_for_task(self, task_id: str) -> List[WorkLogEntry]:
        with self._lock:
            return [e for e in self.work_logs if e.task_id == task_id]
