"""
Progress Analytics - workspace, project, client and employee rollups
Features:
1. Scatter/gather: independent store reads run concurrently, then get joined
   in memory by key.
2. Centralized math: every report is built from the small rollup helpers
   below, each of which is a pure function over plain rows.
3. Join semantics: work logs -> tasks -> projects always follow the task's
   *current* project link.
4. Every roster member appears exactly once in employee rollups, zero-filled
   when they have no tasks or activity in the window.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional

from tasktime.config import ANALYTICS_MAX_WORKERS, DEFAULT_WINDOW_DAYS
from tasktime.date_range import DateInput, DateRange, resolve_date_range
from tasktime.errors import NotFoundError
from tasktime.models import (
    Member,
    Project,
    Task,
    TaskStatus,
    WorkLogEntry,
    utcnow,
)
from tasktime.store import TaskStore
from tasktime.task_types import get_task_type_by_code
from tasktime.time_tracking import hours_decimal
from tasktime.timer import validate_id

logger = logging.getLogger("analytics")

UNKNOWN_CLIENT = ("unknown", "Unknown")
STATUS_ORDER = [s.value for s in TaskStatus]


# =================================================
# Rollup helpers (pure)
# =================================================
def task_status_rollup(tasks: Iterable[Task], now: datetime) -> Dict:
    total = done = overdue = 0
    by_status: Dict[str, int] = defaultdict(int)

    for t in tasks:
        total += 1
        by_status[t.status] += 1
        if t.is_done:
            done += 1
        if t.is_overdue(now):
            overdue += 1

    known = [s for s in STATUS_ORDER if s in by_status]
    extra = sorted(s for s in by_status if s not in STATUS_ORDER)

    return {
        "total_tasks": total,
        "done_tasks": done,
        "pending_tasks": max(0, total - done),
        "overdue_tasks": overdue,
        "tasks_by_status": [
            {"status": s, "count": by_status[s]} for s in known + extra
        ],
    }


def project_rollup(projects: List[Project], tasks: Iterable[Task]) -> Dict:
    counts: Dict[str, List[int]] = {}
    for t in tasks:
        c = counts.setdefault(t.project_id, [0, 0])
        c[0] += 1
        if t.is_done:
            c[1] += 1

    active = completed = 0
    for total, done in counts.values():
        if total > 0 and done == total:
            completed += 1
        if total - done > 0:
            active += 1

    return {
        "total_projects": len(projects),
        "active_projects": active,
        "completed_projects": completed,
    }


def client_key(project: Project):
    return (
        project.client_id or UNKNOWN_CLIENT[0],
        project.client_name or UNKNOWN_CLIENT[1],
    )


def client_rollup(projects: Iterable[Project]) -> Dict:
    counts: Dict[tuple, int] = defaultdict(int)
    for p in projects:
        counts[client_key(p)] += 1

    rows = [
        {"client_id": cid, "client_name": cname, "project_count": n}
        for (cid, cname), n in counts.items()
    ]
    rows.sort(key=lambda r: (-r["project_count"], r["client_name"]))

    return {"total_clients": len(rows), "projects_by_client": rows}


def assignment_counts(tasks: Iterable[Task]) -> Dict[str, Dict[str, int]]:
    """user_id -> {total_assigned, done, pending} for assigned tasks."""
    result: Dict[str, Dict[str, int]] = {}
    for t in tasks:
        if not t.assigned_to:
            continue
        r = result.setdefault(
            t.assigned_to, {"total_assigned": 0, "done": 0, "pending": 0}
        )
        r["total_assigned"] += 1
        if t.is_done:
            r["done"] += 1
        else:
            r["pending"] += 1
    return result


def work_log_totals(logs: Iterable[WorkLogEntry], window: DateRange) -> Dict:
    """Sum of minutes/pages and the latest activity inside the window."""
    minutes = pages = 0
    last_active: Optional[datetime] = None

    for entry in logs:
        at = entry.activity_at
        if not window.contains(at):
            continue
        minutes += entry.duration_minutes
        pages += entry.pages_completed or 0
        if last_active is None or at > last_active:
            last_active = at

    return {
        "total_minutes": minutes,
        "total_pages": pages,
        "last_active_at": last_active,
    }


def _employee_row(counts: Dict[str, int], totals: Dict) -> Dict:
    return {
        "total_assigned": counts.get("total_assigned", 0),
        "done": counts.get("done", 0),
        "pending": counts.get("pending", 0),
        "total_minutes": totals["total_minutes"],
        "total_hours": hours_decimal(totals["total_minutes"]),
        "total_pages": totals["total_pages"],
        "last_active_at": totals["last_active_at"],
    }


def employee_rollup(
    members: List[Member],
    tasks: Iterable[Task],
    logs: Iterable[WorkLogEntry],
    window: DateRange,
) -> List[Dict]:
    counts = assignment_counts(tasks)

    logs_by_user: Dict[str, List[WorkLogEntry]] = defaultdict(list)
    for entry in logs:
        logs_by_user[entry.user_id].append(entry)

    rows, seen = [], set()
    for m in members:
        # a roster listing a user twice still yields one row
        if m.user_id in seen:
            continue
        seen.add(m.user_id)
        totals = work_log_totals(logs_by_user.get(m.user_id, []), window)
        rows.append(
            {
                "user_id": m.user_id,
                "name": m.name or "Unknown",
                **_employee_row(counts.get(m.user_id, {}), totals),
            }
        )
    return rows


def describe_task(task: Task, project: Optional[Project]) -> Dict:
    type_name = task.task_type_name
    if not type_name and (catalog := get_task_type_by_code(task.task_type_code)):
        type_name = catalog["name"]
    return {
        "id": task.id,
        "code": task.code,
        "title": task.title,
        "task_type_code": task.task_type_code,
        "task_type_name": type_name,
        "status": task.status,
        "project": project.summary() if project else None,
    }


def describe_work_log(
    entry: WorkLogEntry, task: Optional[Task], project: Optional[Project]
) -> Dict:
    return {
        "id": entry.id,
        "task_id": entry.task_id,
        "duration_minutes": entry.duration_minutes,
        "pages_completed": entry.pages_completed or 0,
        "remarks": entry.remarks,
        "started_at": entry.started_at,
        "stopped_at": entry.stopped_at,
        "activity_at": entry.activity_at,
        "task_title": task.title if task else None,
        "task_code": task.code if task else None,
        "project_name": project.name if project else None,
    }


# =================================================
# Engine
# =================================================
class ProgressAnalytics:
    """
    Read-side engine. Holds no state between calls; every report re-reads the
    store and recomputes from scratch.
    """

    def __init__(
        self,
        store: TaskStore,
        clock: Callable[[], datetime] = utcnow,
        max_workers: int = ANALYTICS_MAX_WORKERS,
        window_days: int = DEFAULT_WINDOW_DAYS,
    ):
        self.store = store
        self.clock = clock
        self.max_workers = max(1, max_workers)
        self.window_days = window_days

    # ----- helpers -----
    def _gather(self, **queries: Callable[[], object]) -> Dict[str, object]:
        """Run independent read queries concurrently and collect by name."""
        results: Dict[str, object] = {}
        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = {executor.submit(fn): name for name, fn in queries.items()}
            for future in as_completed(futures):
                results[futures[future]] = future.result()
        return results

    def _resolve(self, from_: DateInput, to: DateInput, now: datetime) -> DateRange:
        return resolve_date_range(from_, to, now=now, window_days=self.window_days)

    def _require_workspace(self, workspace_id: str) -> str:
        workspace_id = validate_id(workspace_id, "workspace id")
        if not self.store.workspace_exists(workspace_id):
            raise NotFoundError("Workspace not found")
        return workspace_id

    def _require_project(self, workspace_id: str, project_id: str) -> Project:
        project_id = validate_id(project_id, "project id")
        project = self.store.get_project(project_id)
        if project is None or project.workspace_id != workspace_id:
            raise NotFoundError("Project not found")
        return project

    # ----- Public API -----
    def workspace_analytics(self, workspace_id: str) -> Dict:
        workspace_id = self._require_workspace(workspace_id)
        stats = task_status_rollup(self.store.find_tasks(workspace_id), self.clock())
        return {
            "analytics": {
                "total_tasks": stats["total_tasks"],
                "overdue_tasks": stats["overdue_tasks"],
                "completed_tasks": stats["done_tasks"],
            }
        }

    def project_analytics(self, workspace_id: str, project_id: str) -> Dict:
        workspace_id = self._require_workspace(workspace_id)
        project = self._require_project(workspace_id, project_id)
        tasks = self.store.find_tasks(workspace_id, project_id=project.id)
        stats = task_status_rollup(tasks, self.clock())
        return {
            "project": project.summary(),
            "analytics": {
                "total_tasks": stats["total_tasks"],
                "overdue_tasks": stats["overdue_tasks"],
                "completed_tasks": stats["done_tasks"],
            },
        }

    def workspace_progress_summary(
        self,
        workspace_id: str,
        from_: DateInput = None,
        to: DateInput = None,
        project_id: Optional[str] = None,
    ) -> Dict:
        workspace_id = self._require_workspace(workspace_id)
        if project_id is not None:
            project_id = self._require_project(workspace_id, project_id).id

        now = self.clock()
        window = self._resolve(from_, to, now)

        data = self._gather(
            projects=lambda: self.store.find_projects(workspace_id, project_id),
            tasks=lambda: self.store.find_tasks(workspace_id, project_id=project_id),
            logs=lambda: self.store.query_work_logs(
                workspace_id, window.start, window.end, project_id=project_id
            ),
            members=lambda: self.store.list_members(workspace_id),
        )
        projects, tasks = data["projects"], data["tasks"]
        logs, members = data["logs"], data["members"]

        logger.info(
            f"📊 Progress summary for workspace {workspace_id}: "
            f"{len(tasks)} tasks, {len(logs)} work logs in window"
        )

        return {
            "date_range": window.to_dict(),
            "project_stats": project_rollup(projects, tasks),
            "client_stats": client_rollup(projects),
            "task_stats": task_status_rollup(tasks, now),
            "employee_stats": employee_rollup(members, tasks, logs, window),
        }

    def employee_progress(
        self,
        workspace_id: str,
        user_id: str,
        from_: DateInput = None,
        to: DateInput = None,
    ) -> Dict:
        workspace_id = self._require_workspace(workspace_id)
        user_id = validate_id(user_id, "user id")
        window = self._resolve(from_, to, self.clock())

        data = self._gather(
            members=lambda: self.store.list_members(workspace_id),
            assigned=lambda: self.store.find_tasks(workspace_id, assigned_to=user_id),
            logs=lambda: self.store.query_work_logs(
                workspace_id, window.start, window.end, user_id=user_id
            ),
            projects=lambda: self.store.find_projects(workspace_id),
            tasks=lambda: self.store.find_tasks(workspace_id),
        )

        member = next((m for m in data["members"] if m.user_id == user_id), None)
        if member is None:
            raise NotFoundError("Member not found in the workspace")

        project_map = {p.id: p for p in data["projects"]}
        task_map = {t.id: t for t in data["tasks"]}
        assigned: List[Task] = data["assigned"]
        logs: List[WorkLogEntry] = data["logs"]

        counts = assignment_counts(assigned).get(user_id, {})
        totals = work_log_totals(logs, window)

        work_logs = []
        for entry in logs:
            task = task_map.get(entry.task_id)
            project = project_map.get(task.project_id) if task else None
            work_logs.append(describe_work_log(entry, task, project))
        work_logs.sort(key=lambda r: r["activity_at"], reverse=True)

        return {
            "date_range": window.to_dict(),
            "employee": {
                "user_id": user_id,
                "name": member.name or "Unknown",
                **_employee_row(counts, totals),
            },
            "tasks": [describe_task(t, project_map.get(t.project_id)) for t in assigned],
            "work_logs": work_logs,
        }
