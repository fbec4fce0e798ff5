"""
PostgreSQL Database Layer (Direct connection via psycopg2)
"""

import logging
from contextlib import contextmanager
from datetime import datetime
from typing import List, Optional

import psycopg2
from psycopg2.extras import RealDictCursor

from tasktime.errors import ConflictError, InternalError, NotFoundError
from tasktime.models import Member, Project, Task, WorkLogEntry
from tasktime.store import TaskStore, TimerTransaction

logger = logging.getLogger("db")


# -----------------------------------------------------------------------------
# Schema
# -----------------------------------------------------------------------------
SCHEMA_SQL = [
    """
    CREATE TABLE IF NOT EXISTS workspaces (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS users (
        id TEXT PRIMARY KEY,
        name TEXT,
        email TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS workspace_members (
        workspace_id TEXT NOT NULL REFERENCES workspaces(id) ON DELETE CASCADE,
        user_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
        role TEXT,
        joined_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        PRIMARY KEY (workspace_id, user_id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS projects (
        id TEXT PRIMARY KEY,
        workspace_id TEXT NOT NULL REFERENCES workspaces(id) ON DELETE CASCADE,
        name TEXT NOT NULL,
        emoji TEXT NOT NULL DEFAULT '📊',
        client_id TEXT,
        client_name TEXT,
        project_code TEXT,
        total_chapters INTEGER CHECK (total_chapters IS NULL OR total_chapters >= 1)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS tasks (
        id TEXT PRIMARY KEY,
        code TEXT UNIQUE NOT NULL,
        title TEXT NOT NULL,
        description TEXT,
        task_type_code TEXT,
        task_type_name TEXT,
        chapter TEXT,
        page_range TEXT,
        project_id TEXT NOT NULL REFERENCES projects(id),
        workspace_id TEXT NOT NULL REFERENCES workspaces(id),
        status TEXT NOT NULL DEFAULT 'TODO',
        priority TEXT NOT NULL DEFAULT 'MEDIUM',
        assigned_to TEXT REFERENCES users(id),
        created_by TEXT NOT NULL,
        due_date TIMESTAMPTZ,
        first_started_at TIMESTAMPTZ,
        active_start_at TIMESTAMPTZ,
        is_running BOOLEAN NOT NULL DEFAULT FALSE,
        last_stopped_at TIMESTAMPTZ,
        total_seconds_spent INTEGER NOT NULL DEFAULT 0,
        total_minutes_spent INTEGER NOT NULL DEFAULT 0,
        pages_completed INTEGER,
        remarks TEXT,
        version INTEGER NOT NULL DEFAULT 0,
        CHECK (is_running = (active_start_at IS NOT NULL))
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS task_work_logs (
        id TEXT PRIMARY KEY,
        task_id TEXT NOT NULL REFERENCES tasks(id),
        user_id TEXT NOT NULL,
        started_at TIMESTAMPTZ NOT NULL,
        stopped_at TIMESTAMPTZ NOT NULL,
        duration_minutes INTEGER NOT NULL CHECK (duration_minutes >= 1),
        pages_completed INTEGER,
        remarks TEXT,
        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        CHECK (stopped_at >= started_at)
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_tasks_workspace ON tasks(workspace_id)",
    "CREATE INDEX IF NOT EXISTS idx_tasks_assignee ON tasks(assigned_to)",
    "CREATE INDEX IF NOT EXISTS idx_work_logs_task ON task_work_logs(task_id)",
    "CREATE INDEX IF NOT EXISTS idx_work_logs_user ON task_work_logs(user_id)",
    "CREATE INDEX IF NOT EXISTS idx_work_logs_stopped ON task_work_logs(stopped_at)",
]

TASK_COLS = [
    "id",
    "code",
    "title",
    "description",
    "task_type_code",
    "task_type_name",
    "chapter",
    "page_range",
    "project_id",
    "workspace_id",
    "status",
    "priority",
    "assigned_to",
    "created_by",
    "due_date",
    "first_started_at",
    "active_start_at",
    "is_running",
    "last_stopped_at",
    "total_seconds_spent",
    "total_minutes_spent",
    "pages_completed",
    "remarks",
    "version",
]

TIMER_COLS = [
    "first_started_at",
    "active_start_at",
    "is_running",
    "last_stopped_at",
    "total_seconds_spent",
    "total_minutes_spent",
    "pages_completed",
    "remarks",
]

WORK_LOG_COLS = [
    "id",
    "task_id",
    "user_id",
    "started_at",
    "stopped_at",
    "duration_minutes",
    "pages_completed",
    "remarks",
    "created_at",
]

PROJECT_COLS = [
    "id",
    "workspace_id",
    "name",
    "client_id",
    "client_name",
    "project_code",
    "total_chapters",
    "emoji",
]

_TASK_SELECT = f"SELECT {', '.join(TASK_COLS)} FROM tasks"
_PROJECT_SELECT = f"SELECT {', '.join(PROJECT_COLS)} FROM projects"


def _row_to_task(row) -> Task:
    return Task(**{c: row[c] for c in TASK_COLS})


def _row_to_project(row) -> Project:
    return Project(**{c: row[c] for c in PROJECT_COLS})


def _row_to_work_log(row) -> WorkLogEntry:
    return WorkLogEntry(**{c: row[c] for c in WORK_LOG_COLS})


# -----------------------------------------------------------------------------
# Timer transaction
# -----------------------------------------------------------------------------
class PostgresTimerTransaction(TimerTransaction):
    def __init__(self, cur, task: Task):
        self.cur = cur
        self.task = task

    def save_task(self, task: Task) -> None:
        assignments = ", ".join(f"{c}=%({c})s" for c in TIMER_COLS)
        params = {c: getattr(task, c) for c in TIMER_COLS}
        params["id"] = task.id
        params["version"] = task.version
        self.cur.execute(
            f"UPDATE tasks SET {assignments}, version=version+1 "
            "WHERE id=%(id)s AND version=%(version)s",
            params,
        )
        if self.cur.rowcount != 1:
            raise ConflictError("task was modified concurrently")

    def append_work_log(self, entry: WorkLogEntry) -> None:
        placeholders = ", ".join(f"%({c})s" for c in WORK_LOG_COLS)
        self.cur.execute(
            f"INSERT INTO task_work_logs ({', '.join(WORK_LOG_COLS)}) "
            f"VALUES ({placeholders})",
            {c: getattr(entry, c) for c in WORK_LOG_COLS},
        )


# -----------------------------------------------------------------------------
# Store
# -----------------------------------------------------------------------------
class PostgresStore(TaskStore):
    def __init__(self, dsn: Optional[str]):
        self.dsn = dsn

    # -------------------------------------------------
    # Connection Helper
    # -------------------------------------------------
    @contextmanager
    def db(self):
        """Database connection context manager with auto-commit."""
        if not self.dsn:
            raise InternalError("DATABASE_URL is not configured")
        try:
            conn = psycopg2.connect(self.dsn)
        except psycopg2.Error as e:
            logger.error("❌ Could not connect to PostgreSQL", exc_info=True)
            raise InternalError("database unavailable") from e

        try:
            yield conn.cursor(cursor_factory=RealDictCursor)
            conn.commit()
        except psycopg2.Error as e:
            conn.rollback()
            logger.error("❌ Database operation failed", exc_info=True)
            raise InternalError("database operation failed") from e
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def init_schema(self):
        with self.db() as cur:
            for statement in SCHEMA_SQL:
                cur.execute(statement)
        logger.info("✅ Schema ready")

    # -------------------------------------------------
    # Timer writes
    # -------------------------------------------------
    @contextmanager
    def timer_transaction(self, task_id: str):
        with self.db() as cur:
            # row lock held until commit/rollback serializes transitions per task
            cur.execute(f"{_TASK_SELECT} WHERE id = %s FOR UPDATE", (task_id,))
            row = cur.fetchone()
            if not row:
                raise NotFoundError("Task not found")
            yield PostgresTimerTransaction(cur, _row_to_task(row))

    # -------------------------------------------------
    # Reads
    # -------------------------------------------------
    def workspace_exists(self, workspace_id: str) -> bool:
        with self.db() as cur:
            cur.execute("SELECT 1 FROM workspaces WHERE id = %s", (workspace_id,))
            return cur.fetchone() is not None

    def get_task(self, task_id: str) -> Optional[Task]:
        with self.db() as cur:
            cur.execute(f"{_TASK_SELECT} WHERE id = %s", (task_id,))
            row = cur.fetchone()
            return _row_to_task(row) if row else None

    def find_tasks(
        self,
        workspace_id: str,
        project_id: Optional[str] = None,
        assigned_to: Optional[str] = None,
    ) -> List[Task]:
        clauses, params = ["workspace_id = %s"], [workspace_id]
        if project_id is not None:
            clauses.append("project_id = %s")
            params.append(project_id)
        if assigned_to is not None:
            clauses.append("assigned_to = %s")
            params.append(assigned_to)

        with self.db() as cur:
            cur.execute(f"{_TASK_SELECT} WHERE {' AND '.join(clauses)}", params)
            return [_row_to_task(r) for r in cur.fetchall()]

    def query_work_logs(
        self,
        workspace_id: str,
        start: datetime,
        end: datetime,
        user_id: Optional[str] = None,
        project_id: Optional[str] = None,
    ) -> List[WorkLogEntry]:
        cols = ", ".join(f"l.{c}" for c in WORK_LOG_COLS)
        clauses = [
            "t.workspace_id = %s",
            "COALESCE(l.stopped_at, l.started_at) BETWEEN %s AND %s",
        ]
        params = [workspace_id, start, end]
        if user_id is not None:
            clauses.append("l.user_id = %s")
            params.append(user_id)
        if project_id is not None:
            clauses.append("t.project_id = %s")
            params.append(project_id)

        with self.db() as cur:
            cur.execute(
                f"""SELECT {cols}
                    FROM task_work_logs l
                    JOIN tasks t ON t.id = l.task_id
                    WHERE {' AND '.join(clauses)}""",
                params,
            )
            return [_row_to_work_log(r) for r in cur.fetchall()]

    def find_projects(
        self, workspace_id: str, project_id: Optional[str] = None
    ) -> List[Project]:
        with self.db() as cur:
            if project_id is None:
                cur.execute(f"{_PROJECT_SELECT} WHERE workspace_id = %s", (workspace_id,))
            else:
                cur.execute(
                    f"{_PROJECT_SELECT} WHERE workspace_id = %s AND id = %s",
                    (workspace_id, project_id),
                )
            return [_row_to_project(r) for r in cur.fetchall()]

    def get_project(self, project_id: str) -> Optional[Project]:
        with self.db() as cur:
            cur.execute(f"{_PROJECT_SELECT} WHERE id = %s", (project_id,))
            row = cur.fetchone()
            return _row_to_project(row) if row else None

    def list_members(self, workspace_id: str) -> List[Member]:
        with self.db() as cur:
            cur.execute(
                """SELECT m.user_id, m.workspace_id, m.role, u.name
                   FROM workspace_members m
                   LEFT JOIN users u ON u.id = m.user_id
                   WHERE m.workspace_id = %s
                   ORDER BY m.joined_at""",
                (workspace_id,),
            )
            return [
                Member(
                    user_id=r["user_id"],
                    workspace_id=r["workspace_id"],
                    name=r["name"],
                    role=r["role"],
                )
                for r in cur.fetchall()
            ]
