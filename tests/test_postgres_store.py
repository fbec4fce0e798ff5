from dataclasses import asdict
from datetime import timedelta

import psycopg2
import pytest
from fastapi.testclient import TestClient
from fastmcp import FastMCP

from tasktime import config, postgres_db
from tasktime.errors import ConflictError, InternalError, NotFoundError
from tasktime.main import create_app
from tasktime.mcp import mcp_server
from tasktime.models import WorkLogEntry
from tasktime.postgres_db import SCHEMA_SQL, WORK_LOG_COLS, PostgresStore
from tasktime.timer import TimerEngine

from conftest import T0, make_task

DSN = "postgresql://tasktime@localhost/tasktime"


class FakeCursor:
    def __init__(self, database):
        self.database = database
        self.rowcount = -1
        self._rows = []

    def execute(self, sql, params=None):
        self.database.statements.append((" ".join(sql.split()), params))
        for fragment, exc in self.database.failures.items():
            if fragment in sql:
                raise exc
        if sql.lstrip().startswith("UPDATE"):
            self.rowcount = self.database.update_rowcount
        else:
            self._rows = list(self.database.rows)

    def fetchone(self):
        return self._rows[0] if self._rows else None

    def fetchall(self):
        return list(self._rows)


class FakeConnection:
    def __init__(self, database):
        self.database = database
        self.commits = 0
        self.rollbacks = 0
        self.closed = False

    def cursor(self, cursor_factory=None):
        return FakeCursor(self.database)

    def commit(self):
        self.commits += 1

    def rollback(self):
        self.rollbacks += 1

    def close(self):
        self.closed = True


class FakeDatabase:
    """Stands in for psycopg2.connect; every SELECT returns `rows`."""

    def __init__(self):
        self.rows = []
        self.update_rowcount = 1
        self.failures = {}
        self.statements = []
        self.connections = []

    def connect(self, dsn):
        conn = FakeConnection(self)
        self.connections.append(conn)
        return conn

    def sql(self, index):
        return self.statements[index][0]

    def params(self, index):
        return self.statements[index][1]


@pytest.fixture
def database(monkeypatch):
    db = FakeDatabase()
    monkeypatch.setattr(postgres_db.psycopg2, "connect", db.connect)
    return db


@pytest.fixture
def running_task_row():
    task = make_task(
        "t1",
        assigned_to="u1",
        is_running=True,
        first_started_at=T0,
        active_start_at=T0,
        version=4,
    )
    return asdict(task)


@pytest.fixture
def pg_timer(clock):
    return TimerEngine(PostgresStore(DSN), clock=clock)


# =================================================
# Timer transactions
# =================================================
def test_stop_commits_log_and_task_together(database, running_task_row, pg_timer, clock):
    database.rows = [running_task_row]
    clock.advance(seconds=125)

    snap = pg_timer.stop("t1", "u1", pages_completed=3)

    assert snap.total_seconds_spent == 125
    assert "FOR UPDATE" in database.sql(0)
    assert database.sql(1).startswith("INSERT INTO task_work_logs")
    assert database.params(1)["duration_minutes"] == 2
    assert database.params(1)["pages_completed"] == 3
    assert database.sql(2).startswith("UPDATE tasks SET")
    assert "WHERE id=%(id)s AND version=%(version)s" in database.sql(2)
    assert database.params(2)["version"] == 4
    assert database.params(2)["is_running"] is False
    assert database.params(2)["active_start_at"] is None

    conn = database.connections[-1]
    assert (conn.commits, conn.rollbacks, conn.closed) == (1, 0, True)


def test_lost_version_race_rolls_back(database, running_task_row, pg_timer, clock):
    database.rows = [running_task_row]
    database.update_rowcount = 0
    clock.advance(minutes=5)

    with pytest.raises(ConflictError):
        pg_timer.stop("t1", "u1")

    conn = database.connections[-1]
    assert conn.commits == 0
    assert conn.rollbacks == 1
    assert conn.closed is True


def test_failed_log_insert_is_wrapped_and_rolled_back(database, running_task_row, pg_timer, clock):
    database.rows = [running_task_row]
    database.failures["INSERT INTO task_work_logs"] = psycopg2.IntegrityError("duplicate key")
    clock.advance(minutes=5)

    with pytest.raises(InternalError):
        pg_timer.stop("t1", "u1")

    conn = database.connections[-1]
    assert (conn.commits, conn.rollbacks) == (0, 1)
    assert not any(sql.startswith("UPDATE") for sql, _ in database.statements)


def test_start_on_running_task_writes_nothing(database, running_task_row, pg_timer):
    database.rows = [running_task_row]

    with pytest.raises(ConflictError):
        pg_timer.start("t1", "u1")

    assert len(database.statements) == 1
    assert database.connections[-1].rollbacks == 1


def test_missing_task_in_transaction(database, pg_timer):
    with pytest.raises(NotFoundError):
        pg_timer.start("t1", "u1")
    assert database.connections[-1].rollbacks == 1


# =================================================
# Connection handling
# =================================================
def test_unreachable_database(monkeypatch):
    def refuse(dsn):
        raise psycopg2.OperationalError("connection refused")

    monkeypatch.setattr(postgres_db.psycopg2, "connect", refuse)

    with pytest.raises(InternalError, match="unavailable"):
        PostgresStore(DSN).get_task("t1")


def test_missing_dsn_never_connects(database):
    with pytest.raises(InternalError):
        PostgresStore(None).get_task("t1")
    assert database.connections == []


def test_init_schema_runs_every_statement(database):
    PostgresStore(DSN).init_schema()

    assert len(database.statements) == len(SCHEMA_SQL)
    assert database.connections[-1].commits == 1


# =================================================
# Reads and row mapping
# =================================================
def test_work_log_query_filters_on_activity_window(database):
    stopped = T0 + timedelta(minutes=30)
    database.rows = [
        {
            "id": "l1",
            "task_id": "t1",
            "user_id": "u1",
            "started_at": T0,
            "stopped_at": stopped,
            "duration_minutes": 30,
            "pages_completed": None,
            "remarks": "keyed",
            "created_at": stopped,
        }
    ]
    start, end = T0 - timedelta(days=30), T0 + timedelta(days=1)

    logs = PostgresStore(DSN).query_work_logs("ws1", start, end, user_id="u1", project_id="p1")

    sql = database.sql(0)
    assert "COALESCE(l.stopped_at, l.started_at) BETWEEN %s AND %s" in sql
    assert "l.user_id = %s" in sql and "t.project_id = %s" in sql
    assert database.params(0) == ["ws1", start, end, "u1", "p1"]
    assert logs == [WorkLogEntry(**{c: database.rows[0][c] for c in WORK_LOG_COLS})]
    assert logs[0].activity_at == stopped


def test_task_rows_map_to_tasks(database, running_task_row):
    database.rows = [running_task_row]
    task = PostgresStore(DSN).get_task("t1")
    assert task == make_task(
        "t1", assigned_to="u1", is_running=True,
        first_started_at=T0, active_start_at=T0, version=4,
    )


def test_member_rows_keep_missing_names(database):
    database.rows = [{"user_id": "u1", "workspace_id": "ws1", "role": "member", "name": None}]
    members = PostgresStore(DSN).list_members("ws1")
    assert members[0].user_id == "u1"
    assert members[0].name is None


# =================================================
# Startup wiring
# =================================================
def test_api_startup_creates_schema(database, monkeypatch):
    monkeypatch.setattr(config, "DATABASE_URL", DSN)

    with TestClient(create_app()) as client:
        assert client.get("/task-types").status_code == 200

    executed = [sql for sql, _ in database.statements]
    assert any("CREATE TABLE IF NOT EXISTS tasks" in sql for sql in executed)


def test_mcp_startup_creates_schema(database, monkeypatch):
    monkeypatch.setattr(config, "DATABASE_URL", DSN)
    runs = []
    monkeypatch.setattr(FastMCP, "run", lambda self, **kwargs: runs.append(kwargs))

    mcp_server.main()

    assert runs and runs[0]["transport"] == "sse"
    executed = [sql for sql, _ in database.statements]
    assert any("CREATE TABLE IF NOT EXISTS task_work_logs" in sql for sql in executed)
