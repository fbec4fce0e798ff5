"""
Task Timer Engine

Two states per task, STOPPED (initial) and RUNNING:
    start  STOPPED -> RUNNING
    stop   RUNNING -> STOPPED  (appends one work-log row)

There is no pause: pausing is a stop followed by a later start, which is why
a task accumulates several work-log rows. Live elapsed time is never stored,
it is derived on every read as `now - active_start_at`.
"""

import logging
import math
from dataclasses import asdict, replace
from datetime import datetime
from typing import Callable, Optional

from tasktime.errors import ConflictError, InvalidInputError, NotFoundError
from tasktime.models import Task, TimerSnapshot, WorkLogEntry, new_id, utcnow
from tasktime.store import TaskStore
from tasktime.time_tracking import (
    format_seconds_to_clock,
    session_duration_minutes,
    session_seconds,
    total_minutes_from_seconds,
)

logger = logging.getLogger("timer")

MAX_ID_LENGTH = 64
MAX_REMARKS_LENGTH = 2000


# -------------------------------------------------
# Input validation
# -------------------------------------------------
def validate_id(value, label: str) -> str:
    if not isinstance(value, str):
        raise InvalidInputError(f"{label} must be a string")
    value = value.strip()
    if not value or len(value) > MAX_ID_LENGTH or any(c.isspace() for c in value):
        raise InvalidInputError(f"Invalid {label}")
    return value


def validate_pages(pages) -> Optional[int]:
    if pages is None:
        return None
    # bool is an int subclass, reject it explicitly
    if isinstance(pages, bool):
        raise InvalidInputError("pages_completed must be a whole number")
    if isinstance(pages, float):
        if not math.isfinite(pages) or not pages.is_integer():
            raise InvalidInputError("pages_completed must be a whole number")
        pages = int(pages)
    if not isinstance(pages, int):
        raise InvalidInputError("pages_completed must be a whole number")
    if pages < 0:
        raise InvalidInputError("pages_completed cannot be negative")
    return pages


def validate_remarks(remarks) -> Optional[str]:
    if remarks is None:
        return None
    if not isinstance(remarks, str):
        raise InvalidInputError("remarks must be text")
    remarks = remarks.strip()
    if len(remarks) > MAX_REMARKS_LENGTH:
        raise InvalidInputError(
            f"remarks cannot exceed {MAX_REMARKS_LENGTH} characters"
        )
    return remarks or None


# -------------------------------------------------
# Snapshots
# -------------------------------------------------
def live_elapsed_seconds(task: Task, now: datetime) -> int:
    if not task.is_running or task.active_start_at is None:
        return 0
    return session_seconds(task.active_start_at, now)


def build_snapshot(
    task: Task, now: datetime, work_log: Optional[WorkLogEntry] = None
) -> TimerSnapshot:
    return TimerSnapshot(
        task_id=task.id,
        is_running=task.is_running,
        first_started_at=task.first_started_at,
        active_start_at=task.active_start_at,
        last_stopped_at=task.last_stopped_at,
        total_seconds_spent=task.total_seconds_spent,
        total_minutes_spent=task.total_minutes_spent,
        pages_completed=task.pages_completed,
        remarks=task.remarks,
        live_elapsed_seconds=live_elapsed_seconds(task, now),
        work_log=work_log,
    )


def snapshot_payload(snapshot: TimerSnapshot) -> dict:
    """Plain dict view used by the transports, with clock renderings added."""
    payload = asdict(snapshot)
    payload["live_elapsed_clock"] = format_seconds_to_clock(
        snapshot.live_elapsed_seconds
    )
    payload["total_clock"] = format_seconds_to_clock(snapshot.total_seconds_spent)
    return payload


class TimerEngine:
    """
    Owns the start/stop protocol. Serialization per task is delegated to the
    store's `timer_transaction`, which also makes the stop's log append and
    task update commit together.
    """

    def __init__(self, store: TaskStore, clock: Callable[[], datetime] = utcnow):
        self.store = store
        self.clock = clock

    # ----- Public API -----
    def snapshot(self, task_id: str) -> TimerSnapshot:
        task_id = validate_id(task_id, "task id")
        task = self.store.get_task(task_id)
        if task is None:
            raise NotFoundError("Task not found")
        return build_snapshot(task, self.clock())

    def start(self, task_id: str, actor_id: str) -> TimerSnapshot:
        task_id = validate_id(task_id, "task id")
        actor_id = validate_id(actor_id, "user id")

        with self.store.timer_transaction(task_id) as tx:
            task = tx.task
            if task.is_running:
                logger.warning(f"⚠️ Start rejected, task {task_id} already running")
                raise ConflictError("timer already running")

            now = self.clock()
            updated = replace(
                task,
                active_start_at=now,
                is_running=True,
                first_started_at=task.first_started_at or now,
            )
            tx.save_task(updated)

        logger.info(f"▶️ Timer started on task {task_id} by {actor_id}")
        return build_snapshot(updated, now)

    def stop(
        self,
        task_id: str,
        actor_id: str,
        pages_completed: Optional[int] = None,
        remarks: Optional[str] = None,
    ) -> TimerSnapshot:
        task_id = validate_id(task_id, "task id")
        actor_id = validate_id(actor_id, "user id")
        pages_completed = validate_pages(pages_completed)
        remarks = validate_remarks(remarks)

        with self.store.timer_transaction(task_id) as tx:
            task = tx.task
            if not task.is_running or task.active_start_at is None:
                logger.warning(f"⚠️ Stop rejected, task {task_id} not running")
                raise ConflictError("timer not running")

            now = self.clock()
            started_at = task.active_start_at
            stopped_at = max(now, started_at)
            duration = session_seconds(started_at, stopped_at)

            entry = WorkLogEntry(
                id=new_id(),
                task_id=task.id,
                user_id=actor_id,
                started_at=started_at,
                stopped_at=stopped_at,
                duration_minutes=session_duration_minutes(duration),
                pages_completed=pages_completed,
                remarks=remarks,
                created_at=now,
            )
            tx.append_work_log(entry)

            total_seconds = task.total_seconds_spent + duration
            updated = replace(
                task,
                total_seconds_spent=total_seconds,
                total_minutes_spent=total_minutes_from_seconds(total_seconds),
                last_stopped_at=stopped_at,
                active_start_at=None,
                is_running=False,
                pages_completed=(
                    pages_completed
                    if pages_completed is not None
                    else task.pages_completed
                ),
                remarks=remarks if remarks is not None else task.remarks,
            )
            tx.save_task(updated)

        logger.info(
            f"⏹️ Timer stopped on task {task_id} by {actor_id} "
            f"({duration}s, {entry.duration_minutes} min logged)"
        )
        return build_snapshot(updated, now, work_log=entry)
