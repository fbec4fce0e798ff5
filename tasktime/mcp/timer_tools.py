# tasktime/mcp/timer_tools.py
# Timer tools: read, start and stop a task timer on behalf of a user.

from typing import Optional

from fastapi.encoders import jsonable_encoder
from fastmcp import FastMCP

from tasktime.errors import AppError
from tasktime.timer import TimerEngine, snapshot_payload


def register_timer_tools(mcp: FastMCP, timer: TimerEngine):
    @mcp.tool()
    def get_task_timer(task_id: str) -> dict:
        """
        Current timer state of a task.
        live_elapsed_seconds is computed at call time for running timers.
        """
        try:
            return jsonable_encoder({"timer": snapshot_payload(timer.snapshot(task_id))})
        except AppError as e:
            return {"error": e.message, "code": e.code}

    @mcp.tool()
    def start_task_timer(task_id: str, user_id: str) -> dict:
        """Start the timer on a task. Fails if it is already running."""
        try:
            snapshot = timer.start(task_id, user_id)
            return jsonable_encoder({"timer": snapshot_payload(snapshot)})
        except AppError as e:
            return {"error": e.message, "code": e.code}

    @mcp.tool()
    def stop_task_timer(
        task_id: str,
        user_id: str,
        pages_completed: Optional[int] = None,
        remarks: Optional[str] = None,
    ) -> dict:
        """
        Stop a running timer and record the session as a work log.

        Args:
            task_id: Task whose timer is running
            user_id: User the session is credited to
            pages_completed: Pages finished in this session (optional)
            remarks: Free-text note for the session (optional)
        """
        try:
            snapshot = timer.stop(
                task_id, user_id, pages_completed=pages_completed, remarks=remarks
            )
            return jsonable_encoder({"timer": snapshot_payload(snapshot)})
        except AppError as e:
            return {"error": e.message, "code": e.code}
