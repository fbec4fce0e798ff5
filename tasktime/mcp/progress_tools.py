"""
Progress analytics tools for the MCP server.
Dates are ISO strings (YYYY-MM-DD or full timestamps). Missing or unparseable
dates fall back to the last 30 days instead of failing.
"""

from typing import Optional

from fastapi.encoders import jsonable_encoder
from fastmcp import FastMCP

from tasktime.analytics import ProgressAnalytics
from tasktime.errors import AppError
from tasktime.task_types import list_task_types
from tasktime.time_tracking import format_duration_minutes, to_display_tz


def register_progress_tools(mcp: FastMCP, analytics: ProgressAnalytics):
    @mcp.tool()
    def list_task_type_catalog() -> dict:
        """Task types that can be attached to a task (code + name)."""
        return {"items": list_task_types()}

    @mcp.tool()
    def get_workspace_analytics(workspace_id: str) -> dict:
        """Total, overdue and completed task counts for a workspace."""
        try:
            return analytics.workspace_analytics(workspace_id)
        except AppError as e:
            return {"error": e.message, "code": e.code}

    @mcp.tool()
    def get_project_analytics(workspace_id: str, project_id: str) -> dict:
        """Total, overdue and completed task counts for one project."""
        try:
            return analytics.project_analytics(workspace_id, project_id)
        except AppError as e:
            return {"error": e.message, "code": e.code}

    @mcp.tool()
    def get_workspace_progress_summary(
        workspace_id: str,
        from_date: Optional[str] = None,
        to_date: Optional[str] = None,
        project_id: Optional[str] = None,
    ) -> dict:
        """
        Workspace progress over a date window.

        Returns project stats (active/completed), client distribution,
        task status counts and one row per workspace member with assigned,
        done and pending counts plus minutes, hours and pages logged in the
        window.
        """
        try:
            summary = analytics.workspace_progress_summary(
                workspace_id, from_=from_date, to=to_date, project_id=project_id
            )
        except AppError as e:
            return {"error": e.message, "code": e.code}

        for row in summary["employee_stats"]:
            row["human_logged"] = format_duration_minutes(row["total_minutes"])
        return jsonable_encoder(summary)

    @mcp.tool()
    def get_employee_progress(
        workspace_id: str,
        user_id: str,
        from_date: Optional[str] = None,
        to_date: Optional[str] = None,
    ) -> dict:
        """
        One employee's progress: counts, time logged, their assigned tasks and
        every work log in the window (newest first). Each log also carries
        activity_at_local, the same instant in the display timezone.
        """
        try:
            progress = analytics.employee_progress(
                workspace_id, user_id, from_=from_date, to=to_date
            )
        except AppError as e:
            return {"error": e.message, "code": e.code}

        employee = progress["employee"]
        employee["human_logged"] = format_duration_minutes(employee["total_minutes"])
        for log in progress["work_logs"]:
            log["activity_at_local"] = to_display_tz(log["activity_at"])
        return jsonable_encoder(progress)
