"""
FastAPI Application - Task Timers & Progress Analytics
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Callable, Optional

from fastapi import FastAPI, Header, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from tasktime import config
from tasktime.analytics import ProgressAnalytics
from tasktime.errors import AppError, InvalidInputError
from tasktime.logging_config import setup_logging
from tasktime.models import utcnow
from tasktime.postgres_db import PostgresStore
from tasktime.store import TaskStore
from tasktime.task_types import list_task_types
from tasktime.timer import TimerEngine, snapshot_payload

logger = logging.getLogger("api")


class StopTimerRequest(BaseModel):
    pages_completed: Optional[int] = None
    remarks: Optional[str] = None


def create_app(
    store: Optional[TaskStore] = None,
    clock: Callable[[], datetime] = utcnow,
) -> FastAPI:
    uses_database = store is None
    if store is None:
        store = PostgresStore(config.DATABASE_URL)

    timer = TimerEngine(store, clock=clock)
    analytics = ProgressAnalytics(store, clock=clock)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        setup_logging()
        if uses_database:
            config.validate_config()
            store.init_schema()
        logger.info("🚀 Task time API ready")
        yield

    app = FastAPI(title="Task Time Tracking API", lifespan=lifespan)
    app.state.store = store
    app.state.timer = timer
    app.state.analytics = analytics

    # -------------------------------------------------
    # Error mapping
    # -------------------------------------------------
    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        if exc.status_code >= 500:
            logger.error(f"❌ {request.method} {request.url.path}: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        first = exc.errors()[0] if exc.errors() else {}
        field = ".".join(str(p) for p in first.get("loc", []) if p != "body")
        message = f"{field}: {first.get('msg', 'invalid value')}" if field else "invalid request"
        err = InvalidInputError(message)
        return JSONResponse(status_code=err.status_code, content=err.to_dict())

    # -------------------------------------------------
    # Task Types
    # -------------------------------------------------
    @app.get("/task-types", tags=["Task Types"])
    def get_task_types():
        """Static catalog of task types."""
        return {"items": list_task_types()}

    # -------------------------------------------------
    # Timers
    # -------------------------------------------------
    @app.get("/tasks/{task_id}/timer", tags=["Timer"])
    def get_timer(task_id: str):
        """Current timer state with live elapsed time derived on read."""
        return {"timer": snapshot_payload(timer.snapshot(task_id))}

    @app.post("/tasks/{task_id}/timer/start", tags=["Timer"])
    def start_timer(task_id: str, x_user_id: str = Header(...)):
        """Start the timer on a task."""
        snapshot = timer.start(task_id, x_user_id)
        return {"message": "Timer started", "timer": snapshot_payload(snapshot)}

    @app.post("/tasks/{task_id}/timer/stop", tags=["Timer"])
    def stop_timer(
        task_id: str,
        body: Optional[StopTimerRequest] = None,
        x_user_id: str = Header(...),
    ):
        """Stop the timer on a task and record the closed session."""
        body = body or StopTimerRequest()
        snapshot = timer.stop(
            task_id,
            x_user_id,
            pages_completed=body.pages_completed,
            remarks=body.remarks,
        )
        return {"message": "Timer stopped", "timer": snapshot_payload(snapshot)}

    # -------------------------------------------------
    # Analytics
    # -------------------------------------------------
    @app.get("/workspace/{workspace_id}/analytics", tags=["Analytics"])
    def workspace_analytics(workspace_id: str):
        """Total, overdue and completed task counts for a workspace."""
        return analytics.workspace_analytics(workspace_id)

    @app.get("/project/{project_id}/workspace/{workspace_id}/analytics", tags=["Analytics"])
    def project_analytics(project_id: str, workspace_id: str):
        """Total, overdue and completed task counts for a project."""
        return analytics.project_analytics(workspace_id, project_id)

    @app.get("/workspace/{workspace_id}/progress-summary", tags=["Analytics"])
    def progress_summary(
        workspace_id: str,
        from_: Optional[str] = Query(None, alias="from"),
        to: Optional[str] = None,
        project_id: Optional[str] = None,
    ):
        """Project, client, task and employee rollups over a date window."""
        return analytics.workspace_progress_summary(
            workspace_id, from_=from_, to=to, project_id=project_id
        )

    @app.get("/workspace/{workspace_id}/progress/employee/{user_id}", tags=["Analytics"])
    def employee_progress(
        workspace_id: str,
        user_id: str,
        from_: Optional[str] = Query(None, alias="from"),
        to: Optional[str] = None,
    ):
        """One employee's numbers plus their tasks and work logs in the window."""
        return analytics.employee_progress(workspace_id, user_id, from_=from_, to=to)

    return app


def run():
    import uvicorn

    uvicorn.run(
        "tasktime.main:create_app",
        factory=True,
        host=config.API_HOST,
        port=config.API_PORT,
    )


if __name__ == "__main__":
    run()
