import logging

from fastmcp import FastMCP

from tasktime import config
from tasktime.analytics import ProgressAnalytics
from tasktime.logging_config import setup_logging
from tasktime.mcp.progress_tools import register_progress_tools
from tasktime.mcp.timer_tools import register_timer_tools
from tasktime.postgres_db import PostgresStore
from tasktime.store import TaskStore
from tasktime.timer import TimerEngine

logger = logging.getLogger("mcp")


def build_server(store: TaskStore) -> FastMCP:
    mcp = FastMCP(
        name="Task Time MCP Server",
        instructions="Start/stop task timers and read workspace, project and employee progress analytics.",
    )

    # Register tools from different categories
    register_timer_tools(mcp, TimerEngine(store))
    register_progress_tools(mcp, ProgressAnalytics(store))
    return mcp


def main():
    setup_logging()
    config.validate_config()

    store = PostgresStore(config.DATABASE_URL)
    store.init_schema()

    mcp = build_server(store)
    logger.info(f"🚀 MCP Server starting on http://{config.API_HOST}:{config.MCP_PORT}")
    mcp.run(transport="sse", host=config.API_HOST, port=config.MCP_PORT)


if __name__ == "__main__":
    main()
