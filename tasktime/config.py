import os
from dotenv import load_dotenv

# Load variables from .env into environment
load_dotenv()

# =========================
# DATABASE CONFIG (PostgreSQL)
# =========================
DATABASE_URL = os.getenv("DATABASE_URL")

# =========================
# ANALYTICS CONFIG
# =========================
DEFAULT_WINDOW_DAYS = int(os.getenv("DEFAULT_WINDOW_DAYS", "30"))
ANALYTICS_MAX_WORKERS = int(os.getenv("ANALYTICS_MAX_WORKERS", "4"))

# Timestamps are stored in UTC; this zone is only used for log lines and
# human readable renderings.
DISPLAY_TIMEZONE = os.getenv("DISPLAY_TIMEZONE", "Asia/Kolkata")

# =========================
# SERVER CONFIG
# =========================
API_HOST = os.getenv("API_HOST", "0.0.0.0")
API_PORT = int(os.getenv("API_PORT", "8000"))
MCP_PORT = int(os.getenv("MCP_PORT", "8001"))


# =========================
# VALIDATION (FAIL FAST)
# =========================
def validate_config():
    """Raise if the settings needed by the PostgreSQL backend are missing."""
    missing = []

    if not DATABASE_URL:
        missing.append("DATABASE_URL")

    if DEFAULT_WINDOW_DAYS < 1:
        missing.append("DEFAULT_WINDOW_DAYS (must be >= 1)")

    if missing:
        raise RuntimeError(
            f"Missing required environment variables: {', '.join(missing)}"
        )
