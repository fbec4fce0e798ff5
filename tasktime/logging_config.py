import logging
import sys
from datetime import datetime, timezone
from zoneinfo import ZoneInfo

from tasktime.config import DISPLAY_TIMEZONE


class DisplayZoneFormatter(logging.Formatter):
    """Render record timestamps in the configured display timezone."""

    def __init__(self, fmt=None, datefmt=None, tz_name: str = DISPLAY_TIMEZONE):
        super().__init__(fmt, datefmt)
        self.tz = ZoneInfo(tz_name)

    def formatTime(self, record, datefmt=None):
        ts = datetime.fromtimestamp(record.created, tz=timezone.utc).astimezone(
            self.tz
        )
        return ts.strftime(datefmt or "%H:%M:%S")


def setup_logging(level: int = logging.INFO):
    formatter = DisplayZoneFormatter(
        "%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        "%H:%M:%S",
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    logging.basicConfig(
        level=level,
        handlers=[handler],
        force=True,
    )
