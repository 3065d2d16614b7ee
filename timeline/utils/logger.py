"""Logging setup"""

import contextvars
import logging
import sys
from typing import Optional

# Populated by the HTTP middleware for the duration of a request
request_id_var: contextvars.ContextVar[str] = contextvars.ContextVar("request_id", default="-")

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] [req:%(request_id)s] %(message)s"


class RequestIdFilter(logging.Filter):
    """Attach the current request id to every record"""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get()
        return True


def setup_logging(level: Optional[str] = None):
    """
    Configure root logging once for the application

    Args:
        level: Log level name (default: settings.LOG_LEVEL)
    """
    if level is None:
        from timeline.config import get_settings
        level = get_settings().LOG_LEVEL

    root = logging.getLogger()
    root.setLevel(level.upper())

    for handler in root.handlers:
        if getattr(handler, "_timeline_handler", False):
            return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler.addFilter(RequestIdFilter())
    handler._timeline_handler = True
    root.addHandler(handler)

    # Keep third-party clients quiet unless debugging
    for noisy in ("httpx", "httpcore", "openai", "apscheduler"):
        logging.getLogger(noisy).setLevel(logging.WARNING)
