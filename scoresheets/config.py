from __future__ import annotations

import logging
import os
import sys

# Persisted file next to the package unless overridden
DB_PATH = os.environ.get(
    "SCORESHEETS_DB_PATH",
    os.path.join(os.path.dirname(__file__), "judging.sqlite"),
)

LOG_LEVEL = os.environ.get("SCORESHEETS_LOG_LEVEL", "INFO").upper()

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str = None) -> None:
    """Send package logs to stdout. Safe to call more than once."""
    logger = logging.getLogger("scoresheets")
    has_stdout_handler = any(
        isinstance(h, logging.StreamHandler) and getattr(h, "stream", None) is sys.stdout
        for h in logger.handlers
    )
    if not has_stdout_handler:
        handler = logging.StreamHandler(stream=sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
    logger.setLevel(getattr(logging, (level or LOG_LEVEL), logging.INFO))
