"""Debug log setup.

Every module logs through a child of the ``superbecks`` logger, which appends
``<utc-iso> <logger> <event key=value ...>`` lines to the debug log file.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path

from superbecks.config import DEBUG_LOG_PATH

_ROOT_LOGGER_NAME = "superbecks"


class _UtcIsoFormatter(logging.Formatter):
    def formatTime(self, record: logging.LogRecord, datefmt: str | None = None) -> str:
        return datetime.fromtimestamp(record.created, timezone.utc).isoformat()


def _build_handler(path: str) -> logging.Handler:
    try:
        log_file = Path(path)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handler: logging.Handler = logging.FileHandler(log_file, encoding="utf-8")
    except OSError:
        # Logging must never interfere with app flow.
        return logging.NullHandler()
    handler.setFormatter(_UtcIsoFormatter("%(asctime)s %(name)s %(message)s"))
    return handler


def get_logger(name: str | None = None) -> logging.Logger:
    """Return the package logger (or a child of it), configuring it once."""
    root = logging.getLogger(_ROOT_LOGGER_NAME)
    if not root.handlers:
        root.setLevel(logging.DEBUG)
        root.addHandler(_build_handler(DEBUG_LOG_PATH))
        root.propagate = False
    if not name:
        return root
    return root.getChild(name)
