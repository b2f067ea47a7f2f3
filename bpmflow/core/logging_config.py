"""Logging setup for the API process and the scheduler loop.

Engine log calls carry the ids they act on through ``extra=log_context(...)``.
Outside development every record is one JSON object per line with those ids
as top-level keys; in development they are appended to the text line as
``[process_id=... activity_id=...]``.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone

CONTEXT_FIELDS = ("process_id", "activity_id", "step_id")

_DEV_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"
_QUIET_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "httpx", "httpcore")


def log_context(**ids: object) -> dict[str, str]:
    """``extra`` payload for engine log calls. Unknown keys and None values are dropped."""
    return {key: str(value) for key, value in ids.items() if key in CONTEXT_FIELDS and value is not None}


def _record_context(record: logging.LogRecord) -> dict[str, str]:
    return {key: getattr(record, key) for key in CONTEXT_FIELDS if hasattr(record, key)}


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **_record_context(record),
        }
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str, ensure_ascii=False)


class ContextTextFormatter(logging.Formatter):
    """Human-readable lines with the engine ids appended."""

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = _record_context(record)
        if not context:
            return line
        pairs = " ".join(f"{key}={value}" for key, value in context.items())
        return f"{line} [{pairs}]"


def configure_logging(environment: str = "development", level: str = "INFO") -> None:
    """Install a single stdout handler on the root logger.

    Called from the application lifespan before anything else logs.
    """
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    # uvicorn installs its own handlers before the lifespan runs
    for existing in root.handlers[:]:
        root.removeHandler(existing)

    handler = logging.StreamHandler(sys.stdout)
    if environment == "development":
        handler.setFormatter(ContextTextFormatter(_DEV_FORMAT, datefmt="%H:%M:%S"))
    else:
        handler.setFormatter(JSONFormatter())
    root.addHandler(handler)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
