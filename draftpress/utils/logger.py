"""Structured JSON logging for draftpress.

Components attach request and publish context through ``extra=``; the file
handler writes those fields as top-level JSON keys so a single publish can be
followed by ``draft_id`` across the orchestrator, rehosters and publishers.
"""

from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler

from draftpress.config import LoggingSettings

EXTRA_FIELDS = (
    "endpoint",
    "method",
    "status_code",
    "response_time",
    "tenant_id",
    "draft_id",
    "delivery_method",
    "error_kind",
)

CONSOLE_FORMAT = "%(asctime)s [%(name)s] %(levelname)s: %(message)s"


class JSONFormatter(logging.Formatter):
    """One JSON object per record, with any publish context fields present."""

    def format(self, record):
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "thread": record.threadName,
            "message": record.getMessage(),
        }
        entry.update(
            (name, getattr(record, name)) for name in EXTRA_FIELDS if hasattr(record, name)
        )
        if record.exc_info and record.exc_info[0]:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def _is_draftpress_handler(handler: logging.Handler) -> bool:
    return getattr(handler, "draftpress", False)


def setup_logging(settings: LoggingSettings | None = None) -> logging.Logger:
    """Attach the console and rotating JSON file handlers to the root logger.

    Calling it again is a no-op, so scripts and tests can both call it.
    """
    settings = settings or LoggingSettings()
    root_logger = logging.getLogger()
    if any(_is_draftpress_handler(h) for h in root_logger.handlers):
        return root_logger

    os.makedirs(settings.dir, exist_ok=True)
    root_logger.setLevel(getattr(logging, settings.level.upper(), logging.INFO))

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))

    file_handler = RotatingFileHandler(
        os.path.join(settings.dir, settings.file),
        maxBytes=settings.max_bytes,
        backupCount=settings.backup_count,
        encoding="utf-8",
    )
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(JSONFormatter())

    for handler in (console_handler, file_handler):
        handler.draftpress = True
        root_logger.addHandler(handler)

    for name in settings.quiet_loggers:
        logging.getLogger(name).setLevel(logging.WARNING)

    return root_logger
