"""
JSONL logging utility for teamwork.

This module provides JSONL (JSON Lines) logging with a structured format.
Each log entry is a single JSON object on its own line. Library modules only
call ``logging.getLogger(__name__)``; handlers are installed by entry points
through ``setup_logging``.
"""

import json
import logging
import os
import sys
import time
from datetime import datetime
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from typing import Any, Optional

from ..config.settings import LoggingSettings

ROOT_LOGGER = "teamwork"

TEXT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class JSONLFormatter(logging.Formatter):
    """Custom JSONL formatter for structured logging."""

    def __init__(self, service: Optional[str] = None):
        super().__init__()
        self.service = service

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSONL entry."""
        log_entry = {
            "ts": self.formatTime(record, "%Y-%m-%dT%H:%M:%S%z"),
            "level": record.levelname,
            "service": self.service or "teamwork",
            "logger": record.name,
            "owner": getattr(record, "owner", None),
            "msg": record.getMessage(),
        }

        if getattr(record, "error", None):
            log_entry["error"] = record.error

        if getattr(record, "context", None):
            log_entry["context"] = record.context

        # Structured fields passed as extra={"json_data": {...}}
        if getattr(record, "json_data", None):
            log_entry.update(record.json_data)

        if record.exc_info:
            log_entry["stack"] = self.formatException(record.exc_info)

        log_entry["file"] = record.filename
        log_entry["line"] = record.lineno
        if record.funcName:
            log_entry["func"] = record.funcName

        return json.dumps(log_entry, ensure_ascii=False, default=str)


class JSONLHandler(TimedRotatingFileHandler):
    """Daily rotating file handler with JSONL formatting."""

    def __init__(
        self,
        log_dir: Path,
        service: str = "teamwork",
        level: int = logging.INFO,
        backup_count: int = 30,
    ):
        service_dir = Path(log_dir) / service
        service_dir.mkdir(parents=True, exist_ok=True)
        log_file = service_dir / f"{service}.jsonl"

        super().__init__(
            filename=str(log_file),
            when="midnight",
            interval=1,
            backupCount=backup_count,
            encoding="utf-8",
        )
        self.setFormatter(JSONLFormatter(service=service))
        self.setLevel(level)

    def doRollover(self) -> None:
        """Rotate to a YYYY-MM-DD.jsonl file next to the active log."""
        if self.stream:
            self.stream.close()
            self.stream = None

        if self.backupCount > 0:
            base_path = Path(self.baseFilename)
            date_str = datetime.fromtimestamp(int(time.time())).strftime("%Y-%m-%d")
            new_filename = base_path.parent / f"{date_str}.jsonl"
            if os.path.exists(self.baseFilename):
                os.replace(self.baseFilename, str(new_filename))

        if not self.delay:
            self.stream = self._open()


def setup_logging(settings: Optional[LoggingSettings] = None) -> logging.Logger:
    """
    Configure the ``teamwork`` logger hierarchy.

    Text format logs to stderr. JSON format logs JSONL lines to stderr, or to
    a daily rotating file when ``settings.log_dir`` is set.

    Args:
        settings: Logging settings (defaults when None)

    Returns:
        The configured root ``teamwork`` logger
    """
    settings = settings or LoggingSettings()
    level = getattr(logging, settings.level)

    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(level)

    # Clear any existing handlers to avoid duplicates
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    handler: logging.Handler
    if settings.format == "json" and settings.log_dir is not None:
        handler = JSONLHandler(
            settings.log_dir, level=level, backup_count=settings.backup_count
        )
    else:
        handler = logging.StreamHandler(sys.stderr)
        handler.setLevel(level)
        if settings.format == "json":
            handler.setFormatter(JSONLFormatter())
        else:
            handler.setFormatter(logging.Formatter(TEXT_FORMAT))
    logger.addHandler(handler)

    logger.propagate = False
    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a logger below the ``teamwork`` hierarchy."""
    if name == ROOT_LOGGER or name.startswith(f"{ROOT_LOGGER}."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")


def log_with_context(
    logger: logging.Logger,
    level: int,
    message: str,
    owner: Optional[str] = None,
    error: Optional[str] = None,
    context: Optional[dict[str, Any]] = None,
    **kwargs: Any,
) -> None:
    """
    Log a message with structured context.

    Args:
        logger: Logger instance
        level: Log level (e.g., logging.INFO, logging.ERROR)
        message: Log message
        owner: Worker or owner id the event concerns
        error: Error message (for error logs)
        context: Additional context dictionary
        **kwargs: Additional fields to include in the JSON entry
    """
    extra: dict[str, Any] = {}
    if owner:
        extra["owner"] = owner
    if error:
        extra["error"] = error
    if context:
        extra["context"] = context
    if kwargs:
        extra["json_data"] = kwargs

    logger.log(level, message, extra=extra)
