"""
Logging setup for OfflineTube.

Production output is one JSON object per line; development output is colored
text with the task id appended when a record carries one.
"""

import json
import logging
import logging.config
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from .settings import settings

APP_LOGGER = "offlinetube"

# Third-party loggers routed through our handlers, with their own level
THIRD_PARTY_LEVELS = {
    "uvicorn": "INFO",
    "uvicorn.access": "INFO",
    "uvicorn.error": "INFO",
    "aiohttp.client": "WARNING",
    "asyncio": "WARNING",
}

# Attributes every LogRecord carries; anything else came in through ``extra``.
_RECORD_ATTRS = frozenset(
    logging.LogRecord("", 0, "", 0, "", (), None).__dict__
) | {"message", "asctime", "taskName"}

_COLORS = {
    "DEBUG": "\033[36m",
    "INFO": "\033[32m",
    "WARNING": "\033[33m",
    "ERROR": "\033[31m",
    "CRITICAL": "\033[35m",
}
_RESET = "\033[0m"


def _extra_fields(record: logging.LogRecord) -> Dict[str, Any]:
    return {key: value for key, value in record.__dict__.items() if key not in _RECORD_ATTRS}


class JSONFormatter(logging.Formatter):
    """One JSON object per record; ``extra`` fields are merged in at top level."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        entry.update(_extra_fields(record))
        return json.dumps(entry, default=str)


class ColoredFormatter(logging.Formatter):
    """Human-readable formatter for development terminals."""

    def format(self, record: logging.LogRecord) -> str:
        # Copy so handlers sharing the record keep the plain level name
        record = logging.makeLogRecord(record.__dict__)
        color = _COLORS.get(record.levelname)
        if color:
            record.levelname = f"{color}{record.levelname}{_RESET}"

        text = super().format(record)
        task_id = getattr(record, "task_id", None)
        if task_id:
            text = f"{text} [task={task_id}]"
        return text


def _formatters() -> Dict[str, Any]:
    return {
        "colored": {
            "()": ColoredFormatter,
            "format": settings.LOG_FORMAT,
            "datefmt": "%Y-%m-%d %H:%M:%S",
        },
        "json": {"()": JSONFormatter},
    }


def _handlers(log_level: str, log_file: Optional[Path], json_format: bool) -> Dict[str, Any]:
    handlers: Dict[str, Any] = {
        "console": {
            "class": "logging.StreamHandler",
            "level": log_level,
            "formatter": "json" if json_format else "colored",
            "stream": sys.stdout,
        }
    }
    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers["file"] = {
            "class": "logging.handlers.RotatingFileHandler",
            "level": log_level,
            "formatter": "json",
            "filename": str(log_file),
            "maxBytes": 10 * 1024 * 1024,
            "backupCount": 5,
            "encoding": "utf-8",
        }
    return handlers


def _loggers(log_level: str, handler_names: List[str]) -> Dict[str, Any]:
    loggers = {
        APP_LOGGER: {"level": log_level, "handlers": list(handler_names), "propagate": False},
    }
    for name, level in THIRD_PARTY_LEVELS.items():
        loggers[name] = {"level": level, "handlers": list(handler_names), "propagate": False}
    return loggers


def setup_logging(
    log_level: Optional[str] = None,
    log_file: Optional[Path] = None,
    json_format: Optional[bool] = None
) -> None:
    """
    Configure the ``offlinetube`` logger tree and the third-party loggers.

    Args:
        log_level: Level name; defaults to ``LOG_LEVEL``
        log_file: Optional rotating JSON log file; defaults to ``LOG_FILE``
        json_format: JSON console output; defaults to on in production
    """
    log_level = log_level or settings.LOG_LEVEL.value
    log_file = log_file or settings.LOG_FILE
    if json_format is None:
        json_format = settings.is_production

    handlers = _handlers(log_level, log_file, json_format)
    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": _formatters(),
        "handlers": handlers,
        "loggers": _loggers(log_level, list(handlers)),
        "root": {"level": log_level, "handlers": list(handlers)},
    })

    get_logger(__name__).debug(
        "Logging configured",
        extra={
            "log_level": log_level,
            "json_format": json_format,
            "log_file": str(log_file) if log_file else None,
            "environment": settings.ENVIRONMENT.value,
        }
    )


def get_logger(name: str) -> logging.Logger:
    """Logger for ``name``; module loggers live under ``offlinetube``."""
    return logging.getLogger(name)
