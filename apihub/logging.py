"""Application logging configuration utilities."""

from __future__ import annotations

import contextvars
import json
import logging
import os
import pathlib
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from typing import Any, Dict

_LOG_CONFIGURED = False
_REQUEST_ID_CTX: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "request_id", default=None
)

BASE_DIR = pathlib.Path(__file__).resolve().parent.parent

# Fields the dashboard logs alongside every site interaction.
_CONSOLE_FIELDS = ("site", "operation", "status_code", "error_message")


class RequestContextFilter(logging.Filter):
    """Inject request-scoped values into log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = _REQUEST_ID_CTX.get()
        return True


class JsonFormatter(logging.Formatter):
    """Serialize log records as JSON lines, keeping structured ``extra`` fields."""

    _RESERVED = {
        "args",
        "asctime",
        "created",
        "exc_info",
        "exc_text",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "message",
        "module",
        "msecs",
        "msg",
        "name",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "taskName",
        "thread",
        "threadName",
    }

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for key, value in record.__dict__.items():
            if key in self._RESERVED or key.startswith("_") or value is None:
                continue
            payload[key] = value

        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)

        return json.dumps(payload, ensure_ascii=True, default=str)


class ConsoleFormatter(logging.Formatter):
    """Human-readable lines with the site context appended when present."""

    def __init__(self) -> None:
        super().__init__("%(asctime)s %(levelname)s [%(name)s] %(message)s")

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = [
            f"{field}={getattr(record, field)}"
            for field in _CONSOLE_FIELDS
            if getattr(record, field, None) is not None
        ]
        request_id = getattr(record, "request_id", None)
        if request_id:
            context.append(f"request_id={request_id}")
        return f"{line} ({', '.join(context)})" if context else line


def set_request_id(request_id: str | None) -> contextvars.Token[str | None]:
    """Bind the current request ID to the logging context."""
    return _REQUEST_ID_CTX.set(request_id)


def reset_request_id(token: contextvars.Token[str | None]) -> None:
    _REQUEST_ID_CTX.reset(token)


def get_request_id() -> str | None:
    return _REQUEST_ID_CTX.get()


def _log_file_path() -> pathlib.Path | None:
    configured = os.getenv("LOG_FILE", "logs/apihub.jsonl")
    if not configured:
        return None
    path = pathlib.Path(configured)
    if not path.is_absolute():
        path = BASE_DIR.parent / path
    path.parent.mkdir(parents=True, exist_ok=True)
    return path


def configure_logging() -> None:
    """Configure global logging once: console at LOG_LEVEL, JSON lines to LOG_FILE."""
    global _LOG_CONFIGURED
    if _LOG_CONFIGURED:
        return

    console_level_name = os.getenv("LOG_LEVEL", "WARNING").upper()
    console_level = getattr(logging, console_level_name, logging.WARNING)

    root_logger = logging.getLogger()
    root_logger.setLevel(min(console_level, logging.INFO))

    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)

    context_filter = RequestContextFilter()

    console_handler = logging.StreamHandler()
    console_handler.setLevel(console_level)
    console_handler.addFilter(context_filter)
    console_handler.setFormatter(ConsoleFormatter())
    root_logger.addHandler(console_handler)

    log_path = _log_file_path()
    if log_path is not None:
        file_handler = RotatingFileHandler(log_path, maxBytes=10_000_000, backupCount=5)
        file_handler.setLevel(logging.INFO)
        file_handler.addFilter(context_filter)
        file_handler.setFormatter(JsonFormatter())
        root_logger.addHandler(file_handler)

    # Per-request httpx lines would duplicate the adapter's own site logs.
    logging.getLogger("uvicorn").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    _LOG_CONFIGURED = True


__all__ = [
    "ConsoleFormatter",
    "JsonFormatter",
    "configure_logging",
    "get_request_id",
    "reset_request_id",
    "set_request_id",
]
