"""
Structured logging for the data layer.

- RefreshIdFilter stamps every record with the id of the refresh in progress.
  The id lives in a context variable, and asyncio.to_thread copies context,
  so lines logged by the store's writer thread carry it too.
- JSONFormatter for machine-read logs, ColoredFormatter for a terminal.
- configure_logging() wires one handler on the root logger.
"""
import json
import logging
import sys
from contextvars import ContextVar, Token
from datetime import datetime, timezone
from typing import Any, Iterable

# Id of the refresh currently running, empty outside a refresh
refresh_id_var: ContextVar[str] = ContextVar("refresh_id", default="")

# Attributes every LogRecord has; anything else came in through `extra=`
_STANDARD_RECORD_KEYS = set(
    logging.LogRecord("", logging.INFO, "", 0, "", None, None).__dict__
) | {"message", "asctime", "refresh_id"}

NOISY_LOGGERS = ("httpx", "httpcore", "apscheduler", "sqlalchemy.engine")


class RefreshIdFilter(logging.Filter):
    """Attach `refresh_id` to each record passing through a handler."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.refresh_id = refresh_id_var.get()
        return True


class JSONFormatter(logging.Formatter):
    """
    One JSON object per line.

    Fields: timestamp (UTC, ISO 8601), level, logger, message, refresh_id,
    thread and task names, exception (if any) and extra (values passed via
    `extra=`).
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "refresh_id": getattr(record, "refresh_id", refresh_id_var.get()),
            "thread": record.threadName,
        }
        task_name = getattr(record, "taskName", None)
        if task_name:
            log_data["task"] = task_name

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        extra = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _STANDARD_RECORD_KEYS
        }
        if extra:
            log_data["extra"] = extra

        return json.dumps(log_data, default=str)


class ColoredFormatter(logging.Formatter):
    """Human-readable console lines, level colored, refresh id appended."""

    LEVEL_COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelname, "")
        clock = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        line = f"{clock} {color}{record.levelname:<8}{self.RESET} {record.name}: {record.getMessage()}"

        refresh_id = getattr(record, "refresh_id", refresh_id_var.get())
        if refresh_id:
            line += f" [refresh {refresh_id}]"

        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)

        return line


def configure_logging(
    level: str = "INFO",
    json_output: bool = True,
    handler: logging.Handler | None = None,
    quiet_loggers: Iterable[str] = NOISY_LOGGERS,
) -> None:
    """
    Route all logging through a single root handler.

    Args:
        level: Root level name; unknown names fall back to INFO
        json_output: JSONFormatter when True, ColoredFormatter otherwise
        handler: Handler to install, stdout stream handler by default
        quiet_loggers: Third-party loggers capped at WARNING
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(log_level)

    if handler is None:
        handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter() if json_output else ColoredFormatter())
    handler.addFilter(RefreshIdFilter())
    root_logger.addHandler(handler)

    for name in quiet_loggers:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def set_refresh_id(refresh_id: str) -> Token:
    """
    Mark the current context as belonging to a refresh.

    Returns:
        Token for clear_refresh_id
    """
    return refresh_id_var.set(refresh_id)


def get_refresh_id() -> str:
    """The current refresh id, or an empty string outside a refresh."""
    return refresh_id_var.get()


def clear_refresh_id(token: Token) -> None:
    """Restore the refresh id that was current before set_refresh_id."""
    refresh_id_var.reset(token)
