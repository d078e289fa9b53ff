"""
Structured logging for leadsync

Every module logs through a child of the ``leadsync`` logger, so one call to
setup_logger() decides format and level for the whole run. Row-level
failures carry ``row_number``, ``address`` and ``item_id`` in ``extra`` for
manual remediation.
"""
import logging
import os
import sys
import time
from contextlib import contextmanager
from typing import IO, Iterator

from pythonjsonlogger import jsonlogger

ROOT_LOGGER_NAME = "leadsync"

TEXT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(threadName)s] %(message)s"
JSON_FORMAT = "%(timestamp)s %(level)s %(logger)s %(thread)s %(message)s"


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """
    JSON formatter emitting timestamp, level, logger and worker thread name
    next to the message and any ``extra`` fields.
    """

    def add_fields(self, log_record: dict, record: logging.LogRecord, message_dict: dict) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = self.formatTime(record, self.datefmt)
        log_record["level"] = record.levelname
        log_record["logger"] = record.name
        # rows run on "leadsync-row_N" pool threads
        log_record["thread"] = record.threadName


def _resolve_level(level: str | None) -> int:
    name = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    value = logging.getLevelName(name)
    return value if isinstance(value, int) else logging.INFO


def setup_logger(
    name: str = ROOT_LOGGER_NAME,
    level: str | None = None,
    format_type: str | None = None,
    stream: IO[str] | None = None,
) -> logging.Logger:
    """
    Setup and configure a logger

    Args:
        name: Logger name
        level: Log level name (defaults to env var LOG_LEVEL, then INFO)
        format_type: "json" or "text" (defaults to env var LOG_FORMAT, then json)
        stream: Output stream (defaults to stdout)

    Returns:
        Configured logger instance
    """
    log_level = _resolve_level(level)
    format_type = format_type or os.getenv("LOG_FORMAT", "json")

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setLevel(log_level)
    if format_type == "json":
        handler.setFormatter(CustomJsonFormatter(JSON_FORMAT, datefmt="%Y-%m-%dT%H:%M:%S"))
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))

    logger = logging.getLogger(name)
    logger.setLevel(log_level)
    logger.handlers.clear()
    logger.addHandler(handler)
    logger.propagate = False
    return logger


def get_logger(name: str = ROOT_LOGGER_NAME) -> logging.Logger:
    """
    Get a logger instance

    The ``leadsync`` logger is configured on first use; module loggers are its
    children and inherit its handler.
    """
    if not logging.getLogger(ROOT_LOGGER_NAME).handlers:
        setup_logger(ROOT_LOGGER_NAME)
    return logging.getLogger(name)


@contextmanager
def log_operation(operation_name: str, logger: logging.Logger | None = None, **extra_fields) -> Iterator[None]:
    """
    Log the start, completion or failure of an operation with its duration.

    Usage:
        with log_operation("Processing file", logger=logger, file="leads.csv"):
            ...
    """
    logger = logger or get_logger()
    context = {"operation": operation_name, **extra_fields}
    started = time.monotonic()
    logger.info(f"Starting: {operation_name}", extra=context)
    try:
        yield
    except Exception as e:
        logger.error(
            f"Failed: {operation_name}",
            extra={
                **context,
                "duration_seconds": round(time.monotonic() - started, 3),
                "status": "error",
                "error_type": type(e).__name__,
                "error_message": str(e),
            },
            exc_info=True,
        )
        raise
    logger.info(
        f"Completed: {operation_name}",
        extra={**context, "duration_seconds": round(time.monotonic() - started, 3), "status": "success"},
    )
