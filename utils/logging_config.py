"""
Logging configuration for Prompt Practice.

Outputs:
- Console on stderr (colored when attached to a terminal)
- Rotating text log
- JSON lines log carrying attempt context (attempt_id, lab_id, ...)
- Error-only log

Context fields live in a ContextVar, so each asyncio task created inside a
LogContext keeps its own attempt fields.
"""

import functools
import inspect
import json
import logging
import logging.handlers
import sys
import time
import traceback
from contextvars import ContextVar
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

LOGGER_NAME = "prompt_practice"
LOGGER_TREES = (LOGGER_NAME, "utils")
CONSOLE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
FILE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(module)s:%(lineno)d | %(message)s"

_log_context: ContextVar[Dict[str, Any]] = ContextVar("prompt_practice_log_context", default={})


def current_context() -> Dict[str, Any]:
    """Fields attached by the enclosing LogContext blocks."""
    return dict(_log_context.get())


class ContextFilter(logging.Filter):
    """Copies the active LogContext fields onto each record as ``record.context``."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.context = current_context()
        return True


class JsonLineFormatter(logging.Formatter):
    """One JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc)
            .isoformat()
            .replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "where": f"{record.module}:{record.funcName}:{record.lineno}",
        }
        context = getattr(record, "context", None)
        if context:
            entry["context"] = context
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "traceback": traceback.format_exception(*record.exc_info),
            }
        return json.dumps(entry, default=str)


class ColoredFormatter(logging.Formatter):
    """Level name colored with ANSI escapes."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def formatMessage(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname)
        if not color:
            return super().formatMessage(record)
        original = record.levelname
        record.levelname = f"{color}{original}{self.RESET}"
        try:
            return super().formatMessage(record)
        finally:
            record.levelname = original


def _rotating(
    path: Path, level: int, formatter: logging.Formatter, max_bytes: int, backup_count: int
) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(
        path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
    )
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def setup_logging(
    level: str = "INFO",
    log_dir: Optional[Path] = None,
    console: bool = True,
    json_logs: bool = True,
    max_bytes: int = 10 * 1024 * 1024,
    backup_count: int = 5,
) -> logging.Logger:
    """
    Configure the ``prompt_practice`` and ``utils`` logger trees.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR).
        log_dir: Directory for the log files; no files when None.
        console: Log to stderr so command output on stdout stays parseable.
        json_logs: Also write ``prompt_practice.json.log``.
        max_bytes: Rotation size per file.
        backup_count: Rotated files kept per log.

    Returns:
        The ``prompt_practice`` logger.
    """
    handlers: List[logging.Handler] = []

    if console:
        stream = logging.StreamHandler(sys.stderr)
        stream.setLevel(logging.DEBUG)
        formatter_cls = ColoredFormatter if sys.stderr.isatty() else logging.Formatter
        stream.setFormatter(formatter_cls(CONSOLE_FORMAT, datefmt="%H:%M:%S"))
        handlers.append(stream)

    if log_dir is not None:
        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        handlers.append(
            _rotating(
                log_dir / "prompt_practice.log",
                logging.DEBUG,
                logging.Formatter(FILE_FORMAT),
                max_bytes,
                backup_count,
            )
        )
        if json_logs:
            handlers.append(
                _rotating(
                    log_dir / "prompt_practice.json.log",
                    logging.DEBUG,
                    JsonLineFormatter(),
                    max_bytes,
                    backup_count,
                )
            )
        handlers.append(
            _rotating(
                log_dir / "prompt_practice.error.log",
                logging.ERROR,
                logging.Formatter(FILE_FORMAT + "\n---"),
                max_bytes,
                backup_count,
            )
        )

    context_filter = ContextFilter()
    for handler in handlers:
        handler.addFilter(context_filter)

    numeric_level = getattr(logging, level.upper(), logging.INFO)
    for name in LOGGER_TREES:
        tree = logging.getLogger(name)
        tree.setLevel(numeric_level)
        tree.handlers.clear()
        for handler in handlers:
            tree.addHandler(handler)
        tree.propagate = False

    return logging.getLogger(LOGGER_NAME)


class LogContext:
    """
    Attach structured fields to every record logged inside the block.

    Usage:
        with LogContext(attempt_id=attempt.attempt_id, lab_id=attempt.lab_id):
            ...
    """

    def __init__(self, **fields: Any):
        self.fields = fields
        self._token = None

    def __enter__(self) -> "LogContext":
        self._token = _log_context.set({**_log_context.get(), **self.fields})
        return self

    def __exit__(self, *exc_info: Any) -> None:
        _log_context.reset(self._token)


def log_performance(logger: Optional[logging.Logger] = None):
    """Log the duration of a sync or async function at DEBUG, failures at ERROR."""

    def decorator(func):
        log = logger or logging.getLogger(func.__module__)

        def _done(start: float) -> float:
            return (time.perf_counter() - start) * 1000

        if inspect.iscoroutinefunction(func):

            @functools.wraps(func)
            async def async_wrapper(*args, **kwargs):
                start = time.perf_counter()
                try:
                    result = await func(*args, **kwargs)
                except Exception as e:
                    log.error(f"{func.__name__} failed after {_done(start):.1f}ms: {e}", exc_info=True)
                    raise
                log.debug(f"{func.__name__} completed in {_done(start):.1f}ms")
                return result

            return async_wrapper

        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            start = time.perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                log.error(f"{func.__name__} failed after {_done(start):.1f}ms: {e}", exc_info=True)
                raise
            log.debug(f"{func.__name__} completed in {_done(start):.1f}ms")
            return result

        return wrapper

    return decorator
