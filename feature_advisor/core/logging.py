"""
Run-Scoped Logging
==================

Logging helpers for analysis runs. Every record emitted while a run is active
carries the run id and the current stage/feature context, so a single report
can be traced back through the scanner, scorer, ranker and planner output.

Two output shapes are supported:
- console lines with a ``[run] [stage] [feature]`` prefix
- JSON lines (one object per record) for files or log shippers
"""

import contextvars
import functools
import json
import logging
import sys
import time
import traceback
import uuid
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, TypeVar

from .exceptions import get_error_code

_run_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "feature_advisor_run_id", default=None
)
_context: contextvars.ContextVar[dict[str, Any]] = contextvars.ContextVar(
    "feature_advisor_log_context", default={}
)

T = TypeVar("T")

# Record attributes promoted to top-level keys in JSON output
PROMOTED_ATTRIBUTES = ("stage", "feature", "duration_ms", "error_code", "blocker")

# Console prefix order; only keys present in the context are shown
CONSOLE_CONTEXT_KEYS = ("stage", "feature")

LEVEL_COLORS = {
    "DEBUG": "\033[36m",
    "INFO": "\033[32m",
    "WARNING": "\033[33m",
    "ERROR": "\033[31m",
    "CRITICAL": "\033[35m",
}
RESET = "\033[0m"


def _exception_payload(exc_info) -> dict[str, Any]:
    exc_type, exc_value, _ = exc_info
    return {
        "type": exc_type.__name__ if exc_type else None,
        "message": str(exc_value) if exc_value else None,
        "traceback": "".join(traceback.format_exception(*exc_info)),
    }


class StructuredFormatter(logging.Formatter):
    """One JSON object per record, with run id and context attached."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if run_id := _run_id.get():
            entry["run_id"] = run_id
        if context := _context.get():
            entry["context"] = dict(context)
        entry.update(
            {key: getattr(record, key) for key in PROMOTED_ATTRIBUTES if hasattr(record, key)}
        )
        if record.exc_info:
            entry["exception"] = _exception_payload(record.exc_info)
        entry["location"] = f"{record.filename}:{record.lineno}"
        return json.dumps(entry, default=str)


class ConsoleFormatter(logging.Formatter):
    """Colored single-line output for terminals."""

    def __init__(self, use_color: bool = True):
        super().__init__()
        self.use_color = use_color

    def _prefix(self) -> str:
        tags = []
        if run_id := _run_id.get():
            tags.append(run_id[:8])
        context = _context.get()
        tags.extend(str(context[key]) for key in CONSOLE_CONTEXT_KEYS if context.get(key))
        return "".join(f" [{tag}]" for tag in tags)

    def format(self, record: logging.LogRecord) -> str:
        level = f"{record.levelname:8}"
        if self.use_color and record.levelname in LEVEL_COLORS:
            level = f"{LEVEL_COLORS[record.levelname]}{level}{RESET}"

        message = record.getMessage()
        duration = getattr(record, "duration_ms", None)
        if duration is not None:
            message = f"{message} ({duration:.1f}ms)"
        if record.exc_info and not self.use_color:
            message = f"{message}\n{self.formatException(record.exc_info)}"
        return f"{level}{self._prefix()} {record.name}: {message}"


def get_logger(name: str) -> logging.Logger:
    """Module logger; call as ``get_logger(__name__)``."""
    return logging.getLogger(name)


def configure_logging(
    level: int | str = logging.INFO,
    structured: bool = False,
    log_file: str | Path | None = None,
) -> None:
    """
    Install advisor handlers on the ``feature_advisor`` logger.

    Handlers installed by an earlier call are replaced, so calling this twice
    does not duplicate output.

    Args:
        level: Minimum level (name or number)
        structured: Write JSON lines to stderr instead of console lines
        log_file: Also append JSON lines to this file
    """
    package_logger = logging.getLogger("feature_advisor")
    package_logger.setLevel(level)
    for handler in list(package_logger.handlers):
        if getattr(handler, "_feature_advisor", False):
            package_logger.removeHandler(handler)
            handler.close()

    stream = logging.StreamHandler(sys.stderr)
    stream.setFormatter(
        StructuredFormatter() if structured else ConsoleFormatter(use_color=sys.stderr.isatty())
    )
    handlers: list[logging.Handler] = [stream]
    if log_file:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(StructuredFormatter())
        handlers.append(file_handler)

    for handler in handlers:
        handler._feature_advisor = True  # type: ignore[attr-defined]
        package_logger.addHandler(handler)


def set_run_id(run_id: str | None = None) -> str:
    """Start a run; generates a uuid4 hex id when none is given."""
    run_id = run_id or uuid.uuid4().hex
    _run_id.set(run_id)
    return run_id


def get_run_id() -> str | None:
    return _run_id.get()


def set_log_context(**kwargs: Any) -> None:
    """Merge ``kwargs`` into the context for the rest of the run."""
    _context.set({**_context.get(), **kwargs})


def clear_log_context() -> None:
    """Drop the context and the run id."""
    _context.set({})
    _run_id.set(None)


@contextmanager
def log_context(**kwargs: Any) -> Iterator[dict[str, Any]]:
    """
    Add context for the duration of a block.

    Usage:
        with log_context(stage="scoring", feature="orders"):
            logger.info("Scoring feature")
    """
    token = _context.set({**_context.get(), **kwargs})
    try:
        yield _context.get()
    finally:
        _context.reset(token)


class Timer:
    """
    Wall-clock timer for a block.

    Usage:
        with Timer("scan") as timer:
            scan = scan_project(settings)
        logger.info("Scan completed", extra={"duration_ms": timer.duration_ms})
    """

    def __init__(self, stage: str = "operation"):
        self.stage = stage
        self._started: float | None = None
        self.duration_ms: float = 0.0

    def __enter__(self) -> "Timer":
        self._started = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.duration_ms = (time.perf_counter() - self._started) * 1000


def timed(logger: logging.Logger | None = None, level: int = logging.DEBUG, stage: str | None = None):
    """
    Log how long the decorated function took.

    Args:
        logger: Target logger (defaults to the function's module logger)
        level: Level of the completion record
        stage: Stage name on the record (defaults to the function name)
    """

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        target = logger or logging.getLogger(func.__module__)
        name = stage or func.__name__

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> T:
            with Timer(name) as timer:
                result = func(*args, **kwargs)
            target.log(
                level,
                f"{name} completed",
                extra={"stage": name, "duration_ms": timer.duration_ms},
            )
            return result

        return wrapper

    return decorator


def log_exception(
    logger: logging.Logger,
    message: str,
    exc: BaseException,
    level: int = logging.ERROR,
    **extra: Any,
) -> None:
    """Log ``exc`` with its traceback and advisor error code."""
    logger.log(
        level,
        message,
        exc_info=(type(exc), exc, exc.__traceback__),
        extra={"error_code": get_error_code(exc), **extra},
    )
