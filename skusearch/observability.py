"""
Observability helpers: structured logging, per-query ids and timing.

Usage:
    from skusearch.observability import setup_logging, get_logger, query_context

    # In host startup:
    setup_logging()

    # In modules:
    logger = get_logger(__name__)

    # Around one search:
    with query_context() as query_id:
        logger.info("Search started", extra={"target": "sales"})
"""
import functools
import json
import logging
import time
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

# Id of the search currently being executed
_query_id: ContextVar[Optional[str]] = ContextVar("query_id", default=None)

# Extra key/values attached to every record inside a query
_log_context: ContextVar[Dict[str, Any]] = ContextVar("log_context", default={})

_STANDARD_ATTRS = {
    "name", "msg", "args", "created", "filename", "funcName",
    "levelname", "levelno", "lineno", "module", "msecs",
    "pathname", "process", "processName", "relativeCreated",
    "stack_info", "exc_info", "exc_text", "thread", "threadName",
    "message", "asctime", "taskName",
}


def get_query_id() -> Optional[str]:
    """Get the id of the search running in this context."""
    return _query_id.get()


def generate_query_id() -> str:
    """Generate a short search id."""
    return uuid.uuid4().hex[:8]


class query_context:
    """Context manager binding a query id (and optional fields) to log records."""

    def __init__(self, query_id: Optional[str] = None, **fields: Any):
        self.query_id = query_id or generate_query_id()
        self.fields = fields
        self._id_token = None
        self._ctx_token = None

    def __enter__(self) -> str:
        self._id_token = _query_id.set(self.query_id)
        self._ctx_token = _log_context.set({**_log_context.get(), **self.fields})
        return self.query_id

    def __exit__(self, *args):
        _log_context.reset(self._ctx_token)
        _query_id.reset(self._id_token)


def _extras(record: logging.LogRecord) -> Dict[str, Any]:
    return {
        k: v for k, v in record.__dict__.items()
        if k not in _STANDARD_ATTRS and not k.startswith("_")
    }


class StructuredFormatter(logging.Formatter):
    """
    JSON log formatter.

    Emits timestamp, level, logger, message, query_id (inside a query),
    bound context fields, record extras and exception text.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        query_id = get_query_id()
        if query_id:
            log_entry["query_id"] = query_id

        log_entry.update(_log_context.get())
        log_entry.update(_extras(record))

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)


class HumanReadableFormatter(logging.Formatter):
    """
    Plain text formatter.

    Format: TIMESTAMP - LEVEL - LOGGER [QUERY_ID] - MESSAGE | extras
    """

    def format(self, record: logging.LogRecord) -> str:
        query_id = get_query_id()
        query_str = f" [{query_id}]" if query_id else ""
        timestamp = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")

        base_msg = f"{timestamp} - {record.levelname:8} - {record.name}{query_str} - {record.getMessage()}"

        extras = {**_log_context.get(), **_extras(record)}
        if extras:
            base_msg += f" | {extras}"

        if record.exc_info:
            base_msg += f"\n{self.formatException(record.exc_info)}"

        return base_msg


def setup_logging(level: Optional[str] = None, json_format: Optional[bool] = None) -> None:
    """
    Configure the skusearch logger.

    Args:
        level: Log level name; defaults to config.logging.level
        json_format: JSON output if True; defaults to config.logging.json_format
    """
    from skusearch.config import config

    level = level or config.logging.level
    if json_format is None:
        json_format = config.logging.json_format

    handler = logging.StreamHandler()
    handler.setFormatter(StructuredFormatter() if json_format else HumanReadableFormatter())

    package_logger = logging.getLogger("skusearch")
    package_logger.handlers.clear()
    package_logger.addHandler(handler)
    package_logger.setLevel(getattr(logging, level.upper(), logging.INFO))


def get_logger(name: str) -> logging.Logger:
    """Get a logger with the given name."""
    return logging.getLogger(name)


# ═══════════════════════════════════════════════════════════════════════════════
# TIMING
# ═══════════════════════════════════════════════════════════════════════════════

class Timer:
    """
    Context manager for timing a pipeline stage.

    Usage:
        with Timer("period_stats", logger) as t:
            stats = accumulate_period_stats(...)
        t.elapsed_ms
    """

    def __init__(self, name: str, logger: Optional[logging.Logger] = None, warn_threshold_ms: float = 1000):
        self.name = name
        self.logger = logger
        self.warn_threshold_ms = warn_threshold_ms
        self.start_time: float = 0
        self.elapsed_ms: float = 0

    def __enter__(self) -> "Timer":
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, *args):
        self.elapsed_ms = (time.perf_counter() - self.start_time) * 1000

        if self.logger:
            level = logging.WARNING if self.elapsed_ms > self.warn_threshold_ms else logging.DEBUG
            self.logger.log(
                level,
                f"{self.name} completed",
                extra={"duration_ms": round(self.elapsed_ms, 2)}
            )


def timed(name: Optional[str] = None, warn_threshold_ms: float = 1000):
    """
    Decorator logging how long a function took.

    Args:
        name: Operation name (defaults to function name)
        warn_threshold_ms: Log at WARNING level above this threshold
    """
    def decorator(func: Callable) -> Callable:
        operation_name = name or func.__name__
        func_logger = get_logger(func.__module__)

        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            with Timer(operation_name, func_logger, warn_threshold_ms):
                return func(*args, **kwargs)

        return wrapper

    return decorator
