"""
Logging for the PPQSA application.

Everything logs under the ``ppqsa`` logger tree. Records can carry the
subject token and the running operation through ``LogContext``; the
structured formatter emits them as one JSON object per line.
"""

from __future__ import annotations

import json
import logging
import logging.config
import time
from collections.abc import Callable
from contextvars import ContextVar, Token
from datetime import datetime, timezone
from functools import wraps
from types import TracebackType
from typing import TYPE_CHECKING, Any, ParamSpec, TypeVar

if TYPE_CHECKING:
    from .config import LoggingConfig

P = ParamSpec("P")
R = TypeVar("R")

ROOT_LOGGER = "ppqsa"
QUIET_LOGGERS = ("sqlalchemy.engine", "uvicorn.access")


class StructuredFormatter(logging.Formatter):
    """One JSON object per record, with any context fields attached to it."""

    CONTEXT_FIELDS = ("token", "operation", "request_id", "snapshot_count")

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc)
            .isoformat(timespec="milliseconds")
            .replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        entry.update(
            {name: getattr(record, name) for name in self.CONTEXT_FIELDS if hasattr(record, name)}
        )

        if record.exc_info and record.exc_info[0] is not None:
            exc_type, exc_value, _ = record.exc_info
            entry["exception"] = {
                "type": exc_type.__name__,
                "message": str(exc_value),
                "traceback": self.formatException(record.exc_info),
            }
        return json.dumps(entry, ensure_ascii=False, default=str)


class ContextFilter(logging.Filter):
    """Copies the current context onto every record passing through a handler."""

    def __init__(self):
        super().__init__()
        self._var: ContextVar[dict[str, Any] | None] = ContextVar("ppqsa_log_context", default=None)

    @property
    def context(self) -> dict[str, Any]:
        return self._var.get() or {}

    def push(self, **values: Any) -> Token[dict[str, Any] | None]:
        return self._var.set({**self.context, **values})

    def reset(self, token: Token[dict[str, Any] | None]) -> None:
        self._var.reset(token)

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in self.context.items():
            setattr(record, key, value)
        return True


# Context values are per thread and per asyncio task
context_filter = ContextFilter()


def setup_logging(
    level: str = "INFO",
    log_file: str | None = None,
    structured: bool = True,
    enable_console: bool = True,
    file_handler: dict[str, Any] | None = None,
) -> None:
    """
    Install handlers on the ``ppqsa`` tree (and the root logger).

    ``file_handler`` is a ready-made dictConfig handler entry, as produced by
    ``LoggingConfig.get_file_handler_config``; ``log_file`` is a shortcut for
    a rotating file with default limits. With neither console nor file output
    a NullHandler keeps records from reaching the last-resort handler.

    Example:
        >>> setup_logging(level="DEBUG", log_file="./logs/ppqsa.log")
    """
    handlers: dict[str, dict[str, Any]] = {}

    if enable_console:
        handlers["console"] = {
            "class": "logging.StreamHandler",
            "level": level,
            "formatter": "structured" if structured else "standard",
            "filters": ["context"],
            "stream": "ext://sys.stdout",
        }

    if file_handler is None and log_file:
        from .config import LoggingConfig

        file_handler = LoggingConfig(file_path=log_file).get_file_handler_config()
    if file_handler:
        handlers["file"] = {**file_handler, "level": level, "formatter": "structured", "filters": ["context"]}

    if not handlers:
        handlers["null"] = {"class": "logging.NullHandler"}

    names = list(handlers)
    loggers: dict[str, dict[str, Any]] = {
        ROOT_LOGGER: {"level": level, "handlers": names, "propagate": False},
    }
    for quiet in QUIET_LOGGERS:
        loggers[quiet] = {"level": "WARNING", "handlers": names, "propagate": False}

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "structured": {"()": StructuredFormatter},
                "standard": {
                    "format": "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
                    "datefmt": "%Y-%m-%d %H:%M:%S",
                },
            },
            "filters": {"context": {"()": lambda: context_filter}},
            "handlers": handlers,
            "loggers": loggers,
            "root": {"level": level, "handlers": names},
        }
    )


def configure_logging(config: LoggingConfig | None = None) -> None:
    """Apply the LOG_* settings (level, file, JSON or plain console output)."""
    if config is None:
        from .config import get_settings

        config = get_settings().logging
    setup_logging(
        level=config.level or "INFO",
        structured=config.structured,
        enable_console=config.console_enabled,
        file_handler=config.get_file_handler_config(),
    )
    get_logger(__name__).debug(f"Logging configured at {config.level}")


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger namespaced under ``ppqsa``.

    Example:
        >>> get_logger("scripts.manage").name
        'ppqsa.scripts.manage'
    """
    if name == ROOT_LOGGER or name.startswith(f"{ROOT_LOGGER}."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")


class LogContext:
    """Temporarily adds context values; the previous context is restored on exit."""

    def __init__(self, **kwargs: Any):
        self.context: dict[str, Any] = kwargs
        self._token: Token[dict[str, Any] | None] | None = None

    def __enter__(self) -> LogContext:
        self._token = context_filter.push(**self.context)
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        if self._token is not None:
            context_filter.reset(self._token)
            self._token = None


def log_operation(
    operation: str, logger: logging.Logger | None = None
) -> Callable[[Callable[P, R]], Callable[P, R]]:
    """
    Run the wrapped call under ``operation`` context, logging failures.

    Example:
        >>> @log_operation("save_snapshot")
        ... def save_snapshot(token: str):
        ...     pass
    """

    def decorator(func: Callable[P, R]) -> Callable[P, R]:
        @wraps(func)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            log = logger or get_logger(func.__module__)
            with LogContext(operation=operation):
                log.debug(f"{operation} started")
                try:
                    result = func(*args, **kwargs)
                except Exception as e:
                    log.error(f"{operation} failed: {e}", exc_info=True)
                    raise
                log.debug(f"{operation} finished")
                return result

        return wrapper

    return decorator


def log_database_operation(operation: str) -> Callable[[Callable[P, R]], Callable[P, R]]:
    """
    Time a storage call and log its duration at debug level.

    Example:
        >>> @log_database_operation("storage.put")
        ... def put(key, value):
        ...     pass
    """

    def decorator(func: Callable[P, R]) -> Callable[P, R]:
        @wraps(func)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            log = get_logger("database")
            start = time.perf_counter()
            with LogContext(operation=f"db_{operation}"):
                try:
                    result = func(*args, **kwargs)
                except Exception as e:
                    log.error(
                        f"{operation} failed after {time.perf_counter() - start:.3f}s: {e}",
                        exc_info=True,
                    )
                    raise
                log.debug(f"{operation} took {time.perf_counter() - start:.3f}s")
                return result

        return wrapper

    return decorator


# Configure from settings on first import unless the host already did
if not logging.getLogger().handlers:
    configure_logging()
