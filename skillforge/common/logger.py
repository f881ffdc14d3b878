"""
Engine Logger

This module provides the logging setup shared by every SkillForge component:
a named application logger, an optional JSON formatter for log shipping,
a context adapter for per-event fields (user id, event kind), and a decorator
that records how long a call took.
"""

import os
import sys
import json
import time
import logging
import datetime
import functools
import inspect
from typing import Dict, Any, Optional, Union, Callable, TypeVar

DEFAULT_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)-32s | %(message)s"
DEFAULT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
ROOT_LOGGER_NAME = "skillforge"

F = TypeVar('F', bound=Callable[..., Any])

__all__ = [
    'configure_logger',
    'get_logger',
    'LoggerAdapter',
    'JsonFormatter',
    'with_context',
    'app_logger',
    'log_execution_time'
]


class JsonFormatter(logging.Formatter):
    """
    Render log records as single-line JSON objects.

    Any ``data`` dict attached to the record (see ``LoggerAdapter``) is merged
    into the top level of the emitted object.
    """

    def __init__(self, *, indent: Optional[int] = None):
        super().__init__()
        self.indent = indent

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.datetime.fromtimestamp(record.created).isoformat(),
            "name": record.name,
            "level": record.levelname,
            "message": record.getMessage(),
            "module": record.module,
            "line": record.lineno
        }

        if record.exc_info:
            payload["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "traceback": self.formatException(record.exc_info)
            }

        data = getattr(record, "data", None)
        if isinstance(data, dict):
            payload.update(data)

        return json.dumps(payload, indent=self.indent, default=str)


def configure_logger(
    name: str = ROOT_LOGGER_NAME,
    level: Union[str, int] = logging.INFO,
    format_string: str = DEFAULT_LOG_FORMAT,
    date_format: str = DEFAULT_DATE_FORMAT,
    use_json: bool = False,
    log_file: Optional[str] = None,
    console_output: bool = True
) -> logging.Logger:
    """
    Configure a logger with console and/or file handlers.

    Args:
        name: Logger name
        level: Log level, either a ``logging`` constant or its name
        format_string: Format used by the plain-text formatter
        date_format: Date format used by the plain-text formatter
        use_json: Emit JSON lines instead of plain text
        log_file: Optional path of a log file
        console_output: Whether to log to stdout

    Returns:
        The configured logger
    """
    if isinstance(level, str):
        level = getattr(logging, level.upper())

    logger = logging.getLogger(name)
    logger.setLevel(level)
    logger.handlers = []

    formatter = JsonFormatter() if use_json else logging.Formatter(format_string, date_format)

    if console_output:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    if log_file:
        try:
            directory = os.path.dirname(log_file)
            if directory:
                os.makedirs(directory, exist_ok=True)
            file_handler = logging.FileHandler(log_file)
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)
        except (FileNotFoundError, PermissionError) as e:
            logger.warning(f"Could not open log file {log_file}: {e}")

    return logger


def get_logger(name: str, parent: Optional[logging.Logger] = None) -> logging.Logger:
    """Get a logger, optionally as a child of ``parent``."""
    if parent:
        return parent.getChild(name)
    return logging.getLogger(name)


class LoggerAdapter(logging.LoggerAdapter):
    """
    Adapter that attaches a fixed context dict to every record it emits.

    The orchestrator uses this to tag all log lines of one reward event with
    the user id and event kind.
    """

    def __init__(self, logger: logging.Logger, context: Optional[Dict[str, Any]] = None):
        super().__init__(logger, context or {})

    def process(self, msg: str, kwargs: Dict[str, Any]) -> tuple:
        kwargs = kwargs.copy()
        extra = dict(kwargs.get('extra') or {})
        data = dict(extra.get('data') or {})
        if self.extra:
            data.update(self.extra)
        extra['data'] = data
        kwargs['extra'] = extra
        return msg, kwargs

    def with_context(self, **context) -> 'LoggerAdapter':
        """Return a new adapter carrying this adapter's context plus ``context``."""
        merged = dict(self.extra)
        merged.update(context)
        return LoggerAdapter(self.logger, merged)


def with_context(name: Optional[str] = None, **context) -> LoggerAdapter:
    """Create a context adapter around ``name`` (or the app logger)."""
    logger = get_logger(name) if name else app_logger
    return LoggerAdapter(logger, context)


def get_app_logger() -> logging.Logger:
    """
    Get the application logger, configuring it from the environment on first use.

    Honors ``LOG_LEVEL``, ``LOG_JSON`` and ``LOG_FILE``.
    """
    logger = logging.getLogger(ROOT_LOGGER_NAME)

    if not logger.handlers:
        return configure_logger(
            name=ROOT_LOGGER_NAME,
            level=os.environ.get("LOG_LEVEL", "INFO"),
            use_json=os.environ.get("LOG_JSON", "false").lower() == "true",
            log_file=os.environ.get("LOG_FILE"),
            console_output=True
        )

    return logger


app_logger = get_app_logger()


def log_execution_time(logger: Optional[logging.Logger] = None) -> Callable[[F], F]:
    """
    Decorator that logs the wall time of a sync or async callable at DEBUG level.

    Failures are logged at ERROR level and re-raised.
    """
    def decorator(func: F) -> F:
        def _log(start: float, error: Optional[BaseException] = None) -> None:
            elapsed = time.time() - start
            target = logger or get_app_logger()
            if error is None:
                target.debug(f"{func.__name__} executed in {elapsed:.3f} seconds")
            else:
                target.error(f"{func.__name__} failed after {elapsed:.3f} seconds: {error}")

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            start = time.time()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                _log(start, e)
                raise
            _log(start)
            return result

        @functools.wraps(func)
        async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
            start = time.time()
            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                _log(start, e)
                raise
            _log(start)
            return result

        return async_wrapper if inspect.iscoroutinefunction(func) else wrapper
    return decorator
