"""
Centralized logging utilities with scoped loggers and decorators.
Provides structured logging with consistent field names across the worker,
the pipeline stages and the job API.
"""

import functools
import time
from typing import Any, Callable

import structlog

from shared_utils.constants import LogScope


# Configure structlog for JSON output (one event per line, shipped as-is)
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


def get_scoped_logger(scope: str) -> structlog.BoundLogger:
    """Get a scoped logger for a specific component.

    Args:
        scope: LogScope value (worker, pipeline, repair, adapter, api, ...)

    Returns:
        Structured logger bound to scope.
    """
    logger = structlog.get_logger()
    return logger.bind(scope=scope)


def log_execution(scope: str = LogScope.PIPELINE, event: str = ""):
    """Decorator that logs start, success and failure of a call with timing.

    Args:
        scope: Log scope identifier
        event: Event name prefix (defaults to the function name)

    Example:
        @log_execution(scope=LogScope.PIPELINE, event="extract")
        def _extract(self, transcript_text):
            ...
    """
    def decorator(func: Callable) -> Callable:
        name = event or func.__name__

        @functools.wraps(func)
        def wrapper(*args, **kwargs) -> Any:
            logger = get_scoped_logger(scope)
            start_time = time.time()

            logger.debug(f"{name}_started", func_name=func.__name__)

            try:
                result = func(*args, **kwargs)
            except Exception as e:
                logger.error(
                    f"{name}_failed",
                    func_name=func.__name__,
                    elapsed_ms=round((time.time() - start_time) * 1000, 1),
                    error_type=type(e).__name__,
                    error_message=str(e)
                )
                raise

            logger.info(
                f"{name}_completed",
                func_name=func.__name__,
                elapsed_ms=round((time.time() - start_time) * 1000, 1),
                result_type=type(result).__name__
            )
            return result

        return wrapper
    return decorator


class ContextualLogger:
    """Scope-bound logger that can carry extra context (e.g. a job id)."""

    def __init__(self, scope: str, **context: Any):
        self.scope = scope
        self.logger = get_scoped_logger(scope).bind(**context) if context else get_scoped_logger(scope)

    def bind(self, **context: Any) -> "ContextualLogger":
        """Return a child logger with additional bound fields."""
        child = ContextualLogger(self.scope)
        child.logger = self.logger.bind(**context)
        return child

    def info(self, event_name: str, **kwargs):
        """Log info message with scope."""
        self.logger.info(event_name, **kwargs)

    def debug(self, event_name: str, **kwargs):
        """Log debug message with scope."""
        self.logger.debug(event_name, **kwargs)

    def warning(self, event_name: str, **kwargs):
        """Log warning message with scope."""
        self.logger.warning(event_name, **kwargs)

    def error(self, event_name: str, **kwargs):
        """Log error message with scope."""
        self.logger.error(event_name, **kwargs)
