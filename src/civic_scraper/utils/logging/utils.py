# ABOUTME: Logger utilities with context binding and operation tracking decorators
# ABOUTME: Provides get_logger and decorators for consistent structured logging of pipeline work

import functools
import time
import uuid
from collections.abc import Callable
from typing import Any, TypeVar

import structlog

F = TypeVar("F", bound=Callable[..., Any])


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a logger instance with automatic module detection.

    Args:
        name: Logger name, auto-detected from caller if None

    Returns:
        Configured structlog logger instance
    """
    if name is None:
        import inspect

        frame = inspect.currentframe()
        if frame and frame.f_back:
            name = frame.f_back.f_globals.get("__name__", "unknown")

    return structlog.get_logger(name or "civic_scraper")


def generate_operation_id() -> str:
    """Generate a short unique ID for tracking one operation across log lines."""
    return str(uuid.uuid4())[:8]


def _first_url(args: tuple[Any, ...], kwargs: dict[str, Any]) -> str | None:
    for value in (*args, *kwargs.values()):
        # Source configs carry their URL as an attribute
        candidate = value if isinstance(value, str) else getattr(value, "url", None)
        if isinstance(candidate, str) and candidate.startswith(("http://", "https://")):
            return candidate
    return None


def log_api_call(api_name: str, **context) -> Callable[[F], F]:
    """Decorator to log calls to external APIs with timing and outcome.

    Args:
        api_name: Name of the API being called
        **context: Additional context for the API call

    Returns:
        Decorated async function with API call logging
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            logger = get_logger(func.__module__)
            bound_logger = logger.bind(
                api_name=api_name, call_id=generate_operation_id(), url=_first_url(args, kwargs), **context
            )

            bound_logger.debug(f"API call to {api_name}")
            start_time = time.time()

            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                bound_logger.error(
                    f"API call to {api_name} failed",
                    duration_seconds=round(time.time() - start_time, 3),
                    error=str(e),
                    error_type=type(e).__name__,
                    success=False,
                )
                raise

            bound_logger.info(
                f"API call to {api_name} succeeded", duration_seconds=round(time.time() - start_time, 3), success=True
            )
            return result

        return wrapper  # type: ignore[return-value]

    return decorator


def log_pipeline_step(step_name: str) -> Callable[[F], F]:
    """Decorator to log one step of the scraping pipeline.

    The source URL is picked up from the call arguments when present so that
    every step of a run can be correlated in the logs.
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            logger = get_logger(func.__module__)
            bound_logger = logger.bind(step=step_name, source_url=_first_url(args, kwargs), pipeline="scraping")

            bound_logger.info(f"Starting pipeline step: {step_name}")
            start_time = time.time()

            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                bound_logger.error(
                    f"Failed pipeline step: {step_name}",
                    duration_seconds=round(time.time() - start_time, 3),
                    error=str(e),
                    error_type=type(e).__name__,
                    success=False,
                )
                raise

            result_info = {}
            items = getattr(result, "items", None)
            if isinstance(items, list):
                result_info["item_count"] = len(items)

            bound_logger.info(
                f"Completed pipeline step: {step_name}",
                duration_seconds=round(time.time() - start_time, 3),
                success=True,
                **result_info,
            )
            return result

        return wrapper  # type: ignore[return-value]

    return decorator


class LogContext:
    """Context manager for binding logger context."""

    def __init__(self, logger: structlog.stdlib.BoundLogger, **context):
        self.logger = logger
        self.context = context
        self.bound_logger = None

    def __enter__(self) -> structlog.stdlib.BoundLogger:
        self.bound_logger = self.logger.bind(**self.context)
        return self.bound_logger

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type is not None and self.bound_logger is not None:
            self.bound_logger.error("Context operation failed", error=str(exc_val), error_type=exc_type.__name__)


def with_source_context(region_id: str, source_url: str, data_type: str) -> LogContext:
    """Create a logging context for work on one (region, source, data type) key."""
    return LogContext(get_logger(), region_id=region_id, source_url=source_url, data_type=data_type)


def with_pipeline_context(pipeline_name: str, **context) -> LogContext:
    """Create a logging context for pipeline operations.

    Args:
        pipeline_name: Name of the pipeline
        **context: Additional context to bind

    Returns:
        LogContext manager with pipeline context
    """
    return LogContext(get_logger(), pipeline=pipeline_name, operation_id=generate_operation_id(), **context)
