# ABOUTME: Logging configuration and structured logger helpers
# ABOUTME: Provides loguru sink setup and structlog loggers for the pipeline

from .config import LoggingMode, configure_logging, get_logging_status
from .utils import (
    LogContext,
    get_logger,
    log_api_call,
    log_pipeline_step,
    with_pipeline_context,
    with_source_context,
)

__all__ = [
    # Configuration
    "LoggingMode",
    "configure_logging",
    "get_logging_status",
    # Utilities
    "LogContext",
    "get_logger",
    "log_api_call",
    "log_pipeline_step",
    "with_pipeline_context",
    "with_source_context",
]
