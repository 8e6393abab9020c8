# ABOUTME: Logging configuration using loguru
# ABOUTME: Dual-mode operation: interactive CLI file logs vs production JSON logging on stdout

import logging
import os
import sys
import time
from pathlib import Path
from typing import Any

from loguru import logger

LOG_DIR = Path("logs")
MAIN_LOG_NAME = "civic-scraper.log"
JSON_LOG_NAME = "civic-scraper.json"
ERROR_LOG_NAME = "errors.log"

# LiteLLM is chatty on every completion; keep it fully quiet
SILENCED_LOGGERS = ["LiteLLM", "litellm", "dspy"]
WARNING_LOGGERS = ["httpx", "httpcore", "aiosqlite", "sqlalchemy.engine", "asyncio"]


class LoggingMode:
    """Logging mode constants."""

    INTERACTIVE = "interactive"
    PRODUCTION = "production"


def detect_logging_mode() -> str:
    """Detect whether we're running in interactive or production mode."""
    mode = os.getenv("CIVIC_SCRAPER_LOG_MODE")
    if mode and mode.lower() in [LoggingMode.INTERACTIVE, LoggingMode.PRODUCTION]:
        return mode.lower()

    return LoggingMode.INTERACTIVE if sys.stdout.isatty() else LoggingMode.PRODUCTION


def setup_third_party_logging() -> None:
    """Quiet third-party library logging so it does not interfere with the CLI."""
    for logger_name in SILENCED_LOGGERS:
        logging.getLogger(logger_name).setLevel(logging.CRITICAL)

    for logger_name in WARNING_LOGGERS:
        logging.getLogger(logger_name).setLevel(logging.WARNING)

    logging.captureWarnings(True)
    logging.getLogger("py.warnings").setLevel(logging.ERROR)


def _ensure_log_dir(log_dir: Path, attempts: int = 3) -> bool:
    for attempt in range(attempts):
        try:
            log_dir.mkdir(exist_ok=True)
            return True
        except OSError:
            if attempt == attempts - 1:
                return False
            time.sleep(0.01 * (attempt + 1))
    return False


def configure_logging(mode: str | None = None, log_level: str = "INFO", log_file: str | None = None) -> None:
    """Configure logging using loguru.

    Args:
        mode: Logging mode (interactive/production), auto-detected if None
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_file: Custom log file path, uses default if None
    """
    if mode is None:
        mode = detect_logging_mode()

    setup_third_party_logging()

    numeric_level = getattr(logging, log_level.upper(), logging.INFO)
    logging.getLogger().setLevel(numeric_level)

    logger.remove()

    # Without a writable log directory interactive mode degrades to stdout JSON
    if mode == LoggingMode.INTERACTIVE and not _ensure_log_dir(LOG_DIR):
        mode = LoggingMode.PRODUCTION

    if mode == LoggingMode.PRODUCTION:
        logger.add(sys.stdout, level=log_level, format="{time} | {level} | {name} | {message}", serialize=True)
        return

    logger.add(
        log_file or str(LOG_DIR / MAIN_LOG_NAME),
        level=log_level,
        format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}",
        rotation="10 MB",
        retention="7 days",
    )
    logger.add(
        LOG_DIR / JSON_LOG_NAME,
        level=log_level,
        format="{time} | {level} | {name} | {message}",
        serialize=True,
        rotation="10 MB",
        retention="7 days",
    )
    logger.add(
        LOG_DIR / ERROR_LOG_NAME,
        level="ERROR",
        format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}",
        backtrace=True,
        diagnose=True,
    )


def get_logging_status() -> dict[str, Any]:
    """Get current logging configuration status."""
    mode = detect_logging_mode()
    interactive = mode == LoggingMode.INTERACTIVE

    return {
        "mode": mode,
        "log_directory": str(LOG_DIR.absolute()) if LOG_DIR.exists() else None,
        "log_files": {
            "main": str(LOG_DIR / MAIN_LOG_NAME) if interactive else None,
            "json": str(LOG_DIR / JSON_LOG_NAME) if interactive else None,
            "errors": str(LOG_DIR / ERROR_LOG_NAME) if interactive else None,
        },
        "third_party_suppressed": [*SILENCED_LOGGERS, *WARNING_LOGGERS, "py.warnings"],
    }
