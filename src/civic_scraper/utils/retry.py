# ABOUTME: Retry logic for LLM calls using the tenacity library
# ABOUTME: Exponential backoff on transient errors plus a circuit breaker for repeated failures

import functools
import time
from collections.abc import Callable
from typing import Any

from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from civic_scraper.utils.logging import get_logger

logger = get_logger(__name__)


class LLMAPIError(Exception):
    """Base exception for LLM API-related errors."""

    pass


class LLMRateLimitError(LLMAPIError):
    """Raised when API rate limit is exceeded."""

    pass


class LLMQuotaExceededError(LLMAPIError):
    """Raised when API quota is exceeded."""

    pass


class LLMTimeoutError(LLMAPIError):
    """Raised when API request times out."""

    pass


class LLMConnectionError(LLMAPIError):
    """Raised when connection to API fails."""

    pass


class CircuitBreakerOpen(LLMAPIError):
    """Raised when circuit breaker is open due to repeated failures."""

    pass


TRANSIENT_ERRORS = (LLMRateLimitError, LLMTimeoutError, LLMConnectionError)


class CircuitBreaker:
    """Opens after `threshold` consecutive failed calls, closes again after `timeout` seconds."""

    def __init__(self, threshold: int = 3, timeout: float = 30.0):
        self.threshold = threshold
        self.timeout = timeout
        self.failure_count = 0
        self.opened_at: float | None = None

    @property
    def is_open(self) -> bool:
        if self.opened_at is None:
            return False
        if time.monotonic() - self.opened_at >= self.timeout:
            self.reset()
            logger.info("Circuit breaker reset")
            return False
        return True

    def record_success(self) -> None:
        self.failure_count = 0

    def record_failure(self) -> None:
        self.failure_count += 1
        if self.failure_count >= self.threshold and self.opened_at is None:
            self.opened_at = time.monotonic()
            logger.warning("Circuit breaker opened", failures=self.failure_count)

    def reset(self) -> None:
        self.failure_count = 0
        self.opened_at = None


_circuit_breaker = CircuitBreaker()


def _convert_exception(e: Exception) -> LLMAPIError:
    """Convert generic exceptions to LLM-specific ones for better handling."""
    error_str = str(e).lower()

    if "rate limit" in error_str or "429" in error_str:
        return LLMRateLimitError(f"Rate limit exceeded: {e}")
    elif "quota" in error_str or "billing" in error_str:
        return LLMQuotaExceededError(f"API quota exceeded: {e}")
    elif "timeout" in error_str or "timed out" in error_str:
        return LLMTimeoutError(f"Request timeout: {e}")
    elif "connection" in error_str or "network" in error_str:
        return LLMConnectionError(f"Connection failed: {e}")
    else:
        return LLMAPIError(f"LLM API call failed: {e}")


def llm_retry(
    max_attempts: int = 3,
    min_wait: float = 1.0,
    max_wait: float = 10.0,
    multiplier: float = 2.0,
    with_circuit_breaker: bool = True,
):
    """Retry an async LLM call on transient errors with exponential backoff.

    Non-transient failures (quota, malformed requests) are converted to
    LLMAPIError subclasses and raised on the first attempt.
    """

    def decorator(func: Callable):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            if with_circuit_breaker and _circuit_breaker.is_open:
                raise CircuitBreakerOpen("LLM circuit breaker is open after repeated failures")

            retrying = AsyncRetrying(
                stop=stop_after_attempt(max_attempts),
                wait=wait_exponential(multiplier=multiplier, min=min_wait, max=max_wait),
                retry=retry_if_exception_type(TRANSIENT_ERRORS),
                reraise=True,
            )

            try:
                async for attempt in retrying:
                    with attempt:
                        try:
                            result = await func(*args, **kwargs)
                        except LLMAPIError:
                            raise
                        except Exception as e:
                            raise _convert_exception(e) from e
            except LLMAPIError:
                if with_circuit_breaker:
                    _circuit_breaker.record_failure()
                raise

            if with_circuit_breaker:
                _circuit_breaker.record_success()
            return result

        return wrapper

    return decorator


def configure_llm_retry(circuit_breaker_threshold: int = 3, circuit_breaker_timeout: float = 30.0) -> None:
    """Configure global LLM retry settings."""
    _circuit_breaker.threshold = circuit_breaker_threshold
    _circuit_breaker.timeout = circuit_breaker_timeout
    _circuit_breaker.reset()

    logger.info("LLM retry configured", threshold=circuit_breaker_threshold, timeout=circuit_breaker_timeout)


def get_llm_retry_status() -> dict[str, Any]:
    """Get current status of LLM retry mechanisms."""
    return {
        "circuit_breaker": {
            "is_open": _circuit_breaker.is_open,
            "failure_count": _circuit_breaker.failure_count,
            "failure_threshold": _circuit_breaker.threshold,
            "reset_timeout": _circuit_breaker.timeout,
        },
    }


def reset_circuit_breaker() -> None:
    """Reset circuit breaker state (useful for testing)."""
    _circuit_breaker.reset()
