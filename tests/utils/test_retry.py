# ABOUTME: Tests for LLM retry logic using tenacity
# ABOUTME: Validates error conversion, transient retries, configuration and the circuit breaker

import pytest

from civic_scraper.utils.retry import (
    CircuitBreakerOpen,
    LLMAPIError,
    LLMConnectionError,
    LLMQuotaExceededError,
    LLMRateLimitError,
    LLMTimeoutError,
    configure_llm_retry,
    get_llm_retry_status,
    llm_retry,
    reset_circuit_breaker,
)


class TestLLMAPIErrors:
    """Test LLM-specific exception types."""

    def test_llm_api_error_hierarchy(self):
        """Test that all LLM errors inherit from LLMAPIError."""
        assert issubclass(LLMRateLimitError, LLMAPIError)
        assert issubclass(LLMQuotaExceededError, LLMAPIError)
        assert issubclass(LLMTimeoutError, LLMAPIError)
        assert issubclass(LLMConnectionError, LLMAPIError)
        assert issubclass(CircuitBreakerOpen, LLMAPIError)

    def test_error_messages(self):
        """Test error creation with messages."""
        rate_limit_error = LLMRateLimitError("Rate limit exceeded")
        assert str(rate_limit_error) == "Rate limit exceeded"

        quota_error = LLMQuotaExceededError("Quota exhausted")
        assert str(quota_error) == "Quota exhausted"


@pytest.fixture(autouse=True)
def default_retry_settings():
    """Restore default circuit breaker settings around every test."""
    configure_llm_retry()
    yield
    configure_llm_retry()


class TestRetryConfiguration:
    """Test retry configuration functions."""

    def test_configure_llm_retry(self):
        """Test configuring global retry settings."""
        configure_llm_retry(circuit_breaker_threshold=5, circuit_breaker_timeout=60.0)

        status = get_llm_retry_status()

        assert status["circuit_breaker"]["failure_threshold"] == 5
        assert status["circuit_breaker"]["reset_timeout"] == 60.0

    def test_get_retry_status(self):
        """Test getting current retry status."""
        status = get_llm_retry_status()

        assert "circuit_breaker" in status
        assert status["circuit_breaker"]["is_open"] is False
        assert status["circuit_breaker"]["failure_count"] == 0
        assert "failure_threshold" in status["circuit_breaker"]


class TestLLMRetryDecorator:
    """Test the LLM retry decorator functionality."""

    @pytest.mark.asyncio
    async def test_retry_successful_function(self):
        """Test retry decorator with successful function."""
        call_count = 0

        @llm_retry(max_attempts=3)
        async def successful_function():
            nonlocal call_count
            call_count += 1
            return "success"

        result = await successful_function()
        assert result == "success"
        assert call_count == 1

    @pytest.mark.asyncio
    async def test_retry_converts_generic_exceptions(self):
        """Test that generic exceptions get converted to LLM-specific ones."""
        reset_circuit_breaker()  # Reset state for clean test

        @llm_retry(max_attempts=1, with_circuit_breaker=False)  # Disable circuit breaker for this test
        async def failing_function():
            raise Exception("rate limit exceeded")

        with pytest.raises(LLMRateLimitError):
            await failing_function()

    @pytest.mark.asyncio
    async def test_retry_converts_specific_error_types(self):
        """Test conversion of specific error types."""
        reset_circuit_breaker()  # Reset state for clean test

        @llm_retry(max_attempts=1, with_circuit_breaker=False)  # Disable circuit breaker for this test
        async def timeout_function():
            raise Exception("timeout occurred")

        with pytest.raises(LLMTimeoutError):
            await timeout_function()

    @pytest.mark.asyncio
    async def test_retry_with_recoverable_failure(self):
        """Test retry with recoverable failure types."""
        reset_circuit_breaker()  # Reset state for clean test
        call_count = 0

        @llm_retry(max_attempts=3, min_wait=0.01, max_wait=0.02, with_circuit_breaker=False)
        async def flaky_function():
            nonlocal call_count
            call_count += 1
            if call_count < 3:
                raise LLMConnectionError("Connection failed")
            return "success"

        result = await flaky_function()
        assert result == "success"
        assert call_count == 3

    @pytest.mark.asyncio
    async def test_retry_with_unrecoverable_failure(self):
        """Test retry doesn't retry unrecoverable failures."""
        call_count = 0

        @llm_retry(max_attempts=3)
        async def quota_function():
            nonlocal call_count
            call_count += 1
            raise LLMQuotaExceededError("Quota exceeded")

        with pytest.raises(LLMQuotaExceededError):
            await quota_function()

        # Should only call once since quota errors are not retried
        assert call_count == 1


class TestCircuitBreaker:
    """Test the circuit breaker shared by LLM calls."""

    @pytest.mark.asyncio
    async def test_circuit_opens_after_repeated_failures(self):
        configure_llm_retry(circuit_breaker_threshold=2, circuit_breaker_timeout=60.0)
        call_count = 0

        @llm_retry(max_attempts=1)
        async def quota_function():
            nonlocal call_count
            call_count += 1
            raise LLMQuotaExceededError("Quota exceeded")

        for _ in range(2):
            with pytest.raises(LLMQuotaExceededError):
                await quota_function()

        with pytest.raises(CircuitBreakerOpen):
            await quota_function()

        # The open circuit rejects calls without invoking the function
        assert call_count == 2
        assert get_llm_retry_status()["circuit_breaker"]["is_open"] is True

    @pytest.mark.asyncio
    async def test_circuit_closes_after_timeout(self):
        configure_llm_retry(circuit_breaker_threshold=1, circuit_breaker_timeout=0.0)

        @llm_retry(max_attempts=1)
        async def flaky_function(fail: bool):
            if fail:
                raise LLMAPIError("boom")
            return "ok"

        with pytest.raises(LLMAPIError):
            await flaky_function(True)

        assert await flaky_function(False) == "ok"
        assert get_llm_retry_status()["circuit_breaker"]["failure_count"] == 0

    @pytest.mark.asyncio
    async def test_success_resets_failure_count(self):
        configure_llm_retry(circuit_breaker_threshold=3)

        @llm_retry(max_attempts=1)
        async def flaky_function(fail: bool):
            if fail:
                raise LLMAPIError("boom")
            return "ok"

        with pytest.raises(LLMAPIError):
            await flaky_function(True)
        assert get_llm_retry_status()["circuit_breaker"]["failure_count"] == 1

        await flaky_function(False)
        assert get_llm_retry_status()["circuit_breaker"]["failure_count"] == 0

    @pytest.mark.asyncio
    async def test_exhausted_retries_count_as_one_failure(self):
        reset_circuit_breaker()

        @llm_retry(max_attempts=2, min_wait=0.01, max_wait=0.02)
        async def always_down():
            raise LLMConnectionError("Connection failed")

        with pytest.raises(LLMConnectionError):
            await always_down()

        assert get_llm_retry_status()["circuit_breaker"]["failure_count"] == 1
