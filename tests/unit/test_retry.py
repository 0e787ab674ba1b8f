"""
Unit tests for the retry executor
"""

import pytest
from unittest.mock import AsyncMock
from core.exceptions import DatabaseError, RetryExhaustedError, SeekError
from ingestion.retry import retry_with_backoff


class TestRetryWithBackoff:
    """Test bounded retry with linear backoff"""

    @pytest.mark.asyncio
    async def test_success_on_first_attempt(self, no_sleep):
        operation = AsyncMock(return_value=42)

        result = await retry_with_backoff(operation, "block batch insert", sleep=no_sleep)

        assert result == 42
        operation.assert_awaited_once()
        assert no_sleep.delays == []

    @pytest.mark.asyncio
    async def test_fail_twice_then_succeed(self, no_sleep, caplog):
        operation = AsyncMock(side_effect=[DatabaseError("timeout"), DatabaseError("timeout"), "ok"])

        result = await retry_with_backoff(operation, "block batch insert", base_delay=1.0, sleep=no_sleep)

        assert result == "ok"
        assert operation.await_count == 3
        assert no_sleep.delays == [1.0, 2.0]
        assert "Retrying block batch insert (attempt 1/3)" in caplog.text
        assert "Retrying block batch insert (attempt 2/3)" in caplog.text

    @pytest.mark.asyncio
    async def test_exhaustion_names_operation_and_attempts(self, no_sleep):
        last = ConnectionError("server closed the connection")
        operation = AsyncMock(side_effect=[ConnectionError("a"), ConnectionError("b"), last])

        with pytest.raises(RetryExhaustedError) as exc_info:
            await retry_with_backoff(operation, "direct insert", sleep=no_sleep)

        error = exc_info.value
        assert "direct insert failed after 3 attempts" in str(error)
        assert error.context["attempts"] == 3
        assert error.original_exception is last
        assert error.__cause__ is last
        # No wait after the final attempt
        assert no_sleep.delays == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_non_retryable_error_is_raised_immediately(self, no_sleep):
        operation = AsyncMock(side_effect=SeekError("bad row"))

        with pytest.raises(SeekError):
            await retry_with_backoff(operation, "seek", sleep=no_sleep)

        operation.assert_awaited_once()
        assert no_sleep.delays == []

    @pytest.mark.asyncio
    async def test_custom_attempts_and_delay(self, no_sleep):
        operation = AsyncMock(side_effect=RuntimeError("boom"))

        with pytest.raises(RetryExhaustedError):
            await retry_with_backoff(operation, "prepare", max_attempts=4, base_delay=0.5, sleep=no_sleep)

        assert operation.await_count == 4
        assert no_sleep.delays == [0.5, 1.0, 1.5]

    @pytest.mark.asyncio
    async def test_invalid_attempt_count(self, no_sleep):
        with pytest.raises(ValueError):
            await retry_with_backoff(AsyncMock(), "noop", max_attempts=0, sleep=no_sleep)
