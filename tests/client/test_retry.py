"""Tests for retry logic with backoff."""

from unittest.mock import AsyncMock, call, patch

import pytest

from mindsync.client.sync import (
    ProviderError,
    ProviderTransientError,
    exponential_backoff,
    linear_backoff,
    retry_with_backoff,
)


class TestBackoff:
    """Tests for backoff functions."""

    def test_linear(self) -> None:
        assert [linear_backoff(n, 1.0) for n in (1, 2, 3)] == [1.0, 2.0, 3.0]

    def test_exponential(self) -> None:
        assert [exponential_backoff(n, 0.5) for n in (1, 2, 3)] == [0.5, 1.0, 2.0]


class TestRetryWithBackoff:
    """Tests for retry_with_backoff."""

    @pytest.mark.asyncio
    async def test_success_on_first_attempt(self) -> None:
        func = AsyncMock(return_value="ok")

        assert await retry_with_backoff(func) == "ok"
        assert func.await_count == 1

    @pytest.mark.asyncio
    async def test_retries_transient_errors(self) -> None:
        """Transient failures should be retried with growing delays."""
        func = AsyncMock(
            side_effect=[ProviderTransientError("503"), ProviderTransientError("503"), "ok"]
        )

        with patch("mindsync.client.sync.retry.asyncio.sleep", new=AsyncMock()) as sleep:
            result = await retry_with_backoff(func, max_attempts=3, base_delay=1.0)

        assert result == "ok"
        assert func.await_count == 3
        assert sleep.await_args_list == [call(1.0), call(2.0)]

    @pytest.mark.asyncio
    async def test_raises_after_max_attempts(self) -> None:
        func = AsyncMock(side_effect=ProviderTransientError("429"))

        with patch("mindsync.client.sync.retry.asyncio.sleep", new=AsyncMock()):
            with pytest.raises(ProviderTransientError):
                await retry_with_backoff(func, max_attempts=3)

        assert func.await_count == 3

    @pytest.mark.asyncio
    async def test_non_retryable_error_is_raised_immediately(self) -> None:
        """Permanent failures should not be retried."""
        func = AsyncMock(side_effect=ProviderError("400"))

        with pytest.raises(ProviderError):
            await retry_with_backoff(func, max_attempts=3)

        assert func.await_count == 1

    @pytest.mark.asyncio
    async def test_delay_is_capped(self) -> None:
        func = AsyncMock(side_effect=[ProviderTransientError("503"), "ok"])

        with patch("mindsync.client.sync.retry.asyncio.sleep", new=AsyncMock()) as sleep:
            await retry_with_backoff(func, base_delay=100.0, max_delay=5.0)

        sleep.assert_awaited_once_with(5.0)

    @pytest.mark.asyncio
    async def test_invalid_attempts(self) -> None:
        with pytest.raises(ValueError):
            await retry_with_backoff(AsyncMock(), max_attempts=0)
