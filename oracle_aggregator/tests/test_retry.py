"""Unit tests for retry_with_backoff."""

import asyncio

import httpx
import pytest

from oracle_aggregator.src.retry import RetryConfig, is_retryable_error, retry_with_backoff
from oracle_aggregator.src.sources.base import SourceError, SourceHTTPError

NO_DELAY = RetryConfig(max_attempts=3, initial_delay_seconds=0.0)


class _Flaky:
    """Coroutine factory failing a fixed number of times."""

    def __init__(self, errors: list[Exception], result: str = "ok"):
        self.errors = list(errors)
        self.result = result
        self.calls = 0

    async def __call__(self) -> str:
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return self.result


class TestRetryConfig:
    def test_exponential_delays(self) -> None:
        config = RetryConfig(initial_delay_seconds=1.0, backoff_multiplier=2.0, max_delay_seconds=10.0)
        assert [config.delay_for(i) for i in range(5)] == [1.0, 2.0, 4.0, 8.0, 10.0]


class TestIsRetryable:
    """Test retryable error classification."""

    @pytest.mark.parametrize(
        "error",
        [
            asyncio.TimeoutError(),
            httpx.ConnectError("refused"),
            httpx.ReadTimeout("slow"),
            SourceHTTPError(503, "unavailable"),
            SourceHTTPError(429, "slow down"),
        ],
    )
    def test_retryable(self, error) -> None:
        assert is_retryable_error(error)

    @pytest.mark.parametrize(
        "error",
        [SourceHTTPError(404, "not found"), SourceHTTPError(401, "bad key"), ValueError("x")],
    )
    def test_not_retryable(self, error) -> None:
        assert not is_retryable_error(error)


class TestRetryWithBackoff:
    """Test the retry loop."""

    @pytest.mark.asyncio
    async def test_success_first_try(self) -> None:
        fn = _Flaky([])
        assert await retry_with_backoff(fn, NO_DELAY) == "ok"
        assert fn.calls == 1

    @pytest.mark.asyncio
    async def test_retries_transient_errors(self) -> None:
        fn = _Flaky([SourceHTTPError(502, "bad gateway"), SourceHTTPError(500, "oops")])
        assert await retry_with_backoff(fn, NO_DELAY) == "ok"
        assert fn.calls == 3

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self) -> None:
        fn = _Flaky([SourceHTTPError(500, "1"), SourceHTTPError(500, "2"), SourceHTTPError(500, "3")])
        with pytest.raises(SourceHTTPError, match="HTTP 500: 3"):
            await retry_with_backoff(fn, NO_DELAY)
        assert fn.calls == 3

    @pytest.mark.asyncio
    async def test_permanent_error_not_retried(self) -> None:
        fn = _Flaky([SourceError("unsupported")])
        with pytest.raises(SourceError, match="unsupported"):
            await retry_with_backoff(fn, NO_DELAY)
        assert fn.calls == 1


class TestWrappedErrors:
    """Adapter errors chained from httpx errors keep their retry class."""

    def test_wrapped_timeout_retryable(self) -> None:
        try:
            try:
                raise httpx.ReadTimeout("slow")
            except httpx.ReadTimeout as e:
                raise SourceError("Request timeout") from e
        except SourceError as wrapped:
            assert is_retryable_error(wrapped)

    def test_plain_source_error_not_retryable(self) -> None:
        assert not is_retryable_error(SourceError("bad payload"))
