"""Retry with exponential backoff for transient provider errors.

Only errors that are likely to go away on their own are retried: timeouts,
connection failures, HTTP 5xx and HTTP 429. Everything else is raised on the
first attempt.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

import httpx

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryConfig:
    """Retry settings.

    :ivar max_attempts: Total attempts including the first one.
    :ivar initial_delay_seconds: Delay after the first failed attempt.
    :ivar max_delay_seconds: Cap on any single delay.
    :ivar backoff_multiplier: Growth factor between delays.
    """

    max_attempts: int = 3
    initial_delay_seconds: float = 1.0
    max_delay_seconds: float = 10.0
    backoff_multiplier: float = 2.0

    def delay_for(self, attempt: int) -> float:
        """Delay before retry number ``attempt + 1`` (0-based attempt)."""
        return min(
            self.initial_delay_seconds * (self.backoff_multiplier**attempt),
            self.max_delay_seconds,
        )


def is_retryable_error(error: BaseException) -> bool:
    """Check whether an error is worth retrying.

    :param error: Error raised by the attempt.
    :returns: True for timeouts, connection errors, HTTP 5xx and 429.
    """
    transient = (asyncio.TimeoutError, httpx.TimeoutException, httpx.TransportError)
    if isinstance(error, transient):
        return True
    # Adapters wrap httpx errors with ``raise ... from e``
    if isinstance(error.__cause__, transient):
        return True

    status = getattr(error, "status_code", None)
    if isinstance(status, int):
        return status == 429 or 500 <= status < 600
    return False


async def retry_with_backoff(
    fn: Callable[[], Awaitable[T]],
    config: RetryConfig | None = None,
    *,
    label: str = "",
) -> T:
    """Await ``fn()`` until it succeeds or a non-retryable error occurs.

    :param fn: Zero-argument coroutine factory.
    :param config: Retry settings (default: RetryConfig()).
    :param label: Prefix for log messages.
    :returns: Result of the first successful attempt.
    :raises Exception: The last error once attempts are exhausted.
    """
    config = config or RetryConfig()

    for attempt in range(config.max_attempts):
        try:
            return await fn()
        except Exception as e:
            if not is_retryable_error(e) or attempt == config.max_attempts - 1:
                raise
            delay = config.delay_for(attempt)
            logger.debug(
                f"{label}Attempt {attempt + 1}/{config.max_attempts} failed: {e}; "
                f"retrying in {delay:.1f}s"
            )
            await asyncio.sleep(delay)

    raise RuntimeError("retry_with_backoff called with max_attempts < 1")
