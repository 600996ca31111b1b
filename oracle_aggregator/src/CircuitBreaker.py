"""CircuitBreaker: Per-source health gate.

Each registered source has one state machine:

    - CLOSED -> OPEN: after failure_threshold consecutive failures
    - OPEN -> HALF_OPEN: once open_duration_seconds have passed since opening,
      evaluated lazily on the next state query or call attempt
    - HALF_OPEN -> CLOSED: on the next success
    - HALF_OPEN -> OPEN: on the next failure (the open timer restarts)

CLOSED and HALF_OPEN sources may be called; OPEN sources are skipped. While
HALF_OPEN only half_open_max_calls trial calls are admitted.

.. code-block:: python

    >>> registry = CircuitBreakerRegistry(CircuitBreakerConfig(failure_threshold=2))
    >>> registry.register("kraken")
    >>> registry.record_failure("kraken")
    <CircuitBreakerState.CLOSED: 'closed'>
    >>> registry.record_failure("kraken")
    <CircuitBreakerState.OPEN: 'open'>
    >>> registry.allow_request("kraken")
    False
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, replace
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .OracleConfig import CircuitBreakerConfig

logger = logging.getLogger(__name__)


class CircuitBreakerState(str, Enum):
    """Circuit breaker state."""

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass
class BreakerStatus:
    """Tracks the breaker of a single source.

    :ivar state: Current state.
    :ivar consecutive_failures: Failures since the last success.
    :ivar opened_at: Unix timestamp the circuit last opened, or None.
    :ivar half_open_calls: Trial calls admitted in the current HALF_OPEN phase.
    :ivar total_failures: Total failures since tracking began.
    :ivar total_successes: Total successes since tracking began.
    :ivar last_checked: Unix timestamp of the last recorded outcome.
    """

    state: CircuitBreakerState = CircuitBreakerState.CLOSED
    consecutive_failures: int = 0
    opened_at: float | None = None
    half_open_calls: int = 0
    total_failures: int = 0
    total_successes: int = 0
    last_checked: float | None = None


class CircuitBreakerRegistry:
    """Holds one circuit breaker per registered source.

    All methods are safe to call from several threads or tasks.

    :ivar config: Thresholds shared by all breakers.
    """

    def __init__(self, config: CircuitBreakerConfig) -> None:
        """Initialize an empty registry.

        :param config: Breaker thresholds.
        """
        self.config = config
        self._status: dict[str, BreakerStatus] = {}
        self._lock = threading.Lock()

    def register(self, source: str) -> None:
        """Start tracking a source in the CLOSED state.

        :param source: Source name.
        :raises KeyError: If the source is already tracked.
        """
        with self._lock:
            if source in self._status:
                raise KeyError(source)
            self._status[source] = BreakerStatus()

    def unregister(self, source: str) -> None:
        """Stop tracking a source.

        :param source: Source name.
        :raises KeyError: If the source is not tracked.
        """
        with self._lock:
            del self._status[source]

    def __contains__(self, source: object) -> bool:
        return source in self._status

    def _refresh(self, source: str, status: BreakerStatus, now: float) -> None:
        # Caller holds the lock
        if status.state != CircuitBreakerState.OPEN or status.opened_at is None:
            return
        if now - status.opened_at >= self.config.open_duration_seconds:
            status.state = CircuitBreakerState.HALF_OPEN
            status.half_open_calls = 0
            logger.info(f"[{source}] Circuit half-open, admitting trial call")

    def allow_request(self, source: str) -> bool:
        """Check whether a source may be called now and reserve a trial slot.

        :param source: Source name.
        :returns: True if the call may proceed. Unknown sources are refused.
        """
        now = time.time()
        with self._lock:
            status = self._status.get(source)
            if status is None:
                return False

            self._refresh(source, status, now)

            if status.state == CircuitBreakerState.CLOSED:
                return True
            if status.state == CircuitBreakerState.HALF_OPEN:
                if status.half_open_calls < self.config.half_open_max_calls:
                    status.half_open_calls += 1
                    return True
            return False

    def record_success(self, source: str) -> CircuitBreakerState | None:
        """Record a successful call.

        :param source: Source name.
        :returns: New state, or None if the source is no longer tracked.
        """
        with self._lock:
            status = self._status.get(source)
            if status is None:
                return None

            if status.state == CircuitBreakerState.HALF_OPEN:
                logger.info(f"[{source}] Trial call succeeded, circuit closed")
            status.state = CircuitBreakerState.CLOSED
            status.consecutive_failures = 0
            status.opened_at = None
            status.half_open_calls = 0
            status.total_successes += 1
            status.last_checked = time.time()
            return status.state

    def record_failure(self, source: str) -> CircuitBreakerState | None:
        """Record a failed call (error or timeout).

        :param source: Source name.
        :returns: New state, or None if the source is no longer tracked.
        """
        now = time.time()
        with self._lock:
            status = self._status.get(source)
            if status is None:
                return None

            status.consecutive_failures += 1
            status.total_failures += 1
            status.last_checked = now

            if status.state == CircuitBreakerState.HALF_OPEN:
                status.state = CircuitBreakerState.OPEN
                status.opened_at = now
                status.half_open_calls = 0
                logger.warning(f"[{source}] Trial call failed, circuit re-opened")
            elif (
                status.state == CircuitBreakerState.CLOSED
                and status.consecutive_failures >= self.config.failure_threshold
            ):
                status.state = CircuitBreakerState.OPEN
                status.opened_at = now
                logger.warning(
                    f"[{source}] Circuit opened after "
                    f"{status.consecutive_failures} consecutive failures"
                )
            return status.state

    def get_state(self, source: str) -> CircuitBreakerState | None:
        """Get the current state, applying a due OPEN -> HALF_OPEN transition.

        :param source: Source name.
        :returns: Current state, or None if the source is not tracked.
        """
        now = time.time()
        with self._lock:
            status = self._status.get(source)
            if status is None:
                return None
            self._refresh(source, status, now)
            return status.state

    def is_available(self, source: str) -> bool:
        """Check if a source is CLOSED or HALF_OPEN without reserving a call.

        :param source: Source name.
        :returns: False if OPEN or unknown.
        """
        state = self.get_state(source)
        return state is not None and state != CircuitBreakerState.OPEN

    def get_status(self, source: str) -> BreakerStatus | None:
        """Get a copy of a source's breaker status.

        :param source: Source name.
        :returns: BreakerStatus or None if the source is not tracked.
        """
        now = time.time()
        with self._lock:
            status = self._status.get(source)
            if status is None:
                return None
            self._refresh(source, status, now)
            return replace(status)

    def get_all_status(self) -> dict[str, BreakerStatus]:
        """Get copies of all breaker statuses.

        :returns: Dict mapping source names to their status.
        """
        now = time.time()
        with self._lock:
            for source, status in self._status.items():
                self._refresh(source, status, now)
            return {s: replace(st) for s, st in self._status.items()}

    def release_trial(self, source: str) -> None:
        """Give back a HALF_OPEN trial slot whose call never completed.

        :param source: Source name.
        """
        with self._lock:
            status = self._status.get(source)
            if status is None or status.state != CircuitBreakerState.HALF_OPEN:
                return
            status.half_open_calls = max(0, status.half_open_calls - 1)

    def reset(self, source: str) -> None:
        """Return a source's breaker to the initial CLOSED state.

        :param source: Source name.
        """
        with self._lock:
            if source in self._status:
                self._status[source] = BreakerStatus()
