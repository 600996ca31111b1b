"""Configuration snapshots for the aggregator, cache and circuit breakers.

All configs are frozen; callers replace them wholesale instead of mutating
them so an in-flight aggregation keeps a consistent view.

.. code-block:: python

    >>> config = AggregationConfig()
    >>> config.min_sources
    2
    >>> config.merged(min_sources=3).min_sources
    3
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from typing import Any

from .OutlierFilter import OutlierMethod


@dataclass(frozen=True)
class AggregationConfig:
    """Settings for one aggregation pass.

    :ivar min_sources: Minimum distinct sources required for a result.
    :ivar max_deviation_percent: Max deviation from the median before a
        source is dropped (0 disables the check).
    :ivar max_staleness_seconds: Max age of an observation.
    :ivar enable_outlier_detection: Run the statistical outlier filter.
    :ivar outlier_threshold: Z-score threshold for the outlier filter.
    :ivar outlier_method: Statistical method used by the outlier filter.
    """

    min_sources: int = 2
    max_deviation_percent: float = 10.0
    max_staleness_seconds: float = 60.0
    enable_outlier_detection: bool = True
    outlier_threshold: float = 2.0
    outlier_method: OutlierMethod = OutlierMethod.Z_SCORE

    def __post_init__(self) -> None:
        """Validate the configuration.

        :raises ValueError: If any value is out of range.
        """
        if self.min_sources < 1:
            raise ValueError("min_sources must be at least 1")
        if self.max_deviation_percent < 0:
            raise ValueError("max_deviation_percent must not be negative")
        if self.max_staleness_seconds < 0:
            raise ValueError("max_staleness_seconds must not be negative")
        if self.outlier_threshold <= 0:
            raise ValueError("outlier_threshold must be positive")
        if not isinstance(self.outlier_method, OutlierMethod):
            # Accept the enum value, e.g. "iqr" from the CLI
            object.__setattr__(self, "outlier_method", OutlierMethod(self.outlier_method))

    def merged(self, **changes: Any) -> AggregationConfig:
        """Return a copy with the given fields replaced.

        :param changes: Field names and their new values.
        :returns: New validated config.
        :raises TypeError: If a field name is unknown.
        """
        return dataclasses.replace(self, **changes)


@dataclass(frozen=True)
class CacheConfig:
    """Settings for the aggregated price cache.

    :ivar ttl_seconds: How long an entry is served as fresh.
    :ivar max_size: Maximum number of symbols kept.
    :ivar enable_fallback: Serve expired entries when live sources fall short.
    """

    ttl_seconds: float = 60.0
    max_size: int = 1000
    enable_fallback: bool = True

    def __post_init__(self) -> None:
        if self.ttl_seconds < 0:
            raise ValueError("ttl_seconds must not be negative")
        if self.max_size < 1:
            raise ValueError("max_size must be at least 1")


@dataclass(frozen=True)
class CircuitBreakerConfig:
    """Settings for the per-source circuit breakers.

    :ivar failure_threshold: Consecutive failures that open the circuit.
    :ivar open_duration_seconds: Time an open circuit waits before a trial call.
    :ivar half_open_max_calls: Trial calls admitted while half-open.
    """

    failure_threshold: int = 5
    open_duration_seconds: float = 60.0
    half_open_max_calls: int = 1

    def __post_init__(self) -> None:
        if self.failure_threshold < 1:
            raise ValueError("failure_threshold must be at least 1")
        if self.open_duration_seconds < 0:
            raise ValueError("open_duration_seconds must not be negative")
        if self.half_open_max_calls < 1:
            raise ValueError("half_open_max_calls must be at least 1")
