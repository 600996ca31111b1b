"""Value types passed between sources, the pipeline and callers.

.. code-block:: python

    >>> obs = PriceObservation("BTC", 100.0, timestamp=1000.0, source="kraken")
    >>> obs.source
    'kraken'
    >>> result = SymbolResult("BTC", price=None, error=InsufficientSourcesError("BTC", 1, 2))
    >>> result.success
    False
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .CircuitBreaker import CircuitBreakerState
from .errors import OracleError


@dataclass(frozen=True)
class PriceObservation:
    """One source's reported price for a symbol at a point in time.

    :ivar symbol: Symbol the price was requested for.
    :ivar price: Reported price.
    :ivar timestamp: Unix timestamp the price was observed at.
    :ivar source: Name of the source that reported the price.
    :ivar metadata: Optional provider-specific details.
    """

    symbol: str
    price: float
    timestamp: float
    source: str
    metadata: dict[str, Any] | None = None


@dataclass(frozen=True)
class AggregatedPrice:
    """Result of one successful aggregation pass.

    :ivar symbol: Aggregated symbol.
    :ivar price: Aggregated price.
    :ivar timestamp: Unix timestamp of the aggregation.
    :ivar confidence: Score in [0, 1].
    :ivar sources_used: Sources whose observations were aggregated.
    :ivar outliers_filtered: Sources removed by the outlier and deviation checks.
    :ivar source_count: Number of sources used.
    :ivar stale: True when served from an expired cache entry as a fallback.
    :ivar metadata: Strategy name and the median before filtering.
    """

    symbol: str
    price: float
    timestamp: float
    confidence: float
    sources_used: list[str]
    outliers_filtered: list[str]
    source_count: int
    stale: bool = False
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class SourceInfo:
    """Descriptive information published by a source.

    :ivar supported_symbols: Symbols the source knows; empty means any.
    """

    name: str
    description: str
    version: str
    supported_symbols: list[str] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class SymbolResult:
    """Per-symbol outcome of a multi-symbol aggregation.

    :ivar symbol: Requested symbol.
    :ivar price: Aggregated price, or None if aggregation failed.
    :ivar error: The failure, or None on success.
    """

    symbol: str
    price: AggregatedPrice | None
    error: OracleError | None = None

    @property
    def success(self) -> bool:
        """Check if aggregation was successful."""
        return self.price is not None


@dataclass
class SourceStatus:
    """Diagnostic snapshot of a registered source."""

    name: str
    weight: float
    is_healthy: bool
    state: CircuitBreakerState
    consecutive_failures: int
    last_checked: float | None = None
