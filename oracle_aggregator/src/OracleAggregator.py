"""OracleAggregator: Combines prices from many sources into one trusted price.

For each request the aggregator asks every available source concurrently,
discards invalid, stale and outlying observations, reduces the rest with the
active strategy and caches the result.

Architecture:
    - Sources are plain adapters; every provider error is absorbed here
    - Each source has a circuit breaker; open breakers are skipped uncalled
    - Observations are validated, outlier filtered and deviation checked
    - The active strategy computes the price from the surviving set
    - Results are cached; an expired entry may be served when too few
      sources answer

.. code-block:: python

    aggregator = OracleAggregator(AggregationConfig(min_sources=2))
    aggregator.add_source(CoinbaseSource())
    aggregator.add_source(KrakenSource(), weight=2.0)
    price = await aggregator.get_aggregated_price("btc/usd")
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import replace

from .CircuitBreaker import BreakerStatus, CircuitBreakerRegistry
from .errors import (
    DuplicateSourceError,
    InsufficientSourcesError,
    NoSourcesRegisteredError,
    OracleError,
    UnknownSourceError,
)
from .OracleConfig import AggregationConfig, CacheConfig, CircuitBreakerConfig
from .OutlierFilter import filter_outliers
from .PriceCache import PriceCache
from .PriceTypes import AggregatedPrice, PriceObservation, SourceStatus, SymbolResult
from .PriceValidator import (
    filter_by_deviation,
    median_price,
    meets_minimum_sources,
    validate_observations,
)
from .sources import BaseSource
from .strategies import AggregationStrategy, MedianStrategy, get_strategy

logger = logging.getLogger(__name__)

# Confidence lost per source removed by the outlier or deviation checks
OUTLIER_PENALTY = 0.1

# Confidence multiplier for results served from an expired cache entry
STALE_CONFIDENCE_FACTOR = 0.5

DEFAULT_FETCH_TIMEOUT = 10.0


def compute_confidence(source_count: int, registered: int, filtered: int) -> float:
    """Score how much an aggregated price can be trusted.

    :param source_count: Sources that contributed to the price.
    :param registered: Sources registered at the start of the call.
    :param filtered: Sources removed by outlier and deviation checks.
    :returns: Confidence clamped to [0, 1].
    """
    if source_count <= 0:
        return 0.0
    coverage = source_count / max(source_count, registered)
    return max(0.0, min(1.0, coverage - OUTLIER_PENALTY * filtered))


class OracleAggregator:
    """Multi-source price aggregator.

    :ivar cache: Cache of recent aggregated prices.
    :ivar breakers: Circuit breaker registry, one breaker per source.
    :ivar fetch_timeout: Seconds allowed for a single source call.
    """

    def __init__(
        self,
        config: AggregationConfig | None = None,
        cache_config: CacheConfig | None = None,
        breaker_config: CircuitBreakerConfig | None = None,
        *,
        strategy: AggregationStrategy | None = None,
        fetch_timeout: float = DEFAULT_FETCH_TIMEOUT,
    ) -> None:
        """Initialize the aggregator.

        :param config: Aggregation settings (default: AggregationConfig()).
        :param cache_config: Cache settings (default: CacheConfig()).
        :param breaker_config: Circuit breaker settings.
        :param strategy: Aggregation strategy (default: median).
        :param fetch_timeout: Seconds allowed for a single source call.
        :raises ValueError: If fetch_timeout is not positive.
        """
        if fetch_timeout <= 0:
            raise ValueError("fetch_timeout must be positive")

        self._config = config or AggregationConfig()
        self._cache_config = cache_config or CacheConfig()
        self._strategy = strategy or MedianStrategy()
        self.fetch_timeout = fetch_timeout

        self._sources: dict[str, BaseSource] = {}
        self._weights: dict[str, float] = {}

        self.cache = PriceCache(self._cache_config)
        self.breakers = CircuitBreakerRegistry(breaker_config or CircuitBreakerConfig())

    # Source registry

    def add_source(self, source: BaseSource, weight: float = 1.0) -> None:
        """Register a source.

        :param source: Source adapter; its name must be unique.
        :param weight: Relative weight for weighted strategies.
        :raises DuplicateSourceError: If the name is already registered.
        :raises ValueError: If weight is not positive.
        """
        if source.name in self._sources:
            raise DuplicateSourceError(source.name)
        if weight <= 0:
            raise ValueError(f"Weight for {source.name} must be positive, got {weight}")

        self._sources[source.name] = source
        self._weights[source.name] = weight
        self.breakers.register(source.name)
        logger.info(f"Registered source {source.name} (weight {weight})")

    def remove_source(self, name: str) -> None:
        """Unregister a source together with its weight and breaker.

        :param name: Source name.
        :raises UnknownSourceError: If the source is not registered.
        """
        if name not in self._sources:
            raise UnknownSourceError(name)

        del self._sources[name]
        del self._weights[name]
        self.breakers.unregister(name)
        logger.info(f"Removed source {name}")

    def get_sources(self) -> list[SourceStatus]:
        """Describe every registered source.

        :returns: One SourceStatus per source, in registration order.
        """
        statuses: list[SourceStatus] = []
        for name in list(self._sources):
            status = self.breakers.get_status(name)
            if status is None:
                continue
            statuses.append(
                SourceStatus(
                    name=name,
                    weight=self._weights[name],
                    is_healthy=self.breakers.is_available(name),
                    state=status.state,
                    consecutive_failures=status.consecutive_failures,
                    last_checked=status.last_checked,
                )
            )
        return statuses

    def get_breaker_status(self, name: str) -> BreakerStatus:
        """Get the circuit breaker snapshot of a source.

        :raises UnknownSourceError: If the source is not registered.
        """
        status = self.breakers.get_status(name)
        if status is None:
            raise UnknownSourceError(name)
        return status

    def get_source_health(self) -> dict[str, bool]:
        """Breaker based availability of each source.

        :returns: Map of source name to True unless its breaker is open.
        """
        return {name: self.breakers.is_available(name) for name in list(self._sources)}

    async def check_source_health(self) -> dict[str, bool]:
        """Ask every source whether it is healthy.

        Diagnostics only; breaker state is not touched.

        :returns: Map of source name to the source's own health answer.
        """
        sources = dict(self._sources)
        results = await asyncio.gather(
            *(s.is_healthy() for s in sources.values()), return_exceptions=True
        )

        health: dict[str, bool] = {}
        for name, result in zip(sources, results, strict=True):
            if isinstance(result, Exception):
                logger.warning(f"[{name}] Health check raised: {result}")
                health[name] = False
            elif isinstance(result, BaseException):
                raise result
            else:
                health[name] = bool(result)
        return health

    # Strategy and config

    def set_strategy(self, strategy: AggregationStrategy | str) -> None:
        """Replace the aggregation strategy.

        Calls already in progress keep the strategy they started with.

        :param strategy: Strategy instance or registered strategy name.
        :raises ValueError: If a strategy name is unknown.
        """
        if isinstance(strategy, str):
            strategy = get_strategy(strategy)
        self._strategy = strategy
        logger.info(f"Aggregation strategy set to {strategy.name}")

    def get_strategy(self) -> AggregationStrategy:
        return self._strategy

    def update_config(self, **changes) -> AggregationConfig:
        """Merge changes into the aggregation config.

        :param changes: AggregationConfig fields to replace.
        :returns: The new config.
        :raises ValueError: If the merged config is invalid.
        :raises TypeError: If a field name is unknown.
        """
        self._config = self._config.merged(**changes)
        logger.info(f"Aggregation config updated: {changes}")
        return self._config

    def get_config(self) -> AggregationConfig:
        return self._config

    def clear_cache(self) -> None:
        self.cache.clear()
        logger.debug("Price cache cleared")

    # Aggregation

    async def _fetch_from_source(
        self, name: str, source: BaseSource, symbol: str
    ) -> PriceObservation | None:
        """Fetch one observation and record the outcome on the breaker.

        :returns: The observation, or None if the source failed.
        """
        try:
            observation = await asyncio.wait_for(source.get_price(symbol), self.fetch_timeout)
        except asyncio.CancelledError:
            self.breakers.release_trial(name)
            raise
        except asyncio.TimeoutError:
            state = self.breakers.record_failure(name)
            logger.warning(f"[{name}] Timeout fetching {symbol} (breaker: {_state(state)})")
            return None
        except Exception as e:
            state = self.breakers.record_failure(name)
            logger.warning(f"[{name}] Error fetching {symbol}: {e} (breaker: {_state(state)})")
            return None

        if observation.symbol != symbol:
            state = self.breakers.record_failure(name)
            logger.warning(
                f"[{name}] Returned {observation.symbol} for {symbol}, dropping "
                f"(breaker: {_state(state)})"
            )
            return None

        self.breakers.record_success(name)
        if observation.source != name:
            observation = replace(observation, source=name)
        return observation

    def _fallback_or_raise(
        self, symbol: str, available: int, config: AggregationConfig
    ) -> AggregatedPrice:
        """Serve an expired cache entry or raise InsufficientSourcesError."""
        if self._cache_config.enable_fallback:
            entry = self.cache.get_stale_allowed(symbol)
            if entry is not None:
                logger.warning(
                    f"[{symbol}] Only {available}/{config.min_sources} sources, "
                    f"serving cached price from {entry.get_age():.1f}s ago"
                )
                cached = entry.aggregated_price
                return replace(
                    cached,
                    stale=True,
                    confidence=cached.confidence * STALE_CONFIDENCE_FACTOR,
                )
        raise InsufficientSourcesError(symbol, available, config.min_sources)

    async def get_aggregated_price(self, symbol: str) -> AggregatedPrice:
        """Aggregate the current price of a symbol.

        :param symbol: Symbol to aggregate, e.g. "btc/usd".
        :returns: Aggregated price, possibly a stale cached one.
        :raises NoSourcesRegisteredError: If no sources are registered.
        :raises InsufficientSourcesError: If too few sources remain and no
            cached price can be served.
        """
        cached = self.cache.get(symbol)
        if cached is not None:
            logger.debug(f"[{symbol}] Cache hit")
            return cached.aggregated_price

        # Snapshot so concurrent reconfiguration does not affect this call
        config = self._config
        strategy = self._strategy
        sources = dict(self._sources)
        weights = dict(self._weights)

        if not sources:
            raise NoSourcesRegisteredError()

        eligible = {n: s for n, s in sources.items() if self.breakers.allow_request(n)}
        skipped = sorted(set(sources) - set(eligible))
        if skipped:
            logger.debug(f"[{symbol}] Skipping sources with open circuit: {skipped}")

        results = await asyncio.gather(
            *(self._fetch_from_source(n, s, symbol) for n, s in eligible.items())
        )
        observations = [o for o in results if o is not None]

        now = time.time()
        valid, invalid = validate_observations(observations, config.max_staleness_seconds, now)
        for observation in invalid:
            logger.warning(
                f"[{observation.source}] Rejected {symbol} price {observation.price} "
                f"observed at {observation.timestamp:.0f}"
            )

        reference_median = median_price(valid) if valid else None

        outliers_filtered: list[str] = []
        if config.enable_outlier_detection:
            outlier_result = filter_outliers(
                valid, config.outlier_method, config.outlier_threshold
            )
            valid = outlier_result.filtered
            outliers_filtered.extend(o.source for o in outlier_result.outliers)

        if not meets_minimum_sources(valid, config.min_sources):
            return self._fallback_or_raise(symbol, len(valid), config)

        if config.max_deviation_percent > 0:
            valid, deviating = filter_by_deviation(valid, config.max_deviation_percent)
            for observation in deviating:
                logger.warning(
                    f"[{observation.source}] {symbol} price {observation.price} deviates "
                    f"more than {config.max_deviation_percent}% from median"
                )
            outliers_filtered.extend(o.source for o in deviating)

            if not meets_minimum_sources(valid, config.min_sources):
                return self._fallback_or_raise(symbol, len(valid), config)

        used_weights = {o.source: weights.get(o.source, 1.0) for o in valid}
        price = strategy.aggregate(valid, used_weights)

        sources_used = [o.source for o in valid]
        aggregated = AggregatedPrice(
            symbol=symbol,
            price=price,
            timestamp=now,
            confidence=compute_confidence(
                len(sources_used), len(sources), len(outliers_filtered)
            ),
            sources_used=sources_used,
            outliers_filtered=outliers_filtered,
            source_count=len(sources_used),
            metadata={"strategy": strategy.name, "median": reference_median},
        )
        self.cache.set(symbol, aggregated)

        logger.info(
            f"[{symbol}] Aggregated {price:.6f} from {aggregated.source_count} sources "
            f"({', '.join(sources_used)}), confidence {aggregated.confidence:.2f}"
            + (f", filtered {outliers_filtered}" if outliers_filtered else "")
        )
        return aggregated

    async def get_aggregated_prices(self, symbols: list[str]) -> list[SymbolResult]:
        """Aggregate several symbols concurrently.

        One symbol failing never aborts the others.

        :param symbols: Symbols to aggregate.
        :returns: One SymbolResult per symbol, in request order.
        """

        async def aggregate_one(symbol: str) -> SymbolResult:
            try:
                return SymbolResult(symbol, await self.get_aggregated_price(symbol))
            except OracleError as e:
                logger.warning(f"[{symbol}] Aggregation failed: {e}")
                return SymbolResult(symbol, None, error=e)

        return list(await asyncio.gather(*(aggregate_one(s) for s in symbols)))


def _state(state) -> str:
    return state.value if state is not None else "removed"
