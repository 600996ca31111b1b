"""
Oracle Aggregator - Multi-Source Price Aggregation Module

This module combines prices from multiple sources into one trusted price:
- OracleAggregator: Orchestrator that fans out to sources and aggregates
- OutlierFilter: Z-score and IQR outlier detection
- PriceValidator: Validity, staleness and deviation checks
- CircuitBreaker: Per-source CLOSED/OPEN/HALF_OPEN health gate
- PriceCache: TTL cache of aggregated prices with stale fallback
- strategies: Median, mean, weighted average and TWAP
- sources: Modular price source implementations
"""

from .CircuitBreaker import BreakerStatus, CircuitBreakerRegistry, CircuitBreakerState
from .errors import (
    DuplicateSourceError,
    EmptyObservationSetError,
    InsufficientSourcesError,
    NoSourcesRegisteredError,
    OracleError,
    UnknownSourceError,
)
from .OracleAggregator import OracleAggregator
from .OracleConfig import AggregationConfig, CacheConfig, CircuitBreakerConfig
from .OutlierFilter import OutlierMethod, OutlierResult, filter_outliers
from .PriceCache import CacheEntry, PriceCache
from .PriceTypes import (
    AggregatedPrice,
    PriceObservation,
    SourceInfo,
    SourceStatus,
    SymbolResult,
)
from .TradingPair import TradingPair

__all__ = [
    "AggregatedPrice",
    "AggregationConfig",
    "BreakerStatus",
    "CacheConfig",
    "CacheEntry",
    "CircuitBreakerConfig",
    "CircuitBreakerRegistry",
    "CircuitBreakerState",
    "DuplicateSourceError",
    "EmptyObservationSetError",
    "InsufficientSourcesError",
    "NoSourcesRegisteredError",
    "OracleAggregator",
    "OracleError",
    "OutlierMethod",
    "OutlierResult",
    "PriceCache",
    "PriceObservation",
    "SourceInfo",
    "SourceStatus",
    "SymbolResult",
    "TradingPair",
    "UnknownSourceError",
    "filter_outliers",
]
