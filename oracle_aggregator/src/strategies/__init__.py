"""
Aggregation strategies.

Each strategy reduces a cleaned set of observations to a single price and
registers itself by name.

Usage:
    from oracle_aggregator.src.strategies import get_strategy, get_available_strategies

    available = get_available_strategies()
    # ['mean', 'median', 'twap', 'weighted_average']

    strategy = get_strategy("twap", time_window_seconds=30.0)
    price = strategy.aggregate(observations, weights)
"""

from .base import (
    STRATEGY_REGISTRY,
    AggregationStrategy,
    get_available_strategies,
    get_strategy,
    normalize_weights,
    register_strategy,
)

# Import all strategy implementations to trigger registration
from .mean import MeanStrategy
from .median import MedianStrategy
from .twap import TWAPStrategy
from .weighted_average import WeightedAverageStrategy

__all__ = [
    # Base classes
    "AggregationStrategy",
    "normalize_weights",
    # Registry functions
    "register_strategy",
    "get_strategy",
    "get_available_strategies",
    "STRATEGY_REGISTRY",
    # Strategy implementations
    "MeanStrategy",
    "MedianStrategy",
    "TWAPStrategy",
    "WeightedAverageStrategy",
]
