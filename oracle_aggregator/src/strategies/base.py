"""Base aggregation strategy interface and strategy registry.

A strategy reduces a cleaned set of observations to one price. All
strategies reject an empty set and return the single price unchanged when
given exactly one observation.

.. code-block:: python

    @register_strategy
    class MaxStrategy(AggregationStrategy):
        name = "max"

        def _aggregate(self, observations, weights):
            return max(o.price for o in observations)
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, ClassVar

from ..errors import EmptyObservationSetError

if TYPE_CHECKING:
    from ..PriceTypes import PriceObservation

logger = logging.getLogger(__name__)


def normalize_weights(
    weights: dict[str, float] | None,
    sources: list[str],
) -> dict[str, float]:
    """Normalize source weights so the present sources sum to 1.

    Sources without an explicit weight share the unallocated remainder
    (``1 - sum(explicit weights)``, floored at 0) equally. If every weight
    ends up zero, all sources are weighted equally.

    :param weights: Explicit weights by source name, or None.
    :param sources: Names of the sources taking part.
    :returns: Dict mapping each source in ``sources`` to its normalized weight.

    .. code-block:: python

        >>> normalize_weights({"a": 0.5}, ["a", "b", "c"])
        {'a': 0.5, 'b': 0.25, 'c': 0.25}
    """
    if not sources:
        return {}

    weights = weights or {}
    explicit = {s: weights[s] for s in sources if s in weights}
    missing = [s for s in sources if s not in explicit]

    raw = dict(explicit)
    if missing:
        remainder = max(0.0, 1.0 - sum(explicit.values()))
        for source in missing:
            raw[source] = remainder / len(missing)

    total = sum(raw.values())
    if total <= 0:
        equal = 1.0 / len(sources)
        return {s: equal for s in sources}
    return {s: raw[s] / total for s in sources}


class AggregationStrategy(ABC):
    """Abstract base class for aggregation strategies.

    Subclasses must implement:
        - name: Class variable identifying the strategy
        - _aggregate(): Reduce two or more observations to one price

    :cvar name: Unique identifier for this strategy.
    """

    name: ClassVar[str] = ""

    def aggregate(
        self,
        observations: list[PriceObservation],
        weights: dict[str, float] | None = None,
    ) -> float:
        """Aggregate observations into one price.

        :param observations: Cleaned observations.
        :param weights: Optional weights by source name.
        :returns: Aggregated price.
        :raises EmptyObservationSetError: If no observations are given.
        """
        if not observations:
            raise EmptyObservationSetError()
        if len(observations) == 1:
            return observations[0].price
        return self._aggregate(observations, weights)

    @abstractmethod
    def _aggregate(
        self,
        observations: list[PriceObservation],
        weights: dict[str, float] | None,
    ) -> float:
        """Aggregate two or more observations."""
        pass

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


# Registry of available strategies (populated by subclass imports)
STRATEGY_REGISTRY: dict[str, type[AggregationStrategy]] = {}


def register_strategy(cls: type[AggregationStrategy]) -> type[AggregationStrategy]:
    """Decorator to register a strategy class in the global registry.

    :param cls: Strategy class to register.
    :returns: The registered class (unchanged).
    :raises ValueError: If strategy has no name defined.
    """
    if not cls.name:
        raise ValueError(f"Strategy {cls.__name__} must define a 'name' class variable")
    STRATEGY_REGISTRY[cls.name] = cls
    return cls


def get_strategy(name: str, **kwargs: Any) -> AggregationStrategy:
    """Get a strategy instance by name.

    :param name: Strategy name (e.g., "median", "twap").
    :param kwargs: Constructor arguments for the strategy.
    :returns: Strategy instance.
    :raises ValueError: If strategy name is unknown.
    """
    if name not in STRATEGY_REGISTRY:
        available = ", ".join(sorted(STRATEGY_REGISTRY.keys()))
        raise ValueError(f"Unknown strategy '{name}'. Available: {available}")
    return STRATEGY_REGISTRY[name](**kwargs)


def get_available_strategies() -> list[str]:
    """Get list of available strategy names.

    :returns: Sorted list of registered strategy names.
    """
    return sorted(STRATEGY_REGISTRY.keys())
