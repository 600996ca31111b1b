"""Weighted average strategy.

.. code-block:: python

    >>> WeightedAverageStrategy().aggregate([a_100, b_200], {"A": 0.75, "B": 0.25})
    125.0
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from .base import AggregationStrategy, normalize_weights, register_strategy

if TYPE_CHECKING:
    from ..PriceTypes import PriceObservation


@register_strategy
class WeightedAverageStrategy(AggregationStrategy):
    """Sum of price times normalized source weight.

    Weights are normalized over the sources present in the observation set,
    so a dropped source's weight is redistributed to the others.
    """

    name = "weighted_average"

    def _aggregate(
        self,
        observations: list[PriceObservation],
        weights: dict[str, float] | None,
    ) -> float:
        normalized = normalize_weights(weights, [o.source for o in observations])
        return sum(o.price * normalized[o.source] for o in observations)
