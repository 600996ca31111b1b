"""Median strategy.

The default strategy. Weights are ignored.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from ..PriceValidator import median_price
from .base import AggregationStrategy, register_strategy

if TYPE_CHECKING:
    from ..PriceTypes import PriceObservation


@register_strategy
class MedianStrategy(AggregationStrategy):
    """Middle price for odd counts, mean of the two middle prices for even."""

    name = "median"

    def _aggregate(
        self,
        observations: list[PriceObservation],
        weights: dict[str, float] | None,
    ) -> float:
        return median_price(observations)
