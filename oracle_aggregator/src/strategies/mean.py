"""Mean strategy: plain arithmetic mean, weights ignored."""

from __future__ import annotations

from statistics import fmean
from typing import TYPE_CHECKING

from .base import AggregationStrategy, register_strategy

if TYPE_CHECKING:
    from ..PriceTypes import PriceObservation


@register_strategy
class MeanStrategy(AggregationStrategy):
    name = "mean"

    def _aggregate(
        self,
        observations: list[PriceObservation],
        weights: dict[str, float] | None,
    ) -> float:
        return fmean(o.price for o in observations)
