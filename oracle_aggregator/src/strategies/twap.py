"""Time-weighted average price (TWAP) strategy.

Each observation's weight is its normalized source weight multiplied by a
linear time decay: an observation taken now weighs 1, one at the edge of the
window weighs 0, and anything older weighs 0. If every observation falls
outside the window the plain average of all of them is returned instead.
"""

from __future__ import annotations

import logging
import time
from statistics import fmean
from typing import TYPE_CHECKING

from .base import AggregationStrategy, normalize_weights, register_strategy

if TYPE_CHECKING:
    from ..PriceTypes import PriceObservation

logger = logging.getLogger(__name__)


@register_strategy
class TWAPStrategy(AggregationStrategy):
    """Time-weighted average favouring recent observations.

    :ivar time_window_seconds: Age beyond which an observation weighs nothing.
    """

    name = "twap"

    DEFAULT_TIME_WINDOW_SECONDS = 60.0

    def __init__(self, time_window_seconds: float = DEFAULT_TIME_WINDOW_SECONDS) -> None:
        """Initialize the strategy.

        :param time_window_seconds: Length of the decay window (default: 60).
        :raises ValueError: If the window is not positive.
        """
        if time_window_seconds <= 0:
            raise ValueError("time_window_seconds must be positive")
        self.time_window_seconds = time_window_seconds

    def time_weight(self, observation: PriceObservation, now: float) -> float:
        """Linear decay weight of an observation.

        :param observation: Observation to weigh.
        :param now: Reference time.
        :returns: Weight in [0, 1].
        """
        age = max(0.0, now - observation.timestamp)
        if age > self.time_window_seconds:
            return 0.0
        return 1.0 - age / self.time_window_seconds

    def _aggregate(
        self,
        observations: list[PriceObservation],
        weights: dict[str, float] | None,
    ) -> float:
        now = time.time()
        source_weights = normalize_weights(weights, [o.source for o in observations])

        weighted_sum = 0.0
        total_weight = 0.0
        for observation in observations:
            combined = self.time_weight(observation, now) * source_weights[observation.source]
            weighted_sum += observation.price * combined
            total_weight += combined

        if total_weight == 0:
            logger.debug("All observations outside TWAP window, using simple average")
            return fmean(o.price for o in observations)

        return weighted_sum / total_weight

    def __repr__(self) -> str:
        return f"TWAPStrategy(time_window_seconds={self.time_window_seconds})"
