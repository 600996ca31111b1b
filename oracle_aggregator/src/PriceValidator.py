"""PriceValidator: Validity, staleness and deviation checks.

Algorithm applied by the orchestrator, in order:
    1. Drop non-finite, zero or negative prices
    2. Drop observations older than max_staleness_seconds
    3. (outlier filter, see OutlierFilter)
    4. Require min_sources distinct sources
    5. Drop observations deviating > max_deviation_percent from the median
    6. Require min_sources again

.. code-block:: python

    >>> kept, dropped = filter_by_deviation(observations, 5.0)
    >>> [o.source for o in dropped]
    ['rogue']
"""

from __future__ import annotations

import math
import time
from statistics import median as _median
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .PriceTypes import PriceObservation


def median_price(observations: list[PriceObservation]) -> float:
    """Median of the observation prices.

    :param observations: Non-empty list of observations.
    :returns: Middle price, or mean of the two middle prices for even counts.
    """
    return _median(o.price for o in observations)


def is_valid_price(observation: PriceObservation) -> bool:
    """Check that an observation carries a usable price.

    :param observation: Observation to check.
    :returns: True if the price is finite and positive and a symbol is set.
    """
    price = observation.price
    if not isinstance(price, (int, float)) or isinstance(price, bool):
        return False
    if not math.isfinite(price) or price <= 0:
        return False
    return bool(observation.symbol)


def is_stale(
    observation: PriceObservation,
    max_staleness_seconds: float,
    now: float | None = None,
) -> bool:
    """Check if an observation is older than the allowed age.

    :param observation: Observation to check.
    :param max_staleness_seconds: Maximum allowed age.
    :param now: Reference time (default: current time).
    :returns: True if ``now - timestamp > max_staleness_seconds``.
    """
    if now is None:
        now = time.time()
    return now - observation.timestamp > max_staleness_seconds


def validate_observations(
    observations: list[PriceObservation],
    max_staleness_seconds: float,
    now: float | None = None,
) -> tuple[list[PriceObservation], list[PriceObservation]]:
    """Split observations into valid and rejected ones.

    :param observations: Observations to validate.
    :param max_staleness_seconds: Maximum allowed age.
    :param now: Reference time (default: current time).
    :returns: Tuple of (valid, invalid).
    """
    if now is None:
        now = time.time()

    valid: list[PriceObservation] = []
    invalid: list[PriceObservation] = []
    for observation in observations:
        if is_valid_price(observation) and not is_stale(
            observation, max_staleness_seconds, now
        ):
            valid.append(observation)
        else:
            invalid.append(observation)
    return valid, invalid


def meets_minimum_sources(observations: list[PriceObservation], min_sources: int) -> bool:
    """Check that enough distinct sources contributed.

    :param observations: Observations to count.
    :param min_sources: Minimum number of distinct sources.
    :returns: True if the requirement is met.
    """
    if len(observations) < min_sources:
        return False
    return len({o.source for o in observations}) >= min_sources


def filter_by_deviation(
    observations: list[PriceObservation],
    max_deviation_percent: float,
) -> tuple[list[PriceObservation], list[PriceObservation]]:
    """Drop observations too far from the group median.

    A price exactly at the limit is kept.

    :param observations: Observations to check.
    :param max_deviation_percent: Max allowed relative deviation in percent.
    :returns: Tuple of (kept, dropped).
    """
    if not observations:
        return [], []

    reference = median_price(observations)

    kept: list[PriceObservation] = []
    dropped: list[PriceObservation] = []
    for observation in observations:
        deviation = abs(observation.price - reference) / reference * 100
        if deviation <= max_deviation_percent:
            kept.append(observation)
        else:
            dropped.append(observation)
    return kept, dropped
