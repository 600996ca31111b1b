"""OutlierFilter: Statistical screening of price observations.

Two interchangeable methods are available:

    - Z-score: discard observations whose distance from the mean exceeds
      ``threshold`` population standard deviations.
    - IQR: discard observations outside ``[Q1 - 1.5*IQR, Q3 + 1.5*IQR]``.

With fewer than 3 observations nothing is filtered.

Note that with the population standard deviation a single outlier among ``n``
observations can never score above ``sqrt(n - 1)``, so a Z-score threshold of
2.0 needs at least 6 observations to reject anything.

.. code-block:: python

    >>> result = filter_outliers(observations, OutlierMethod.IQR)
    >>> [o.source for o in result.outliers]
    ['rogue']
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from statistics import mean, pstdev, quantiles
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .PriceTypes import PriceObservation

logger = logging.getLogger(__name__)

# Smallest sample the filter considers statistically meaningful
MIN_OBSERVATIONS = 3

IQR_MULTIPLIER = 1.5


class OutlierMethod(str, Enum):
    """Outlier detection method."""

    Z_SCORE = "z_score"
    IQR = "iqr"


@dataclass
class OutlierResult:
    """Observations split into kept and rejected sets.

    :ivar filtered: Observations that passed the screen.
    :ivar outliers: Observations rejected as outliers.
    """

    filtered: list[PriceObservation] = field(default_factory=list)
    outliers: list[PriceObservation] = field(default_factory=list)


def detect_outliers_zscore(
    observations: list[PriceObservation], threshold: float = 2.0
) -> list[PriceObservation]:
    """Detect outliers using the Z-score method.

    :param observations: Observations to screen.
    :param threshold: Z-score above which an observation is an outlier.
    :returns: Observations classified as outliers.
    """
    if len(observations) < MIN_OBSERVATIONS:
        return []

    prices = [o.price for o in observations]
    mu = mean(prices)
    sigma = pstdev(prices, mu)

    # All prices identical
    if sigma == 0:
        return []

    return [o for o in observations if abs(o.price - mu) / sigma > threshold]


def detect_outliers_iqr(observations: list[PriceObservation]) -> list[PriceObservation]:
    """Detect outliers using the interquartile range.

    Quartiles are linearly interpolated between the sorted prices.

    :param observations: Observations to screen.
    :returns: Observations classified as outliers.
    """
    if len(observations) < MIN_OBSERVATIONS:
        return []

    q1, _, q3 = quantiles([o.price for o in observations], n=4, method="inclusive")
    iqr = q3 - q1
    lower = q1 - IQR_MULTIPLIER * iqr
    upper = q3 + IQR_MULTIPLIER * iqr

    return [o for o in observations if o.price < lower or o.price > upper]


def detect_outliers(
    observations: list[PriceObservation],
    method: OutlierMethod = OutlierMethod.Z_SCORE,
    threshold: float = 2.0,
) -> list[PriceObservation]:
    """Detect outliers with the given method.

    :param observations: Observations to screen.
    :param method: Detection method.
    :param threshold: Z-score threshold (ignored by IQR).
    :returns: Observations classified as outliers.
    """
    if method == OutlierMethod.IQR:
        return detect_outliers_iqr(observations)
    return detect_outliers_zscore(observations, threshold)


def filter_outliers(
    observations: list[PriceObservation],
    method: OutlierMethod = OutlierMethod.Z_SCORE,
    threshold: float = 2.0,
) -> OutlierResult:
    """Split observations into kept and rejected sets.

    :param observations: Observations to screen.
    :param method: Detection method.
    :param threshold: Z-score threshold (ignored by IQR).
    :returns: OutlierResult preserving the input order in both lists.
    """
    outliers = detect_outliers(observations, method, threshold)
    if not outliers:
        return OutlierResult(filtered=list(observations))

    rejected = {o.source for o in outliers}
    logger.debug(f"Outliers ({method.value}): {sorted(rejected)}")
    return OutlierResult(
        filtered=[o for o in observations if o.source not in rejected],
        outliers=outliers,
    )
