"""Shared fixtures for oracle aggregator tests."""

import time

import pytest

from oracle_aggregator.src.PriceTypes import PriceObservation


def _make_observations(
    prices: list[float],
    symbol: str = "BTC",
    timestamp: float | None = None,
) -> list[PriceObservation]:
    ts = time.time() if timestamp is None else timestamp
    return [
        PriceObservation(symbol=symbol, price=p, timestamp=ts, source=f"s{i}")
        for i, p in enumerate(prices)
    ]


@pytest.fixture
def make_observations():
    """Build one observation per price from sources s0, s1, ..."""
    return _make_observations
