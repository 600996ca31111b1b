"""Unit tests for PriceValidator."""

import math

import pytest

from oracle_aggregator.src.PriceTypes import PriceObservation
from oracle_aggregator.src.PriceValidator import (
    filter_by_deviation,
    is_stale,
    is_valid_price,
    median_price,
    meets_minimum_sources,
    validate_observations,
)


def _obs(price, source="a", timestamp=1000.0, symbol="BTC") -> PriceObservation:
    return PriceObservation(symbol=symbol, price=price, timestamp=timestamp, source=source)


class TestMedian:
    """Test median calculation."""

    def test_odd_count(self, make_observations) -> None:
        assert median_price(make_observations([3.0, 1.0, 2.0])) == 2.0

    def test_even_count(self, make_observations) -> None:
        """Even count should average the two middle prices."""
        assert median_price(make_observations([1.0, 2.0, 3.0, 4.0])) == 2.5


class TestValidity:
    """Test price validity checks."""

    @pytest.mark.parametrize("price", [100.0, 0.0001, 5])
    def test_valid_prices(self, price) -> None:
        assert is_valid_price(_obs(price))

    @pytest.mark.parametrize("price", [0.0, -1.0, math.nan, math.inf, -math.inf, True])
    def test_invalid_prices(self, price) -> None:
        assert not is_valid_price(_obs(price))

    def test_empty_symbol_invalid(self) -> None:
        assert not is_valid_price(_obs(100.0, symbol=""))


class TestStaleness:
    """Test staleness checks."""

    def test_fresh(self) -> None:
        assert not is_stale(_obs(100.0, timestamp=1000.0), 60.0, now=1030.0)

    def test_exactly_at_limit_is_fresh(self) -> None:
        assert not is_stale(_obs(100.0, timestamp=1000.0), 60.0, now=1060.0)

    def test_stale(self) -> None:
        assert is_stale(_obs(100.0, timestamp=1000.0), 60.0, now=1060.5)

    def test_validate_observations_splits(self) -> None:
        """Invalid and stale observations should be separated out."""
        good = _obs(100.0, "a", timestamp=1000.0)
        old = _obs(100.0, "b", timestamp=900.0)
        negative = _obs(-5.0, "c", timestamp=1000.0)

        valid, invalid = validate_observations([good, old, negative], 60.0, now=1010.0)

        assert valid == [good]
        assert invalid == [old, negative]


class TestMinimumSources:
    """Test minimum source counting."""

    def test_enough_sources(self, make_observations) -> None:
        assert meets_minimum_sources(make_observations([1.0, 2.0]), 2)

    def test_not_enough_sources(self, make_observations) -> None:
        assert not meets_minimum_sources(make_observations([1.0]), 2)

    def test_duplicate_source_counted_once(self) -> None:
        """Two observations from the same source count as one."""
        assert not meets_minimum_sources([_obs(1.0, "a"), _obs(2.0, "a")], 2)


class TestDeviation:
    """Test deviation filtering against the median."""

    def test_drops_far_prices(self, make_observations) -> None:
        obs = make_observations([100.0, 101.0, 1000.0])
        kept, dropped = filter_by_deviation(obs, 10.0)

        assert [o.source for o in kept] == ["s0", "s1"]
        assert [o.source for o in dropped] == ["s2"]

    def test_price_at_limit_kept(self, make_observations) -> None:
        """A price exactly max_deviation_percent from the median is kept."""
        obs = make_observations([100.0, 100.0, 110.0])
        kept, dropped = filter_by_deviation(obs, 10.0)

        assert len(kept) == 3
        assert dropped == []

    def test_empty(self) -> None:
        assert filter_by_deviation([], 5.0) == ([], [])
