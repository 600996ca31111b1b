"""Unit tests for PriceCache."""

import threading
from unittest.mock import patch

import pytest

from oracle_aggregator.src.OracleConfig import CacheConfig
from oracle_aggregator.src.PriceCache import PriceCache
from oracle_aggregator.src.PriceTypes import AggregatedPrice


def _price(symbol: str = "BTC", price: float = 100.0) -> AggregatedPrice:
    return AggregatedPrice(
        symbol=symbol,
        price=price,
        timestamp=1000.0,
        confidence=1.0,
        sources_used=["a", "b"],
        outliers_filtered=[],
        source_count=2,
    )


class TestPriceCacheBasics:
    """Test get/set."""

    def test_miss(self) -> None:
        cache = PriceCache(CacheConfig())
        assert cache.get("BTC") is None
        assert cache.get_stale_allowed("BTC") is None

    def test_hit(self) -> None:
        cache = PriceCache(CacheConfig())
        cache.set("BTC", _price())

        entry = cache.get("BTC")
        assert entry is not None
        assert entry.aggregated_price.price == 100.0
        assert len(cache) == 1

    def test_overwrite(self) -> None:
        cache = PriceCache(CacheConfig())
        cache.set("BTC", _price(price=100.0))
        cache.set("BTC", _price(price=101.0))

        assert cache.get("BTC").aggregated_price.price == 101.0
        assert len(cache) == 1

    def test_invalidate_and_clear(self) -> None:
        cache = PriceCache(CacheConfig())
        cache.set("BTC", _price("BTC"))
        cache.set("ETH", _price("ETH"))

        cache.invalidate("BTC")
        assert cache.get("BTC") is None
        assert cache.get("ETH") is not None

        cache.invalidate("missing")
        cache.clear()
        assert len(cache) == 0

    def test_len_waits_for_lock(self) -> None:
        cache = PriceCache(CacheConfig())
        cache.set("BTC", _price())
        sizes: list[int] = []
        reader = threading.Thread(target=lambda: sizes.append(len(cache)))

        with cache._lock:
            reader.start()
            reader.join(timeout=0.1)
            assert reader.is_alive()
            assert sizes == []

        reader.join(timeout=1.0)
        assert sizes == [1]

    def test_invalid_config(self) -> None:
        with pytest.raises(ValueError, match="max_size must be at least 1"):
            CacheConfig(max_size=0)


class TestPriceCacheExpiry:
    """Test TTL handling."""

    @patch("oracle_aggregator.src.PriceCache.time.time")
    def test_expires_after_ttl(self, mock_time) -> None:
        mock_time.return_value = 1000.0
        cache = PriceCache(CacheConfig(ttl_seconds=60.0))
        cache.set("BTC", _price())

        mock_time.return_value = 1060.0  # Exactly at TTL
        assert cache.get("BTC") is not None

        mock_time.return_value = 1060.5
        assert cache.get("BTC") is None

    @patch("oracle_aggregator.src.PriceCache.time.time")
    def test_stale_allowed_ignores_ttl(self, mock_time) -> None:
        mock_time.return_value = 1000.0
        cache = PriceCache(CacheConfig(ttl_seconds=60.0))
        cache.set("BTC", _price())

        mock_time.return_value = 5000.0
        entry = cache.get_stale_allowed("BTC")
        assert entry is not None
        assert entry.get_age() == 4000.0

    @patch("oracle_aggregator.src.PriceCache.time.time")
    def test_stats(self, mock_time) -> None:
        mock_time.return_value = 1000.0
        cache = PriceCache(CacheConfig(ttl_seconds=60.0, max_size=10))
        cache.set("BTC", _price("BTC"))

        mock_time.return_value = 1050.0
        cache.set("ETH", _price("ETH"))

        mock_time.return_value = 1070.0
        assert cache.get_stats() == {"size": 2, "expired": 1, "max_size": 10}


class TestPriceCacheEviction:
    """Test max_size eviction."""

    @patch("oracle_aggregator.src.PriceCache.time.time")
    def test_evicts_oldest(self, mock_time) -> None:
        cache = PriceCache(CacheConfig(max_size=2))

        mock_time.return_value = 1000.0
        cache.set("BTC", _price("BTC"))
        mock_time.return_value = 1001.0
        cache.set("ETH", _price("ETH"))
        mock_time.return_value = 1002.0
        cache.set("XLM", _price("XLM"))

        assert len(cache) == 2
        assert cache.get_stale_allowed("BTC") is None
        assert cache.get("ETH") is not None
        assert cache.get("XLM") is not None

    @patch("oracle_aggregator.src.PriceCache.time.time")
    def test_overwrite_at_capacity_does_not_evict(self, mock_time) -> None:
        cache = PriceCache(CacheConfig(max_size=2))

        mock_time.return_value = 1000.0
        cache.set("BTC", _price("BTC"))
        cache.set("ETH", _price("ETH"))
        mock_time.return_value = 1001.0
        cache.set("BTC", _price("BTC", 200.0))

        assert len(cache) == 2
        assert cache.get("ETH") is not None
