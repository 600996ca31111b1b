"""Aggregated price cache.

Keeps the last good aggregated price per symbol for a short TTL. Fresh
entries let the orchestrator skip provider calls entirely; expired entries
are still available through get_stale_allowed() as a fallback when too few
live sources answer.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .OracleConfig import CacheConfig
    from .PriceTypes import AggregatedPrice

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheEntry:
    """A cached aggregated price.

    :ivar symbol: Cached symbol.
    :ivar aggregated_price: The cached result.
    :ivar inserted_at: Unix timestamp of insertion.
    :ivar ttl_seconds: Freshness window of this entry.
    """

    symbol: str
    aggregated_price: AggregatedPrice
    inserted_at: float
    ttl_seconds: float

    def is_expired(self, now: float | None = None) -> bool:
        """Check if the entry is older than its TTL.

        :param now: Reference time (default: current time).
        :returns: True if ``now - inserted_at > ttl_seconds``.
        """
        if now is None:
            now = time.time()
        return now - self.inserted_at > self.ttl_seconds

    def get_age(self, now: float | None = None) -> float:
        """Get the age of the entry in seconds."""
        if now is None:
            now = time.time()
        return now - self.inserted_at


class PriceCache:
    """Thread-safe TTL cache of aggregated prices keyed by symbol.

    Entries are replaced whole, never updated in place. When full, the entry
    with the oldest insertion time is evicted before a new one is stored.

    :ivar ttl_seconds: Freshness window for new entries.
    :ivar max_size: Maximum number of symbols kept.
    """

    def __init__(self, config: CacheConfig) -> None:
        """Initialize an empty cache.

        :param config: Cache settings.
        """
        self.ttl_seconds = config.ttl_seconds
        self.max_size = config.max_size
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.Lock()

    def get(self, symbol: str) -> CacheEntry | None:
        """Get a fresh entry.

        :param symbol: Symbol to look up.
        :returns: The entry, or None if absent or expired.
        """
        with self._lock:
            entry = self._entries.get(symbol)
        if entry is None:
            return None
        if entry.is_expired():
            logger.debug(f"{symbol}: cache entry expired")
            return None
        return entry

    def get_stale_allowed(self, symbol: str) -> CacheEntry | None:
        """Get an entry regardless of its age.

        :param symbol: Symbol to look up.
        :returns: The entry, or None if absent.
        """
        with self._lock:
            return self._entries.get(symbol)

    def set(self, symbol: str, aggregated_price: AggregatedPrice) -> CacheEntry:
        """Insert or overwrite the entry for a symbol.

        :param symbol: Symbol to store.
        :param aggregated_price: Result to cache.
        :returns: The stored entry.
        """
        entry = CacheEntry(
            symbol=symbol,
            aggregated_price=aggregated_price,
            inserted_at=time.time(),
            ttl_seconds=self.ttl_seconds,
        )
        with self._lock:
            if symbol not in self._entries and len(self._entries) >= self.max_size:
                oldest = min(self._entries.values(), key=lambda e: e.inserted_at)
                del self._entries[oldest.symbol]
                logger.debug(f"Cache full, evicted {oldest.symbol}")
            self._entries[symbol] = entry
        return entry

    def invalidate(self, symbol: str) -> None:
        """Drop the entry for a symbol if present."""
        with self._lock:
            self._entries.pop(symbol, None)

    def clear(self) -> None:
        """Remove all entries."""
        with self._lock:
            self._entries.clear()

    def get_stats(self) -> dict[str, int]:
        """Get cache statistics.

        :returns: Dict with total and expired entry counts.
        """
        now = time.time()
        with self._lock:
            entries = list(self._entries.values())
        return {
            "size": len(entries),
            "expired": sum(1 for e in entries if e.is_expired(now)),
            "max_size": self.max_size,
        }

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
