"""
Price sources for multiple API providers.

This module provides a unified interface for fetching cryptocurrency prices
from exchanges and aggregator APIs, plus an in-memory mock.

Usage:
    from oracle_aggregator.src.sources import get_source, get_available_sources

    # Get list of available sources
    available = get_available_sources()
    # ['coinbase', 'coingecko', 'coinmarketcap', 'kraken', 'mock']

    # Create a source instance
    source = get_source("coinbase")
    observation = await source.get_price("btc/usd")

    # For sources requiring API keys
    source = get_source("coinmarketcap", api_key="your-api-key")
"""

from .base import (
    SOURCE_REGISTRY,
    BaseSource,
    SourceConfigError,
    SourceError,
    SourceHTTPError,
    SourceTimeoutError,
    UnsupportedSymbolError,
    get_available_sources,
    get_source,
    register_source,
)

# Import all source implementations to trigger registration
from .coinbase import CoinbaseSource
from .coingecko import CoinGeckoSource
from .coinmarketcap import CoinMarketCapSource
from .kraken import KrakenSource
from .mock import MockSource

__all__ = [
    # Base classes
    "BaseSource",
    "SourceError",
    "SourceConfigError",
    "SourceHTTPError",
    "SourceTimeoutError",
    "UnsupportedSymbolError",
    # Registry functions
    "register_source",
    "get_source",
    "get_available_sources",
    "SOURCE_REGISTRY",
    # Source implementations
    "CoinbaseSource",
    "CoinGeckoSource",
    "CoinMarketCapSource",
    "KrakenSource",
    "MockSource",
]
