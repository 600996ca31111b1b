"""CoinGecko source.

Endpoint: https://api.coingecko.com/api/v3/simple/price?ids={id}&vs_currencies={quote}
Rate Limit: 30 calls/min (free), higher with API key
"""

from __future__ import annotations

import logging

from ..PriceTypes import PriceObservation
from ..TradingPair import TradingPair
from .base import BaseSource, SourceError, UnsupportedSymbolError, register_source

logger = logging.getLogger(__name__)


@register_source
class CoinGeckoSource(BaseSource):
    """Source for the CoinGecko simple price API.

    API tiers:
        - Free: api.coingecko.com (no key, 30 calls/min)
        - Demo: api.coingecko.com + x-cg-demo-api-key header
        - Pro: pro-api.coingecko.com + x-cg-pro-api-key header

    To use a demo key, prefix with "demo:": API_KEY_COINGECKO=demo:CG-xxxxx
    Pro keys need no prefix: API_KEY_COINGECKO=xxxxx
    """

    name = "coingecko"
    description = "CoinGecko aggregated market price"
    BASE_URL_FREE = "https://api.coingecko.com/api/v3"
    BASE_URL_PRO = "https://pro-api.coingecko.com/api/v3"

    # Map common symbols to CoinGecko IDs
    COIN_IDS = {
        "btc": "bitcoin",
        "eth": "ethereum",
        "xlm": "stellar",
        "usdt": "tether",
        "usdc": "usd-coin",
        "sol": "solana",
        "ada": "cardano",
        "avax": "avalanche-2",
        "matic": "matic-network",
        "dot": "polkadot",
        "atom": "cosmos",
        "link": "chainlink",
        "uni": "uniswap",
        "aave": "aave",
        "doge": "dogecoin",
        "ltc": "litecoin",
        "xrp": "ripple",
    }

    def __init__(self, api_key: str | None = None, timeout: float | None = None, **kwargs):
        """Initialize with optional demo: prefix handling."""
        self._is_demo = False
        if api_key and api_key.lower().startswith("demo:"):
            self._is_demo = True
            api_key = api_key[5:]
        super().__init__(api_key=api_key, timeout=timeout, **kwargs)

    @property
    def base_url(self) -> str:
        """Return appropriate base URL based on API key type."""
        if not self.has_api_key or self._is_demo:
            return self.BASE_URL_FREE
        return self.BASE_URL_PRO

    @property
    def headers(self) -> dict[str, str] | None:
        """Return the API key header, if a key is configured."""
        if not self.has_api_key:
            return None
        header_name = "x-cg-demo-api-key" if self._is_demo else "x-cg-pro-api-key"
        return {header_name: self.api_key}

    def supported_symbols(self) -> list[str]:
        return sorted(self.COIN_IDS)

    def coin_id(self, symbol: str) -> str:
        """Map a symbol to its CoinGecko coin id.

        :raises UnsupportedSymbolError: If the base asset is unknown.
        """
        pair = TradingPair.from_string(symbol)
        coin_id = self.COIN_IDS.get(pair.pair_base)
        if coin_id is None:
            raise UnsupportedSymbolError(self.name, symbol)
        return coin_id

    async def _simple_price(self, coin_ids: list[str], quotes: list[str]) -> dict:
        response = await self._get(
            f"{self.base_url}/simple/price",
            params={"ids": ",".join(coin_ids), "vs_currencies": ",".join(quotes)},
            headers=self.headers,
        )
        try:
            return response.json()
        except ValueError as e:
            raise SourceError(f"[coingecko] Invalid JSON: {e}") from e

    def _extract(self, data: dict, symbol: str) -> PriceObservation:
        coin_id = self.coin_id(symbol)
        quote = TradingPair.from_string(symbol).pair_quote
        try:
            price = data[coin_id][quote]
        except (KeyError, TypeError) as e:
            raise SourceError(f"[coingecko] No {quote} price for {coin_id}") from e
        return self._observation(symbol, price, {"coin_id": coin_id})

    async def get_price(self, symbol: str) -> PriceObservation:
        """Fetch price from CoinGecko.

        :param symbol: Symbol such as "btc" or "eth/usd".
        :returns: Current price observation.
        :raises UnsupportedSymbolError: If the base asset is not in COIN_IDS.
        :raises SourceError: On request or parse failure.
        """
        coin_id = self.coin_id(symbol)
        quote = TradingPair.from_string(symbol).pair_quote
        data = await self._simple_price([coin_id], [quote])
        return self._extract(data, symbol)

    async def get_prices(self, symbols: list[str]) -> list[PriceObservation]:
        """Fetch prices for multiple symbols in a single API call.

        Unknown symbols and symbols missing from the response are skipped.

        :param symbols: Symbols to fetch.
        :returns: Observations for the symbols that resolved.
        """
        supported: list[str] = []
        for symbol in symbols:
            try:
                self.coin_id(symbol)
            except UnsupportedSymbolError as e:
                logger.warning(str(e))
                continue
            supported.append(symbol)

        if not supported:
            return []

        coin_ids = sorted({self.coin_id(s) for s in supported})
        quotes = sorted({TradingPair.from_string(s).pair_quote for s in supported})
        data = await self._simple_price(coin_ids, quotes)

        observations: list[PriceObservation] = []
        for symbol in supported:
            try:
                observations.append(self._extract(data, symbol))
            except SourceError as e:
                logger.warning(str(e))
        return observations
