"""CoinMarketCap source.

Endpoint: https://pro-api.coinmarketcap.com/v2/cryptocurrency/quotes/latest
Rate Limit: 333 calls/day (free tier)
API Key: Required
"""

import logging

from ..PriceTypes import PriceObservation
from ..TradingPair import TradingPair
from .base import (
    BaseSource,
    SourceConfigError,
    SourceError,
    UnsupportedSymbolError,
    register_source,
)

logger = logging.getLogger(__name__)


@register_source
class CoinMarketCapSource(BaseSource):
    """Source for the CoinMarketCap quotes API.

    API key is REQUIRED; construction fails without one.
    """

    name = "coinmarketcap"
    description = "CoinMarketCap latest quote"
    BASE_URL = "https://pro-api.coinmarketcap.com"

    def __init__(self, api_key: str | None = None, timeout: float | None = None, **kwargs):
        super().__init__(api_key=api_key, timeout=timeout, **kwargs)
        if not self.has_api_key:
            raise SourceConfigError("[coinmarketcap] API key required but not provided")

    async def get_price(self, symbol: str) -> PriceObservation:
        """Fetch price from CoinMarketCap.

        :param symbol: Symbol such as "btc" or "eth/usd".
        :returns: Current price observation.
        :raises UnsupportedSymbolError: If CoinMarketCap does not know the symbol.
        :raises SourceError: On request or parse failure.
        """
        pair = TradingPair.from_string(symbol)
        base = pair.pair_base.upper()
        quote = pair.pair_quote.upper()

        response = await self._get(
            f"{self.BASE_URL}/v2/cryptocurrency/quotes/latest",
            params={"symbol": base, "convert": quote},
            headers={"X-CMC_PRO_API_KEY": self.api_key},
        )

        try:
            data = response.json()
            symbol_data = data["data"].get(base)
        except (KeyError, ValueError, TypeError, AttributeError) as e:
            raise SourceError(f"[coinmarketcap] Failed to parse response: {e}") from e

        if not symbol_data:
            raise UnsupportedSymbolError(self.name, symbol)

        # CMC returns a list of matches, take the first one
        if isinstance(symbol_data, list):
            symbol_data = symbol_data[0]

        try:
            price = symbol_data["quote"][quote]["price"]
            cmc_id = symbol_data.get("id")
        except (KeyError, TypeError) as e:
            raise SourceError(f"[coinmarketcap] Quote {quote} not found for {base}") from e

        return self._observation(symbol, price, {"cmc_id": cmc_id})
