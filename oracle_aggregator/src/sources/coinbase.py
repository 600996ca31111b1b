"""Coinbase Exchange source.

Endpoint: https://api.exchange.coinbase.com/products/{BASE}-{QUOTE}/ticker
Rate Limit: High (no key required)
"""

import logging

from ..PriceTypes import PriceObservation
from ..TradingPair import TradingPair
from .base import BaseSource, SourceError, SourceHTTPError, UnsupportedSymbolError, register_source

logger = logging.getLogger(__name__)


@register_source
class CoinbaseSource(BaseSource):
    """Source for the Coinbase Exchange public ticker.

    No API key required for public ticker endpoint.
    """

    name = "coinbase"
    description = "Coinbase Exchange spot ticker"
    BASE_URL = "https://api.exchange.coinbase.com"

    async def get_price(self, symbol: str) -> PriceObservation:
        """Fetch price from Coinbase Exchange.

        :param symbol: Symbol such as "btc" or "eth/usd".
        :returns: Current price observation.
        :raises UnsupportedSymbolError: If Coinbase does not list the product.
        :raises SourceError: On request or parse failure.
        """
        pair = TradingPair.from_string(symbol)
        product = f"{pair.pair_base.upper()}-{pair.pair_quote.upper()}"
        url = f"{self.BASE_URL}/products/{product}/ticker"

        try:
            response = await self._get(url)
        except SourceHTTPError as e:
            if e.status_code == 404:
                raise UnsupportedSymbolError(self.name, symbol) from e
            raise

        try:
            data = response.json()
            price = data["price"]
        except (KeyError, ValueError, TypeError) as e:
            raise SourceError(f"[coinbase] Failed to parse response for {product}: {e}") from e

        return self._observation(symbol, price, {"product": product})
