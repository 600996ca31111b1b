"""Kraken source.

Endpoint: https://api.kraken.com/0/public/Ticker?pair={BASE}{QUOTE}
Rate Limit: High (no key required)
"""

import logging

from ..PriceTypes import PriceObservation
from ..TradingPair import TradingPair
from .base import BaseSource, SourceError, UnsupportedSymbolError, register_source

logger = logging.getLogger(__name__)


@register_source
class KrakenSource(BaseSource):
    """Source for the Kraken public ticker.

    No API key required. Kraken reports request problems inside a 200
    response, in the ``error`` list.
    """

    name = "kraken"
    description = "Kraken spot ticker (last trade)"
    BASE_URL = "https://api.kraken.com/0/public"

    # Kraken uses non-standard ticker symbols
    SYMBOL_MAP = {
        "btc": "XBT",
        "doge": "XDG",
    }

    def kraken_pair(self, pair: TradingPair) -> str:
        """Translate a trading pair into Kraken's pair name."""
        base = self.SYMBOL_MAP.get(pair.pair_base, pair.pair_base.upper())
        return f"{base}{pair.pair_quote.upper()}"

    async def get_price(self, symbol: str) -> PriceObservation:
        """Fetch price from Kraken.

        :param symbol: Symbol such as "btc" or "eth/usd".
        :returns: Current price observation.
        :raises UnsupportedSymbolError: If Kraken reports an unknown pair.
        :raises SourceError: On request, API or parse failure.
        """
        kraken_pair = self.kraken_pair(TradingPair.from_string(symbol))
        response = await self._get(f"{self.BASE_URL}/Ticker", params={"pair": kraken_pair})

        try:
            data = response.json()
        except ValueError as e:
            raise SourceError(f"[kraken] Invalid JSON for {kraken_pair}: {e}") from e

        errors = data.get("error") or []
        if any("Unknown asset pair" in str(err) for err in errors):
            raise UnsupportedSymbolError(self.name, symbol)
        if errors:
            raise SourceError(f"[kraken] API error for {kraken_pair}: {errors}")

        result = data.get("result") or {}
        if not result:
            raise SourceError(f"[kraken] No result for {kraken_pair}")

        try:
            # Result keys may carry X/Z prefixes; 'c' is [last price, lot volume]
            pair_data = result.get(kraken_pair) or next(iter(result.values()))
            price = pair_data["c"][0]
        except (KeyError, TypeError, IndexError) as e:
            raise SourceError(f"[kraken] Failed to parse response for {kraken_pair}: {e}") from e

        return self._observation(symbol, price, {"pair": kraken_pair})
