"""TradingPair: Parsed form of a symbol passed to source adapters.

Callers ask the aggregator for plain symbols such as ``"BTC"`` or pairs such
as ``"eth/usd"``. A bare base asset is quoted in USD.

.. code-block:: python

    >>> pair = TradingPair.from_string("BTC")
    >>> str(pair)
    'btc/usd'
    >>> TradingPair.from_string("eth/eur").pair_quote
    'eur'
"""

from __future__ import annotations

DEFAULT_QUOTE = "usd"


class TradingPair:
    """A base/quote trading pair.

    :ivar pair_base: Base currency symbol (lowercase).
    :ivar pair_quote: Quote currency symbol (lowercase).
    """

    def __init__(self, pair_base: str, pair_quote: str = DEFAULT_QUOTE) -> None:
        """Initialize a trading pair.

        :param pair_base: Base currency symbol (e.g., "btc", "eth", "xlm").
        :param pair_quote: Quote currency symbol (default: "usd").
        """
        self.pair_base = pair_base.strip().lower()
        self.pair_quote = pair_quote.strip().lower()

    def __str__(self) -> str:
        """Return the canonical ``base/quote`` form."""
        return f"{self.pair_base}/{self.pair_quote}"

    def __repr__(self) -> str:
        """Return a developer-friendly string representation."""
        return f"TradingPair({self.pair_base!r}, {self.pair_quote!r})"

    def __hash__(self) -> int:
        """Return hash for use in dicts and sets."""
        return hash(str(self))

    def __eq__(self, other: object) -> bool:
        """Check equality based on string representation."""
        if not isinstance(other, TradingPair):
            return NotImplemented
        return str(self) == str(other)

    @classmethod
    def from_string(cls, symbol: str) -> TradingPair:
        """Parse a symbol in format ``base`` or ``base/quote``.

        :param symbol: Symbol like "btc", "XLM" or "eth/usd".
        :returns: New TradingPair instance.
        :raises ValueError: If the symbol format is invalid.
        """
        parts = [p.strip() for p in symbol.split("/")]
        if len(parts) == 1 and parts[0]:
            return cls(parts[0])
        if len(parts) == 2 and all(parts):
            return cls(parts[0], parts[1])
        raise ValueError(
            f"Invalid symbol '{symbol}'. Expected 'base' or 'base/quote' (e.g., 'btc/usd')"
        )
