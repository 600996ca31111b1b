"""In-memory price source for tests and local runs.

.. code-block:: python

    source = MockSource("alpha", {"btc": 50000.0})
    source.set_should_fail(True)  # get_price now raises SourceError
"""

from __future__ import annotations

import asyncio
from dataclasses import replace

from ..PriceTypes import PriceObservation, SourceInfo
from .base import BaseSource, SourceError, register_source


@register_source
class MockSource(BaseSource):
    """Source returning configured prices.

    Symbols without a configured price are quoted at DEFAULT_PRICE.

    :ivar prices: Symbol to price map.
    :ivar healthy: Value returned by is_healthy().
    :ivar delay: Seconds to sleep before answering.
    :ivar should_fail: If True, get_price raises SourceError.
    :ivar call_count: Number of get_price calls received.
    """

    name = "mock"
    description = "In-memory mock source"

    DEFAULT_PRICE = 100.0

    def __init__(
        self,
        name: str = "mock",
        prices: dict[str, float] | None = None,
        *,
        healthy: bool = True,
        delay: float = 0.0,
        should_fail: bool = False,
        api_key: str | None = None,
        timeout: float | None = None,
    ):
        super().__init__(api_key=api_key, timeout=timeout)
        self.name = name
        self.prices = dict(prices or {})
        self.healthy = healthy
        self.delay = delay
        self.should_fail = should_fail
        self.call_count = 0

    async def get_price(self, symbol: str) -> PriceObservation:
        self.call_count += 1
        if self.delay > 0:
            await asyncio.sleep(self.delay)
        if self.should_fail:
            raise SourceError(f"Mock source {self.name} failed")
        return self._observation(symbol, self.prices.get(symbol, self.DEFAULT_PRICE))

    async def is_healthy(self) -> bool:
        return self.healthy

    def supported_symbols(self) -> list[str]:
        return sorted(self.prices)

    def get_source_info(self) -> SourceInfo:
        return replace(super().get_source_info(), description=f"Mock oracle source {self.name}")

    def set_price(self, symbol: str, price: float) -> None:
        self.prices[symbol] = price

    def set_healthy(self, healthy: bool) -> None:
        self.healthy = healthy

    def set_should_fail(self, should_fail: bool) -> None:
        self.should_fail = should_fail
