"""Base source interface and shared HTTP client management.

All price sources inherit from BaseSource and implement get_price(). A
shared httpx.AsyncClient is used across all HTTP sources to avoid connection
overhead. Unlike the aggregator, a source reports problems by raising
SourceError; the aggregator turns those into circuit breaker failures.

.. code-block:: python

    @register_source
    class MySource(BaseSource):
        name = "mysource"
        description = "Example exchange"

        async def get_price(self, symbol: str) -> PriceObservation:
            pair = TradingPair.from_string(symbol)
            response = await self._get(f"https://api.example.com/{pair.pair_base}")
            return self._observation(symbol, response.json()["price"])
"""

from __future__ import annotations

import asyncio
import logging
import math
import time
from abc import ABC, abstractmethod
from typing import Any, ClassVar

import httpx

from ..PriceTypes import PriceObservation, SourceInfo
from ..retry import RetryConfig, retry_with_backoff

logger = logging.getLogger(__name__)


class SourceError(Exception):
    """Base exception for source errors."""

    pass


class SourceConfigError(SourceError):
    """Raised when source configuration is invalid (e.g., missing API key)."""

    pass


class UnsupportedSymbolError(SourceError):
    """Raised when a source does not know the requested symbol."""

    def __init__(self, source: str, symbol: str):
        """Initialize the error.

        :param source: Source name.
        :param symbol: Requested symbol.
        """
        self.symbol = symbol
        super().__init__(f"[{source}] Unsupported symbol: {symbol}")


class SourceHTTPError(SourceError):
    """Raised when HTTP request fails.

    :ivar status_code: HTTP status code from the failed request.
    """

    def __init__(self, status_code: int, message: str):
        """Initialize the HTTP error.

        :param status_code: HTTP status code.
        :param message: Error message from response.
        """
        self.status_code = status_code
        super().__init__(f"HTTP {status_code}: {message}")


class SourceTimeoutError(SourceError):
    """Raised when an HTTP request times out."""

    pass


class BaseSource(ABC):
    """Abstract base class for price sources.

    Subclasses must implement:
        - name: Class variable identifying the source (e.g., "coinbase")
        - get_price(): Async method returning a PriceObservation or raising

    :cvar name: Unique identifier for this source.
    :cvar description: Human readable description.
    :cvar version: Adapter version.
    :cvar HEALTH_CHECK_SYMBOL: Symbol probed by is_healthy().
    :ivar api_key: Optional API key for authenticated endpoints.
    :ivar timeout: Request timeout in seconds.
    :ivar retry_config: Retry settings for transient HTTP errors.
    """

    # Class-level shared HTTP client
    _shared_client: ClassVar[httpx.AsyncClient | None] = None

    # Source identification
    name: ClassVar[str] = ""
    description: ClassVar[str] = ""
    version: ClassVar[str] = "1.0.0"

    # Default timeout for HTTP requests (seconds)
    DEFAULT_TIMEOUT = 10.0

    HEALTH_CHECK_SYMBOL = "btc/usd"

    def __init__(
        self,
        api_key: str | None = None,
        timeout: float | None = None,
        retry_config: RetryConfig | None = None,
    ):
        """Initialize the source.

        :param api_key: Optional API key for authenticated endpoints.
        :param timeout: Request timeout in seconds (default: 10).
        :param retry_config: Retry settings (default: single attempt).
        """
        self.api_key = api_key
        self.timeout = timeout or self.DEFAULT_TIMEOUT
        self.retry_config = retry_config or RetryConfig(max_attempts=1)

    @property
    def has_api_key(self) -> bool:
        """Check if this source has an API key configured."""
        return self.api_key is not None and len(self.api_key) > 0

    @classmethod
    def get_shared_client(cls) -> httpx.AsyncClient:
        """Get or create the shared HTTP client.

        The client is shared across all source instances to reuse connections.

        :returns: Shared httpx.AsyncClient instance.
        """
        if BaseSource._shared_client is None or BaseSource._shared_client.is_closed:
            BaseSource._shared_client = httpx.AsyncClient(
                timeout=httpx.Timeout(30.0, connect=10.0),
                limits=httpx.Limits(max_connections=50, max_keepalive_connections=20),
                follow_redirects=True,
            )
        return BaseSource._shared_client

    @classmethod
    async def close_shared_client(cls) -> None:
        """Close the shared HTTP client."""
        client = BaseSource._shared_client
        if client is not None and not client.is_closed:
            await client.aclose()
        BaseSource._shared_client = None

    @abstractmethod
    async def get_price(self, symbol: str) -> PriceObservation:
        """Fetch the current price for a symbol.

        :param symbol: Symbol such as "btc" or "eth/usd".
        :returns: Observation stamped with the current time.
        :raises SourceError: On any provider problem.
        """
        pass

    async def get_prices(self, symbols: list[str]) -> list[PriceObservation]:
        """Fetch prices for several symbols.

        Default implementation issues concurrent individual requests and
        skips symbols that fail. Override for batch-capable APIs.

        :param symbols: Symbols to fetch.
        :returns: Observations for the symbols that succeeded.
        """
        results = await asyncio.gather(
            *(self.get_price(s) for s in symbols), return_exceptions=True
        )
        observations: list[PriceObservation] = []
        for symbol, result in zip(symbols, results, strict=True):
            if isinstance(result, SourceError):
                logger.warning(f"[{self.name}] Failed to fetch {symbol}: {result}")
            elif isinstance(result, BaseException):
                raise result
            else:
                observations.append(result)
        return observations

    async def is_healthy(self) -> bool:
        """Check if the source currently answers.

        :returns: True if a probe request for HEALTH_CHECK_SYMBOL succeeds.
        """
        try:
            await self.get_price(self.HEALTH_CHECK_SYMBOL)
            return True
        except SourceError as e:
            logger.debug(f"[{self.name}] Health check failed: {e}")
            return False

    def supported_symbols(self) -> list[str]:
        """Symbols this source knows; empty means it accepts any symbol."""
        return []

    def get_source_info(self) -> SourceInfo:
        """Describe this source.

        :returns: SourceInfo with name, description, version and symbols.
        """
        return SourceInfo(
            name=self.name,
            description=self.description,
            version=self.version,
            supported_symbols=self.supported_symbols(),
        )

    def _observation(
        self,
        symbol: str,
        price: Any,
        metadata: dict[str, Any] | None = None,
    ) -> PriceObservation:
        """Build an observation from a raw provider value.

        :param symbol: Requested symbol.
        :param price: Raw price (string or number).
        :param metadata: Optional provider details.
        :returns: PriceObservation stamped now.
        :raises SourceError: If the value is not a finite number.
        """
        try:
            value = float(price)
        except (TypeError, ValueError) as e:
            raise SourceError(f"[{self.name}] Invalid price for {symbol}: {price!r}") from e
        if not math.isfinite(value):
            raise SourceError(f"[{self.name}] Invalid price for {symbol}: {price!r}")
        return PriceObservation(
            symbol=symbol,
            price=value,
            timestamp=time.time(),
            source=self.name,
            metadata=metadata,
        )

    async def _get(
        self,
        url: str,
        *,
        params: dict | None = None,
        headers: dict | None = None,
    ) -> httpx.Response:
        """Make an HTTP GET request using the shared client.

        Transient failures are retried according to retry_config.

        :param url: Request URL.
        :param params: Optional query parameters.
        :param headers: Optional request headers.
        :returns: httpx.Response object.
        :raises SourceHTTPError: On non-2xx response.
        :raises SourceError: On network/timeout errors.
        """

        async def attempt() -> httpx.Response:
            client = self.get_shared_client()
            try:
                response = await client.get(
                    url,
                    params=params,
                    headers=headers,
                    timeout=self.timeout,
                )
            except httpx.TimeoutException as e:
                raise SourceTimeoutError(f"Request timeout: {e}") from e
            except httpx.RequestError as e:
                raise SourceError(f"Request failed: {e}") from e

            if not response.is_success:
                logger.debug(
                    "HTTP GET %s failed with status %s: %s",
                    url,
                    response.status_code,
                    response.text[:200],
                )
                raise SourceHTTPError(response.status_code, response.text[:200])
            return response

        return await retry_with_backoff(
            attempt, self.retry_config, label=f"[{self.name}] "
        )


# Registry of available sources (populated by subclass imports)
SOURCE_REGISTRY: dict[str, type[BaseSource]] = {}


def register_source(cls: type[BaseSource]) -> type[BaseSource]:
    """Decorator to register a source class in the global registry.

    :param cls: Source class to register.
    :returns: The registered class (unchanged).
    :raises ValueError: If source has no name defined.

    .. code-block:: python

        @register_source
        class CoinbaseSource(BaseSource):
            name = "coinbase"
            ...
    """
    if not cls.name:
        raise ValueError(f"Source {cls.__name__} must define a 'name' class variable")
    SOURCE_REGISTRY[cls.name] = cls
    return cls


def get_source(
    name: str,
    api_key: str | None = None,
    timeout: float | None = None,
) -> BaseSource:
    """Get a source instance by name.

    :param name: Source name (e.g., "coinbase", "kraken").
    :param api_key: Optional API key.
    :param timeout: Optional request timeout in seconds.
    :returns: Source instance.
    :raises ValueError: If source name is unknown.
    """
    if name not in SOURCE_REGISTRY:
        available = ", ".join(sorted(SOURCE_REGISTRY.keys()))
        raise ValueError(f"Unknown source '{name}'. Available: {available}")
    return SOURCE_REGISTRY[name](api_key=api_key, timeout=timeout)


def get_available_sources() -> list[str]:
    """Get list of available source names.

    :returns: Sorted list of registered source names.
    """
    return sorted(SOURCE_REGISTRY.keys())
