"""Unit tests for price sources."""

from unittest.mock import AsyncMock, patch

import httpx
import pytest

from oracle_aggregator.src.retry import RetryConfig
from oracle_aggregator.src.sources import (
    BaseSource,
    CoinbaseSource,
    CoinGeckoSource,
    CoinMarketCapSource,
    KrakenSource,
    MockSource,
    SourceConfigError,
    SourceError,
    SourceHTTPError,
    SourceTimeoutError,
    UnsupportedSymbolError,
    get_available_sources,
    get_source,
)


def _response(payload, status_code: int = 200) -> httpx.Response:
    return httpx.Response(
        status_code, json=payload, request=httpx.Request("GET", "https://example.test")
    )


@pytest.fixture
def mock_transport():
    """Route the shared client through a handler set by the test."""
    handlers = []

    def dispatch(request: httpx.Request) -> httpx.Response:
        return handlers[0](request)

    BaseSource._shared_client = httpx.AsyncClient(transport=httpx.MockTransport(dispatch))
    yield handlers
    BaseSource._shared_client = None


class TestRegistry:
    """Test the source registry."""

    def test_available_sources(self) -> None:
        assert get_available_sources() == [
            "coinbase",
            "coingecko",
            "coinmarketcap",
            "kraken",
            "mock",
        ]

    def test_get_source_with_key(self) -> None:
        source = get_source("coinmarketcap", api_key="secret", timeout=3.0)
        assert isinstance(source, CoinMarketCapSource)
        assert source.has_api_key
        assert source.timeout == 3.0

    def test_unknown_source(self) -> None:
        with pytest.raises(ValueError, match="Unknown source 'nope'"):
            get_source("nope")

    def test_coinmarketcap_requires_key(self) -> None:
        with pytest.raises(SourceConfigError):
            CoinMarketCapSource()

    def test_source_info(self) -> None:
        info = CoinGeckoSource().get_source_info()
        assert info.name == "coingecko"
        assert info.version == "1.0.0"
        assert "btc" in info.supported_symbols


class TestHTTPLayer:
    """Test _get error mapping through a mocked transport."""

    @pytest.mark.asyncio
    async def test_http_error_status(self, mock_transport) -> None:
        mock_transport.append(lambda request: httpx.Response(500, text="boom"))
        with pytest.raises(SourceHTTPError) as exc_info:
            await CoinbaseSource().get_price("btc")
        assert exc_info.value.status_code == 500

    @pytest.mark.asyncio
    async def test_timeout(self, mock_transport) -> None:
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        mock_transport.append(handler)
        with pytest.raises(SourceTimeoutError):
            await CoinbaseSource().get_price("btc")

    @pytest.mark.asyncio
    async def test_retries_transient_status(self, mock_transport) -> None:
        calls = []

        def handler(request):
            calls.append(request)
            if len(calls) < 3:
                return httpx.Response(503, text="busy")
            return httpx.Response(200, json={"price": "50000.5"})

        mock_transport.append(handler)
        source = CoinbaseSource(retry_config=RetryConfig(max_attempts=3, initial_delay_seconds=0.0))

        observation = await source.get_price("btc/usd")

        assert observation.price == 50000.5
        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_close_shared_client(self) -> None:
        client = BaseSource.get_shared_client()
        assert BaseSource.get_shared_client() is client

        await BaseSource.close_shared_client()
        assert client.is_closed
        assert BaseSource._shared_client is None


class TestCoinbaseSource:
    @pytest.mark.asyncio
    async def test_parses_ticker(self) -> None:
        source = CoinbaseSource()
        with patch.object(source, "_get", AsyncMock(return_value=_response({"price": "42000.1"}))) as get:
            observation = await source.get_price("BTC")

        assert get.call_args.args[0].endswith("/products/BTC-USD/ticker")
        assert observation.price == 42000.1
        assert observation.source == "coinbase"
        assert observation.symbol == "BTC"

    @pytest.mark.asyncio
    async def test_not_found_is_unsupported(self, mock_transport) -> None:
        mock_transport.append(lambda request: httpx.Response(404, text="NotFound"))
        with pytest.raises(UnsupportedSymbolError):
            await CoinbaseSource().get_price("zzz")

    @pytest.mark.asyncio
    async def test_missing_price(self) -> None:
        source = CoinbaseSource()
        with patch.object(source, "_get", AsyncMock(return_value=_response({"message": "x"}))):
            with pytest.raises(SourceError, match="Failed to parse"):
                await source.get_price("btc")


class TestKrakenSource:
    @pytest.mark.asyncio
    async def test_maps_btc_to_xbt(self) -> None:
        payload = {"error": [], "result": {"XXBTZUSD": {"c": ["61000.0", "0.01"]}}}
        source = KrakenSource()
        with patch.object(source, "_get", AsyncMock(return_value=_response(payload))) as get:
            observation = await source.get_price("btc/usd")

        assert get.call_args.kwargs["params"] == {"pair": "XBTUSD"}
        assert observation.price == 61000.0

    @pytest.mark.asyncio
    async def test_unknown_pair(self) -> None:
        payload = {"error": ["EQuery:Unknown asset pair"]}
        source = KrakenSource()
        with patch.object(source, "_get", AsyncMock(return_value=_response(payload))):
            with pytest.raises(UnsupportedSymbolError):
                await source.get_price("zzz")

    @pytest.mark.asyncio
    async def test_api_error(self) -> None:
        payload = {"error": ["EService:Unavailable"]}
        source = KrakenSource()
        with patch.object(source, "_get", AsyncMock(return_value=_response(payload))):
            with pytest.raises(SourceError, match="API error"):
                await source.get_price("eth")


class TestCoinGeckoSource:
    def test_demo_key_prefix(self) -> None:
        source = CoinGeckoSource(api_key="demo:CG-abc")
        assert source.api_key == "CG-abc"
        assert source.base_url == CoinGeckoSource.BASE_URL_FREE
        assert source.headers == {"x-cg-demo-api-key": "CG-abc"}

    def test_pro_key(self) -> None:
        source = CoinGeckoSource(api_key="pro-key")
        assert source.base_url == CoinGeckoSource.BASE_URL_PRO
        assert source.headers == {"x-cg-pro-api-key": "pro-key"}

    @pytest.mark.asyncio
    async def test_unsupported_symbol(self) -> None:
        with pytest.raises(UnsupportedSymbolError):
            await CoinGeckoSource().get_price("notacoin")

    @pytest.mark.asyncio
    async def test_get_price(self) -> None:
        source = CoinGeckoSource()
        payload = {"stellar": {"usd": 0.12}}
        with patch.object(source, "_get", AsyncMock(return_value=_response(payload))):
            observation = await source.get_price("XLM")

        assert observation.price == 0.12
        assert observation.metadata == {"coin_id": "stellar"}

    @pytest.mark.asyncio
    async def test_batch_skips_missing(self) -> None:
        """Batch fetch should make one request and skip unresolved symbols."""
        source = CoinGeckoSource()
        payload = {"bitcoin": {"usd": 60000}, "ethereum": {}}
        get = AsyncMock(return_value=_response(payload))
        with patch.object(source, "_get", get):
            observations = await source.get_prices(["btc", "eth", "notacoin"])

        assert get.await_count == 1
        assert [o.symbol for o in observations] == ["btc"]
        assert get.call_args.kwargs["params"]["ids"] == "bitcoin,ethereum"


class TestCoinMarketCapSource:
    @pytest.mark.asyncio
    async def test_get_price(self) -> None:
        payload = {"data": {"BTC": [{"id": 1, "quote": {"USD": {"price": 59000.0}}}]}}
        source = CoinMarketCapSource(api_key="secret")
        with patch.object(source, "_get", AsyncMock(return_value=_response(payload))) as get:
            observation = await source.get_price("btc")

        assert get.call_args.kwargs["headers"] == {"X-CMC_PRO_API_KEY": "secret"}
        assert observation.price == 59000.0
        assert observation.metadata == {"cmc_id": 1}

    @pytest.mark.asyncio
    async def test_unknown_symbol(self) -> None:
        source = CoinMarketCapSource(api_key="secret")
        with patch.object(source, "_get", AsyncMock(return_value=_response({"data": {}}))):
            with pytest.raises(UnsupportedSymbolError):
                await source.get_price("zzz")


class TestMockSource:
    """Test the in-memory source."""

    @pytest.mark.asyncio
    async def test_configured_and_default_price(self) -> None:
        source = MockSource("alpha", {"BTC": 50000.0})

        assert (await source.get_price("BTC")).price == 50000.0
        assert (await source.get_price("ETH")).price == MockSource.DEFAULT_PRICE
        assert source.call_count == 2

    @pytest.mark.asyncio
    async def test_failure_and_health_toggles(self) -> None:
        source = MockSource("alpha")
        source.set_should_fail(True)
        with pytest.raises(SourceError, match="Mock source alpha failed"):
            await source.get_price("BTC")

        source.set_healthy(False)
        assert not await source.is_healthy()

    @pytest.mark.asyncio
    async def test_get_prices_skips_failures(self) -> None:
        source = MockSource("alpha", {"BTC": 1.0, "ETH": 2.0})
        observations = await source.get_prices(["BTC", "ETH"])
        assert [o.price for o in observations] == [1.0, 2.0]

        source.set_should_fail(True)
        assert await source.get_prices(["BTC"]) == []

    @pytest.mark.asyncio
    async def test_invalid_price_raises(self) -> None:
        source = MockSource("alpha", {"BTC": float("nan")})
        with pytest.raises(SourceError, match="Invalid price"):
            await source.get_price("BTC")

    def test_source_info(self) -> None:
        info = MockSource("alpha", {"ETH": 1.0, "BTC": 2.0}).get_source_info()
        assert info.name == "alpha"
        assert info.description == "Mock oracle source alpha"
        assert info.supported_symbols == ["BTC", "ETH"]
