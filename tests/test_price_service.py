from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from cryptoadvisor.application.services.price_service import PriceService
from cryptoadvisor.application.services.sentiment_service import SentimentService
from cryptoadvisor.domain.entities import SentimentLabel
from cryptoadvisor.domain.errors import DataUnavailable
from cryptoadvisor.infrastructure.cache import InMemoryCache

pytestmark = pytest.mark.asyncio

BINANCE = "cryptoadvisor.application.services.price_service.BinancePricing.get_price"


@pytest.fixture
def coingecko():
    client = MagicMock()
    client.get_price = AsyncMock(return_value=None)
    return client


@pytest.fixture
def price_service(coingecko):
    return PriceService(provider="binance", cache_ttl_seconds=60, cache=InMemoryCache(), coingecko=coingecko)


async def test_binance_price_is_cached(price_service, coingecko):
    with patch(BINANCE, return_value=50000.0) as binance:
        assert await price_service.get_price("btc") == Decimal("50000.0")
        assert await price_service.get_price("BTC/USDT") == Decimal("50000.0")

    binance.assert_called_once_with("BTCUSDT")
    coingecko.get_price.assert_not_called()


async def test_fails_over_to_coingecko(price_service, coingecko):
    coingecko.get_price.return_value = 2400.5
    with patch(BINANCE, return_value=None):
        assert await price_service.get_price("ETH") == Decimal("2400.5")
    coingecko.get_price.assert_awaited_once_with("ETH")


async def test_force_refresh_skips_cache(price_service):
    with patch(BINANCE, side_effect=[100.0, 120.0]):
        assert await price_service.get_cached_price("SOL") == 100.0
        assert await price_service.get_cached_price("SOL", force_refresh=True) == 120.0


async def test_all_providers_down(price_service):
    with patch(BINANCE, return_value=None):
        assert await price_service.get_cached_price("BTC") is None
        with pytest.raises(DataUnavailable):
            await price_service.get_price("BTC")


async def test_coingecko_only_provider(coingecko):
    service = PriceService(provider="coingecko", cache=InMemoryCache(), coingecko=coingecko)
    coingecko.get_price.return_value = 1.25
    with patch(BINANCE) as binance:
        assert await service.get_price("ADA") == Decimal("1.25")
    binance.assert_not_called()


async def test_stablecoins_are_pegged(price_service):
    with patch(BINANCE) as binance:
        assert await price_service.get_price("USDT") == Decimal("1.0")
    binance.assert_not_called()


async def test_unparseable_symbol_is_data_unavailable(price_service):
    with pytest.raises(DataUnavailable):
        await price_service.get_price("$")


async def test_sentiment_reading_is_cached():
    client = MagicMock()
    client.get_index = AsyncMock(return_value=18)
    service = SentimentService(client=client, cache_ttl_seconds=600)

    first = await service.current()
    second = await service.current()

    assert first.label == SentimentLabel.EXTREMELY_BEARISH
    assert first.score == 18
    assert second == first
    client.get_index.assert_awaited_once()


async def test_sentiment_unavailable():
    client = MagicMock()
    client.get_index = AsyncMock(return_value=None)
    with pytest.raises(DataUnavailable):
        await SentimentService(client=client).current()
