from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from cryptoadvisor.application.services.market_data_service import MarketDataService
from cryptoadvisor.application.services.portfolio_service import PortfolioService
from cryptoadvisor.domain.errors import DataUnavailable
from cryptoadvisor.domain.value_objects import Position
from cryptoadvisor.infrastructure.db.repository import HoldingRepository

PRICES = {"BTC": Decimal("50000"), "ETH": Decimal("2000"), "SOL": Decimal("100")}


@pytest.fixture
def price_service():
    service = MagicMock()

    async def _price(symbol):
        if symbol not in PRICES:
            raise DataUnavailable(f"no price available for {symbol}")
        return PRICES[symbol]

    service.get_price = AsyncMock(side_effect=_price)
    return service


@pytest.fixture
def portfolio(price_service, session_scope):
    return PortfolioService(price_service=price_service, session_scope=session_scope)


@pytest.fixture
def market(portfolio, price_service):
    sentiment = MagicMock()
    return MarketDataService(price_service=price_service, portfolio_service=portfolio, sentiment_service=sentiment)


def _hold(session_scope, user_id, symbol, amount, invested):
    with session_scope() as session:
        HoldingRepository(session).upsert(user_id, symbol, Decimal(amount), Decimal(invested))


@pytest.fixture
def holdings(session_scope, user_id):
    # BTC worth 30000 (cost 20000), ETH worth 20000 (cost 30000), SOL watched only.
    _hold(session_scope, user_id, "btc", "0.6", "20000")
    _hold(session_scope, user_id, "ETH/USDT", "10", "30000")
    _hold(session_scope, user_id, "SOL", "0", "0")


@pytest.mark.asyncio
async def test_positions_skip_empty_holdings(portfolio, holdings, user_id):
    positions = await portfolio.positions(user_id)
    assert sorted(p.symbol for p in positions) == ["BTC", "ETH"]


@pytest.mark.asyncio
async def test_allocations(market, holdings, user_id):
    allocations = await market.portfolio_allocations(user_id)
    assert allocations == {"BTC": Decimal("60"), "ETH": Decimal("40")}


@pytest.mark.asyncio
async def test_losses_and_gains(market, holdings, user_id):
    assert await market.unrealized_losses(user_id) == {"ETH": Decimal("10000")}
    gains = await market.unrealized_gains(user_id)
    assert gains["BTC"] == Decimal("50")
    assert round(gains["ETH"], 2) == Decimal("-33.33")


@pytest.mark.asyncio
async def test_drawdown_is_floored_at_zero(market, holdings, user_id):
    # Invested 50000, worth 50000.
    assert await market.risk_measure(user_id) == Decimal("0")


def test_drawdown_against_invested_capital():
    positions = [
        Position("BTC", Decimal("0.6"), Decimal("20000"), Decimal("25000")),
        Position("ETH", Decimal("10"), Decimal("30000"), Decimal("2000")),
    ]
    assert PortfolioService.drawdown(positions) == Decimal("30")


@pytest.mark.asyncio
async def test_empty_portfolio(market, user_id):
    assert await market.portfolio_allocations(user_id) == {}
    assert await market.unrealized_losses(user_id) == {}
    assert await market.risk_measure(user_id) == Decimal("0")


@pytest.mark.asyncio
async def test_missing_price_is_data_unavailable(market, session_scope, user_id):
    _hold(session_scope, user_id, "PEPE", "1000000", "10")
    with pytest.raises(DataUnavailable):
        await market.portfolio_allocations(user_id)


def test_upsert_updates_existing_holding(session_scope, user_id):
    _hold(session_scope, user_id, "BTC", "1", "30000")
    _hold(session_scope, user_id, "bitcoin", "2", "60000")
    with session_scope() as session:
        [row] = HoldingRepository(session).list_for_user(user_id)
        assert row.symbol == "BTC"
        assert Decimal(str(row.holdings_amount)) == Decimal("2")
