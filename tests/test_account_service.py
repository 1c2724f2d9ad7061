from decimal import Decimal

import pytest

from cryptoadvisor.application.services.account_service import AccountService
from cryptoadvisor.application.services.portfolio_service import PortfolioService
from cryptoadvisor.domain.errors import InvalidHolding, UserNotFound


@pytest.fixture
def accounts(session_scope):
    return AccountService(session_scope=session_scope)


def test_register_user_is_idempotent(accounts):
    first = accounts.register_user("Erin@Example.com", "Erin")
    second = accounts.register_user("erin@example.com")

    assert first.id == second.id
    assert second.email == "erin@example.com"
    assert second.name == "Erin"
    assert accounts.get_user(first.id).email == "erin@example.com"
    assert accounts.get_user(999) is None


def test_register_user_requires_an_email(accounts):
    with pytest.raises(ValueError):
        accounts.register_user("   ")


def test_set_holding_normalizes_and_replaces(accounts, user_id):
    accounts.set_holding(user_id, "bitcoin", "0.5", "20000", purchase_price="40000")
    holding = accounts.set_holding(user_id, "BTC/USDT", "0.75", "30000")

    assert holding.symbol == "BTC"
    assert holding.holdings_amount == Decimal("0.75")
    assert holding.purchase_price is None
    [stored] = accounts.list_holdings(user_id)
    assert stored.initial_investment_usd == Decimal("30000")


@pytest.mark.parametrize("symbol, amount, invested", [
    ("BTC", "-1", "0"),
    ("BTC", "lots", "0"),
    ("BTC", None, "0"),
    ("BTC", "1", "NaN"),
    ("?", "1", "0"),
])
def test_set_holding_rejects_bad_input(accounts, user_id, symbol, amount, invested):
    with pytest.raises(InvalidHolding):
        accounts.set_holding(user_id, symbol, amount, invested)
    assert accounts.list_holdings(user_id) == []


def test_set_holding_requires_known_user(accounts):
    with pytest.raises(UserNotFound):
        accounts.set_holding(999, "BTC", "1")


def test_remove_holding(accounts, user_id, make_user):
    accounts.set_holding(user_id, "ETH", "2", "4000")
    other = make_user("frank@example.com", "Frank")

    assert not accounts.remove_holding(other, "ETH")
    assert accounts.remove_holding(user_id, "ethereum")
    assert not accounts.remove_holding(user_id, "ETH")
    assert accounts.list_holdings(user_id) == []


@pytest.mark.asyncio
async def test_recorded_holdings_feed_portfolio_metrics(accounts, session_scope, user_id):
    accounts.set_holding(user_id, "BTC", "1", "40000")
    accounts.set_holding(user_id, "ETH", "10", "20000")
    prices = {"BTC": Decimal("60000"), "ETH": Decimal("2000")}

    class _Prices:
        async def get_price(self, symbol):
            return prices[symbol]

    portfolio = PortfolioService(price_service=_Prices(), session_scope=session_scope)
    allocations = portfolio.allocations(await portfolio.positions(user_id))

    assert round(allocations["BTC"], 2) == Decimal("75.00")
    assert round(allocations["ETH"], 2) == Decimal("25.00")
