# tests/test_api.py
import os
from decimal import Decimal
from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient

from cryptoadvisor.interfaces.api.main import app
from cryptoadvisor.infrastructure.db.uow import engine

HEADERS = {"X-API-Key": "test_api_key"}


@pytest.fixture(scope="module")
def client():
    """Provides a TestClient with startup (tables, services) executed."""
    if os.path.exists("./test.db"):
        os.remove("./test.db")
    with TestClient(app) as test_client:
        yield test_client
    engine.dispose()
    if os.path.exists("./test.db"):
        os.remove("./test.db")


@pytest.fixture
def owner(client, request):
    r = client.post("/users", json={"email": f"{request.node.name}@example.com"}, headers=HEADERS)
    assert r.status_code == 200, r.text
    return r.json()["id"]


def _create(client, owner, **body):
    body.setdefault("alert_type", "price_target")
    body.setdefault("symbol", "BTC")
    body.setdefault("target_value", 50000)
    body.setdefault("direction", "above")
    return client.post("/alerts", params={"user_id": owner}, json=body, headers=HEADERS)


def test_root_and_health(client: TestClient):
    r = client.get("/")
    assert r.status_code == 200
    assert "Crypto Advisor API" in r.json()["message"]
    assert client.get("/health").json() == {"status": "ok"}


def test_api_key_protection(client: TestClient, owner):
    assert client.get("/alerts", params={"user_id": owner}, headers={"X-API-Key": "wrong"}).status_code == 401
    assert client.get("/alerts", params={"user_id": owner}).status_code == 401
    assert client.get("/notifications", params={"user_id": owner}).status_code == 401


def test_alert_crud_flow(client: TestClient, owner):
    r_create = _create(client, owner, symbol="eth/usdt", target_value=3000, direction="below")
    assert r_create.status_code == 201, r_create.text
    created = r_create.json()
    assert created["symbol"] == "ETH"
    assert created["formatted_target_value"] == "$3,000.00"
    alert_id = created["id"]

    listed = client.get("/alerts", params={"user_id": owner}, headers=HEADERS).json()
    assert [a["id"] for a in listed] == [alert_id]

    r_patch = client.patch(
        f"/alerts/{alert_id}", params={"user_id": owner}, json={"target_value": 2800}, headers=HEADERS
    )
    assert r_patch.status_code == 200
    assert r_patch.json()["target_value"] == 2800.0

    summary = client.get("/alerts/summary", params={"user_id": owner}, headers=HEADERS).json()
    assert summary["total_alerts"] == 1
    assert summary["by_type"]["price_target"]["count"] == 1

    assert client.delete(f"/alerts/{alert_id}", params={"user_id": owner}, headers=HEADERS).status_code == 204
    assert client.get(f"/alerts/{alert_id}", params={"user_id": owner}, headers=HEADERS).status_code == 404


def test_invalid_alert_is_rejected(client: TestClient, owner):
    r = _create(client, owner, direction=None)
    assert r.status_code == 422
    r = _create(client, owner, alert_type="moon_alert")
    assert r.status_code == 422


def test_unknown_owner(client: TestClient):
    assert _create(client, 424242).status_code == 404


def test_manual_check_creates_notification(client: TestClient, owner, market_data):
    alert_id = _create(client, owner).json()["id"]
    market_data.current_price.return_value = Decimal("50000")
    alert_service = app.state.services["alert_service"]

    with patch.object(alert_service, "market_data", market_data):
        r_check = client.post("/alerts/check", headers=HEADERS)

    assert r_check.status_code == 200, r_check.text
    report = r_check.json()
    assert not report["skipped"]
    [outcome] = [o for o in report["alerts"] if o["alert_id"] == alert_id]
    assert outcome["triggered"] is True

    params = {"user_id": owner}
    notifications = client.get("/notifications", params=params, headers=HEADERS).json()
    assert len(notifications) == 1
    assert notifications[0]["title"] == "Price Target Alert"
    assert client.get("/notifications/unread-count", params=params, headers=HEADERS).json() == {"count": 1}

    r_read = client.post(f"/notifications/{notifications[0]['id']}/read", params=params, headers=HEADERS)
    assert r_read.status_code == 200 and r_read.json()["is_read"] is True
    assert client.post("/notifications/mark-all-read", params=params, headers=HEADERS).json() == {"updated": 0}
    assert client.post("/notifications/999999/read", params=params, headers=HEADERS).status_code == 404


def test_metrics_endpoint(client: TestClient):
    r = client.get("/metrics")
    assert r.status_code == 200
    assert "ca_alert_passes_total" in r.text


def test_user_bootstrap_is_idempotent(client: TestClient):
    first = client.post("/users", json={"email": "Dana@Example.com", "name": "Dana"}, headers=HEADERS)
    assert first.status_code == 200, first.text
    again = client.post("/users", json={"email": "dana@example.com"}, headers=HEADERS).json()

    assert again["id"] == first.json()["id"]
    assert again["email"] == "dana@example.com"
    assert again["name"] == "Dana"
    assert client.get(f"/users/{again['id']}", headers=HEADERS).json()["email"] == "dana@example.com"
    assert client.get("/users/424242", headers=HEADERS).status_code == 404
    assert client.post("/users", json={"email": "not-an-email"}, headers=HEADERS).status_code == 422


def test_watchlist_flow(client: TestClient, owner):
    params = {"user_id": owner}
    r_put = client.put(
        "/watchlist/bitcoin", params=params, headers=HEADERS,
        json={"holdings_amount": "0.5", "initial_investment_usd": "20000", "purchase_price": "40000"},
    )
    assert r_put.status_code == 200, r_put.text
    assert r_put.json()["symbol"] == "BTC"
    assert r_put.json()["holdings_amount"] == 0.5

    # PUT replaces the existing position.
    client.put("/watchlist/BTC", params=params, headers=HEADERS, json={"holdings_amount": "0.75"})
    client.put("/watchlist/eth", params=params, headers=HEADERS, json={"holdings_amount": "3"})

    listed = client.get("/watchlist", params=params, headers=HEADERS).json()
    assert [h["symbol"] for h in listed] == ["BTC", "ETH"]
    assert listed[0]["holdings_amount"] == 0.75
    assert listed[0]["purchase_price"] is None

    assert client.delete("/watchlist/ETH", params=params, headers=HEADERS).status_code == 204
    assert client.delete("/watchlist/ETH", params=params, headers=HEADERS).status_code == 404
    assert [h["symbol"] for h in client.get("/watchlist", params=params, headers=HEADERS).json()] == ["BTC"]


def test_watchlist_rejects_bad_input(client: TestClient, owner):
    params = {"user_id": owner}
    assert client.put("/watchlist/BTC", params=params, headers=HEADERS,
                      json={"holdings_amount": "-1"}).status_code == 422
    assert client.put("/watchlist/BTC", params={"user_id": 424242}, headers=HEADERS,
                      json={"holdings_amount": "1"}).status_code == 404
    assert client.get("/watchlist", params=params).status_code == 401


def test_rebalance_alert_reads_recorded_holdings(client: TestClient, owner):
    params = {"user_id": owner}
    client.put("/watchlist/BTC", params=params, headers=HEADERS,
               json={"holdings_amount": "1", "initial_investment_usd": "40000"})
    client.put("/watchlist/ETH", params=params, headers=HEADERS,
               json={"holdings_amount": "10", "initial_investment_usd": "20000"})
    alert_id = _create(
        client, owner, alert_type="portfolio_rebalance", symbol=None, target_value=None, direction=None,
        configuration={"threshold": 5, "targets": {"bitcoin": 50, "ETH/USDT": 50}},
    ).json()["id"]

    prices = {"BTC": Decimal("50000"), "ETH": Decimal("2000")}
    price_service = app.state.services["price_service"]
    with patch.object(price_service, "get_price", AsyncMock(side_effect=lambda s: prices.get(s, Decimal("1")))):
        report = client.post("/alerts/check", headers=HEADERS).json()

    [outcome] = [o for o in report["alerts"] if o["alert_id"] == alert_id]
    assert outcome["triggered"] is True
    [notification] = client.get("/notifications", params=params, headers=HEADERS).json()
    assert notification["type"] == "portfolio_alert"
