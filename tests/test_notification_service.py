from datetime import datetime, timezone
from decimal import Decimal

import pytest

from cryptoadvisor.application.services.notification_service import compose_alert_notification
from cryptoadvisor.application.strategy.engine import AlertRuleEngine, SentimentTransition
from cryptoadvisor.domain.entities import AlertDefinition, AlertDirection, AlertKind, NotificationRecord
from cryptoadvisor.domain.value_objects import SentimentReading

NOW = datetime(2026, 10, 18, 8, 0, tzinfo=timezone.utc)


def _compose(definition, reading):
    decision = AlertRuleEngine().decide(definition, None, reading, NOW)
    assert decision.fire
    return compose_alert_notification(definition, decision, NOW)


def test_price_notification_text():
    alert = AlertDefinition(
        id=4, user_id=2, kind=AlertKind.PRICE_TARGET, symbol="BTC",
        target_value=Decimal("50000"), direction=AlertDirection.ABOVE,
    )
    record = _compose(alert, Decimal("50250.5"))

    assert record.type == "price_alert"
    assert record.title == "Price Target Alert"
    assert record.message == "BTC has reached your target price of $50,000.00 (current: $50,250.50)"
    assert record.alert_id == 4 and record.user_id == 2
    assert record.created_at == NOW
    # JSON-ready payload
    assert record.data["alert_type"] == "price_target"
    assert record.data["direction"] == "above"
    assert record.data["detail"]["price"] == "50250.5"


def test_tax_notification_reports_savings():
    alert = AlertDefinition(id=1, user_id=1, kind=AlertKind.TAX_OPTIMIZATION)
    record = _compose(alert, {"ETH": Decimal("400")})
    assert record.title == "Tax Optimization Opportunity"
    assert "$100.00" in record.message


def test_sentiment_notification_names_the_zone():
    alert = AlertDefinition(id=1, user_id=1, kind=AlertKind.MARKET_SENTIMENT)
    record = _compose(alert, SentimentTransition(current=SentimentReading.from_score(12)))
    assert record.type == "market_alert"
    assert "extremely bearish" in record.message
    assert "12" in record.message


def test_dca_and_profit_templates():
    dca = _compose(AlertDefinition(id=1, user_id=1, kind=AlertKind.DCA_REMINDER), NOW)
    assert dca.title == "DCA Reminder"

    profit = _compose(
        AlertDefinition(id=2, user_id=1, kind=AlertKind.PROFIT_TAKING, target_value=Decimal("30")),
        {"SOL": Decimal("42")},
    )
    assert profit.type == "profit_alert"
    assert "SOL +42.0%" in profit.message


def test_dispatch_publishes_committed_record(notification_service, broadcaster):
    record = NotificationRecord(
        id=11, user_id=3, alert_id=5, type="risk_alert", title="Risk Threshold Alert", message="Drawdown 21.0%",
    )

    assert notification_service.dispatch(record) is True

    payload = broadcaster.publish.call_args[0][0]
    assert payload["notification_id"] == 11
    assert payload["user_id"] == 3
    assert payload["title"] == "Risk Threshold Alert"


def test_dispatch_reports_undelivered(notification_service, broadcaster):
    broadcaster.publish.return_value = False
    record = NotificationRecord(id=1, user_id=1, type="dca_reminder", title="DCA Reminder", message="...")
    assert notification_service.dispatch(record) is False


@pytest.fixture
def seeded(store, lifecycle, user_id):
    alert = lifecycle.create_alert(user_id, AlertKind.DCA_REMINDER)
    ids = []
    for minute in range(3):
        record = NotificationRecord(
            user_id=user_id, alert_id=alert.id, type="dca_reminder", title="DCA Reminder",
            message=f"reminder {minute}", created_at=NOW.replace(minute=minute),
        )
        ids.append(store.append_notification(record).id)
    return ids


def test_list_is_newest_first(notification_service, seeded, user_id):
    listed = notification_service.list_for_user(user_id)
    assert [n.id for n in listed] == list(reversed(seeded))
    assert len(notification_service.list_for_user(user_id, limit=2)) == 2


def test_mark_as_read(notification_service, seeded, user_id, make_user):
    assert notification_service.unread_count(user_id) == 3

    record = notification_service.mark_as_read(seeded[0], user_id)
    assert record.is_read and record.read_at is not None
    assert notification_service.unread_count(user_id) == 2
    assert seeded[0] not in [n.id for n in notification_service.list_for_user(user_id, unread_only=True)]

    stranger = make_user("mallory@example.com")
    assert notification_service.mark_as_read(seeded[1], stranger) is None


def test_mark_all_as_read(notification_service, seeded, user_id):
    notification_service.mark_as_read(seeded[0], user_id)
    assert notification_service.mark_all_as_read(user_id) == 2
    assert notification_service.unread_count(user_id) == 0
