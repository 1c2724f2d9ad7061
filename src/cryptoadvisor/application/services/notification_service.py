# src/cryptoadvisor/application/services/notification_service.py
"""
Notification composition, delivery and the user-facing read operations.

Records are created only by a firing alert (inside the trigger transaction)
and are never deleted here; users may only flip them to read.
"""
import logging
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

from cryptoadvisor.application.strategy.engine import TriggerDecision
from cryptoadvisor.domain.entities import AlertDefinition, AlertKind, NotificationRecord
from cryptoadvisor.infrastructure.db.repository import NotificationRepository
from cryptoadvisor.infrastructure.db.uow import SessionScope, session_scope as default_session_scope
from cryptoadvisor.infrastructure.monitoring.metrics import NOTIFICATIONS_DISPATCHED
from cryptoadvisor.infrastructure.notify.broadcaster import RedisBroadcaster

log = logging.getLogger(__name__)


def _jsonable(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, timedelta):
        return value.total_seconds()
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


def _pct(value: Any) -> str:
    return f"{Decimal(str(value)):.1f}%"


def _usd(value: Any) -> str:
    return f"${Decimal(str(value)):,.2f}"


def _describe(definition: AlertDefinition, decision: TriggerDecision) -> Dict[str, str]:
    detail = decision.detail
    kind = definition.kind

    if kind == AlertKind.PRICE_TARGET:
        return {
            "type": "price_alert",
            "title": "Price Target Alert",
            "message": (
                f"{definition.symbol} has reached your target price of {definition.formatted_target_value()} "
                f"(current: {_usd(detail['price'])})"
            ),
        }
    if kind == AlertKind.PORTFOLIO_REBALANCE:
        parts = ", ".join(
            f"{symbol} {_pct(b['allocation'])} vs target {_pct(b['target'])}"
            for symbol, b in detail["breaches"].items()
        )
        return {
            "type": "portfolio_alert",
            "title": "Portfolio Rebalance Alert",
            "message": (
                f"Your portfolio allocation has deviated beyond your {_pct(detail['threshold'])} threshold "
                f"({parts}). Consider rebalancing."
            ),
        }
    if kind == AlertKind.TAX_OPTIMIZATION:
        return {
            "type": "tax_alert",
            "title": "Tax Optimization Opportunity",
            "message": f"Found potential tax-loss harvesting savings of {_usd(detail['estimated_savings'])}",
        }
    if kind == AlertKind.RISK_THRESHOLD:
        return {
            "type": "risk_alert",
            "title": "Risk Threshold Alert",
            "message": (
                f"Portfolio drawdown of {_pct(detail['drawdown'])} has crossed your "
                f"{_pct(detail['threshold'])} risk threshold"
            ),
        }
    if kind == AlertKind.MARKET_SENTIMENT:
        label = decision.observed.value.replace("_", " ")
        return {
            "type": "market_alert",
            "title": "Market Sentiment Alert",
            "message": f"Market sentiment has shifted to {label} (Fear & Greed index: {detail['score']})",
        }
    if kind == AlertKind.DCA_REMINDER:
        return {
            "type": "dca_reminder",
            "title": "DCA Reminder",
            "message": "Time for your regular dollar-cost averaging investment",
        }
    if kind == AlertKind.PROFIT_TAKING:
        gains = ", ".join(f"{symbol} +{_pct(g)}" for symbol, g in detail["gains"].items())
        return {
            "type": "profit_alert",
            "title": "Profit Taking Opportunity",
            "message": f"Holdings above your {_pct(detail['target'])} profit target: {gains}",
        }
    return {
        "type": "general_alert",
        "title": "Smart Alert",
        "message": "One of your smart alerts has been triggered",
    }


def compose_alert_notification(
    definition: AlertDefinition,
    decision: TriggerDecision,
    triggered_at: datetime,
) -> NotificationRecord:
    text = _describe(definition, decision)
    return NotificationRecord(
        user_id=definition.user_id,
        alert_id=definition.id,
        type=text["type"],
        title=text["title"],
        message=text["message"],
        data=_jsonable({
            "alert_id": definition.id,
            "alert_type": definition.kind,
            "symbol": definition.symbol,
            "target_value": definition.target_value,
            "direction": definition.direction,
            "observed": decision.observed,
            "detail": decision.detail,
        }),
        created_at=triggered_at,
    )


class NotificationService:
    def __init__(self, broadcaster: RedisBroadcaster, session_scope: Optional[SessionScope] = None):
        self.broadcaster = broadcaster
        self._session_scope = session_scope or default_session_scope

    def dispatch(self, record: NotificationRecord) -> bool:
        """Push a committed notification to live clients. Failures are logged, never raised."""
        payload = {
            "notification_id": record.id,
            "user_id": record.user_id,
            "alert_id": record.alert_id,
            "type": record.type,
            "title": record.title,
            "message": record.message,
            "created_at": record.created_at,
        }
        delivered = self.broadcaster.publish(payload)
        NOTIFICATIONS_DISPATCHED.labels(result="delivered" if delivered else "skipped").inc()
        return delivered

    def list_for_user(self, user_id: int, unread_only: bool = False, limit: int = 50) -> List[NotificationRecord]:
        with self._session_scope() as session:
            rows = NotificationRepository(session).list_for_user(user_id, unread_only=unread_only, limit=limit)
            return [NotificationRepository.to_entity(row) for row in rows]

    def unread_count(self, user_id: int) -> int:
        with self._session_scope() as session:
            return NotificationRepository(session).unread_count(user_id)

    def mark_as_read(self, notification_id: int, user_id: int) -> Optional[NotificationRecord]:
        with self._session_scope() as session:
            repo = NotificationRepository(session)
            row = repo.find_for_user(notification_id, user_id)
            if row is None:
                return None
            if not row.is_read:
                row.is_read = True
                row.read_at = datetime.now(timezone.utc)
                session.flush()
            return NotificationRepository.to_entity(row)

    def mark_all_as_read(self, user_id: int) -> int:
        with self._session_scope() as session:
            updated = NotificationRepository(session).mark_all_read(user_id, datetime.now(timezone.utc))
        log.info("Marked %d notification(s) read for user %s.", updated, user_id)
        return updated
