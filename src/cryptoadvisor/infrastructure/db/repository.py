# src/cryptoadvisor/infrastructure/db/repository.py
"""
Session-bound repositories. Each takes an open SQLAlchemy session; the caller
owns the transaction (see `uow.session_scope`).
"""

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from cryptoadvisor.domain.entities import (
    AlertDefinition,
    AlertEvaluationState,
    Holding,
    NotificationRecord,
    UserAccount,
)
from cryptoadvisor.domain.value_objects import Symbol
from .models import (
    User, WatchlistHolding, SmartAlert, AlertState, Notification,
)

logger = logging.getLogger(__name__)


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes; everything stored is UTC.
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _as_decimal(value) -> Optional[Decimal]:
    if value is None:
        return None
    return value if isinstance(value, Decimal) else Decimal(str(value))


# ==========================================================
# USER REPOSITORY
# ==========================================================
class UserRepository:
    """Repository for User rows."""
    def __init__(self, session: Session):
        self.session = session

    @staticmethod
    def to_entity(row: User) -> UserAccount:
        return UserAccount(id=row.id, email=row.email, name=row.name, created_at=_as_utc(row.created_at))

    def find_by_id(self, user_id: int) -> Optional[User]:
        return self.session.get(User, user_id)

    def find_by_email(self, email: str) -> Optional[User]:
        return self.session.query(User).filter(User.email == email.lower()).first()

    def find_or_create(self, email: str, name: Optional[str] = None) -> User:
        user = self.find_by_email(email)
        if user:
            if name and user.name != name:
                user.name = name
                self.session.flush()
            return user

        logger.info("Creating new user for email=%s", email)
        user = User(email=email.lower(), name=name)
        self.session.add(user)
        self.session.flush()
        return user


# ==========================================================
# HOLDING REPOSITORY
# ==========================================================
class HoldingRepository:
    """Watchlist holdings used for portfolio metrics."""
    def __init__(self, session: Session):
        self.session = session

    @staticmethod
    def to_entity(row: WatchlistHolding) -> Holding:
        return Holding(
            id=row.id,
            user_id=row.user_id,
            symbol=row.symbol,
            holdings_amount=_as_decimal(row.holdings_amount) or Decimal("0"),
            initial_investment_usd=_as_decimal(row.initial_investment_usd) or Decimal("0"),
            purchase_price=_as_decimal(row.purchase_price),
            updated_at=_as_utc(row.updated_at),
        )

    def list_for_user(self, user_id: int) -> List[WatchlistHolding]:
        return (
            self.session.query(WatchlistHolding)
            .filter(WatchlistHolding.user_id == user_id)
            .order_by(WatchlistHolding.symbol)
            .all()
        )

    def upsert(
        self,
        user_id: int,
        symbol: str,
        holdings_amount: Decimal,
        initial_investment_usd: Decimal,
        purchase_price: Optional[Decimal] = None,
    ) -> WatchlistHolding:
        symbol = Symbol(symbol).value
        row = (
            self.session.query(WatchlistHolding)
            .filter(WatchlistHolding.user_id == user_id, WatchlistHolding.symbol == symbol)
            .one_or_none()
        )
        if row is None:
            row = WatchlistHolding(user_id=user_id, symbol=symbol)
            self.session.add(row)
        row.holdings_amount = holdings_amount
        row.initial_investment_usd = initial_investment_usd
        row.purchase_price = purchase_price
        self.session.flush()
        return row

    def delete(self, user_id: int, symbol: str) -> bool:
        deleted = (
            self.session.query(WatchlistHolding)
            .filter(WatchlistHolding.user_id == user_id, WatchlistHolding.symbol == Symbol(symbol).value)
            .delete(synchronize_session=False)
        )
        return deleted > 0


# ==========================================================
# ALERT REPOSITORY
# ==========================================================
class AlertRepository:
    """Repository for SmartAlert rows and their evaluator state."""
    def __init__(self, session: Session):
        self.session = session

    @staticmethod
    def to_entity(row: SmartAlert) -> AlertDefinition:
        return AlertDefinition(
            id=row.id,
            user_id=row.user_id,
            kind=row.alert_type,
            symbol=row.symbol,
            target_value=_as_decimal(row.target_value),
            direction=row.direction,
            configuration=dict(row.configuration or {}),
            is_active=bool(row.is_active),
            last_triggered_at=_as_utc(row.last_triggered_at),
            trigger_count=int(row.trigger_count or 0),
            created_at=_as_utc(row.created_at),
            updated_at=_as_utc(row.updated_at),
            version=int(row.version or 0),
        )

    @staticmethod
    def state_to_entity(row: AlertState) -> AlertEvaluationState:
        return AlertEvaluationState(
            alert_id=row.alert_id,
            armed=bool(row.armed),
            last_value=_as_decimal(row.last_value),
            last_sentiment_label=row.last_sentiment_label,
            last_sentiment_score=row.last_sentiment_score,
            last_evaluated_at=_as_utc(row.last_evaluated_at),
        )

    def list_active(self) -> List[SmartAlert]:
        return (
            self.session.query(SmartAlert)
            .filter(SmartAlert.is_active.is_(True))
            .order_by(SmartAlert.id)
            .all()
        )

    def list_for_user(self, user_id: int, only_active: bool = False) -> List[SmartAlert]:
        query = self.session.query(SmartAlert).filter(SmartAlert.user_id == user_id)
        if only_active:
            query = query.filter(SmartAlert.is_active.is_(True))
        return query.order_by(SmartAlert.created_at.desc(), SmartAlert.id.desc()).all()

    def count_for_user(self, user_id: int) -> int:
        return self.session.query(func.count(SmartAlert.id)).filter(SmartAlert.user_id == user_id).scalar() or 0

    def find_by_id(self, alert_id: int, user_id: Optional[int] = None) -> Optional[SmartAlert]:
        query = self.session.query(SmartAlert).filter(SmartAlert.id == alert_id)
        if user_id is not None:
            query = query.filter(SmartAlert.user_id == user_id)
        return query.one_or_none()

    def add(self, definition: AlertDefinition) -> SmartAlert:
        row = SmartAlert(
            user_id=definition.user_id,
            alert_type=definition.kind,
            symbol=definition.symbol,
            target_value=definition.target_value,
            direction=definition.direction,
            configuration=definition.configuration or {},
            is_active=definition.is_active,
            trigger_count=0,
        )
        self.session.add(row)
        self.session.flush()
        return row

    def delete(self, row: SmartAlert) -> None:
        self.session.delete(row)
        self.session.flush()

    def apply_trigger(
        self,
        alert_id: int,
        triggered_at: datetime,
        expected_count: int,
        expected_version: Optional[int] = None,
    ) -> bool:
        """
        Conditionally bump the trigger counter.

        The update only matches while the alert is still active, unedited
        since it was read and not fired by anyone else, so a stale evaluation
        writes nothing and returns False.
        """
        conditions = [
            SmartAlert.id == alert_id,
            SmartAlert.is_active.is_(True),
            SmartAlert.trigger_count == expected_count,
        ]
        if expected_version is not None:
            conditions.append(SmartAlert.version == expected_version)
        stmt = (
            update(SmartAlert)
            .where(*conditions)
            .values(
                trigger_count=SmartAlert.trigger_count + 1,
                last_triggered_at=triggered_at,
                updated_at=triggered_at,
            )
            .execution_options(synchronize_session=False)
        )
        result = self.session.execute(stmt)
        return result.rowcount == 1

    def lock_if_unchanged(self, alert_id: int, expected_version: int) -> bool:
        """Row-lock the alert if it is still active at `expected_version`."""
        found = self.session.execute(
            select(SmartAlert.id)
            .where(
                SmartAlert.id == alert_id,
                SmartAlert.is_active.is_(True),
                SmartAlert.version == expected_version,
            )
            .with_for_update()
        ).first()
        return found is not None

    # --- evaluator state ---

    def states_for(self, alert_ids: Iterable[int]) -> Dict[int, AlertState]:
        ids = list(alert_ids)
        if not ids:
            return {}
        rows = self.session.query(AlertState).filter(AlertState.alert_id.in_(ids)).all()
        return {row.alert_id: row for row in rows}

    def save_state(self, state: AlertEvaluationState) -> AlertState:
        row = self.session.get(AlertState, state.alert_id)
        if row is None:
            row = AlertState(alert_id=state.alert_id)
            self.session.add(row)
        row.armed = state.armed
        row.last_value = state.last_value
        row.last_sentiment_label = state.last_sentiment_label
        row.last_sentiment_score = state.last_sentiment_score
        row.last_evaluated_at = state.last_evaluated_at
        self.session.flush()
        return row


# ==========================================================
# NOTIFICATION REPOSITORY
# ==========================================================
class NotificationRepository:
    """Append-only notification history; only the read flag is ever updated."""
    def __init__(self, session: Session):
        self.session = session

    @staticmethod
    def to_entity(row: Notification) -> NotificationRecord:
        return NotificationRecord(
            id=row.id,
            user_id=row.user_id,
            alert_id=row.alert_id,
            type=row.type,
            title=row.title,
            message=row.message,
            data=dict(row.data or {}),
            is_read=bool(row.is_read),
            read_at=_as_utc(row.read_at),
            created_at=_as_utc(row.created_at),
        )

    def add(self, record: NotificationRecord) -> Notification:
        row = Notification(
            user_id=record.user_id,
            alert_id=record.alert_id,
            type=record.type,
            title=record.title,
            message=record.message,
            data=record.data or {},
            is_read=False,
            created_at=record.created_at,
        )
        self.session.add(row)
        self.session.flush()
        return row

    def list_for_user(self, user_id: int, unread_only: bool = False, limit: int = 50) -> List[Notification]:
        query = self.session.query(Notification).filter(Notification.user_id == user_id)
        if unread_only:
            query = query.filter(Notification.is_read.is_(False))
        return query.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(limit).all()

    def unread_count(self, user_id: int) -> int:
        return (
            self.session.query(func.count(Notification.id))
            .filter(Notification.user_id == user_id, Notification.is_read.is_(False))
            .scalar()
        ) or 0

    def find_for_user(self, notification_id: int, user_id: int) -> Optional[Notification]:
        return (
            self.session.query(Notification)
            .filter(Notification.id == notification_id, Notification.user_id == user_id)
            .one_or_none()
        )

    def mark_all_read(self, user_id: int, read_at: datetime) -> int:
        stmt = (
            update(Notification)
            .where(Notification.user_id == user_id, Notification.is_read.is_(False))
            .values(is_read=True, read_at=read_at)
            .execution_options(synchronize_session=False)
        )
        return self.session.execute(stmt).rowcount or 0
