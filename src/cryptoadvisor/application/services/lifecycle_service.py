# src/cryptoadvisor/application/services/lifecycle_service.py
"""
User-driven alert lifecycle: create, edit, enable/disable, delete, list and
summarize. Any edit or re-enable re-arms the alert, which is how alerts with
the `manual` rearm policy become eligible to fire again.
"""
import logging
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

from cryptoadvisor.config import settings
from cryptoadvisor.domain.entities import (
    AlertDefinition,
    AlertDirection,
    AlertEvaluationState,
    AlertKind,
)
from cryptoadvisor.domain.errors import AlertLimitExceeded, InvalidDefinition, UserNotFound
from cryptoadvisor.domain.value_objects import Symbol
from cryptoadvisor.infrastructure.db.repository import AlertRepository, UserRepository
from cryptoadvisor.infrastructure.db.uow import SessionScope, session_scope as default_session_scope

log = logging.getLogger(__name__)

_UNSET = object()


def _normalize_symbol(symbol: Optional[str]) -> Optional[str]:
    if symbol is None or not str(symbol).strip():
        return None
    try:
        return Symbol(symbol).value
    except ValueError as e:
        raise InvalidDefinition(str(e))


def _normalize_target(value: Any) -> Optional[Decimal]:
    if value is None:
        return None
    try:
        target = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise InvalidDefinition(f"target_value must be numeric, got {value!r}")
    if not target.is_finite():
        raise InvalidDefinition("target_value must be finite")
    return target


def _normalize_direction(value: Any) -> Optional[AlertDirection]:
    if value is None or isinstance(value, AlertDirection):
        return value
    try:
        return AlertDirection(str(value).lower())
    except ValueError:
        raise InvalidDefinition(f"direction must be 'above' or 'below', got {value!r}")


def _normalize_configuration(kind: AlertKind, configuration: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    config = dict(configuration or {})
    targets = config.get("targets")
    if kind == AlertKind.PORTFOLIO_REBALANCE and isinstance(targets, dict):
        # Stored keyed by canonical ticker so they line up with holdings.
        normalized = {}
        for symbol, pct in targets.items():
            ticker = _normalize_symbol(str(symbol))
            if ticker is None:
                raise InvalidDefinition("rebalance target symbols cannot be blank")
            normalized[ticker] = pct
        config["targets"] = normalized
    return config


class AlertLifecycleService:
    def __init__(self, session_scope: Optional[SessionScope] = None, max_alerts_per_user: Optional[int] = None):
        self._session_scope = session_scope or default_session_scope
        self.max_alerts_per_user = max_alerts_per_user or settings.MAX_ALERTS_PER_USER

    def create_alert(
        self,
        user_id: int,
        kind: AlertKind,
        symbol: Optional[str] = None,
        target_value: Any = None,
        direction: Any = None,
        configuration: Optional[Dict[str, Any]] = None,
        is_active: bool = True,
    ) -> AlertDefinition:
        definition = AlertDefinition(
            user_id=user_id,
            kind=AlertKind(kind),
            symbol=_normalize_symbol(symbol),
            target_value=_normalize_target(target_value),
            direction=_normalize_direction(direction),
            configuration=_normalize_configuration(AlertKind(kind), configuration),
            is_active=is_active,
        )
        definition.validate()

        with self._session_scope() as session:
            if UserRepository(session).find_by_id(user_id) is None:
                raise UserNotFound(f"user {user_id} does not exist")
            repo = AlertRepository(session)
            if repo.count_for_user(user_id) >= self.max_alerts_per_user:
                raise AlertLimitExceeded(
                    f"user {user_id} already has the maximum of {self.max_alerts_per_user} alerts"
                )
            row = repo.add(definition)
            created = AlertRepository.to_entity(row)

        log.info("Created %s alert %s for user %s.", created.kind.value, created.id, user_id)
        return created

    def update_alert(
        self,
        alert_id: int,
        user_id: int,
        *,
        symbol: Any = _UNSET,
        target_value: Any = _UNSET,
        direction: Any = _UNSET,
        configuration: Any = _UNSET,
        is_active: Any = _UNSET,
    ) -> Optional[AlertDefinition]:
        """Apply a partial edit. Returns None if the alert does not belong to the user."""
        with self._session_scope() as session:
            repo = AlertRepository(session)
            row = repo.find_by_id(alert_id, user_id=user_id)
            if row is None:
                return None

            definition = AlertRepository.to_entity(row)
            if symbol is not _UNSET:
                definition.symbol = _normalize_symbol(symbol)
            if target_value is not _UNSET:
                definition.target_value = _normalize_target(target_value)
            if direction is not _UNSET:
                definition.direction = _normalize_direction(direction)
            if configuration is not _UNSET:
                definition.configuration = _normalize_configuration(definition.kind, configuration)
            if is_active is not _UNSET:
                definition.is_active = bool(is_active)
            definition.validate()

            row.symbol = definition.symbol
            row.target_value = definition.target_value
            row.direction = definition.direction
            row.configuration = definition.configuration
            row.is_active = definition.is_active
            row.updated_at = datetime.now(timezone.utc)
            row.version = (row.version or 0) + 1
            self._rearm(repo, alert_id)
            session.flush()
            updated = AlertRepository.to_entity(row)

        log.info("Updated alert %s for user %s (re-armed).", alert_id, user_id)
        return updated

    def set_active(self, alert_id: int, user_id: int, active: bool) -> Optional[AlertDefinition]:
        return self.update_alert(alert_id, user_id, is_active=active)

    def delete_alert(self, alert_id: int, user_id: int) -> bool:
        with self._session_scope() as session:
            repo = AlertRepository(session)
            row = repo.find_by_id(alert_id, user_id=user_id)
            if row is None:
                return False
            repo.delete(row)
        log.info("Deleted alert %s for user %s.", alert_id, user_id)
        return True

    def get_alert(self, alert_id: int, user_id: int) -> Optional[AlertDefinition]:
        with self._session_scope() as session:
            row = AlertRepository(session).find_by_id(alert_id, user_id=user_id)
            return AlertRepository.to_entity(row) if row else None

    def list_alerts(self, user_id: int, only_active: bool = False) -> List[AlertDefinition]:
        with self._session_scope() as session:
            rows = AlertRepository(session).list_for_user(user_id, only_active=only_active)
            return [AlertRepository.to_entity(row) for row in rows]

    def get_user_alerts_summary(self, user_id: int, now: Optional[datetime] = None) -> Dict[str, Any]:
        today = (now or datetime.now(timezone.utc)).date()
        alerts = self.list_alerts(user_id)

        by_type: Dict[str, Dict[str, Any]] = {}
        for kind in AlertKind:
            of_kind = [a for a in alerts if a.kind == kind]
            by_type[kind.value] = {
                "label": kind.label,
                "count": len(of_kind),
                "active": sum(1 for a in of_kind if a.is_active),
            }

        return {
            "total_alerts": len(alerts),
            "active_alerts": sum(1 for a in alerts if a.is_active),
            "triggered_today": sum(
                1 for a in alerts
                if a.last_triggered_at is not None and a.last_triggered_at.date() == today
            ),
            "by_type": by_type,
        }

    @staticmethod
    def _rearm(repo: AlertRepository, alert_id: int) -> None:
        existing = repo.states_for([alert_id]).get(alert_id)
        state = AlertRepository.state_to_entity(existing) if existing else AlertEvaluationState(alert_id=alert_id)
        state.armed = True
        repo.save_state(state)
