# src/cryptoadvisor/infrastructure/db/alert_store.py
"""
AlertStore: the evaluator's persistence boundary.

All database errors leave this module as PersistenceFailure. A firing is
written by `commit_trigger` in one transaction: the counter bump, the
notification row and the evaluator state either all land or none do.
"""

import logging
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from cryptoadvisor.domain.entities import (
    AlertDefinition,
    AlertEvaluationState,
    NotificationRecord,
)
from cryptoadvisor.domain.errors import PersistenceFailure
from .repository import AlertRepository, NotificationRepository
from .uow import SessionScope, session_scope as default_session_scope

log = logging.getLogger(__name__)


class AlertStore:
    def __init__(self, session_scope: Optional[SessionScope] = None):
        self._session_scope = session_scope or default_session_scope

    def list_active(self) -> List[AlertDefinition]:
        try:
            with self._session_scope() as session:
                rows = AlertRepository(session).list_active()
                return [AlertRepository.to_entity(row) for row in rows]
        except SQLAlchemyError as e:
            raise PersistenceFailure(f"listing active alerts failed: {e}") from e

    def load_states(self, alert_ids: Iterable[int]) -> Dict[int, AlertEvaluationState]:
        try:
            with self._session_scope() as session:
                rows = AlertRepository(session).states_for(alert_ids)
                return {alert_id: AlertRepository.state_to_entity(row) for alert_id, row in rows.items()}
        except SQLAlchemyError as e:
            raise PersistenceFailure(f"loading evaluation states failed: {e}") from e

    def record_trigger(
        self,
        alert_id: int,
        triggered_at: datetime,
        expected_count: int,
        session: Optional[Session] = None,
        expected_version: Optional[int] = None,
    ) -> bool:
        """Bump trigger_count and stamp last_triggered_at. False if the alert changed underneath."""
        if session is not None:
            return AlertRepository(session).apply_trigger(alert_id, triggered_at, expected_count, expected_version)
        try:
            with self._session_scope() as own_session:
                return AlertRepository(own_session).apply_trigger(
                    alert_id, triggered_at, expected_count, expected_version
                )
        except SQLAlchemyError as e:
            raise PersistenceFailure(f"recording trigger failed: {e}", alert_id) from e

    def append_notification(
        self,
        record: NotificationRecord,
        session: Optional[Session] = None,
    ) -> NotificationRecord:
        if session is not None:
            return NotificationRepository.to_entity(NotificationRepository(session).add(record))
        try:
            with self._session_scope() as own_session:
                row = NotificationRepository(own_session).add(record)
                return NotificationRepository.to_entity(row)
        except SQLAlchemyError as e:
            raise PersistenceFailure(f"appending notification failed: {e}", record.alert_id) from e

    def save_state(self, state: AlertEvaluationState, expected_version: Optional[int] = None) -> None:
        """
        Persist evaluator state. With `expected_version` the write only lands
        while the alert is still active and unedited; otherwise nothing is
        written and PersistenceFailure is raised.
        """
        try:
            with self._session_scope() as session:
                repo = AlertRepository(session)
                if expected_version is not None and not repo.lock_if_unchanged(state.alert_id, expected_version):
                    raise PersistenceFailure(
                        "alert was modified or deactivated during evaluation", state.alert_id
                    )
                repo.save_state(state)
        except SQLAlchemyError as e:
            raise PersistenceFailure(f"saving evaluation state failed: {e}", state.alert_id) from e

    def commit_trigger(
        self,
        definition: AlertDefinition,
        triggered_at: datetime,
        record: NotificationRecord,
        state: AlertEvaluationState,
    ) -> NotificationRecord:
        """Atomically persist one firing and return the stored notification."""
        try:
            with self._session_scope() as session:
                recorded = self.record_trigger(
                    definition.id,
                    triggered_at,
                    definition.trigger_count,
                    session=session,
                    expected_version=definition.version,
                )
                if not recorded:
                    raise PersistenceFailure(
                        "alert was modified or deactivated during evaluation", definition.id
                    )
                stored = self.append_notification(record, session=session)
                AlertRepository(session).save_state(state)
        except SQLAlchemyError as e:
            raise PersistenceFailure(f"committing trigger failed: {e}", definition.id) from e

        definition.mark_triggered(triggered_at)
        log.debug("Alert %s trigger committed (count=%s).", definition.id, definition.trigger_count)
        return stored
