# src/cryptoadvisor/application/services/alert_service.py
"""
SmartAlertService: one evaluation pass over every active smart alert.

- Pulls active definitions (and evaluator state) from the AlertStore.
- Fetches the metric each alert's kind needs from MarketDataService, with a
  per-call timeout.
- AlertRuleEngine decides; on a firing the store commits counter bump,
  notification and state in one transaction, then the notification is
  dispatched.
- Alerts run concurrently (bounded), each under its own lock; the whole pass
  is bounded by a deadline. A failure in one alert never stops the others.
- Only one pass runs at a time; an overlapping invocation is skipped.
"""
import asyncio
import logging
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional

from cryptoadvisor.config import settings
from cryptoadvisor.application.strategy.engine import AlertRuleEngine, SentimentTransition
from cryptoadvisor.domain.entities import AlertDefinition, AlertEvaluationState, AlertKind
from cryptoadvisor.domain.errors import AlertEvaluationError, BatchTimeout, DataUnavailable
from cryptoadvisor.domain.value_objects import SentimentReading
from cryptoadvisor.infrastructure.db.alert_store import AlertStore
from cryptoadvisor.infrastructure.monitoring.metrics import (
    ALERT_ERRORS, ALERT_PASSES, ALERTS_EVALUATED, ALERTS_TRIGGERED, PASS_DURATION,
)

from .market_data_service import MarketDataService
from .notification_service import NotificationService, compose_alert_notification

log = logging.getLogger(__name__)

UNEXPECTED_ERROR_TAG = "evaluation_error"


@dataclass
class AlertOutcome:
    alert_id: int
    kind: str
    triggered: bool
    error: Optional[str] = None
    detail: Optional[str] = None
    notification_id: Optional[int] = None


@dataclass
class EvaluationReport:
    started_at: datetime
    finished_at: Optional[datetime] = None
    outcomes: List[AlertOutcome] = field(default_factory=list)
    skipped: bool = False

    @property
    def total_processed(self) -> int:
        return len(self.outcomes)

    @property
    def triggered_count(self) -> int:
        return sum(1 for o in self.outcomes if o.triggered)

    @property
    def error_count(self) -> int:
        return sum(1 for o in self.outcomes if o.error)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_processed": self.total_processed,
            "triggered_count": self.triggered_count,
            "error_count": self.error_count,
            "skipped": self.skipped,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "alerts": [
                {
                    "alert_id": o.alert_id,
                    "type": o.kind,
                    "triggered": o.triggered,
                    "error": o.error,
                    "detail": o.detail,
                    "notification_id": o.notification_id,
                }
                for o in self.outcomes
            ],
        }


ReadingSource = Callable[[AlertDefinition, Optional[AlertEvaluationState]], Awaitable[Any]]


class SmartAlertService:
    def __init__(
        self,
        store: AlertStore,
        market_data: MarketDataService,
        notification_service: NotificationService,
        engine: Optional[AlertRuleEngine] = None,
        *,
        provider_timeout: Optional[float] = None,
        batch_timeout: Optional[float] = None,
        max_concurrency: Optional[int] = None,
    ):
        self.store = store
        self.market_data = market_data
        self.notification_service = notification_service
        self.engine = engine or AlertRuleEngine()
        self.provider_timeout = provider_timeout or settings.ALERT_PROVIDER_TIMEOUT_SECONDS
        self.batch_timeout = batch_timeout or settings.ALERT_BATCH_TIMEOUT_SECONDS
        self.max_concurrency = max_concurrency or settings.ALERT_MAX_CONCURRENCY

        # Passes may be requested from the scheduler thread and from API requests.
        self._run_lock = threading.Lock()
        self._alert_locks: Dict[int, asyncio.Lock] = {}

        self._reading_sources: Dict[AlertKind, ReadingSource] = {
            AlertKind.PRICE_TARGET: lambda d, s: self.market_data.current_price(d.symbol),
            AlertKind.PORTFOLIO_REBALANCE: lambda d, s: self.market_data.portfolio_allocations(d.user_id),
            AlertKind.TAX_OPTIMIZATION: lambda d, s: self.market_data.unrealized_losses(d.user_id),
            AlertKind.RISK_THRESHOLD: lambda d, s: self.market_data.risk_measure(d.user_id),
            AlertKind.PROFIT_TAKING: lambda d, s: self.market_data.unrealized_gains(d.user_id),
            AlertKind.MARKET_SENTIMENT: self._sentiment_transition,
        }

    # --- Lock helpers ---
    def _get_lock(self, alert_id: int) -> asyncio.Lock:
        if alert_id not in self._alert_locks:
            self._alert_locks[alert_id] = asyncio.Lock()
        return self._alert_locks[alert_id]

    @property
    def is_running(self) -> bool:
        return self._run_lock.locked()

    # --- Public API ---
    async def evaluate_all(self) -> EvaluationReport:
        """Run one pass. Returns a skipped report if another pass is still in flight."""
        if not self._run_lock.acquire(blocking=False):
            now = datetime.now(timezone.utc)
            log.warning("Smart alert pass already running; skipping overlapping invocation.")
            ALERT_PASSES.labels(result="skipped").inc()
            return EvaluationReport(started_at=now, finished_at=now, skipped=True)
        try:
            return await self._run_pass()
        finally:
            self._run_lock.release()

    # --- Pass internals ---
    async def _run_pass(self) -> EvaluationReport:
        evaluated_at = datetime.now(timezone.utc)
        started = time.monotonic()
        report = EvaluationReport(started_at=evaluated_at)
        # Fresh per pass: asyncio locks must not outlive the loop that created them.
        self._alert_locks = {}

        definitions = self.store.list_active()
        states = self.store.load_states(d.id for d in definitions)
        log.info("Smart alert pass started: %d active alert(s).", len(definitions))

        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def _bounded(definition: AlertDefinition) -> AlertOutcome:
            async with semaphore:
                return await self._evaluate_alert(definition, states.get(definition.id), evaluated_at)

        tasks = {asyncio.ensure_future(_bounded(d)): d for d in definitions}
        if tasks:
            done, pending = await asyncio.wait(tasks.keys(), timeout=self.batch_timeout)
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)
                log.warning("Pass deadline of %.1fs reached; %d alert(s) deferred to the next cycle.",
                            self.batch_timeout, len(pending))

            for task, definition in tasks.items():
                report.outcomes.append(self._collect(task, definition, task in done))

        report.finished_at = datetime.now(timezone.utc)
        elapsed = time.monotonic() - started
        PASS_DURATION.observe(elapsed)
        ALERT_PASSES.labels(result="completed").inc()
        log.info(
            "Smart alert pass finished: processed=%d triggered=%d errors=%d in %.2fs",
            report.total_processed, report.triggered_count, report.error_count, elapsed,
        )
        return report

    def _collect(self, task: "asyncio.Future[AlertOutcome]", definition: AlertDefinition, finished: bool) -> AlertOutcome:
        kind = definition.kind.value
        if not finished or task.cancelled():
            ALERT_ERRORS.labels(tag=BatchTimeout.tag).inc()
            return AlertOutcome(definition.id, kind, triggered=False, error=BatchTimeout.tag,
                                detail="pass deadline reached before evaluation finished")
        exc = task.exception()
        if exc is not None:
            log.error("Alert %s (%s) crashed during evaluation.", definition.id, kind, exc_info=exc)
            ALERT_ERRORS.labels(tag=UNEXPECTED_ERROR_TAG).inc()
            return AlertOutcome(definition.id, kind, triggered=False, error=UNEXPECTED_ERROR_TAG, detail=str(exc))
        return task.result()

    async def _evaluate_alert(
        self,
        definition: AlertDefinition,
        state: Optional[AlertEvaluationState],
        evaluated_at: datetime,
    ) -> AlertOutcome:
        kind = definition.kind.value
        ALERTS_EVALUATED.labels(kind=kind).inc()

        async with self._get_lock(definition.id):
            try:
                definition.validate()
                reading = await self._fetch_reading(definition, state, evaluated_at)
                decision = self.engine.decide(definition, state, reading, evaluated_at)
                new_state = self.engine.next_state(definition, state, decision, reading, evaluated_at)

                if not decision.fire:
                    if self.engine.state_changed(state, new_state):
                        self.store.save_state(new_state, expected_version=definition.version)
                    return AlertOutcome(definition.id, kind, triggered=False)

                record = compose_alert_notification(definition, decision, evaluated_at)
                stored = self.store.commit_trigger(definition, evaluated_at, record, new_state)
            except AlertEvaluationError as e:
                ALERT_ERRORS.labels(tag=e.tag).inc()
                log.warning("Alert %s (%s) skipped [%s]: %s", definition.id, kind, e.tag, e)
                return AlertOutcome(definition.id, kind, triggered=False, error=e.tag, detail=str(e))

            # Committed; delivery problems are the dispatcher's to log.
            self.notification_service.dispatch(stored)

        ALERTS_TRIGGERED.labels(kind=kind).inc()
        log.info("Alert %s (%s) triggered for user %s -> notification %s.",
                 definition.id, kind, definition.user_id, stored.id)
        return AlertOutcome(definition.id, kind, triggered=True, notification_id=stored.id)

    async def _fetch_reading(
        self,
        definition: AlertDefinition,
        state: Optional[AlertEvaluationState],
        evaluated_at: datetime,
    ) -> Any:
        if definition.kind == AlertKind.DCA_REMINDER:
            return evaluated_at

        source = self._reading_sources[definition.kind]
        try:
            return await asyncio.wait_for(source(definition, state), timeout=self.provider_timeout)
        except asyncio.TimeoutError:
            raise DataUnavailable(
                f"provider did not answer within {self.provider_timeout}s", definition.id
            )

    async def _sentiment_transition(
        self,
        definition: AlertDefinition,
        state: Optional[AlertEvaluationState],
    ) -> SentimentTransition:
        current = await self.market_data.sentiment()
        previous = None
        if state is not None and state.last_sentiment_label is not None:
            previous = SentimentReading(label=state.last_sentiment_label, score=state.last_sentiment_score or 0)
        return SentimentTransition(current=current, previous=previous)
