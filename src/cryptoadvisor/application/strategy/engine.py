# src/cryptoadvisor/application/strategy/engine.py
"""
AlertRuleEngine: pure trigger decisions for smart alerts.

- One decision handler per AlertKind, registered with `@decision_for`.
  A handler answers only "is the condition true for this reading?".
- The engine layers re-trigger suppression on top: condition kinds fire only
  while armed, firing disarms, and the alert's rearm policy decides when it
  arms again. DCA reminders suppress themselves through their interval.
- No I/O and no side effects. The caller persists the returned state.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Callable, Dict, Mapping, Optional

from cryptoadvisor.domain.entities import (
    AlertDefinition,
    AlertDirection,
    AlertEvaluationState,
    AlertKind,
    RearmPolicy,
    SentimentLabel,
)
from cryptoadvisor.domain.errors import InvalidDefinition
from cryptoadvisor.domain.value_objects import SentimentReading, Symbol

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
TAX_RATE_ESTIMATE = Decimal("0.25")


# --- Decision data classes ---
@dataclass(frozen=True)
class ConditionResult:
    met: bool
    observed: Any = None
    detail: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class TriggerDecision:
    alert_id: Optional[int]
    kind: AlertKind
    fire: bool
    condition_met: bool
    armed_after: bool
    observed: Any = None
    detail: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class SentimentTransition:
    """Current sentiment plus the reading stored at the previous evaluation."""
    current: SentimentReading
    previous: Optional[SentimentReading] = None


DecisionHandler = Callable[[AlertDefinition, Any, datetime], ConditionResult]

_HANDLERS: Dict[AlertKind, DecisionHandler] = {}


def decision_for(kind: AlertKind):
    def _register(fn: DecisionHandler) -> DecisionHandler:
        _HANDLERS[kind] = fn
        return fn
    return _register


def crosses(direction: AlertDirection, value: Decimal, target: Decimal) -> bool:
    """Inclusive threshold test: above means value >= target, below means value <= target."""
    if direction == AlertDirection.ABOVE:
        return value >= target
    return value <= target


def _to_decimal(value: Any) -> Decimal:
    return value if isinstance(value, Decimal) else Decimal(str(value))


# --- Handlers ---

@decision_for(AlertKind.PRICE_TARGET)
def _price_target(definition: AlertDefinition, price: Any, now: datetime) -> ConditionResult:
    price = _to_decimal(price)
    met = crosses(definition.direction, price, definition.target_value)
    return ConditionResult(met, observed=price, detail={"price": price, "target": definition.target_value})


@decision_for(AlertKind.RISK_THRESHOLD)
def _risk_threshold(definition: AlertDefinition, drawdown: Any, now: datetime) -> ConditionResult:
    drawdown = _to_decimal(drawdown)
    target = definition.target_value
    if target is None:
        target = definition.config_decimal("max_drawdown", 20)
    direction = definition.direction or AlertDirection.ABOVE
    met = crosses(direction, drawdown, target)
    return ConditionResult(met, observed=drawdown, detail={"drawdown": drawdown, "threshold": target})


def rebalance_targets(definition: AlertDefinition, allocations: Mapping[str, Decimal]) -> Dict[str, Decimal]:
    """
    Target allocation per tracked symbol.

    Explicit `targets` ({"BTC": 30}) win; flat `target_BTC` keys are also read.
    With nothing configured every held symbol is tracked at equal weight.
    """
    targets: Dict[str, Decimal] = {}
    for symbol, pct in (definition.config_value("targets", {}) or {}).items():
        targets[_target_symbol(definition, symbol)] = definition.parse_decimal(f"targets.{symbol}", pct)
    for key, pct in (definition.configuration or {}).items():
        if key.startswith("target_") and len(key) > len("target_"):
            targets.setdefault(
                _target_symbol(definition, key[len("target_"):]),
                definition.parse_decimal(key, pct),
            )
    if not targets and allocations:
        equal = Decimal("100") / Decimal(len(allocations))
        targets = {symbol: equal for symbol in allocations}
    return targets


def _target_symbol(definition: AlertDefinition, raw: Any) -> str:
    # Allocations are keyed by canonical ticker, so "bitcoin" and "BTC/USDT" both mean BTC.
    try:
        return Symbol(str(raw)).value
    except ValueError:
        raise InvalidDefinition(f"unknown rebalance target symbol {raw!r}", definition.id)


@decision_for(AlertKind.PORTFOLIO_REBALANCE)
def _portfolio_rebalance(definition: AlertDefinition, allocations: Mapping[str, Decimal], now: datetime) -> ConditionResult:
    if not allocations:
        return ConditionResult(False, observed=ZERO, detail={"reason": "empty_portfolio"})

    band = definition.config_decimal("threshold", 5)
    targets = rebalance_targets(definition, allocations)
    deviations = {
        symbol: _to_decimal(allocations.get(symbol, ZERO)) - target
        for symbol, target in targets.items()
    }
    breaches = {symbol: dev for symbol, dev in deviations.items() if abs(dev) > band}
    max_deviation = max((abs(dev) for dev in deviations.values()), default=ZERO)
    return ConditionResult(
        bool(breaches),
        observed=max_deviation,
        detail={
            "threshold": band,
            "breaches": {
                symbol: {"allocation": _to_decimal(allocations.get(symbol, ZERO)), "target": targets[symbol]}
                for symbol in sorted(breaches)
            },
        },
    )


@decision_for(AlertKind.TAX_OPTIMIZATION)
def _tax_optimization(definition: AlertDefinition, losses: Mapping[str, Decimal], now: datetime) -> ConditionResult:
    minimum = definition.config_decimal("minimum_loss", 100)
    qualifying = {symbol: _to_decimal(loss) for symbol, loss in losses.items() if abs(_to_decimal(loss)) > minimum}
    harvestable = sum((abs(loss) for loss in qualifying.values()), ZERO)
    return ConditionResult(
        bool(qualifying),
        observed=harvestable,
        detail={
            "minimum_loss": minimum,
            "losses": dict(sorted(qualifying.items())),
            "estimated_savings": harvestable * TAX_RATE_ESTIMATE,
        },
    )


@decision_for(AlertKind.PROFIT_TAKING)
def _profit_taking(definition: AlertDefinition, gains: Mapping[str, Decimal], now: datetime) -> ConditionResult:
    target = definition.target_value
    if target is None:
        target = definition.config_decimal("gain_percent", 25)
    if definition.symbol:
        candidates = {definition.symbol: gains[definition.symbol]} if definition.symbol in gains else {}
    else:
        candidates = dict(gains)
    hits = {symbol: _to_decimal(g) for symbol, g in candidates.items() if _to_decimal(g) >= target}
    best = max(hits.values(), default=None)
    return ConditionResult(bool(hits), observed=best, detail={"target": target, "gains": dict(sorted(hits.items()))})


def sentiment_side(definition: AlertDefinition) -> AlertDirection:
    boundary = SentimentLabel(str(definition.config_value("boundary", SentimentLabel.EXTREMELY_BEARISH.value)).lower())
    side = definition.config_value("direction")
    if side is not None:
        return AlertDirection(str(side).lower())
    return AlertDirection.BELOW if boundary.rank <= SentimentLabel.NEUTRAL.rank else AlertDirection.ABOVE


def _beyond(label: SentimentLabel, boundary: SentimentLabel, side: AlertDirection) -> bool:
    if side == AlertDirection.BELOW:
        return label.rank <= boundary.rank
    return label.rank >= boundary.rank


@decision_for(AlertKind.MARKET_SENTIMENT)
def _market_sentiment(definition: AlertDefinition, transition: SentimentTransition, now: datetime) -> ConditionResult:
    boundary = SentimentLabel(str(definition.config_value("boundary", SentimentLabel.EXTREMELY_BEARISH.value)).lower())
    side = sentiment_side(definition)
    current = transition.current
    previous = transition.previous
    now_beyond = _beyond(current.label, boundary, side)
    was_beyond = previous is not None and _beyond(previous.label, boundary, side)
    return ConditionResult(
        now_beyond and not was_beyond,
        observed=current.label,
        detail={
            "boundary": boundary.value,
            "score": current.score,
            "previous": previous.label.value if previous else None,
        },
    )


@decision_for(AlertKind.DCA_REMINDER)
def _dca_reminder(definition: AlertDefinition, evaluated_at: datetime, now: datetime) -> ConditionResult:
    interval_days = definition.config_decimal("interval_days", 7)
    interval = timedelta(days=float(interval_days))
    last = definition.last_triggered_at
    if last is None:
        return ConditionResult(True, observed=None, detail={"interval_days": interval_days})
    elapsed = evaluated_at - last
    return ConditionResult(elapsed >= interval, observed=elapsed, detail={"interval_days": interval_days})


# --- Rule Engine ---
class AlertRuleEngine:
    """
    Pure evaluator: maps (definition, state, reading) to a TriggerDecision
    and the evaluator state that should follow it.
    """

    SELF_SUPPRESSING = frozenset({AlertKind.DCA_REMINDER})

    def __init__(self, handlers: Optional[Dict[AlertKind, DecisionHandler]] = None):
        self._handlers = dict(_HANDLERS if handlers is None else handlers)
        logger.debug("AlertRuleEngine initialized with %d handlers", len(self._handlers))

    def handler_for(self, kind: AlertKind) -> DecisionHandler:
        handler = self._handlers.get(kind)
        if handler is None:
            raise InvalidDefinition(f"no decision rule for alert kind '{kind.value}'")
        return handler

    def decide(
        self,
        definition: AlertDefinition,
        state: Optional[AlertEvaluationState],
        reading: Any,
        now: datetime,
    ) -> TriggerDecision:
        result = self.handler_for(definition.kind)(definition, reading, now)
        armed = state.armed if state is not None else True

        if definition.kind in self.SELF_SUPPRESSING:
            fire, armed_after = result.met, True
        elif result.met:
            fire = armed
            armed_after = False
        else:
            fire = False
            armed_after = armed or definition.rearm_policy == RearmPolicy.REARM

        return TriggerDecision(
            alert_id=definition.id,
            kind=definition.kind,
            fire=fire,
            condition_met=result.met,
            armed_after=armed_after,
            observed=result.observed,
            detail=result.detail,
        )

    def next_state(
        self,
        definition: AlertDefinition,
        state: Optional[AlertEvaluationState],
        decision: TriggerDecision,
        reading: Any,
        now: datetime,
    ) -> AlertEvaluationState:
        base = state or AlertEvaluationState(alert_id=definition.id)
        new_state = replace(base, armed=decision.armed_after, last_evaluated_at=now)
        if isinstance(decision.observed, Decimal):
            new_state = replace(new_state, last_value=decision.observed)
        if isinstance(reading, SentimentTransition):
            new_state = replace(
                new_state,
                last_sentiment_label=reading.current.label,
                last_sentiment_score=reading.current.score,
            )
        return new_state

    @staticmethod
    def state_changed(old: Optional[AlertEvaluationState], new: AlertEvaluationState) -> bool:
        """Whether `new` carries anything a later pass depends on (arming or previous sentiment)."""
        if old is None:
            return not new.armed or new.last_sentiment_label is not None
        return (
            old.armed != new.armed
            or old.last_sentiment_label != new.last_sentiment_label
        )
