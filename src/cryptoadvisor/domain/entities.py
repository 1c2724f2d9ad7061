# src/cryptoadvisor/domain/entities.py
"""
Core entities of the smart alert domain.

An AlertDefinition is a user-owned rule; a NotificationRecord is the durable
result of one firing of that rule. AlertEvaluationState is the evaluator's
companion record (re-arm flag and previous sentiment reading) so that passes
stay stateless between runs.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, Optional

from .errors import InvalidDefinition

# --- ENUMERATIONS ---

class AlertKind(Enum):
    """Supported smart alert kinds."""
    PRICE_TARGET = "price_target"
    PORTFOLIO_REBALANCE = "portfolio_rebalance"
    TAX_OPTIMIZATION = "tax_optimization"
    RISK_THRESHOLD = "risk_threshold"
    MARKET_SENTIMENT = "market_sentiment"
    DCA_REMINDER = "dca_reminder"
    PROFIT_TAKING = "profit_taking"

    @property
    def label(self) -> str:
        return _KIND_LABELS[self]


_KIND_LABELS = {
    AlertKind.PRICE_TARGET: "Price Target",
    AlertKind.PORTFOLIO_REBALANCE: "Portfolio Rebalance",
    AlertKind.TAX_OPTIMIZATION: "Tax Optimization",
    AlertKind.RISK_THRESHOLD: "Risk Threshold",
    AlertKind.MARKET_SENTIMENT: "Market Sentiment",
    AlertKind.DCA_REMINDER: "DCA Reminder",
    AlertKind.PROFIT_TAKING: "Profit Taking",
}


class AlertDirection(Enum):
    ABOVE = "above"
    BELOW = "below"


class RearmPolicy(Enum):
    """How a fired alert becomes eligible to fire again.

    REARM: re-arms on the first evaluation where its condition reads false.
    MANUAL: stays disarmed until the owner edits or re-enables it.
    """
    REARM = "rearm"
    MANUAL = "manual"


class SentimentLabel(Enum):
    """Fear & Greed buckets, ordered from most bearish to most bullish."""
    EXTREMELY_BEARISH = "extremely_bearish"
    BEARISH = "bearish"
    NEUTRAL = "neutral"
    BULLISH = "bullish"
    EXTREMELY_BULLISH = "extremely_bullish"

    @property
    def rank(self) -> int:
        return list(SentimentLabel).index(self)

    @classmethod
    def from_score(cls, score: int) -> "SentimentLabel":
        if score <= 25:
            return cls.EXTREMELY_BEARISH
        if score <= 45:
            return cls.BEARISH
        if score <= 55:
            return cls.NEUTRAL
        if score <= 75:
            return cls.BULLISH
        return cls.EXTREMELY_BULLISH


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# --- ENTITIES ---

@dataclass
class AlertDefinition:
    """A user-configured smart alert rule."""
    user_id: int
    kind: AlertKind
    symbol: Optional[str] = None
    target_value: Optional[Decimal] = None
    direction: Optional[AlertDirection] = None
    configuration: Dict[str, Any] = field(default_factory=dict)
    is_active: bool = True
    last_triggered_at: Optional[datetime] = None
    trigger_count: int = 0
    id: Optional[int] = None
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)
    version: int = 0

    def config_value(self, key: str, default: Any = None) -> Any:
        value = (self.configuration or {}).get(key)
        return default if value is None else value

    def config_decimal(self, key: str, default: Any) -> Decimal:
        return self.parse_decimal(key, self.config_value(key, default))

    def parse_decimal(self, key: str, raw: Any) -> Decimal:
        if isinstance(raw, bool):
            raise InvalidDefinition(f"configuration '{key}' must be numeric, got {raw!r}", self.id)
        try:
            value = Decimal(str(raw))
        except (InvalidOperation, TypeError, ValueError):
            raise InvalidDefinition(f"configuration '{key}' must be numeric, got {raw!r}", self.id)
        if not value.is_finite():
            raise InvalidDefinition(f"configuration '{key}' must be finite", self.id)
        return value

    @property
    def rearm_policy(self) -> RearmPolicy:
        raw = self.config_value("rearm_policy", RearmPolicy.REARM.value)
        try:
            return RearmPolicy(str(raw).lower())
        except ValueError:
            raise InvalidDefinition(f"unknown rearm_policy {raw!r}", self.id)

    def formatted_target_value(self) -> str:
        if self.target_value is None:
            return "N/A"
        if self.kind == AlertKind.PRICE_TARGET:
            return f"${self.target_value:,.2f}"
        if self.kind == AlertKind.RISK_THRESHOLD:
            return f"{self.target_value:.1f}%"
        return str(self.target_value)

    def validate(self) -> None:
        """Raise InvalidDefinition when the rule cannot be evaluated as configured."""
        if self.direction is not None and self.target_value is None:
            raise InvalidDefinition("target_value is required when direction is set", self.id)
        if self.trigger_count < 0:
            raise InvalidDefinition("trigger_count cannot be negative", self.id)

        if self.kind == AlertKind.PRICE_TARGET:
            if not self.symbol:
                raise InvalidDefinition("price_target requires a symbol", self.id)
            if self.target_value is None or self.direction is None:
                raise InvalidDefinition("price_target requires target_value and direction", self.id)
        elif self.kind == AlertKind.RISK_THRESHOLD:
            if self.target_value is None and self.config_value("max_drawdown") is None:
                raise InvalidDefinition("risk_threshold requires target_value or max_drawdown", self.id)
        elif self.kind == AlertKind.PORTFOLIO_REBALANCE:
            if self.config_decimal("threshold", 5) < 0:
                raise InvalidDefinition("rebalance threshold cannot be negative", self.id)
            targets = self.config_value("targets", {})
            if not isinstance(targets, dict):
                raise InvalidDefinition("rebalance targets must be a mapping of symbol to percent", self.id)
            for symbol, pct in targets.items():
                if self.parse_decimal(f"targets.{symbol}", pct) < 0:
                    raise InvalidDefinition(f"rebalance target for {symbol} cannot be negative", self.id)
            for key in (self.configuration or {}):
                if key.startswith("target_") and len(key) > len("target_") and self.config_decimal(key, 0) < 0:
                    raise InvalidDefinition(f"rebalance {key} cannot be negative", self.id)
        elif self.kind == AlertKind.TAX_OPTIMIZATION:
            self.config_decimal("minimum_loss", 100)
        elif self.kind == AlertKind.MARKET_SENTIMENT:
            boundary = self.config_value("boundary", SentimentLabel.EXTREMELY_BEARISH.value)
            try:
                SentimentLabel(str(boundary).lower())
            except ValueError:
                raise InvalidDefinition(f"unknown sentiment boundary {boundary!r}", self.id)
            side = self.config_value("direction")
            if side is not None and str(side).lower() not in ("above", "below"):
                raise InvalidDefinition(f"unknown sentiment direction {side!r}", self.id)
        elif self.kind == AlertKind.DCA_REMINDER:
            if self.config_decimal("interval_days", 7) <= 0:
                raise InvalidDefinition("interval_days must be positive", self.id)
        elif self.kind == AlertKind.PROFIT_TAKING:
            self.config_decimal("gain_percent", 25)

        # Accessing the property validates it.
        self.rearm_policy

    def mark_triggered(self, at: datetime) -> None:
        self.last_triggered_at = at
        self.trigger_count += 1
        self.updated_at = at


@dataclass
class AlertEvaluationState:
    """Evaluator-owned companion state for one alert."""
    alert_id: int
    armed: bool = True
    last_value: Optional[Decimal] = None
    last_sentiment_label: Optional[SentimentLabel] = None
    last_sentiment_score: Optional[int] = None
    last_evaluated_at: Optional[datetime] = None


@dataclass
class NotificationRecord:
    """A durable record that an alert fired. Only `is_read`/`read_at` ever change."""
    user_id: int
    type: str
    title: str
    message: str
    alert_id: Optional[int] = None
    data: Dict[str, Any] = field(default_factory=dict)
    is_read: bool = False
    read_at: Optional[datetime] = None
    id: Optional[int] = None
    created_at: datetime = field(default_factory=_utcnow)


@dataclass
class UserAccount:
    """The owner of alerts and holdings."""
    email: str
    name: Optional[str] = None
    id: Optional[int] = None
    created_at: datetime = field(default_factory=_utcnow)


@dataclass
class Holding:
    """One watchlist position: how much of a coin the user holds and what it cost."""
    user_id: int
    symbol: str
    holdings_amount: Decimal = Decimal("0")
    initial_investment_usd: Decimal = Decimal("0")
    purchase_price: Optional[Decimal] = None
    id: Optional[int] = None
    updated_at: Optional[datetime] = None
