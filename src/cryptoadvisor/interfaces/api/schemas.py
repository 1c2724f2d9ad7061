# src/cryptoadvisor/interfaces/api/schemas.py
from __future__ import annotations
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from cryptoadvisor.domain.entities import (
    AlertDefinition, AlertDirection, AlertKind, Holding, NotificationRecord, UserAccount,
)


class AlertIn(BaseModel):
    alert_type: AlertKind
    symbol: Optional[str] = None
    target_value: Optional[Decimal] = None
    direction: Optional[AlertDirection] = None
    configuration: Dict[str, Any] = Field(default_factory=dict)
    is_active: bool = True


class AlertPatch(BaseModel):
    symbol: Optional[str] = None
    target_value: Optional[Decimal] = None
    direction: Optional[AlertDirection] = None
    configuration: Optional[Dict[str, Any]] = None
    is_active: Optional[bool] = None


class AlertOut(BaseModel):
    id: int
    user_id: int
    alert_type: AlertKind
    label: str
    symbol: Optional[str] = None
    target_value: Optional[float] = None
    formatted_target_value: str
    direction: Optional[AlertDirection] = None
    configuration: Dict[str, Any]
    is_active: bool
    last_triggered_at: Optional[datetime] = None
    trigger_count: int
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_entity(cls, alert: AlertDefinition) -> "AlertOut":
        return cls(
            id=alert.id,
            user_id=alert.user_id,
            alert_type=alert.kind,
            label=alert.kind.label,
            symbol=alert.symbol,
            target_value=float(alert.target_value) if alert.target_value is not None else None,
            formatted_target_value=alert.formatted_target_value(),
            direction=alert.direction,
            configuration=alert.configuration,
            is_active=alert.is_active,
            last_triggered_at=alert.last_triggered_at,
            trigger_count=alert.trigger_count,
            created_at=alert.created_at,
            updated_at=alert.updated_at,
        )


class AlertTypeSummary(BaseModel):
    label: str
    count: int
    active: int


class AlertsSummaryOut(BaseModel):
    total_alerts: int
    active_alerts: int
    triggered_today: int
    by_type: Dict[str, AlertTypeSummary]


class NotificationOut(BaseModel):
    id: int
    alert_id: Optional[int] = None
    type: str
    title: str
    message: str
    data: Dict[str, Any]
    is_read: bool
    read_at: Optional[datetime] = None
    created_at: datetime

    @classmethod
    def from_entity(cls, record: NotificationRecord) -> "NotificationOut":
        return cls(
            id=record.id,
            alert_id=record.alert_id,
            type=record.type,
            title=record.title,
            message=record.message,
            data=record.data,
            is_read=record.is_read,
            read_at=record.read_at,
            created_at=record.created_at,
        )


class AlertOutcomeOut(BaseModel):
    alert_id: int
    type: str
    triggered: bool
    error: Optional[str] = None
    detail: Optional[str] = None
    notification_id: Optional[int] = None


class EvaluationReportOut(BaseModel):
    total_processed: int
    triggered_count: int
    error_count: int
    skipped: bool
    started_at: datetime
    finished_at: Optional[datetime] = None
    alerts: List[AlertOutcomeOut]


class UserIn(BaseModel):
    email: str = Field(..., min_length=3, max_length=255)
    name: Optional[str] = Field(default=None, max_length=255)


class UserOut(BaseModel):
    id: int
    email: str
    name: Optional[str] = None
    created_at: datetime

    @classmethod
    def from_entity(cls, user: UserAccount) -> "UserOut":
        return cls(id=user.id, email=user.email, name=user.name, created_at=user.created_at)


class HoldingIn(BaseModel):
    holdings_amount: Decimal
    initial_investment_usd: Decimal = Decimal("0")
    purchase_price: Optional[Decimal] = None


class HoldingOut(BaseModel):
    symbol: str
    holdings_amount: float
    initial_investment_usd: float
    purchase_price: Optional[float] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_entity(cls, holding: Holding) -> "HoldingOut":
        return cls(
            symbol=holding.symbol,
            holdings_amount=float(holding.holdings_amount),
            initial_investment_usd=float(holding.initial_investment_usd),
            purchase_price=float(holding.purchase_price) if holding.purchase_price is not None else None,
            updated_at=holding.updated_at,
        )
