# src/cryptoadvisor/infrastructure/db/models/alert.py
"""
SQLAlchemy ORM models for smart alerts and their evaluator state.
Enums are imported from the domain so there is one source of truth.
"""

from sqlalchemy import (
    Column, Integer, String, DateTime, Boolean,
    ForeignKey, Enum, Numeric, Index, func, true
)
from sqlalchemy.orm import relationship
from .base import Base, JSONType

from cryptoadvisor.domain.entities import (
    AlertKind as AlertKindEnum,
    AlertDirection as AlertDirectionEnum,
    SentimentLabel as SentimentLabelEnum,
)


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class SmartAlert(Base):
    __tablename__ = 'smart_alerts'
    __table_args__ = (
        Index('ix_smart_alerts_user_active', 'user_id', 'is_active'),
        Index('ix_smart_alerts_type_active', 'alert_type', 'is_active'),
        Index('ix_smart_alerts_symbol_active', 'symbol', 'is_active'),
    )

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey('users.id', ondelete="CASCADE"), nullable=False, index=True)
    alert_type = Column(
        Enum(AlertKindEnum, name="alert_kind_enum", values_callable=_enum_values),
        nullable=False,
    )
    symbol = Column(String(20), nullable=True)
    target_value = Column(Numeric(20, 8), nullable=True)
    direction = Column(
        Enum(AlertDirectionEnum, name="alert_direction_enum", values_callable=_enum_values),
        nullable=True,
    )
    configuration = Column(JSONType, nullable=True)

    is_active = Column(Boolean, default=True, server_default=true(), nullable=False)
    last_triggered_at = Column(DateTime(timezone=True), nullable=True)
    trigger_count = Column(Integer, default=0, server_default='0', nullable=False)
    # Bumped on every user edit; the evaluator only writes against the version it read.
    version = Column(Integer, default=0, server_default='0', nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    user = relationship("User", back_populates="smart_alerts")
    state = relationship(
        "AlertState", back_populates="alert", uselist=False,
        cascade="all, delete-orphan", passive_deletes=True,
    )


class AlertState(Base):
    __tablename__ = 'alert_evaluation_states'

    alert_id = Column(Integer, ForeignKey('smart_alerts.id', ondelete="CASCADE"), primary_key=True)
    armed = Column(Boolean, default=True, server_default=true(), nullable=False)
    last_value = Column(Numeric(30, 8), nullable=True)
    last_sentiment_label = Column(
        Enum(SentimentLabelEnum, name="sentiment_label_enum", values_callable=_enum_values),
        nullable=True,
    )
    last_sentiment_score = Column(Integer, nullable=True)
    last_evaluated_at = Column(DateTime(timezone=True), nullable=True)

    alert = relationship("SmartAlert", back_populates="state")
