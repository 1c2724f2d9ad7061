# src/cryptoadvisor/infrastructure/db/models/watchlist.py
"""
Watchlist entries with holdings. Portfolio metrics (allocation, unrealized
gains and losses, drawdown) are derived from these rows and live prices.
"""

from sqlalchemy import (
    Column, Integer, String, DateTime, ForeignKey, Numeric, UniqueConstraint, func
)
from sqlalchemy.orm import relationship
from .base import Base


class WatchlistHolding(Base):
    __tablename__ = 'watchlists'
    __table_args__ = (
        UniqueConstraint('user_id', 'symbol', name='uq_watchlists_user_symbol'),
    )

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey('users.id', ondelete="CASCADE"), nullable=False, index=True)
    symbol = Column(String(20), nullable=False)

    holdings_amount = Column(Numeric(30, 8), nullable=False, default=0)
    initial_investment_usd = Column(Numeric(20, 2), nullable=False, default=0)
    purchase_price = Column(Numeric(20, 8), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    user = relationship("User", back_populates="holdings")
