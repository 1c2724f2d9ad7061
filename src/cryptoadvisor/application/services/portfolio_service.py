# src/cryptoadvisor/application/services/portfolio_service.py
"""
Portfolio metrics derived from watchlist holdings and live prices:
allocation percentages, unrealized losses and gains, and drawdown risk.
"""
import asyncio
import logging
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from cryptoadvisor.domain.value_objects import Position
from cryptoadvisor.infrastructure.db.repository import HoldingRepository
from cryptoadvisor.infrastructure.db.uow import SessionScope, session_scope as default_session_scope

from .price_service import PriceService

log = logging.getLogger(__name__)

HUNDRED = Decimal("100")


class PortfolioService:
    def __init__(self, price_service: PriceService, session_scope: Optional[SessionScope] = None):
        self.price_service = price_service
        self._session_scope = session_scope or default_session_scope

    def _load_holdings(self, user_id: int) -> List[Tuple[str, Decimal, Decimal]]:
        with self._session_scope() as session:
            rows = HoldingRepository(session).list_for_user(user_id)
            return [
                (row.symbol, Decimal(str(row.holdings_amount or 0)), Decimal(str(row.initial_investment_usd or 0)))
                for row in rows
                if row.holdings_amount and Decimal(str(row.holdings_amount)) > 0
            ]

    async def positions(self, user_id: int) -> List[Position]:
        """Value every non-empty holding at the current price. Any missing price raises DataUnavailable."""
        holdings = self._load_holdings(user_id)
        if not holdings:
            return []
        prices = await asyncio.gather(*(self.price_service.get_price(symbol) for symbol, _, _ in holdings))
        return [
            Position(symbol=symbol, amount=amount, cost_basis=invested, price=price)
            for (symbol, amount, invested), price in zip(holdings, prices)
        ]

    @staticmethod
    def allocations(positions: List[Position]) -> Dict[str, Decimal]:
        total = sum((p.value for p in positions), Decimal("0"))
        if total <= 0:
            return {}
        return {p.symbol: p.value / total * HUNDRED for p in positions}

    @staticmethod
    def unrealized_losses(positions: List[Position]) -> Dict[str, Decimal]:
        """Loss magnitude in USD for each holding currently under water."""
        return {p.symbol: -p.gain_loss for p in positions if p.gain_loss < 0}

    @staticmethod
    def unrealized_gains(positions: List[Position]) -> Dict[str, Decimal]:
        """Gain percentage over cost basis for each holding with a known cost."""
        return {p.symbol: p.gain_percent for p in positions if p.gain_percent is not None}

    @staticmethod
    def drawdown(positions: List[Position]) -> Decimal:
        """Percentage of invested capital currently lost, floored at zero."""
        invested = sum((p.cost_basis for p in positions), Decimal("0"))
        if invested <= 0:
            return Decimal("0")
        current = sum((p.value for p in positions), Decimal("0"))
        return max(Decimal("0"), (invested - current) / invested * HUNDRED)
