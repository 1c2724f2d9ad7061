# src/cryptoadvisor/application/services/market_data_service.py
"""
MarketDataService: the single read-side provider the alert evaluator talks to.

Every method is async and either returns a value or raises DataUnavailable.
An empty portfolio is not an error: mappings come back empty and risk is 0.
"""
import logging
from decimal import Decimal
from typing import Dict

from cryptoadvisor.domain.value_objects import SentimentReading

from .portfolio_service import PortfolioService
from .price_service import PriceService
from .sentiment_service import SentimentService

log = logging.getLogger(__name__)


class MarketDataService:
    def __init__(
        self,
        price_service: PriceService,
        portfolio_service: PortfolioService,
        sentiment_service: SentimentService,
    ):
        self.price_service = price_service
        self.portfolio_service = portfolio_service
        self.sentiment_service = sentiment_service

    async def current_price(self, symbol: str) -> Decimal:
        return await self.price_service.get_price(symbol)

    async def portfolio_allocations(self, user_id: int) -> Dict[str, Decimal]:
        positions = await self.portfolio_service.positions(user_id)
        return PortfolioService.allocations(positions)

    async def unrealized_losses(self, user_id: int) -> Dict[str, Decimal]:
        positions = await self.portfolio_service.positions(user_id)
        return PortfolioService.unrealized_losses(positions)

    async def unrealized_gains(self, user_id: int) -> Dict[str, Decimal]:
        positions = await self.portfolio_service.positions(user_id)
        return PortfolioService.unrealized_gains(positions)

    async def risk_measure(self, user_id: int) -> Decimal:
        positions = await self.portfolio_service.positions(user_id)
        return PortfolioService.drawdown(positions)

    async def sentiment(self) -> SentimentReading:
        return await self.sentiment_service.current()
