# src/cryptoadvisor/application/services/__init__.py

from .price_service import PriceService
from .portfolio_service import PortfolioService
from .sentiment_service import SentimentService
from .market_data_service import MarketDataService
from .notification_service import NotificationService
from .alert_service import SmartAlertService, EvaluationReport, AlertOutcome
from .lifecycle_service import AlertLifecycleService
from .account_service import AccountService

__all__ = [
    "PriceService",
    "PortfolioService",
    "SentimentService",
    "MarketDataService",
    "NotificationService",
    "SmartAlertService",
    "EvaluationReport",
    "AlertOutcome",
    "AlertLifecycleService",
    "AccountService",
]
