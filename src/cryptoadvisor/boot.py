# src/cryptoadvisor/boot.py
import logging
from typing import Dict, Any

from cryptoadvisor.config import settings
from cryptoadvisor.application.services import (
    PriceService,
    PortfolioService,
    SentimentService,
    MarketDataService,
    NotificationService,
    SmartAlertService,
    AlertLifecycleService,
    AccountService,
)
from cryptoadvisor.application.strategy.engine import AlertRuleEngine
from cryptoadvisor.infrastructure.db.alert_store import AlertStore
from cryptoadvisor.infrastructure.notify.broadcaster import RedisBroadcaster
from cryptoadvisor.infrastructure.sched.alert_scheduler import AlertScheduler

log = logging.getLogger(__name__)


def build_services() -> Dict[str, Any]:
    """Build and wire all application services and dependencies."""
    log.info("Building application services...")
    services: Dict[str, Any] = {}

    try:
        broadcaster = RedisBroadcaster(settings.REDIS_URL, settings.NOTIFICATION_CHANNEL)
        services["broadcaster"] = broadcaster

        # --- Read side: market and portfolio data ---
        price_service = PriceService()
        portfolio_service = PortfolioService(price_service=price_service)
        sentiment_service = SentimentService()
        services["price_service"] = price_service
        services["portfolio_service"] = portfolio_service
        services["sentiment_service"] = sentiment_service
        services["market_data_service"] = MarketDataService(
            price_service=price_service,
            portfolio_service=portfolio_service,
            sentiment_service=sentiment_service,
        )

        # --- Alerting ---
        services["alert_store"] = AlertStore()
        services["notification_service"] = NotificationService(broadcaster=broadcaster)
        services["rule_engine"] = AlertRuleEngine()
        services["lifecycle_service"] = AlertLifecycleService()
        services["account_service"] = AccountService()
        services["alert_service"] = SmartAlertService(
            store=services["alert_store"],
            market_data=services["market_data_service"],
            notification_service=services["notification_service"],
            engine=services["rule_engine"],
        )
        services["alert_scheduler"] = AlertScheduler(
            services["alert_service"],
            interval_seconds=settings.ALERT_CHECK_INTERVAL_SECONDS,
        )

        log.info("All services built and wired successfully.")
        return services

    except Exception as e:
        log.critical("Service building failed: %s", e, exc_info=True)
        raise
