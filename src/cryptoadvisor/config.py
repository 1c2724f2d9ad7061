# src/cryptoadvisor/config.py
"""
Runtime settings, loaded from the environment and an optional `.env` file.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Environment / DB
    ENV: str = Field(default="dev")
    DATABASE_URL: str = Field(default="sqlite:///./dev.db")

    # Delivery channel for freshly created notifications (pub/sub).
    REDIS_URL: str | None = None
    NOTIFICATION_CHANNEL: str = "cryptoadvisor:notifications"

    # API / Security
    API_KEY: str | None = None
    CORS_ORIGINS: str = "*"

    # Market data
    MARKET_DATA_PROVIDER: str = "binance"
    PRICE_CACHE_TTL_SECONDS: int = 60
    SENTIMENT_CACHE_TTL_SECONDS: int = 1800

    # Smart alert evaluation
    ALERT_CHECK_INTERVAL_SECONDS: int = 120
    ALERT_PROVIDER_TIMEOUT_SECONDS: float = 10.0
    ALERT_BATCH_TIMEOUT_SECONDS: float = 90.0
    ALERT_MAX_CONCURRENCY: int = 8
    ALERT_SCHEDULER_ENABLED: bool = True
    MAX_ALERTS_PER_USER: int = 50

    # Observability
    METRICS_ENABLED: bool = True


settings = Settings()
