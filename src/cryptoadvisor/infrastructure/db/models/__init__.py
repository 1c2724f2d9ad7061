# src/cryptoadvisor/infrastructure/db/models/__init__.py
"""
Makes the 'models' directory a package and ensures all SQLAlchemy ORM models
are registered on Base.metadata for Alembic and the application.
"""

from .base import Base, JSONType
from .auth import User
from .watchlist import WatchlistHolding
from .alert import (
    AlertKindEnum,
    AlertDirectionEnum,
    SentimentLabelEnum,
    SmartAlert,
    AlertState,
)
from .notification import Notification

__all__ = [
    "Base",
    "JSONType",
    "User",
    "WatchlistHolding",
    "SmartAlert",
    "AlertState",
    "Notification",
    "AlertKindEnum",
    "AlertDirectionEnum",
    "SentimentLabelEnum",
]
