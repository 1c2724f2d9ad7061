# src/cryptoadvisor/interfaces/api/deps.py

from __future__ import annotations
from fastapi import Header, HTTPException, Request

from cryptoadvisor.config import settings
from cryptoadvisor.application.services.account_service import AccountService
from cryptoadvisor.application.services.alert_service import SmartAlertService
from cryptoadvisor.application.services.lifecycle_service import AlertLifecycleService
from cryptoadvisor.application.services.notification_service import NotificationService


def _service(request: Request, name: str):
    services = request.app.state.services or {}
    service = services.get(name)
    if not service:
        raise HTTPException(status_code=503, detail=f"{name} is currently unavailable.")
    return service


def get_alert_service(request: Request) -> SmartAlertService:
    return _service(request, "alert_service")


def get_lifecycle_service(request: Request) -> AlertLifecycleService:
    return _service(request, "lifecycle_service")


def get_notification_service(request: Request) -> NotificationService:
    return _service(request, "notification_service")


def get_account_service(request: Request) -> AccountService:
    return _service(request, "account_service")


# --- API Key Dependency ---

def require_api_key(x_api_key: str | None = Header(default=None)):
    if settings.API_KEY and x_api_key != settings.API_KEY:
        raise HTTPException(status_code=401, detail="Invalid API key")
    return True
