# src/cryptoadvisor/interfaces/api/routers/notifications.py
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query

from cryptoadvisor.application.services.notification_service import NotificationService
from cryptoadvisor.interfaces.api.deps import get_notification_service, require_api_key
from cryptoadvisor.interfaces.api.schemas import NotificationOut

router = APIRouter(prefix="/notifications", tags=["Notifications"], dependencies=[Depends(require_api_key)])


@router.get("", response_model=List[NotificationOut])
def list_notifications(
    user_id: int = Query(...),
    unread_only: bool = False,
    limit: int = Query(50, ge=1, le=200),
    notifications: NotificationService = Depends(get_notification_service),
):
    records = notifications.list_for_user(user_id, unread_only=unread_only, limit=limit)
    return [NotificationOut.from_entity(r) for r in records]


@router.get("/unread-count")
def unread_count(
    user_id: int = Query(...),
    notifications: NotificationService = Depends(get_notification_service),
):
    return {"count": notifications.unread_count(user_id)}


@router.post("/mark-all-read")
def mark_all_read(
    user_id: int = Query(...),
    notifications: NotificationService = Depends(get_notification_service),
):
    return {"updated": notifications.mark_all_as_read(user_id)}


@router.post("/{notification_id}/read", response_model=NotificationOut)
def mark_read(
    notification_id: int,
    user_id: int = Query(...),
    notifications: NotificationService = Depends(get_notification_service),
):
    record = notifications.mark_as_read(notification_id, user_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Notification not found")
    return NotificationOut.from_entity(record)
