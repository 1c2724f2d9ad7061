# src/cryptoadvisor/interfaces/api/routers/alerts.py
import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, status

from cryptoadvisor.application.services.alert_service import SmartAlertService
from cryptoadvisor.application.services.lifecycle_service import AlertLifecycleService
from cryptoadvisor.domain.errors import (
    AlertLimitExceeded, InvalidDefinition, PersistenceFailure, UserNotFound,
)
from cryptoadvisor.interfaces.api.deps import (
    get_alert_service, get_lifecycle_service, require_api_key,
)
from cryptoadvisor.interfaces.api.schemas import (
    AlertIn, AlertOut, AlertPatch, AlertsSummaryOut, EvaluationReportOut,
)

log = logging.getLogger(__name__)
router = APIRouter(prefix="/alerts", tags=["Smart Alerts"], dependencies=[Depends(require_api_key)])


@router.get("", response_model=List[AlertOut])
def list_alerts(
    user_id: int = Query(...),
    only_active: bool = False,
    lifecycle: AlertLifecycleService = Depends(get_lifecycle_service),
):
    return [AlertOut.from_entity(a) for a in lifecycle.list_alerts(user_id, only_active=only_active)]


@router.post("", response_model=AlertOut, status_code=status.HTTP_201_CREATED)
def create_alert(
    payload: AlertIn,
    user_id: int = Query(...),
    lifecycle: AlertLifecycleService = Depends(get_lifecycle_service),
):
    try:
        alert = lifecycle.create_alert(
            user_id=user_id,
            kind=payload.alert_type,
            symbol=payload.symbol,
            target_value=payload.target_value,
            direction=payload.direction,
            configuration=payload.configuration,
            is_active=payload.is_active,
        )
    except UserNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except (InvalidDefinition, AlertLimitExceeded) as e:
        raise HTTPException(status_code=422, detail=str(e))
    return AlertOut.from_entity(alert)


@router.get("/summary", response_model=AlertsSummaryOut)
def alerts_summary(
    user_id: int = Query(...),
    lifecycle: AlertLifecycleService = Depends(get_lifecycle_service),
):
    return lifecycle.get_user_alerts_summary(user_id)


@router.post("/check", response_model=EvaluationReportOut)
async def run_alert_check(alert_service: SmartAlertService = Depends(get_alert_service)):
    """Run one evaluation pass now (same pass the scheduler runs)."""
    try:
        report = await alert_service.evaluate_all()
    except PersistenceFailure as e:
        log.error("Manual alert check failed: %s", e)
        raise HTTPException(status_code=503, detail="Alert store unavailable")
    return report.to_dict()


@router.get("/{alert_id}", response_model=AlertOut)
def get_alert(
    alert_id: int,
    user_id: int = Query(...),
    lifecycle: AlertLifecycleService = Depends(get_lifecycle_service),
):
    alert = lifecycle.get_alert(alert_id, user_id)
    if alert is None:
        raise HTTPException(status_code=404, detail="Alert not found")
    return AlertOut.from_entity(alert)


@router.patch("/{alert_id}", response_model=AlertOut)
def update_alert(
    alert_id: int,
    payload: AlertPatch,
    user_id: int = Query(...),
    lifecycle: AlertLifecycleService = Depends(get_lifecycle_service),
):
    try:
        alert = lifecycle.update_alert(alert_id, user_id, **payload.model_dump(exclude_unset=True))
    except InvalidDefinition as e:
        raise HTTPException(status_code=422, detail=str(e))
    if alert is None:
        raise HTTPException(status_code=404, detail="Alert not found")
    return AlertOut.from_entity(alert)


@router.delete("/{alert_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_alert(
    alert_id: int,
    user_id: int = Query(...),
    lifecycle: AlertLifecycleService = Depends(get_lifecycle_service),
):
    if not lifecycle.delete_alert(alert_id, user_id):
        raise HTTPException(status_code=404, detail="Alert not found")
