# src/cryptoadvisor/interfaces/api/routers/watchlist.py
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, status

from cryptoadvisor.application.services.account_service import AccountService
from cryptoadvisor.domain.errors import InvalidHolding, UserNotFound
from cryptoadvisor.interfaces.api.deps import get_account_service, require_api_key
from cryptoadvisor.interfaces.api.schemas import HoldingIn, HoldingOut

router = APIRouter(prefix="/watchlist", tags=["Watchlist"], dependencies=[Depends(require_api_key)])


@router.get("", response_model=List[HoldingOut])
def list_holdings(
    user_id: int = Query(...),
    accounts: AccountService = Depends(get_account_service),
):
    return [HoldingOut.from_entity(h) for h in accounts.list_holdings(user_id)]


@router.put("/{symbol}", response_model=HoldingOut)
def set_holding(
    symbol: str,
    payload: HoldingIn,
    user_id: int = Query(...),
    accounts: AccountService = Depends(get_account_service),
):
    try:
        holding = accounts.set_holding(
            user_id,
            symbol,
            holdings_amount=payload.holdings_amount,
            initial_investment_usd=payload.initial_investment_usd,
            purchase_price=payload.purchase_price,
        )
    except UserNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except InvalidHolding as e:
        raise HTTPException(status_code=422, detail=str(e))
    return HoldingOut.from_entity(holding)


@router.delete("/{symbol}", status_code=status.HTTP_204_NO_CONTENT)
def remove_holding(
    symbol: str,
    user_id: int = Query(...),
    accounts: AccountService = Depends(get_account_service),
):
    try:
        removed = accounts.remove_holding(user_id, symbol)
    except InvalidHolding as e:
        raise HTTPException(status_code=422, detail=str(e))
    if not removed:
        raise HTTPException(status_code=404, detail="Holding not found")
