# src/cryptoadvisor/interfaces/api/routers/users.py
from fastapi import APIRouter, Depends, HTTPException

from cryptoadvisor.application.services.account_service import AccountService
from cryptoadvisor.interfaces.api.deps import get_account_service, require_api_key
from cryptoadvisor.interfaces.api.schemas import UserIn, UserOut

router = APIRouter(prefix="/users", tags=["Users"], dependencies=[Depends(require_api_key)])


@router.post("", response_model=UserOut)
def register_user(payload: UserIn, accounts: AccountService = Depends(get_account_service)):
    """Find the user by email, creating them on first contact."""
    try:
        user = accounts.register_user(payload.email, payload.name)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return UserOut.from_entity(user)


@router.get("/{user_id}", response_model=UserOut)
def get_user(user_id: int, accounts: AccountService = Depends(get_account_service)):
    user = accounts.get_user(user_id)
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    return UserOut.from_entity(user)
