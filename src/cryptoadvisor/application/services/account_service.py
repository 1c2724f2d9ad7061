# src/cryptoadvisor/application/services/account_service.py
"""
Account bootstrap and watchlist maintenance.

Users are created on first contact (idempotent by email). Holdings recorded
here are what the portfolio-based alert kinds measure.
"""
import logging
from decimal import Decimal, InvalidOperation
from typing import Any, List, Optional

from cryptoadvisor.domain.entities import Holding, UserAccount
from cryptoadvisor.domain.errors import InvalidHolding, UserNotFound
from cryptoadvisor.domain.value_objects import Symbol
from cryptoadvisor.infrastructure.db.repository import HoldingRepository, UserRepository
from cryptoadvisor.infrastructure.db.uow import SessionScope, session_scope as default_session_scope

log = logging.getLogger(__name__)


def _amount(name: str, value: Any, required: bool = True) -> Optional[Decimal]:
    if value is None:
        if required:
            raise InvalidHolding(f"{name} is required")
        return None
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise InvalidHolding(f"{name} must be numeric, got {value!r}")
    if not amount.is_finite() or amount < 0:
        raise InvalidHolding(f"{name} must be a non-negative number")
    return amount


def _ticker(symbol: str) -> str:
    try:
        return Symbol(symbol).value
    except ValueError as e:
        raise InvalidHolding(str(e))


class AccountService:
    def __init__(self, session_scope: Optional[SessionScope] = None):
        self._session_scope = session_scope or default_session_scope

    def register_user(self, email: str, name: Optional[str] = None) -> UserAccount:
        email = (email or "").strip()
        if "@" not in email:
            raise ValueError(f"invalid email address {email!r}")
        with self._session_scope() as session:
            return UserRepository.to_entity(UserRepository(session).find_or_create(email, name))

    def get_user(self, user_id: int) -> Optional[UserAccount]:
        with self._session_scope() as session:
            row = UserRepository(session).find_by_id(user_id)
            return UserRepository.to_entity(row) if row else None

    def list_holdings(self, user_id: int) -> List[Holding]:
        with self._session_scope() as session:
            return [HoldingRepository.to_entity(row) for row in HoldingRepository(session).list_for_user(user_id)]

    def set_holding(
        self,
        user_id: int,
        symbol: str,
        holdings_amount: Any,
        initial_investment_usd: Any = 0,
        purchase_price: Any = None,
    ) -> Holding:
        """Create or replace the user's position in `symbol`."""
        ticker = _ticker(symbol)
        amount = _amount("holdings_amount", holdings_amount)
        invested = _amount("initial_investment_usd", initial_investment_usd)
        price = _amount("purchase_price", purchase_price, required=False)

        with self._session_scope() as session:
            if UserRepository(session).find_by_id(user_id) is None:
                raise UserNotFound(f"user {user_id} does not exist")
            row = HoldingRepository(session).upsert(user_id, ticker, amount, invested, price)
            holding = HoldingRepository.to_entity(row)

        log.info("Set %s holding for user %s to %s.", ticker, user_id, amount)
        return holding

    def remove_holding(self, user_id: int, symbol: str) -> bool:
        ticker = _ticker(symbol)
        with self._session_scope() as session:
            removed = HoldingRepository(session).delete(user_id, ticker)
        if removed:
            log.info("Removed %s from watchlist of user %s.", ticker, user_id)
        return removed
