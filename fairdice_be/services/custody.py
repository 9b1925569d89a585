# fairdice_be/services/custody.py

import logging
from abc import ABC, abstractmethod

from sqlalchemy import select

from ..models import db, User, HouseLedger, Transaction, TransactionStatus
from ..exceptions import InsufficientFundsException
from ..utils.security_logger import SecurityLogger

logger = logging.getLogger(__name__)


class Custody(ABC):
    """
    Raw value custody of the house.

    ``receive`` pulls value from a player into the house balance and raises
    if the player cannot cover it. ``transfer`` pays value out and reports
    failure through its return value instead of raising, so a rejected
    payout never aborts the operation that triggered it.
    """

    @abstractmethod
    def balance(self) -> int:
        ...

    @abstractmethod
    def receive(self, user, amount: int, transaction_type: str, bet_commit: str = None) -> None:
        ...

    @abstractmethod
    def transfer(self, user_id, amount: int, transaction_type: str, bet_commit: str = None) -> bool:
        ...


class DatabaseCustody(Custody):
    """Moves value between user balances and the house ledger row, one Transaction row per movement."""

    def _house(self):
        # Same identity as the row locked by the caller's transaction
        return db.session.scalar(select(HouseLedger).order_by(HouseLedger.id).limit(1))

    def balance(self) -> int:
        house = self._house()
        return house.balance if house else 0

    def receive(self, user, amount, transaction_type, bet_commit=None):
        if amount <= 0:
            raise ValueError("Received amount must be positive")
        if user.balance < amount:
            raise InsufficientFundsException(details={'required': amount, 'balance': user.balance})

        house = self._house()
        balance_before = user.balance
        user.balance -= amount
        house.balance += amount

        db.session.add(Transaction(
            user_id=user.id,
            amount=-amount,
            transaction_type=transaction_type,
            status=TransactionStatus.COMPLETED,
            bet_commit=bet_commit,
            details={'balance_before_sats': balance_before, 'balance_after_sats': user.balance}
        ))
        SecurityLogger.log_financial_event(
            transaction_type, user_id=user.id, amount=amount,
            balance_before=balance_before, balance_after=user.balance, bet_commit=bet_commit
        )

    def transfer(self, user_id, amount, transaction_type, bet_commit=None):
        if amount < 0:
            raise ValueError("Transferred amount must not be negative")
        if amount == 0:
            return True

        user = db.session.get(User, user_id) if user_id is not None else None
        if user is None or not user.is_active:
            logger.warning(f"Transfer of {amount} sats to user {user_id} rejected: account missing or inactive.")
            return False

        house = self._house()
        if house is None or house.balance < amount:
            logger.error(f"Transfer of {amount} sats to user {user_id} rejected: house balance too low.")
            return False

        balance_before = user.balance
        house.balance -= amount
        user.balance += amount

        db.session.add(Transaction(
            user_id=user.id,
            amount=amount,
            transaction_type=transaction_type,
            status=TransactionStatus.COMPLETED,
            bet_commit=bet_commit,
            details={'balance_before_sats': balance_before, 'balance_after_sats': user.balance}
        ))
        SecurityLogger.log_financial_event(
            transaction_type, user_id=user.id, amount=amount,
            balance_before=balance_before, balance_after=user.balance, bet_commit=bet_commit
        )
        return True
