# fairdice_be/services/house_admin.py

from flask import current_app

from ..models import db, BetEventType, User
from ..error_codes import ErrorCodes
from ..exceptions import (
    AuthorizationException, InsufficientReservesException, NotFoundException, UpgradePendingException,
    ValidationException
)
from ..utils.commit_binder import CommitVerifier
from ..utils.security_logger import SecurityLogger
from .access_control import get_access_control
from .bet_ledger import BetLedger
from .custody import DatabaseCustody


def ledger_to_dict(house):
    return {
        'balance': house.balance,
        'locked_in_bets': house.locked_in_bets,
        'jackpot_size': house.jackpot_size,
        'available': house.available,
        'max_profit': house.max_profit,
        'oracle_address': house.oracle_address,
        'paused': house.paused,
        'upgrade_redirect': house.upgrade_redirect,
    }


class HouseAdminService:
    """Administrative surface of the house: limits, oracle, pause switch and house funds."""

    def __init__(self, access_control=None, custody=None, ledger=None):
        self.access = access_control or get_access_control()
        self.custody = custody or DatabaseCustody()
        self.ledger = ledger or BetLedger()

    def _require(self, check, caller, role):
        if not check(caller):
            SecurityLogger.log_security_event(
                'admin_action_denied', severity='high', user_id=getattr(caller, 'id', None),
                details={'required_role': role}
            )
            raise AuthorizationException(status_message=f"This action requires the {role.replace('_', ' ')} role.")

    def _commit(self, caller, action, details):
        try:
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise
        SecurityLogger.log_admin_event(action, admin_user_id=getattr(caller, 'id', None), action=action, details=details)

    def _run(self, fn):
        try:
            return fn()
        except Exception:
            db.session.rollback()
            raise

    def get_ledger(self):
        house = self.ledger.get_house(lock=False)
        db.session.commit()
        return house

    def set_max_profit(self, caller, max_profit):
        self._require(self.access.is_admin, caller, 'admin')
        max_bet = current_app.config['MAX_BET']
        if not 0 <= max_profit < max_bet:
            raise ValidationException(
                status_message="Maximum profit must be below the maximum bet.",
                details={'max_profit': max_profit, 'max_bet': max_bet},
                error_code=ErrorCodes.INVALID_AMOUNT
            )
        house = self._run(lambda: self.ledger.get_house(lock=True))
        house.max_profit = max_profit
        self._commit(caller, 'set_max_profit', {'max_profit': max_profit})
        return house

    def set_oracle(self, caller, oracle_address):
        self._require(self.access.is_admin, caller, 'admin')
        try:
            verifier = CommitVerifier(oracle_address)
        except ValueError as e:
            raise ValidationException(
                status_message="Oracle address must be a compressed secp256k1 public key in hex.",
                details={'oracle_address': oracle_address, 'error': str(e)}
            )
        house = self._run(lambda: self.ledger.get_house(lock=True))
        house.oracle_address = verifier.address
        self._commit(caller, 'set_oracle', {'oracle_address': verifier.address})
        return house

    def pause(self, caller):
        self._require(self.access.is_admin, caller, 'admin')
        house = self._run(lambda: self.ledger.get_house(lock=True))
        house.paused = True
        self._commit(caller, 'pause', {})
        return house

    def unpause(self, caller):
        self._require(self.access.is_admin, caller, 'admin')
        house = self._run(lambda: self.ledger.get_house(lock=True))
        if house.upgrade_redirect:
            db.session.rollback()
            raise UpgradePendingException(details={'upgrade_redirect': house.upgrade_redirect})
        house.paused = False
        self._commit(caller, 'unpause', {})
        return house

    def set_upgrade_redirect(self, caller, target):
        """Marks the service as superseded by ``target``; None clears the marker."""
        self._require(self.access.is_admin, caller, 'admin')
        house = self._run(lambda: self.ledger.get_house(lock=True))
        house.upgrade_redirect = target or None
        self._commit(caller, 'set_upgrade_redirect', {'upgrade_redirect': house.upgrade_redirect})
        return house

    def deposit(self, caller, amount):
        """Moves value from the caller's own balance into the house."""
        self._require(self.access.is_funds_controller, caller, 'funds_controller')

        def apply():
            house = self.ledger.get_house(lock=True)
            self.custody.receive(caller, amount, 'house_deposit')
            return house

        house = self._run(apply)
        self._commit(caller, 'deposit', {'amount': amount})
        return house

    def increase_jackpot(self, caller, amount):
        self._require(self.access.is_funds_controller, caller, 'funds_controller')

        def apply():
            house = self.ledger.get_house(lock=True)
            self.ledger.increase_jackpot(house, amount)
            return house

        house = self._run(apply)
        self._commit(caller, 'increase_jackpot', {'amount': amount})
        return house

    def withdraw_funds(self, caller, beneficiary_id, amount):
        """
        Pays uncommitted house funds out to ``beneficiary_id``.

        Returns True if the transfer went through. A rejected transfer is
        recorded as a failed_payment event and leaves the balance untouched.
        """
        self._require(self.access.is_funds_controller, caller, 'funds_controller')

        def apply():
            house = self.ledger.get_house(lock=True)
            if amount <= 0:
                raise ValidationException("Withdrawal amount must be positive.", error_code=ErrorCodes.INVALID_AMOUNT)
            if db.session.get(User, beneficiary_id) is None:
                raise NotFoundException(status_message="Beneficiary not found.", details={'beneficiary_id': beneficiary_id})
            if amount > house.available:
                raise InsufficientReservesException(
                    status_message="Withdrawal exceeds the uncommitted balance.",
                    details={'amount': amount, 'available': house.available}
                )
            success = self.custody.transfer(beneficiary_id, amount, 'house_withdrawal')
            event_type = BetEventType.PAYMENT if success else BetEventType.FAILED_PAYMENT
            self.ledger.record_event(event_type, beneficiary_id=beneficiary_id, amount=amount,
                                     details={'withdrawal': True})
            self.ledger.check_solvency(house)
            return success

        success = self._run(apply)
        self._commit(caller, 'withdraw_funds', {'beneficiary_id': beneficiary_id, 'amount': amount, 'success': success})
        return success
