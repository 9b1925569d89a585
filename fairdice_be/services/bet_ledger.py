# fairdice_be/services/bet_ledger.py
"""
Owner of the bet records and of the two aggregate reserves.

``locked_in_bets`` is the sum of what the active bets may still pay out, each
bet reserving the larger of its win and its stake (a refund returns the
stake, and near-certain bets win less than they wagered). ``jackpot_size`` is
the accumulated jackpot. Every mutation that can grow them re-checks
``locked_in_bets + jackpot_size <= balance`` before the caller's transaction
commits, so the house can always settle or refund every active bet plus pay
the whole jackpot.

Methods here never commit; the calling service owns the transaction.
"""

from datetime import datetime, timezone

from flask import current_app
from sqlalchemy import select

from ..models import db, Bet, BetEvent, BetEventType, BetState, HouseLedger
from ..error_codes import ErrorCodes
from ..exceptions import InsufficientReservesException, ValidationException, WrongBetStateException


class BetLedger:

    def get_house(self, lock=True) -> HouseLedger:
        """The house ledger row, created on first use. ``lock`` takes a row lock for the transaction."""
        query = select(HouseLedger).order_by(HouseLedger.id).limit(1)
        if lock:
            query = query.with_for_update()
        house = db.session.scalar(query)
        if house is None:
            house = HouseLedger(
                balance=0,
                locked_in_bets=0,
                jackpot_size=0,
                max_profit=current_app.config['DEFAULT_MAX_PROFIT'],
                oracle_address=current_app.config.get('ORACLE_ADDRESS'),
                paused=False
            )
            db.session.add(house)
            db.session.flush()
            current_app.logger.info("House ledger initialised.")
        return house

    def get_bet(self, commit):
        return db.session.get(Bet, commit)

    def require_clean(self, commit):
        bet = self.get_bet(commit)
        if bet is not None and bet.state != BetState.CLEAN:
            raise WrongBetStateException(
                status_message="Commit has already been used.",
                details={'commit': commit, 'state': bet.state}
            )

    def require_active(self, commit) -> Bet:
        bet = self.get_bet(commit)
        state = bet.state if bet is not None else BetState.CLEAN
        if state != BetState.ACTIVE:
            raise WrongBetStateException(
                status_message="Bet is not active.",
                details={'commit': commit, 'state': state}
            )
        return bet

    def check_solvency(self, house):
        if house.committed > house.balance:
            raise InsufficientReservesException(details={
                'locked_in_bets': house.locked_in_bets,
                'jackpot_size': house.jackpot_size,
                'balance': house.balance
            })

    def record_event(self, event_type, commit=None, beneficiary_id=None, amount=0, details=None) -> BetEvent:
        event = BetEvent(
            event_type=event_type,
            commit=commit,
            beneficiary_id=beneficiary_id,
            amount=amount,
            details=details or {}
        )
        db.session.add(event)
        return event

    def open_bet(self, house, owner, commit, modulo, roll_under, mask, amount, win_amount, jackpot_fee,
                 placed_at_height, commit_deadline) -> Bet:
        """Stores an active bet and reserves its larger payout path (win or refund) and jackpot fee."""
        bet = Bet(
            commit=commit,
            owner_id=owner.id,
            amount=amount,
            wager_amount=amount,
            modulo=modulo,
            roll_under=roll_under,
            mask=f"{mask:x}",
            placed_at_height=placed_at_height,
            commit_deadline=commit_deadline,
            win_amount=win_amount,
            reserved_amount=max(win_amount, amount),
            jackpot_fee=jackpot_fee
        )
        db.session.add(bet)

        house.locked_in_bets += bet.reserved_amount
        house.jackpot_size += jackpot_fee
        self.check_solvency(house)

        self.record_event(BetEventType.COMMIT, commit=commit, beneficiary_id=owner.id, amount=amount, details={
            'modulo': modulo,
            'roll_under': roll_under,
            'win_amount': win_amount,
            'placed_at_height': placed_at_height
        })
        return bet

    def close_bet(self, bet, settled_at_height) -> int:
        """Moves an active bet to processed. Returns the wager that was live."""
        amount = bet.amount
        bet.amount = 0
        bet.settled_at_height = settled_at_height
        bet.processed_at = datetime.now(timezone.utc)
        return amount

    def release_reservation(self, house, bet):
        house.locked_in_bets -= bet.reserved_amount

    def release_jackpot_fee(self, house, bet):
        # The jackpot may have been paid out since this fee went in
        released = min(house.jackpot_size, bet.jackpot_fee)
        house.jackpot_size -= released
        return released

    def award_jackpot(self, house) -> int:
        jackpot = house.jackpot_size
        house.jackpot_size = 0
        return jackpot

    def increase_jackpot(self, house, amount):
        if amount <= 0:
            raise ValidationException("Jackpot increase must be positive.", error_code=ErrorCodes.INVALID_AMOUNT)
        if amount > house.available:
            raise InsufficientReservesException(
                status_message="Jackpot increase exceeds the uncommitted balance.",
                details={'amount': amount, 'available': house.available}
            )
        house.jackpot_size += amount
        self.check_solvency(house)
