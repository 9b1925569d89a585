# fairdice_be/services/settlement_service.py
"""
Placement, settlement and refund of dice bets.

Each public method is one database transaction that starts by row-locking
the house ledger, so operations apply one at a time and either commit as a
whole or leave nothing behind.
"""

from flask import current_app

from ..models import db, BetEventType
from ..exceptions import (
    AmountOutOfRangeException, AuthorizationException, BetNotExpiredException,
    BlockHashMismatchException, GamePausedException, HashUnavailableException,
    ValidationException
)
from ..utils.chain import DatabaseBlockSource
from ..utils.commit_binder import CommitVerifier, bind_commit, commit_from_secret, normalize_hex
from ..utils.odds import compute_roll_under
from ..utils.payout import check_profit_ceiling, compute_win, get_house_rules
from ..utils.randomness import evaluate_bet
from ..utils.security_logger import SecurityLogger
from .access_control import get_access_control
from .bet_ledger import BetLedger
from .custody import DatabaseCustody
from .websocket_manager import websocket_manager


def _parse_hex(value, name, expected_bytes):
    try:
        return normalize_hex(value, expected_bytes)
    except ValueError:
        raise ValidationException(
            status_message=f"{name} must be {expected_bytes} bytes of hex.",
            details={name: value}
        )


def bet_to_dict(bet):
    return {
        'commit': bet.commit,
        'owner_id': bet.owner_id,
        'state': bet.state,
        'amount': bet.wager_amount,
        'modulo': bet.modulo,
        'roll_under': bet.roll_under,
        'mask': bet.mask,
        'placed_at_height': bet.placed_at_height,
        'win_amount': bet.win_amount,
        'jackpot_fee': bet.jackpot_fee,
        'outcome': bet.outcome,
        'payout': bet.payout,
        'jackpot_win': bet.jackpot_win,
        'is_refund': bet.is_refund,
    }


class SettlementOrchestrator:

    def __init__(self, access_control=None, block_source=None, custody=None, ledger=None,
                 verifier_factory=CommitVerifier, config=None):
        config = config if config is not None else current_app.config
        self.config = config
        self.rules = get_house_rules(config)
        self.access = access_control or get_access_control()
        self.blocks = block_source or DatabaseBlockSource(horizon=config['BLOCKHASH_HORIZON'])
        self.custody = custody or DatabaseCustody()
        self.ledger = ledger or BetLedger()
        self.verifier_factory = verifier_factory

    def _check_not_paused(self):
        if self.access.paused():
            raise GamePausedException()

    def _check_oracle(self, caller):
        if not self.access.is_oracle(caller):
            SecurityLogger.log_security_event(
                'oracle_action_denied', severity='high', user_id=getattr(caller, 'id', None)
            )
            raise AuthorizationException(status_message="Only the oracle can settle or refund bets.")

    def _verifier(self, house):
        return self.verifier_factory(house.oracle_address or self.config.get('ORACLE_ADDRESS'))

    def place_bet(self, player, commit, modulo, selector, amount, commit_deadline, signature):
        """
        Accepts a bet against an oracle-signed commitment.

        Checks run in order: pause switch, unused commit, amount range, odds,
        commit signature and deadline, profit ceiling, player funds, house
        reserves. Returns the active Bet.
        """
        commit = _parse_hex(commit, 'commit', 32)
        try:
            self._check_not_paused()
            house = self.ledger.get_house(lock=True)
            self.ledger.require_clean(commit)

            if not self.rules['min_bet'] <= amount <= self.rules['max_bet']:
                raise AmountOutOfRangeException(details={
                    'amount': amount,
                    'min_bet': self.rules['min_bet'],
                    'max_bet': self.rules['max_bet']
                })

            roll_under = compute_roll_under(modulo, selector)

            height = self.blocks.current_height()
            bind_commit(self._verifier(house), commit, commit_deadline, signature, height)

            win_amount, jackpot_fee = compute_win(amount, modulo, roll_under, self.rules)
            check_profit_ceiling(win_amount, amount, house.max_profit)

            self.custody.receive(player, amount, 'bet_wager', bet_commit=commit)
            bet = self.ledger.open_bet(
                house, player, commit, modulo, roll_under, selector, amount,
                win_amount, jackpot_fee, height, commit_deadline
            )
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

        SecurityLogger.log_game_event(
            BetEventType.COMMIT, user_id=player.id, bet_commit=commit,
            bet_amount=amount, win_amount=win_amount,
            details={'modulo': modulo, 'roll_under': roll_under, 'placed_at_height': height}
        )
        websocket_manager.broadcast_bet_event(BetEventType.COMMIT, bet_to_dict(bet))
        return bet

    def settle_bet(self, caller, secret, block_hash):
        """
        Settles the bet committed to ``sha256(secret)`` using the hash of its placement block.

        Returns a dict with the bet and the evaluated outcome.
        """
        self._check_oracle(caller)
        secret = _parse_hex(secret, 'reveal', 32)
        block_hash = _parse_hex(block_hash, 'block_hash', 32)
        commit = commit_from_secret(secret)

        events = []
        try:
            self._check_not_paused()
            house = self.ledger.get_house(lock=True)
            bet = self.ledger.require_active(commit)

            height = self.blocks.current_height()
            placed = bet.placed_at_height
            if not placed < height <= placed + self.rules['bet_expiration_blocks']:
                raise HashUnavailableException(details={
                    'placed_at_height': placed,
                    'current_height': height,
                    'expiration_blocks': self.rules['bet_expiration_blocks']
                })
            recorded_hash = self.blocks.block_hash(placed)
            if recorded_hash is None:
                raise HashUnavailableException(details={'placed_at_height': placed, 'current_height': height})
            if recorded_hash != block_hash:
                raise BlockHashMismatchException(details={'placed_at_height': placed})

            amount = self.ledger.close_bet(bet, height)
            self.ledger.release_reservation(house, bet)

            result = evaluate_bet(
                bytes.fromhex(secret), bytes.fromhex(block_hash),
                bet.modulo, bet.mask_value, bet.roll_under, amount, self.rules,
                jackpot_eligible=bet.jackpot_fee > 0
            )
            dice_win = bet.win_amount if result['is_win'] else 0
            jackpot_win = self.ledger.award_jackpot(house) if result['jackpot_hit'] else 0

            bet.reveal = secret
            bet.outcome = result['outcome']
            bet.jackpot_win = jackpot_win

            if jackpot_win > 0:
                self.ledger.record_event(BetEventType.JACKPOT_PAYMENT, commit, bet.owner_id, jackpot_win,
                                         details={'jackpot_roll': result['jackpot_roll']})
                events.append((BetEventType.JACKPOT_PAYMENT, jackpot_win))

            total = dice_win + jackpot_win
            transfer_amount = total
            if total == 0 and 0 < self.rules['loss_nominal_payment'] <= house.available:
                transfer_amount = self.rules['loss_nominal_payment']

            if self.custody.transfer(bet.owner_id, transfer_amount, 'bet_payout', bet_commit=commit):
                bet.payout = transfer_amount
                self.ledger.record_event(BetEventType.PAYMENT, commit, bet.owner_id, dice_win,
                                         details={'outcome': result['outcome'], 'transferred': transfer_amount})
                events.append((BetEventType.PAYMENT, dice_win))
            else:
                # Owed amount stays in the house balance, now uncommitted
                bet.payout = 0
                self.ledger.record_event(BetEventType.FAILED_PAYMENT, commit, bet.owner_id, transfer_amount,
                                         details={'outcome': result['outcome']})
                events.append((BetEventType.FAILED_PAYMENT, transfer_amount))

            self.ledger.check_solvency(house)
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

        bet_data = bet_to_dict(bet)
        for event_type, event_amount in events:
            SecurityLogger.log_game_event(
                event_type, user_id=bet.owner_id, bet_commit=commit,
                bet_amount=amount, win_amount=event_amount,
                details={'outcome': result['outcome'], 'settled_at_height': height}
            )
            websocket_manager.broadcast_bet_event(event_type, bet_data)
        return {'bet': bet, 'result': result, 'dice_win': dice_win, 'jackpot_win': jackpot_win}

    def refund_bet(self, caller, commit):
        """Returns the full wager of a bet whose settlement window has passed."""
        self._check_oracle(caller)
        commit = _parse_hex(commit, 'commit', 32)

        try:
            self._check_not_paused()
            house = self.ledger.get_house(lock=True)
            bet = self.ledger.require_active(commit)

            height = self.blocks.current_height()
            expires_after = bet.placed_at_height + self.rules['bet_expiration_blocks']
            if height <= expires_after:
                raise BetNotExpiredException(details={
                    'placed_at_height': bet.placed_at_height,
                    'current_height': height,
                    'refundable_from_height': expires_after + 1
                })

            amount = self.ledger.close_bet(bet, height)
            self.ledger.release_reservation(house, bet)
            self.ledger.release_jackpot_fee(house, bet)
            bet.is_refund = True

            if self.custody.transfer(bet.owner_id, amount, 'bet_refund', bet_commit=commit):
                bet.payout = amount
                event_type = BetEventType.PAYMENT
            else:
                bet.payout = 0
                event_type = BetEventType.FAILED_PAYMENT
            self.ledger.record_event(event_type, commit, bet.owner_id, amount, details={'refund': True})

            self.ledger.check_solvency(house)
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

        SecurityLogger.log_game_event(
            event_type, user_id=bet.owner_id, bet_commit=commit, bet_amount=amount, win_amount=amount,
            details={'refund': True, 'settled_at_height': height}
        )
        websocket_manager.broadcast_bet_event(event_type, bet_to_dict(bet))
        return bet
