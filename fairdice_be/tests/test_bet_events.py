import unittest
from unittest.mock import patch

from fairdice_be.exceptions import BetNotExpiredException
from fairdice_be.models import BetEventType, BetState
from fairdice_be.services.custody import DatabaseCustody
from fairdice_be.services.house_admin import HouseAdminService
from fairdice_be.services.settlement_service import SettlementOrchestrator
from fairdice_be.services.websocket_manager import websocket_manager, DICE_ROOM
from fairdice_be.tests.test_api import SATOSHI
from fairdice_be.tests.test_settlement import SettlementTestBase


class TestBetEventBroadcast(SettlementTestBase):
    """Every recorded bet event is pushed to the dice room."""

    def setUp(self):
        super().setUp()
        patcher = patch.object(websocket_manager, 'socketio')
        self.socketio = patcher.start()
        self.addCleanup(patcher.stop)

    def _broadcasts(self):
        emitted = []
        for call in self.socketio.emit.call_args_list:
            self.assertEqual(call.args[0], 'bet_event')
            self.assertEqual(call.kwargs['room'], DICE_ROOM)
            emitted.append(call.args[1])
        return emitted

    def test_place_broadcasts_commit(self):
        _, bet = self._place()

        broadcasts = self._broadcasts()
        self.assertEqual(len(broadcasts), 1)
        self.assertEqual(broadcasts[0]['type'], BetEventType.COMMIT)
        self.assertEqual(broadcasts[0]['bet']['commit'], bet.commit)
        self.assertEqual(broadcasts[0]['bet']['state'], BetState.ACTIVE)
        self.assertIn('timestamp', broadcasts[0])

    def test_won_settlement_broadcasts_payment(self):
        secret, bet = self._place(modulo=2, selector=0b10, amount=SATOSHI)
        self._mine(1)
        self.socketio.reset_mock()

        with patch('fairdice_be.utils.randomness.derive_entropy', return_value=3):
            self._settle(secret, bet)

        broadcasts = self._broadcasts()
        self.assertEqual([b['type'] for b in broadcasts], [BetEventType.PAYMENT])
        self.assertEqual(broadcasts[0]['bet']['state'], BetState.PROCESSED)
        self.assertEqual(broadcasts[0]['bet']['payout'], 197_800_000)

    def test_jackpot_settlement_broadcasts_both_payments(self):
        HouseAdminService().increase_jackpot(self.controller, 5_000_000)
        secret, bet = self._place(amount=SATOSHI)
        self._mine(1)
        self.socketio.reset_mock()

        with patch('fairdice_be.utils.randomness.derive_entropy', return_value=0):
            self._settle(secret, bet)

        broadcasts = self._broadcasts()
        self.assertEqual([b['type'] for b in broadcasts],
                         [BetEventType.JACKPOT_PAYMENT, BetEventType.PAYMENT])
        self.assertEqual(broadcasts[0]['bet']['jackpot_win'], 5_100_000)

    def test_failed_transfer_broadcasts_failed_payment(self):
        secret, bet = self._place(modulo=2, selector=0b10, amount=SATOSHI)
        self._mine(1)
        self.socketio.reset_mock()

        with patch('fairdice_be.utils.randomness.derive_entropy', return_value=3), \
                patch.object(DatabaseCustody, 'transfer', return_value=False):
            self._settle(secret, bet)

        broadcasts = self._broadcasts()
        self.assertEqual([b['type'] for b in broadcasts], [BetEventType.FAILED_PAYMENT])
        self.assertEqual(broadcasts[0]['bet']['payout'], 0)

    def test_refund_broadcasts_payment(self):
        _, bet = self._place()
        self._mine(self.app.config['BET_EXPIRATION_BLOCKS'] + 1)
        self.socketio.reset_mock()

        SettlementOrchestrator().refund_bet(self.oracle, bet.commit)

        broadcasts = self._broadcasts()
        self.assertEqual([b['type'] for b in broadcasts], [BetEventType.PAYMENT])
        self.assertTrue(broadcasts[0]['bet']['is_refund'])
        self.assertEqual(broadcasts[0]['bet']['payout'], SATOSHI)

    def test_rejected_operation_broadcasts_nothing(self):
        _, bet = self._place()
        self.socketio.reset_mock()

        with self.assertRaises(BetNotExpiredException):
            SettlementOrchestrator().refund_bet(self.oracle, bet.commit)

        self.assertEqual(self._broadcasts(), [])


if __name__ == '__main__':
    unittest.main()
