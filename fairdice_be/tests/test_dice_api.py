import unittest
from unittest.mock import patch

from fairdice_be.app import db
from fairdice_be.models import Bet, BetState
from fairdice_be.error_codes import ErrorCodes
from fairdice_be.tests.test_api import DiceTestCase, SATOSHI


class DiceApiTests(DiceTestCase):
    """Player facing dice routes and the oracle settlement routes."""

    def _place_via_api(self, **kwargs):
        secret, payload = self._bet_payload(**kwargs)
        response = self.client.post('/api/dice/bets', json=payload, headers=self._auth_headers(self.player))
        return secret, payload, response

    def test_place_bet(self):
        _, payload, response = self._place_via_api(modulo=6, selector=0b101000, amount=SATOSHI)
        data = response.get_json()

        self.assertEqual(response.status_code, 201, data)
        self.assertTrue(data['status'])
        self.assertEqual(data['bet']['commit'], payload['commit'])
        self.assertEqual(data['bet']['state'], BetState.ACTIVE)
        self.assertEqual(data['bet']['roll_under'], 2)
        self.assertEqual(data['bet']['selector'], hex(0b101000))
        self.assertEqual(data['bet']['win_amount'], 296_700_000)
        self.assertEqual(data['user']['balance'], self.player_balance - SATOSHI)

    def test_place_bet_with_hex_selector(self):
        full_mask = (1 << 253) - 2
        _, _, response = self._place_via_api(modulo=253, selector=hex(full_mask), amount=SATOSHI)
        self.assertEqual(response.status_code, 201, response.get_json())
        self.assertEqual(response.get_json()['bet']['roll_under'], 252)

    def test_place_bet_requires_login(self):
        _, payload = self._bet_payload()
        response = self.client.post('/api/dice/bets', json=payload)
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.get_json()['error_code'], ErrorCodes.UNAUTHENTICATED)

    def test_place_bet_rejects_loose_types(self):
        _, payload = self._bet_payload()
        payload['amount'] = str(payload['amount'])
        payload['commit'] = payload['commit'][:-2]
        response = self.client.post('/api/dice/bets', json=payload, headers=self._auth_headers(self.player))
        data = response.get_json()
        self.assertEqual(response.status_code, 422)
        self.assertEqual(data['error_code'], ErrorCodes.VALIDATION_ERROR)
        self.assertIn('amount', data['details']['errors'])
        self.assertIn('commit', data['details']['errors'])

    def test_place_bet_invalid_modulo(self):
        _, _, response = self._place_via_api(modulo=254, selector=1)
        self.assertEqual(response.status_code, 422)
        self.assertEqual(response.get_json()['error_code'], ErrorCodes.INVALID_MODULO)

    def test_place_bet_bad_signature(self):
        _, payload = self._bet_payload()
        payload['commit_deadline'] += 1
        response = self.client.post('/api/dice/bets', json=payload, headers=self._auth_headers(self.player))
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.get_json()['error_code'], ErrorCodes.INVALID_SIGNATURE)

    def test_place_bet_while_paused(self):
        self.client.post('/api/admin/pause', headers=self._auth_headers(self.admin))
        _, _, response = self._place_via_api()
        self.assertEqual(response.status_code, 503)
        self.assertEqual(response.get_json()['error_code'], ErrorCodes.GAME_PAUSED)

    def test_get_bet(self):
        _, payload, _ = self._place_via_api()
        response = self.client.get(f"/api/dice/bets/{payload['commit']}")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json()['bet']['commit'], payload['commit'])

        response = self.client.get(f"/api/dice/bets/0x{payload['commit'].upper()}")
        self.assertEqual(response.status_code, 200)

    def test_get_unknown_bet(self):
        for commit in ('ab' * 32, 'not-a-commit'):
            response = self.client.get(f"/api/dice/bets/{commit}")
            self.assertEqual(response.status_code, 404)
            self.assertEqual(response.get_json()['error_code'], ErrorCodes.NOT_FOUND)

    def test_history_only_lists_own_bets(self):
        self._place_via_api()
        self._place_via_api()
        other = self._create_user("other", "other@example.com", balance=SATOSHI)
        response = self.client.get('/api/dice/history', headers=self._auth_headers(other))
        self.assertEqual(response.get_json()['history']['total'], 0)

        response = self.client.get('/api/dice/history?per_page=1', headers=self._auth_headers(self.player))
        history = response.get_json()['history']
        self.assertEqual(response.status_code, 200)
        self.assertEqual(history['total'], 2)
        self.assertEqual(history['pages'], 2)
        self.assertEqual(len(history['bets']), 1)

    def test_quote(self):
        response = self.client.post('/api/dice/quote', json={'modulo': 6, 'selector': '0x28', 'amount': SATOSHI})
        quote = response.get_json()['quote']
        self.assertEqual(response.status_code, 200)
        self.assertEqual(quote['roll_under'], 2)
        self.assertEqual(quote['win_amount'], 296_700_000)
        self.assertEqual(quote['jackpot_fee'], 100_000)
        self.assertTrue(quote['within_profit_ceiling'])

        response = self.client.post('/api/dice/quote', json={'modulo': 100, 'selector': 1, 'amount': SATOSHI})
        self.assertFalse(response.get_json()['quote']['within_profit_ceiling'])

    def test_quote_selector_out_of_range(self):
        response = self.client.post('/api/dice/quote', json={'modulo': 100, 'selector': 101, 'amount': SATOSHI})
        self.assertEqual(response.status_code, 422)
        self.assertEqual(response.get_json()['error_code'], ErrorCodes.INVALID_SELECTOR)

    def test_house_info(self):
        response = self.client.get('/api/dice/house')
        data = response.get_json()
        self.assertEqual(response.status_code, 200)
        self.assertEqual(data['house']['jackpot_size'], 0)
        self.assertEqual(data['house']['max_profit'], self.app.config['DEFAULT_MAX_PROFIT'])
        self.assertFalse(data['house']['paused'])
        self.assertNotIn('balance', data['house'])
        self.assertEqual(data['rules']['jackpot_modulo'], 1000)

    def test_settle_and_verify(self):
        secret, payload, _ = self._place_via_api(modulo=37, selector=0b111, amount=SATOSHI)
        bet = db.session.get(Bet, payload['commit'])
        self._mine(1)
        block_hash = self.blocks.block_hash(bet.placed_at_height)

        response = self.client.post('/api/oracle/settle', json={'reveal': secret, 'block_hash': block_hash},
                                    headers=self._auth_headers(self.oracle))
        settled = response.get_json()
        self.assertEqual(response.status_code, 200, settled)
        self.assertEqual(settled['bet']['state'], BetState.PROCESSED)
        self.assertEqual(settled['bet']['reveal'], secret)

        response = self.client.post('/api/dice/verify', json={
            'reveal': secret, 'block_hash': block_hash, 'modulo': 37, 'selector': 0b111, 'amount': SATOSHI
        })
        verified = response.get_json()
        self.assertEqual(response.status_code, 200)
        self.assertEqual(verified['commit'], payload['commit'])
        self.assertEqual(verified['result'], settled['result'])
        self.assertEqual(verified['dice_win'], settled['dice_win'])
        self.assertTrue(verified['recorded'])

    def test_verify_uses_recorded_terms_after_rule_change(self):
        secret, payload, _ = self._place_via_api(modulo=37, selector=0b111, amount=SATOSHI)
        bet = db.session.get(Bet, payload['commit'])
        win_amount = bet.win_amount
        self._mine(1)
        block_hash = self.blocks.block_hash(bet.placed_at_height)

        self.app.config['HOUSE_EDGE_PERCENT'] = 5
        self.app.config['MIN_JACKPOT_BET'] = 2 * SATOSHI
        verify_payload = {'reveal': secret, 'block_hash': block_hash, 'modulo': 37, 'selector': 0b111,
                          'amount': SATOSHI}

        # outcome 2 wins, jackpot roll 5 misses
        with patch('fairdice_be.utils.randomness.derive_entropy', return_value=37 * 5 + 2):
            settled = self.client.post('/api/oracle/settle', json={'reveal': secret, 'block_hash': block_hash},
                                       headers=self._auth_headers(self.oracle)).get_json()
            verified = self.client.post('/api/dice/verify', json=verify_payload).get_json()
            other_terms = self.client.post('/api/dice/verify',
                                           json=dict(verify_payload, amount=SATOSHI + 1)).get_json()

        self.assertEqual(settled['dice_win'], win_amount)
        self.assertTrue(verified['recorded'])
        self.assertEqual(verified['dice_win'], win_amount)
        self.assertEqual(verified['result'], settled['result'])
        self.assertTrue(verified['result']['jackpot_eligible'])

        self.assertFalse(other_terms['recorded'])
        self.assertFalse(other_terms['result']['jackpot_eligible'])
        self.assertLess(other_terms['dice_win'], win_amount)

    def test_settle_requires_oracle_role(self):
        secret, payload, _ = self._place_via_api()
        self._mine(1)
        bet = db.session.get(Bet, payload['commit'])
        response = self.client.post('/api/oracle/settle', json={
            'reveal': secret, 'block_hash': self.blocks.block_hash(bet.placed_at_height)
        }, headers=self._auth_headers(self.player))
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.get_json()['error_code'], ErrorCodes.FORBIDDEN)
        self.assertEqual(db.session.get(Bet, payload['commit']).state, BetState.ACTIVE)

    def test_settle_too_early(self):
        secret, payload, _ = self._place_via_api()
        response = self.client.post('/api/oracle/settle', json={'reveal': secret, 'block_hash': '00' * 32},
                                    headers=self._auth_headers(self.oracle))
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.get_json()['error_code'], ErrorCodes.HASH_UNAVAILABLE)

    def test_pending_and_refund(self):
        _, payload, _ = self._place_via_api()
        headers = self._auth_headers(self.oracle)

        pending = self.client.get('/api/oracle/pending', headers=headers).get_json()
        self.assertEqual(len(pending['bets']), 1)
        self.assertFalse(pending['bets'][0]['settleable'])
        self.assertFalse(pending['bets'][0]['refundable'])

        self._mine(1)
        pending = self.client.get('/api/oracle/pending', headers=headers).get_json()
        self.assertTrue(pending['bets'][0]['settleable'])

        response = self.client.post('/api/oracle/refund', json={'commit': payload['commit']}, headers=headers)
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.get_json()['error_code'], ErrorCodes.BET_NOT_EXPIRED)

        self._mine(self.app.config['BET_EXPIRATION_BLOCKS'])
        pending = self.client.get('/api/oracle/pending', headers=headers).get_json()
        self.assertTrue(pending['bets'][0]['refundable'])

        response = self.client.post('/api/oracle/refund', json={'commit': payload['commit']}, headers=headers)
        data = response.get_json()
        self.assertEqual(response.status_code, 200, data)
        self.assertTrue(data['bet']['is_refund'])
        self.assertEqual(self.player.balance, self.player_balance)
        self.assertEqual(self.client.get('/api/oracle/pending', headers=headers).get_json()['bets'], [])


if __name__ == '__main__':
    unittest.main()
