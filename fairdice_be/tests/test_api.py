import os
import unittest
import json

from flask_jwt_extended import create_access_token

from fairdice_be.app import create_app, db
from fairdice_be.models import User, TokenBlacklist
from fairdice_be.config import TestingConfig
from fairdice_be.error_codes import ErrorCodes
from fairdice_be.services.house_admin import HouseAdminService
from fairdice_be.utils.chain import DatabaseBlockSource
from fairdice_be.utils.commit_binder import (
    generate_oracle_key, generate_secret, commit_from_secret, oracle_address, sign_commit
)

SATOSHI = 100_000_000

class BaseTestCase(unittest.TestCase):
    """
    Base test case to set up a fresh app and database for each test method,
    ensuring maximum test isolation.
    """

    def setUp(self):
        self.app, _ = create_app(TestingConfig)
        self.test_db_file = self.app.config.get('DATABASE_FILE_PATH', 'test_fairdice_be_isolated.db')

        self.app_context = self.app.app_context()
        self.app_context.push()

        db.drop_all()
        db.create_all()

        self.client = self.app.test_client()

    def tearDown(self):
        db.session.remove()
        db.drop_all()
        self.app_context.pop()

        if os.path.exists(self.test_db_file):
            try:
                os.remove(self.test_db_file)
            except OSError as e:
                print(f"Error removing test database file {self.test_db_file}: {e}")

    def _create_user(self, username="testuser", email="test@example.com", password="password123",
                     balance=0, is_admin=False, is_funds_controller=False, is_oracle=False):
        """Helper to create a user directly in the DB."""
        user = User(
            username=username,
            email=email,
            password=User.hash_password(password),
            balance=balance,
            is_admin=is_admin,
            is_funds_controller=is_funds_controller,
            is_oracle=is_oracle
        )
        db.session.add(user)
        db.session.commit()
        db.session.refresh(user)
        return user

    def _auth_headers(self, user):
        return {'Authorization': f"Bearer {create_access_token(identity=user)}"}


class DiceTestCase(BaseTestCase):
    """
    Fresh app with a registered oracle key, a genesis block, a funded house
    and a player with a balance.
    """

    house_funds = 50 * SATOSHI
    player_balance = 10 * SATOSHI

    def setUp(self):
        super().setUp()
        self.oracle_key = generate_oracle_key()
        self.app.config['ORACLE_ADDRESS'] = oracle_address(self.oracle_key.public_key())

        self.blocks = DatabaseBlockSource(horizon=self.app.config['BLOCKHASH_HORIZON'])
        self._mine(1)

        self.player = self._create_user("player", "player@example.com", balance=self.player_balance)
        self.oracle = self._create_user("oracle_service", "oracle@example.com", is_oracle=True)
        self.controller = self._create_user("treasury", "treasury@example.com",
                                            balance=self.house_funds, is_funds_controller=True)
        self.admin = self._create_user("house_admin", "house_admin@example.com", is_admin=True)
        if self.house_funds:
            HouseAdminService().deposit(self.controller, self.house_funds)

    def _mine(self, count):
        blocks = self.blocks.mine_blocks(count)
        db.session.commit()
        return blocks

    def _signed_commit(self, deadline=None, secret=None):
        """Oracle side: a fresh secret, its commit and a signature over (deadline, commit)."""
        secret = secret or generate_secret()
        commit = commit_from_secret(secret)
        if deadline is None:
            deadline = self.blocks.current_height() + 10
        return secret, commit, deadline, sign_commit(self.oracle_key, deadline, commit)

    def _bet_payload(self, modulo=2, selector=0b10, amount=SATOSHI, deadline=None):
        secret, commit, deadline, signature = self._signed_commit(deadline)
        payload = {
            'commit': commit,
            'modulo': modulo,
            'selector': selector,
            'amount': amount,
            'commit_deadline': deadline,
            'signature': signature
        }
        return secret, payload


class AuthApiTests(BaseTestCase):
    """Tests for /register, /login, /me and /logout."""

    def test_register_success(self):
        payload = {
            "username": "testregister",
            "email": "newuser@example.com",
            "password": "StrongPassword123!"
        }
        response = self.client.post('/api/register', json=payload)
        data = json.loads(response.data.decode())

        self.assertEqual(response.status_code, 201, f"Registration failed: {data}")
        self.assertTrue(data['status'])
        self.assertIn('access_token', data)
        self.assertEqual(data['user']['username'], payload['username'])
        self.assertEqual(data['user']['balance'], 0)
        self.assertNotIn('password', data['user'])

        user = db.session.scalar(db.select(User).filter_by(username=payload['username']))
        self.assertIsNotNone(user)
        self.assertFalse(user.is_oracle)

    def test_register_username_exists(self):
        self._create_user(username="existinguser", email="unique_email@example.com")
        payload = {
            "username": "existinguser",
            "email": "another_email@example.com",
            "password": "Password123!Long"
        }
        response = self.client.post('/api/register', json=payload)
        data = response.get_json()

        self.assertEqual(response.status_code, 422)
        self.assertFalse(data['status'])
        self.assertEqual(data['error_code'], ErrorCodes.VALIDATION_ERROR)
        self.assertEqual(data['status_message'], 'Username already taken.')
        self.assertIn('username', data['details'])

    def test_register_missing_fields(self):
        response = self.client.post('/api/register', json={"username": "someone", "email": "email@example.com"})
        data = response.get_json()
        self.assertEqual(response.status_code, 422)
        self.assertFalse(data['status'])
        self.assertEqual(data['error_code'], ErrorCodes.VALIDATION_ERROR)
        self.assertIn('password', data['details']['errors'])

    def test_register_weak_password(self):
        payload = {"username": "weakling", "email": "weak@example.com", "password": "short"}
        response = self.client.post('/api/register', json=payload)
        self.assertEqual(response.status_code, 422)
        self.assertIn('password', response.get_json()['details']['errors'])

    def test_login_success_and_me(self):
        self._create_user(username="loginuser", email="login@example.com", password="password123", balance=1234)
        response = self.client.post('/api/login', json={"username": "loginuser", "password": "password123"})
        data = response.get_json()
        self.assertEqual(response.status_code, 200, data)
        self.assertTrue(data['status'])

        me = self.client.get('/api/me', headers={'Authorization': f"Bearer {data['access_token']}"})
        self.assertEqual(me.status_code, 200)
        self.assertEqual(me.get_json()['user']['balance'], 1234)

    def test_login_wrong_password(self):
        self._create_user(username="loginuser", email="login@example.com", password="password123")
        response = self.client.post('/api/login', json={"username": "loginuser", "password": "nope"})
        data = response.get_json()
        self.assertEqual(response.status_code, 401)
        self.assertEqual(data['error_code'], ErrorCodes.UNAUTHENTICATED)

    def test_login_inactive_user_rejected(self):
        user = self._create_user(username="sleeper", email="sleeper@example.com", password="password123")
        user.is_active = False
        db.session.commit()
        response = self.client.post('/api/login', json={"username": "sleeper", "password": "password123"})
        self.assertEqual(response.status_code, 401)

    def test_me_requires_token(self):
        response = self.client.get('/api/me')
        data = response.get_json()
        self.assertEqual(response.status_code, 401)
        self.assertEqual(data['error_code'], ErrorCodes.UNAUTHENTICATED)

    def test_logout_revokes_token(self):
        user = self._create_user()
        headers = self._auth_headers(user)

        response = self.client.post('/api/logout', headers=headers)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(db.session.scalar(db.select(db.func.count(TokenBlacklist.id))), 1)

        response = self.client.get('/api/me', headers=headers)
        self.assertEqual(response.status_code, 401)

    def test_unknown_route_is_json_404(self):
        response = self.client.get('/api/does-not-exist')
        data = response.get_json()
        self.assertEqual(response.status_code, 404)
        self.assertFalse(data['status'])
        self.assertEqual(data['error_code'], ErrorCodes.NOT_FOUND)
        self.assertIn('request_id', data)


if __name__ == '__main__':
    unittest.main()
