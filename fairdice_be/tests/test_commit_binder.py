import hashlib
import unittest

from fairdice_be.exceptions import ExpiredCommitException, InvalidSignatureException
from fairdice_be.error_codes import ErrorCodes
from fairdice_be.utils.commit_binder import (
    CommitVerifier, bind_commit, commit_from_secret, encode_commit_message, generate_oracle_key,
    generate_secret, load_oracle_private_key, normalize_hex, oracle_address, private_key_to_hex,
    sign_commit, MAX_DEADLINE
)


class TestCommitBinder(unittest.TestCase):

    def setUp(self):
        self.key = generate_oracle_key()
        self.verifier = CommitVerifier(oracle_address(self.key.public_key()))
        self.secret = generate_secret()
        self.commit = commit_from_secret(self.secret)

    def test_commit_is_sha256_of_secret(self):
        self.assertEqual(self.commit, hashlib.sha256(bytes.fromhex(self.secret)).hexdigest())
        self.assertEqual(len(self.secret), 64)

    def test_message_layout(self):
        message = encode_commit_message(0x0102030405, self.commit)
        self.assertEqual(len(message), 37)
        self.assertEqual(message[:5], bytes([1, 2, 3, 4, 5]))
        self.assertEqual(message[5:].hex(), self.commit)

    def test_deadline_must_fit_five_bytes(self):
        encode_commit_message(MAX_DEADLINE, self.commit)
        with self.assertRaises(ValueError):
            encode_commit_message(MAX_DEADLINE + 1, self.commit)
        with self.assertRaises(ValueError):
            encode_commit_message(-1, self.commit)

    def test_signature_verifies(self):
        signature = sign_commit(self.key, 100, self.commit)
        self.assertTrue(self.verifier.verify_commit(100, self.commit, signature))
        self.assertTrue(self.verifier.verify_commit(100, '0x' + self.commit.upper(), signature))

    def test_signature_from_other_key(self):
        signature = sign_commit(generate_oracle_key(), 100, self.commit)
        self.assertFalse(self.verifier.verify_commit(100, self.commit, signature))

    def test_signature_bound_to_deadline_and_commit(self):
        signature = sign_commit(self.key, 100, self.commit)
        self.assertFalse(self.verifier.verify_commit(101, self.commit, signature))
        other_commit = commit_from_secret(generate_secret())
        self.assertFalse(self.verifier.verify_commit(100, other_commit, signature))

    def test_malformed_signature(self):
        self.assertFalse(self.verifier.verify_commit(100, self.commit, 'zz'))
        self.assertFalse(self.verifier.verify_commit(100, self.commit, '3006020101020101'))
        self.assertFalse(self.verifier.verify_commit(100, self.commit, None))

    def test_no_registered_oracle_rejects_everything(self):
        verifier = CommitVerifier(None)
        signature = sign_commit(self.key, 100, self.commit)
        self.assertFalse(verifier.verify_commit(100, self.commit, signature))

    def test_invalid_oracle_address(self):
        with self.assertRaises(ValueError):
            CommitVerifier('02' + 'ff' * 32)
        with self.assertRaises(ValueError):
            CommitVerifier('abcd')

    def test_private_key_hex_round_trip(self):
        loaded = load_oracle_private_key(private_key_to_hex(self.key))
        self.assertEqual(oracle_address(loaded.public_key()), self.verifier.address)

    def test_bind_commit_expired(self):
        signature = sign_commit(self.key, 100, self.commit)
        bind_commit(self.verifier, self.commit, 100, signature, 100)
        with self.assertRaises(ExpiredCommitException) as ctx:
            bind_commit(self.verifier, self.commit, 100, signature, 101)
        self.assertEqual(ctx.exception.error_code, ErrorCodes.EXPIRED_COMMIT)

    def test_bind_commit_invalid_signature(self):
        signature = sign_commit(generate_oracle_key(), 100, self.commit)
        with self.assertRaises(InvalidSignatureException) as ctx:
            bind_commit(self.verifier, self.commit, 100, signature, 50)
        self.assertEqual(ctx.exception.status_code, 403)

    def test_normalize_hex(self):
        self.assertEqual(normalize_hex(' 0xABcd '), 'abcd')
        with self.assertRaises(ValueError):
            normalize_hex('abc')
        with self.assertRaises(ValueError):
            normalize_hex('abcd', 32)


if __name__ == '__main__':
    unittest.main()
