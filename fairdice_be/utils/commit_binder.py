"""
Commitment binding between the oracle and a bet.

The oracle picks a random secret, publishes ``commit = sha256(secret)`` and
signs ``(deadline, commit)`` with its secp256k1 key. A bet may only be placed
with a commitment signed by the registered oracle while the current block
height is at most the deadline, so nobody can shop for a favourable
placement block with an old commitment.
"""

import hashlib
import logging
import secrets

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec

from fairdice_be.exceptions import ExpiredCommitException, InvalidSignatureException

logger = logging.getLogger(__name__)

COMMIT_BYTES = 32
DEADLINE_BYTES = 5 # uint40
MAX_DEADLINE = (1 << (DEADLINE_BYTES * 8)) - 1
ORACLE_CURVE = ec.SECP256K1()


def normalize_hex(value: str, expected_bytes: int = None) -> str:
    """Lower-case hex without 0x prefix; raises ValueError if malformed or of the wrong length."""
    if not isinstance(value, str):
        raise ValueError("Expected a hex string")
    value = value.strip().lower()
    if value.startswith('0x'):
        value = value[2:]
    raw = bytes.fromhex(value)
    if expected_bytes is not None and len(raw) != expected_bytes:
        raise ValueError(f"Expected {expected_bytes} bytes, got {len(raw)}")
    return value


def generate_secret() -> str:
    return secrets.token_hex(COMMIT_BYTES)


def commit_from_secret(secret_hex: str) -> str:
    return hashlib.sha256(bytes.fromhex(normalize_hex(secret_hex, COMMIT_BYTES))).hexdigest()


def encode_commit_message(deadline: int, commit_hex: str) -> bytes:
    if not 0 <= deadline <= MAX_DEADLINE:
        raise ValueError(f"Deadline must fit in {DEADLINE_BYTES} bytes")
    return deadline.to_bytes(DEADLINE_BYTES, 'big') + bytes.fromhex(normalize_hex(commit_hex, COMMIT_BYTES))


def generate_oracle_key() -> ec.EllipticCurvePrivateKey:
    return ec.generate_private_key(ORACLE_CURVE)


def load_oracle_private_key(private_key_hex: str) -> ec.EllipticCurvePrivateKey:
    return ec.derive_private_key(int(normalize_hex(private_key_hex, 32), 16), ORACLE_CURVE)


def private_key_to_hex(private_key: ec.EllipticCurvePrivateKey) -> str:
    return private_key.private_numbers().private_value.to_bytes(32, 'big').hex()


def oracle_address(public_key: ec.EllipticCurvePublicKey) -> str:
    """Hex of the SEC1 compressed point; this is what gets registered as the oracle."""
    return public_key.public_bytes(
        serialization.Encoding.X962,
        serialization.PublicFormat.CompressedPoint
    ).hex()


def sign_commit(private_key: ec.EllipticCurvePrivateKey, deadline: int, commit_hex: str) -> str:
    """Oracle side: DER signature over (deadline, commit), hex encoded."""
    message = encode_commit_message(deadline, commit_hex)
    return private_key.sign(message, ec.ECDSA(hashes.SHA256())).hex()


class CommitVerifier:
    """Checks that a commitment was signed by the registered oracle."""

    def __init__(self, address: str):
        self.address = normalize_hex(address, 33) if address else None
        self._public_key = None
        if self.address:
            self._public_key = ec.EllipticCurvePublicKey.from_encoded_point(ORACLE_CURVE, bytes.fromhex(self.address))

    def verify_commit(self, deadline: int, commit_hex: str, signature_hex: str) -> bool:
        if self._public_key is None:
            logger.warning("Commit verification attempted without a registered oracle address")
            return False
        try:
            message = encode_commit_message(deadline, commit_hex)
            signature = bytes.fromhex(normalize_hex(signature_hex))
            self._public_key.verify(signature, message, ec.ECDSA(hashes.SHA256()))
        except (InvalidSignature, ValueError):
            return False
        return True


def bind_commit(verifier, commit_hex: str, deadline: int, signature_hex: str, current_height: int) -> None:
    """
    Gate for bet placement.

    Raises ExpiredCommitException once the chain is past the deadline and
    InvalidSignatureException if the oracle did not sign (deadline, commit).
    """
    if current_height > deadline:
        raise ExpiredCommitException(details={'deadline': deadline, 'current_height': current_height})
    if not verifier.verify_commit(deadline, commit_hex, signature_hex):
        raise InvalidSignatureException(details={'commit': commit_hex})
