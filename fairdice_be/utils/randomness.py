"""
Settlement entropy and outcome evaluation.

Everything here is a pure function of public reveal data: anyone holding the
revealed secret and the placement block hash can recompute the outcome and
the jackpot draw of a settled bet.
"""

import hashlib

from fairdice_be.utils.odds import is_threshold_game
from fairdice_be.utils.payout import is_jackpot_eligible


def derive_entropy(secret: bytes, block_hash: bytes) -> int:
    return int.from_bytes(hashlib.sha256(secret + block_hash).digest(), 'big')


def roll_outcome(entropy: int, modulo: int) -> int:
    return entropy % modulo


def is_winning_outcome(outcome: int, modulo: int, mask: int, roll_under: int) -> bool:
    if is_threshold_game(modulo):
        return outcome < roll_under
    return (mask >> outcome) & 1 == 1


def jackpot_draw(entropy: int, modulo: int, jackpot_modulo: int) -> int:
    # Dividing out the main draw keeps the jackpot roll independent of it.
    return (entropy // modulo) % jackpot_modulo


def evaluate_bet(secret: bytes, block_hash: bytes, modulo: int, mask: int, roll_under: int,
                 amount: int, rules: dict, jackpot_eligible: bool = None) -> dict:
    """
    Outcome of a bet for the given reveal.

    ``jackpot_eligible`` is derived from ``amount`` and the current rules
    unless given; settlement passes what the bet paid into the jackpot.

    Returns a dict with ``entropy`` (hex), ``outcome``, ``is_win``,
    ``jackpot_eligible``, ``jackpot_roll`` (None when not eligible) and
    ``jackpot_hit``.
    """
    entropy = derive_entropy(secret, block_hash)
    outcome = roll_outcome(entropy, modulo)
    eligible = is_jackpot_eligible(amount, rules) if jackpot_eligible is None else jackpot_eligible
    jackpot_roll = jackpot_draw(entropy, modulo, rules['jackpot_modulo']) if eligible else None

    return {
        'entropy': f"{entropy:064x}",
        'outcome': outcome,
        'is_win': is_winning_outcome(outcome, modulo, mask, roll_under),
        'jackpot_eligible': eligible,
        'jackpot_roll': jackpot_roll,
        'jackpot_hit': jackpot_roll == 0,
    }
