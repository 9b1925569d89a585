import random

import pytest

from fairdice_be.exceptions import InvalidModuloException, InvalidSelectorException
from fairdice_be.error_codes import ErrorCodes
from fairdice_be.utils.odds import (
    compute_roll_under, is_threshold_game, popcount, popcount_chunk, validate_modulo,
    MAX_MODULO, MIN_MODULO, THRESHOLD_MODULO
)


def test_six_sided_die_two_faces():
    # Outcomes 3 and 5 of a six-sided die
    assert compute_roll_under(6, 0b101000) == 2

def test_single_outcome_of_each_modulo():
    for modulo in range(MIN_MODULO, MAX_MODULO + 1):
        if modulo == THRESHOLD_MODULO:
            continue
        assert compute_roll_under(modulo, 1 << (modulo - 1)) == 1

def test_full_mask_is_sure_win():
    assert compute_roll_under(MAX_MODULO, (1 << MAX_MODULO) - 1) == MAX_MODULO
    assert popcount((1 << 253) - 1) == 253

def test_popcount_matches_naive_count():
    # The chunked multiply-and-mask count is only an optimization; agreeing with bin().count is the contract
    rng = random.Random(1337)
    masks = [0, 1, (1 << 40) - 1, 1 << 40, (1 << 80) | 1, (1 << 280) - 1]
    masks += [rng.getrandbits(rng.randint(1, 280)) for _ in range(500)]
    for mask in masks:
        assert popcount(mask) == bin(mask).count('1'), hex(mask)

def test_popcount_chunk_every_width():
    for width in range(41):
        assert popcount_chunk((1 << width) - 1) == width

def test_popcount_rejects_out_of_range():
    with pytest.raises(ValueError):
        popcount(-1)
    with pytest.raises(ValueError):
        popcount(1 << 280)

def test_threshold_tier_uses_selector_as_count():
    assert is_threshold_game(100)
    assert not is_threshold_game(99)
    assert compute_roll_under(100, 1) == 1
    assert compute_roll_under(100, 50) == 50
    assert compute_roll_under(100, 100) == 100

def test_threshold_selector_above_modulo():
    with pytest.raises(InvalidSelectorException):
        compute_roll_under(100, 101)

@pytest.mark.parametrize("modulo", [0, 1, 254, 1000, -6, "6", 6.0, True])
def test_invalid_modulo(modulo):
    with pytest.raises(InvalidModuloException) as excinfo:
        validate_modulo(modulo)
    assert excinfo.value.error_code == ErrorCodes.INVALID_MODULO
    assert excinfo.value.status_code == 422

def test_modulo_bounds_accepted():
    assert validate_modulo(MIN_MODULO) == MIN_MODULO
    assert validate_modulo(MAX_MODULO) == MAX_MODULO

@pytest.mark.parametrize("selector", [0, -1, True, "3", None])
def test_invalid_selector_values(selector):
    with pytest.raises(InvalidSelectorException):
        compute_roll_under(6, selector)

def test_mask_wider_than_modulo():
    with pytest.raises(InvalidSelectorException) as excinfo:
        compute_roll_under(6, 1 << 6)
    assert excinfo.value.error_code == ErrorCodes.INVALID_SELECTOR
    # The highest position that fits is fine
    assert compute_roll_under(6, 1 << 5) == 1
