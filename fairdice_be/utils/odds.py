"""
Odds calculation for dice games.

A game is defined by its modulo, the number of equiprobable outcomes. Two
tiers of games share the same engine:

* threshold tier (modulo 100, "etheroll" style): the selector is the number
  of winning outcomes itself, and the roll wins when it lands below it;
* bitmask tier (every other modulo up to 253): the selector is a bitmask of
  the chosen outcome positions and the number of winning outcomes is its
  population count.
"""

from fairdice_be.exceptions import InvalidModuloException, InvalidSelectorException

MIN_MODULO = 2
MAX_MODULO = 253
THRESHOLD_MODULO = 100

# Population count of a 40-bit chunk in three wide-integer operations: the
# multiply lays six copies of the chunk 41 bits apart, the mask keeps every
# sixth bit so each input bit survives exactly once, and the modulo 63 sums
# the 6-bit fields (2**6 == 1 mod 63).
POPCNT_CHUNK_BITS = 40
POPCNT_MAX_CHUNKS = 7
POPCNT_CHUNK_MASK = (1 << POPCNT_CHUNK_BITS) - 1
POPCNT_MULT = 0x0000000000002000000000100000000008000000000400000000020000000001
POPCNT_MASK = 0x0001041041041041041041041041041041041041041041041041041041041041
POPCNT_MODULO = 0x3F


def is_threshold_game(modulo: int) -> bool:
    return modulo == THRESHOLD_MODULO


def validate_modulo(modulo) -> int:
    if isinstance(modulo, bool) or not isinstance(modulo, int):
        raise InvalidModuloException(details={'modulo': modulo})
    if not MIN_MODULO <= modulo <= MAX_MODULO:
        raise InvalidModuloException(
            status_message=f"Modulo must be between {MIN_MODULO} and {MAX_MODULO}.",
            details={'modulo': modulo}
        )
    return modulo


def popcount_chunk(chunk: int) -> int:
    """Bit count of a value below 2**40."""
    return ((chunk * POPCNT_MULT) & POPCNT_MASK) % POPCNT_MODULO


def popcount(mask: int) -> int:
    """Bit count of a mask of at most 280 bits, summed over 40-bit chunks."""
    if mask < 0:
        raise ValueError("Mask must be non-negative")
    if mask >> (POPCNT_CHUNK_BITS * POPCNT_MAX_CHUNKS):
        raise ValueError("Mask is wider than the supported chunk range")

    total = 0
    for _ in range(POPCNT_MAX_CHUNKS):
        if not mask:
            break
        total += popcount_chunk(mask & POPCNT_CHUNK_MASK)
        mask >>= POPCNT_CHUNK_BITS
    return total


def compute_roll_under(modulo, selector) -> int:
    """
    Number of winning outcomes for a selector in a game of the given modulo.

    Raises InvalidModuloException for modulos outside [2, 253] and
    InvalidSelectorException when the selector is zero or does not fit the tier.
    """
    validate_modulo(modulo)

    if isinstance(selector, bool) or not isinstance(selector, int):
        raise InvalidSelectorException(status_message="Selector must be an integer.")
    if selector <= 0:
        raise InvalidSelectorException(status_message="Selector must be positive.", details={'selector': selector})

    if is_threshold_game(modulo):
        if selector > modulo:
            raise InvalidSelectorException(
                status_message=f"Selector must not exceed modulo {modulo}.",
                details={'selector': selector, 'modulo': modulo}
            )
        return selector

    if selector >> modulo:
        raise InvalidSelectorException(
            status_message=f"Bet mask does not fit in {modulo} outcome positions.",
            details={'selector': hex(selector), 'modulo': modulo}
        )
    return popcount(selector)
