"""Win amount, house edge and jackpot fee arithmetic. All amounts are integer minor units."""

from flask import current_app

from fairdice_be.exceptions import EdgeExceedsAmountException, ProfitCeilingExceededException

HOUSE_RULE_KEYS = (
    'HOUSE_EDGE_PERCENT',
    'HOUSE_EDGE_MINIMUM_AMOUNT',
    'MIN_BET',
    'MAX_BET',
    'MIN_JACKPOT_BET',
    'JACKPOT_FEE',
    'JACKPOT_MODULO',
    'BET_EXPIRATION_BLOCKS',
    'LOSS_NOMINAL_PAYMENT',
)


def get_house_rules(config=None) -> dict:
    """House rules from a config mapping, current app config by default."""
    if config is None:
        config = current_app.config
    return {key.lower(): int(config[key]) for key in HOUSE_RULE_KEYS}


def is_jackpot_eligible(amount: int, rules: dict) -> bool:
    return amount >= rules['min_jackpot_bet']


def compute_house_edge(amount: int, rules: dict) -> int:
    house_edge = amount * rules['house_edge_percent'] // 100
    return max(house_edge, rules['house_edge_minimum_amount'])


def compute_win(amount: int, modulo: int, roll_under: int, rules: dict):
    """
    Gross amount paid on a win (stake included) and the jackpot fee taken from the bet.

    Returns:
        (win_amount, jackpot_fee)
    """
    if not 0 < roll_under <= modulo:
        raise ValueError(f"roll_under must be in (0, {modulo}], got {roll_under}")

    jackpot_fee = rules['jackpot_fee'] if is_jackpot_eligible(amount, rules) else 0
    house_edge = compute_house_edge(amount, rules)

    if house_edge + jackpot_fee > amount:
        raise EdgeExceedsAmountException(details={
            'amount': amount,
            'house_edge': house_edge,
            'jackpot_fee': jackpot_fee
        })

    win_amount = (amount - house_edge - jackpot_fee) * modulo // roll_under
    return win_amount, jackpot_fee


def check_profit_ceiling(win_amount: int, amount: int, max_profit: int) -> None:
    if win_amount > amount + max_profit:
        raise ProfitCeilingExceededException(details={
            'win_amount': win_amount,
            'amount': amount,
            'max_profit': max_profit
        })
