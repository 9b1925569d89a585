from flask import Blueprint, request, jsonify, current_app
from flask_jwt_extended import jwt_required, current_user
from sqlalchemy import select

from fairdice_be.models import db, Bet
from fairdice_be.schemas import (
    PlaceBetSchema, QuoteSchema, VerifySchema, BetSchema, BetHistorySchema, PublicHouseSchema
)
from fairdice_be.exceptions import NotFoundException, ProfitCeilingExceededException
from fairdice_be.services.bet_ledger import BetLedger
from fairdice_be.services.settlement_service import SettlementOrchestrator
from fairdice_be.utils.commit_binder import commit_from_secret, normalize_hex
from fairdice_be.utils.odds import compute_roll_under
from fairdice_be.utils.payout import check_profit_ceiling, compute_win, get_house_rules
from fairdice_be.utils.randomness import evaluate_bet

dice_bp = Blueprint('dice', __name__, url_prefix='/api/dice')

@dice_bp.route('/bets', methods=['POST'])
@jwt_required()
def place_bet():
    data = PlaceBetSchema().load(request.get_json() or {})

    bet = SettlementOrchestrator().place_bet(
        current_user,
        commit=data['commit'],
        modulo=data['modulo'],
        selector=data['selector'],
        amount=data['amount'],
        commit_deadline=data['commit_deadline'],
        signature=data['signature']
    )
    current_app.logger.info(f"Bet {bet.commit} placed by user {current_user.id} for {bet.wager_amount} sats.")
    return jsonify({
        'status': True,
        'bet': BetSchema().dump(bet),
        'user': {'balance': current_user.balance}
    }), 201

@dice_bp.route('/bets/<commit>', methods=['GET'])
def get_bet(commit):
    try:
        commit = normalize_hex(commit, 32)
    except ValueError:
        raise NotFoundException(status_message="Bet not found.", details={'commit': commit})
    bet = db.session.get(Bet, commit)
    if bet is None:
        raise NotFoundException(status_message="Bet not found.", details={'commit': commit})
    return jsonify({'status': True, 'bet': BetSchema().dump(bet)}), 200

@dice_bp.route('/history', methods=['GET'])
@jwt_required()
def bet_history():
    page = request.args.get('page', 1, type=int)
    per_page = min(request.args.get('per_page', 20, type=int), 100)

    pagination = db.paginate(
        select(Bet).filter_by(owner_id=current_user.id).order_by(Bet.created_at.desc()),
        page=page, per_page=per_page, error_out=False
    )
    return jsonify({
        'status': True,
        'history': BetHistorySchema().dump({
            'bets': pagination.items,
            'page': pagination.page,
            'pages': pagination.pages,
            'per_page': pagination.per_page,
            'total': pagination.total
        })
    }), 200

@dice_bp.route('/quote', methods=['POST'])
def quote():
    """Odds and payout of a bet without placing it."""
    data = QuoteSchema().load(request.get_json() or {})
    rules = get_house_rules()
    house = BetLedger().get_house(lock=False)
    db.session.commit()

    roll_under = compute_roll_under(data['modulo'], data['selector'])
    win_amount, jackpot_fee = compute_win(data['amount'], data['modulo'], roll_under, rules)
    try:
        check_profit_ceiling(win_amount, data['amount'], house.max_profit)
        within_ceiling = True
    except ProfitCeilingExceededException:
        within_ceiling = False

    return jsonify({
        'status': True,
        'quote': {
            'modulo': data['modulo'],
            'roll_under': roll_under,
            'amount': data['amount'],
            'win_amount': win_amount,
            'jackpot_fee': jackpot_fee,
            'jackpot_eligible': jackpot_fee > 0,
            'within_profit_ceiling': within_ceiling
        }
    }), 200

@dice_bp.route('/verify', methods=['POST'])
def verify():
    """
    Recomputes the outcome of a bet from its public reveal data.

    When a bet with the same commit and terms is on record, its stored win
    amount and jackpot fee are used, so the answer matches its settlement even
    after the house rules changed. Otherwise both come from the current rules.
    """
    data = VerifySchema().load(request.get_json() or {})
    rules = get_house_rules()

    roll_under = compute_roll_under(data['modulo'], data['selector'])
    reveal = normalize_hex(data['reveal'], 32)
    block_hash = normalize_hex(data['block_hash'], 32)
    commit = commit_from_secret(reveal)

    bet = db.session.get(Bet, commit)
    recorded = (
        bet is not None and bet.owner_id is not None
        and bet.modulo == data['modulo']
        and bet.mask_value == data['selector']
        and bet.wager_amount == data['amount']
    )
    if recorded:
        win_amount, jackpot_eligible = bet.win_amount, bet.jackpot_fee > 0
    else:
        win_amount, jackpot_fee = compute_win(data['amount'], data['modulo'], roll_under, rules)
        jackpot_eligible = jackpot_fee > 0

    result = evaluate_bet(
        bytes.fromhex(reveal), bytes.fromhex(block_hash),
        data['modulo'], data['selector'], roll_under, data['amount'], rules,
        jackpot_eligible=jackpot_eligible
    )

    return jsonify({
        'status': True,
        'commit': commit,
        'recorded': recorded,
        'roll_under': roll_under,
        'dice_win': win_amount if result['is_win'] else 0,
        'result': result
    }), 200

@dice_bp.route('/house', methods=['GET'])
def house_info():
    house = BetLedger().get_house(lock=False)
    db.session.commit()
    return jsonify({
        'status': True,
        'house': PublicHouseSchema().dump(house),
        'rules': get_house_rules()
    }), 200
