from flask import Blueprint, request, jsonify, current_app
from flask_jwt_extended import jwt_required, current_user
from sqlalchemy import select

from fairdice_be.models import db, Bet
from fairdice_be.schemas import SettleSchema, RefundSchema, BetSchema
from fairdice_be.services.settlement_service import SettlementOrchestrator
from fairdice_be.utils.chain import DatabaseBlockSource
from fairdice_be.utils.decorators import role_required

oracle_bp = Blueprint('oracle', __name__, url_prefix='/api/oracle')

@oracle_bp.route('/settle', methods=['POST'])
@jwt_required()
@role_required('oracle')
def settle_bet():
    data = SettleSchema().load(request.get_json() or {})
    settlement = SettlementOrchestrator().settle_bet(current_user, data['reveal'], data['block_hash'])

    bet = settlement['bet']
    current_app.logger.info(
        f"Bet {bet.commit} settled: outcome {bet.outcome}, dice win {settlement['dice_win']}, "
        f"jackpot win {settlement['jackpot_win']}."
    )
    return jsonify({
        'status': True,
        'bet': BetSchema().dump(bet),
        'result': settlement['result'],
        'dice_win': settlement['dice_win'],
        'jackpot_win': settlement['jackpot_win']
    }), 200

@oracle_bp.route('/refund', methods=['POST'])
@jwt_required()
@role_required('oracle')
def refund_bet():
    data = RefundSchema().load(request.get_json() or {})
    bet = SettlementOrchestrator().refund_bet(current_user, data['commit'])
    current_app.logger.info(f"Bet {bet.commit} refunded ({bet.wager_amount} sats).")
    return jsonify({'status': True, 'bet': BetSchema().dump(bet)}), 200

@oracle_bp.route('/pending', methods=['GET'])
@jwt_required()
@role_required('oracle')
def pending_bets():
    """Active bets with the heights that bound their settlement window."""
    expiration = current_app.config['BET_EXPIRATION_BLOCKS']
    height = DatabaseBlockSource(horizon=current_app.config['BLOCKHASH_HORIZON']).current_height()
    bets = db.session.scalars(
        select(Bet).filter(Bet.amount > 0).order_by(Bet.placed_at_height)
    ).all()
    return jsonify({
        'status': True,
        'current_height': height,
        'bets': [
            dict(BetSchema().dump(bet),
                 settleable=bet.placed_at_height < height <= bet.placed_at_height + expiration,
                 refundable=height > bet.placed_at_height + expiration)
            for bet in bets
        ]
    }), 200
