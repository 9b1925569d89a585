from flask import Blueprint, request, jsonify
from flask_jwt_extended import jwt_required, current_user
from sqlalchemy import select

from fairdice_be.models import db, BetEvent
from fairdice_be.schemas import (
    HouseLedgerSchema, MaxProfitSchema, OracleAddressSchema, UpgradeRedirectSchema,
    HouseAmountSchema, WithdrawFundsSchema, BetEventSchema
)
from fairdice_be.services.house_admin import HouseAdminService
from fairdice_be.utils.decorators import role_required

admin_bp = Blueprint('admin', __name__, url_prefix='/api/admin')

def _ledger_response(house, status_message=None):
    body = {'status': True, 'ledger': HouseLedgerSchema().dump(house)}
    if status_message:
        body['status_message'] = status_message
    return jsonify(body), 200

@admin_bp.route('/ledger', methods=['GET'])
@jwt_required()
@role_required('admin')
def get_ledger():
    return _ledger_response(HouseAdminService().get_ledger())

@admin_bp.route('/events', methods=['GET'])
@jwt_required()
@role_required('admin')
def list_events():
    page = request.args.get('page', 1, type=int)
    per_page = min(request.args.get('per_page', 50, type=int), 200)
    query = select(BetEvent).order_by(BetEvent.id.desc())
    event_type = request.args.get('event_type')
    if event_type:
        query = query.filter_by(event_type=event_type)

    pagination = db.paginate(query, page=page, per_page=per_page, error_out=False)
    return jsonify({
        'status': True,
        'events': BetEventSchema(many=True).dump(pagination.items),
        'page': pagination.page,
        'pages': pagination.pages,
        'total': pagination.total
    }), 200

@admin_bp.route('/max_profit', methods=['POST'])
@jwt_required()
def set_max_profit():
    data = MaxProfitSchema().load(request.get_json() or {})
    house = HouseAdminService().set_max_profit(current_user, data['max_profit'])
    return _ledger_response(house, 'Maximum profit updated.')

@admin_bp.route('/oracle', methods=['POST'])
@jwt_required()
def set_oracle():
    data = OracleAddressSchema().load(request.get_json() or {})
    house = HouseAdminService().set_oracle(current_user, data['oracle_address'])
    return _ledger_response(house, 'Oracle address updated.')

@admin_bp.route('/pause', methods=['POST'])
@jwt_required()
def pause():
    return _ledger_response(HouseAdminService().pause(current_user), 'Betting paused.')

@admin_bp.route('/unpause', methods=['POST'])
@jwt_required()
def unpause():
    return _ledger_response(HouseAdminService().unpause(current_user), 'Betting resumed.')

@admin_bp.route('/upgrade_redirect', methods=['POST'])
@jwt_required()
def set_upgrade_redirect():
    data = UpgradeRedirectSchema().load(request.get_json() or {})
    house = HouseAdminService().set_upgrade_redirect(current_user, data['upgrade_redirect'])
    return _ledger_response(house, 'Upgrade redirect updated.')

@admin_bp.route('/deposit', methods=['POST'])
@jwt_required()
def deposit():
    data = HouseAmountSchema().load(request.get_json() or {})
    house = HouseAdminService().deposit(current_user, data['amount'])
    return _ledger_response(house, 'House funded.')

@admin_bp.route('/jackpot', methods=['POST'])
@jwt_required()
def increase_jackpot():
    data = HouseAmountSchema().load(request.get_json() or {})
    house = HouseAdminService().increase_jackpot(current_user, data['amount'])
    return _ledger_response(house, 'Jackpot increased.')

@admin_bp.route('/withdraw', methods=['POST'])
@jwt_required()
def withdraw_funds():
    data = WithdrawFundsSchema().load(request.get_json() or {})
    service = HouseAdminService()
    success = service.withdraw_funds(current_user, data['beneficiary_id'], data['amount'])
    return jsonify({
        'status': True,
        'transferred': success,
        'ledger': HouseLedgerSchema().dump(service.get_ledger())
    }), 200
