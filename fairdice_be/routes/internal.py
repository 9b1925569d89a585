from flask import Blueprint, request, jsonify, current_app

from fairdice_be.models import db
from fairdice_be.schemas import MineBlocksSchema, ChainBlockSchema
from fairdice_be.utils.chain import DatabaseBlockSource
from fairdice_be.utils.decorators import service_token_required

internal_bp = Blueprint('internal', __name__, url_prefix='/api/internal')

def _block_source():
    return DatabaseBlockSource(horizon=current_app.config['BLOCKHASH_HORIZON'])

@internal_bp.route('/blocks', methods=['POST'])
@service_token_required
def mine_blocks():
    """
    Seals the block being built, advancing the chain height.
    Protected by a service API token.
    Expects JSON: { "count": <int_optional, default 1> }
    """
    data = MineBlocksSchema().load(request.get_json(silent=True) or {})
    try:
        blocks = _block_source().mine_blocks(data['count'])
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    current_app.logger.info(f"Mined {len(blocks)} block(s); head is now {blocks[-1].height}.")
    return jsonify({
        'status': True,
        'blocks': ChainBlockSchema(many=True).dump(blocks),
        'current_height': blocks[-1].height + 1
    }), 201

@internal_bp.route('/blocks/head', methods=['GET'])
@service_token_required
def chain_head():
    source = _block_source()
    height = source.current_height()
    return jsonify({
        'status': True,
        'current_height': height,
        'head_hash': source.block_hash(height - 1) if height > 0 else None
    }), 200
