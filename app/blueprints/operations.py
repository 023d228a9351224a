"""Operations blueprint - active processing flow (JSON)."""
from flask import Blueprint, jsonify

from app.database import get_session
from app.services.operations_service import load_flow_policy, serialize_flow

operations_bp = Blueprint('operations', __name__, url_prefix='/operations')


@operations_bp.route('/', methods=['GET'])
def flow():
    db_session = get_session()
    policy = load_flow_policy(db_session)
    return jsonify({
        'status': 'ok',
        'steps': serialize_flow(db_session),
        'active': [key.value for key in policy.active_keys],
    })
