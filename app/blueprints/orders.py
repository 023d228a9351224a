"""Orders blueprint - intake and main-pipeline transitions (JSON)."""
from flask import Blueprint, request, jsonify, current_app

from app.database import get_session
from app.domain.enums import OrderStatus
from app.domain.snapshots import TransitionResult
from app.exceptions import BusinessLogicError
from app.services.cache_service import get_cache
from app.services.operations_service import build_lifecycle_controller, load_flow_policy
from app.services.order_service import create_order, serialize_order, serialize_orders
from app.services.order_store import SqlOrderStore

orders_bp = Blueprint('orders', __name__, url_prefix='/orders')


def transition_response(result: TransitionResult):
    """200 with the updated order, or 409 with the refusal reason."""
    body = result.to_dict()
    body['order'] = serialize_order(result.order)
    if not result.applied:
        body['status'] = 'error'
        body['message'] = f'Transición rechazada: {result.reason.value}'
        return jsonify(body), 409
    body['status'] = 'ok'
    return jsonify(body), 200


def _json_body() -> dict:
    payload = request.get_json(silent=True)
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise BusinessLogicError('El cuerpo de la solicitud debe ser un objeto JSON')
    return payload


@orders_bp.route('/', methods=['GET'])
def list_orders():
    """List orders, optionally filtered by ``status`` (repeatable)."""
    db_session = get_session()
    statuses = request.args.getlist('status')
    try:
        statuses = [OrderStatus(s) for s in statuses]
    except ValueError:
        raise BusinessLogicError(f'Estado inválido: {", ".join(statuses)}')
    orders = SqlOrderStore(db_session).fetch_orders(statuses or None)
    return jsonify({'status': 'ok', 'orders': serialize_orders(orders)})


@orders_bp.route('/', methods=['POST'])
def new_order():
    """Register an order at the counter."""
    db_session = get_session()
    order = create_order(
        _json_body(),
        db_session,
        load_flow_policy(db_session),
        ticket_prefix=current_app.config.get('TICKET_PREFIX', 'LC'),
        cache=get_cache(),
    )
    current_app.logger.info(f"Order {order.ticket_code} registered via API")
    return jsonify({'status': 'ok', 'order': serialize_order(order)}), 201


@orders_bp.route('/<int:order_id>', methods=['GET'])
def order_detail(order_id: int):
    order = SqlOrderStore(get_session()).fetch_order(order_id)
    return jsonify({'status': 'ok', 'order': serialize_order(order)})


@orders_bp.route('/<int:order_id>/advance', methods=['POST'])
def advance_order(order_id: int):
    controller = build_lifecycle_controller(get_session(), get_cache())
    return transition_response(controller.advance(order_id))


@orders_bp.route('/<int:order_id>/regress', methods=['POST'])
def regress_order(order_id: int):
    controller = build_lifecycle_controller(get_session(), get_cache())
    return transition_response(controller.regress(order_id))


@orders_bp.route('/<int:order_id>/handoff', methods=['POST'])
def handoff_order(order_id: int):
    """Hand a paid, ready order to the customer at the counter."""
    controller = build_lifecycle_controller(get_session(), get_cache())
    return transition_response(controller.mark_handed_off_at_store(order_id))


@orders_bp.route('/<int:order_id>/collect-payment', methods=['POST'])
def collect_payment(order_id: int):
    """
    Collect the balance and complete the handoff in one step.

    Body: ``{"amount": "150.00", "method": "CASH"}``; ``amount`` defaults
    to the outstanding balance.
    """
    payload = _json_body()
    controller = build_lifecycle_controller(get_session(), get_cache())
    order = controller.order_store.fetch_order(order_id)
    amount = payload.get('amount', order.outstanding)
    method = payload.get('method') or current_app.config.get('DEFAULT_PAYMENT_METHOD', 'CASH')
    return transition_response(controller.collect_payment_and_complete(order, amount, method))
