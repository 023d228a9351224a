"""Deliveries blueprint - pickup/delivery task board and task actions (JSON)."""
from flask import Blueprint, request, jsonify

from app.blueprints.orders import transition_response
from app.database import get_session
from app.domain.enums import TaskKind
from app.exceptions import BusinessLogicError, NotFoundError
from app.services.cache_service import get_cache
from app.services.operations_service import build_lifecycle_controller, load_flow_policy
from app.services.order_store import SqlOrderStore
from app.services.task_projector import filter_tasks, project_tasks, summarize_tasks

deliveries_bp = Blueprint('deliveries', __name__, url_prefix='/deliveries')


def _task_kind(kind: str) -> TaskKind:
    try:
        return TaskKind(kind)
    except ValueError:
        raise NotFoundError(f'Tipo de tarea desconocido: {kind}')


def _current_tasks(db_session):
    orders = SqlOrderStore(db_session).fetch_orders()
    return project_tasks(orders, load_flow_policy(db_session))


@deliveries_bp.route('/tasks', methods=['GET'])
def task_list():
    """Projected tasks; filters: kind, status, slot, q, driver_id."""
    driver_id = request.args.get('driver_id', type=int)
    tasks = filter_tasks(
        _current_tasks(get_session()),
        kind=request.args.get('kind'),
        status=request.args.get('status'),
        slot=request.args.get('slot'),
        query=request.args.get('q'),
        driver_id=driver_id,
    )
    return jsonify({'status': 'ok', 'tasks': [t.to_dict() for t in tasks]})


@deliveries_bp.route('/summary', methods=['GET'])
def task_summary():
    return jsonify({'status': 'ok', 'summary': summarize_tasks(_current_tasks(get_session()))})


@deliveries_bp.route('/<int:order_id>/<kind>/assign', methods=['POST'])
def assign(order_id: int, kind: str):
    """Body: ``{"driver_id": 3}``."""
    payload = request.get_json(silent=True) or {}
    try:
        driver_id = int(payload.get('driver_id'))
    except (TypeError, ValueError):
        raise BusinessLogicError('driver_id es requerido')
    controller = build_lifecycle_controller(get_session(), get_cache())
    return transition_response(controller.assign_driver(order_id, _task_kind(kind), driver_id))


@deliveries_bp.route('/<int:order_id>/<kind>/start', methods=['POST'])
def start(order_id: int, kind: str):
    controller = build_lifecycle_controller(get_session(), get_cache())
    return transition_response(controller.start_task(order_id, _task_kind(kind)))


@deliveries_bp.route('/<int:order_id>/<kind>/complete', methods=['POST'])
def complete(order_id: int, kind: str):
    controller = build_lifecycle_controller(get_session(), get_cache())
    return transition_response(controller.complete_task(order_id, _task_kind(kind)))
