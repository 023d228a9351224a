"""Drivers blueprint - read-only driver availability (JSON)."""
from dataclasses import asdict

from flask import Blueprint, jsonify

from app.database import get_session
from app.services.driver_registry import DriverRegistry, SqlDriverStore

drivers_bp = Blueprint('drivers', __name__, url_prefix='/drivers')


def _serialize_driver(driver) -> dict:
    data = asdict(driver)
    data['status'] = driver.status.value
    data['counters_date'] = driver.counters_date.isoformat() if driver.counters_date else None
    return data


@drivers_bp.route('/', methods=['GET'])
def driver_list():
    registry = DriverRegistry(SqlDriverStore(get_session()))
    return jsonify({
        'status': 'ok',
        'drivers': [_serialize_driver(d) for d in registry.list_drivers()],
        'summary': registry.availability_summary(),
    })


@drivers_bp.route('/candidates', methods=['GET'])
def candidates():
    """Drivers that can take a task, least busy first."""
    registry = DriverRegistry(SqlDriverStore(get_session()))
    return jsonify({
        'status': 'ok',
        'drivers': [_serialize_driver(d) for d in registry.assignment_candidates()],
    })


@drivers_bp.route('/<int:driver_id>', methods=['GET'])
def driver_detail(driver_id: int):
    registry = DriverRegistry(SqlDriverStore(get_session()))
    return jsonify({'status': 'ok', 'driver': _serialize_driver(registry.get_driver(driver_id))})
