"""Main blueprint with health check endpoints."""
from flask import Blueprint, jsonify
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from app.database import get_session

main_bp = Blueprint('main', __name__)


@main_bp.route('/health')
def health():
    """
    Database health check.

    Returns:
        200: Healthy (DB connected)
        500: Unhealthy (DB error)
    """
    try:
        row = get_session().execute(text("SELECT 1 AS health_check")).fetchone()
    except SQLAlchemyError as e:
        return jsonify({
            'status': 'unhealthy',
            'database': 'disconnected',
            'error': str(e),
        }), 500

    if row and row[0] == 1:
        return jsonify({'status': 'healthy', 'database': 'connected'}), 200
    return jsonify({'status': 'unhealthy', 'database': 'error'}), 500


@main_bp.route('/health/cache')
def health_cache():
    """
    Cache health check. Never returns 500: the app keeps working without Redis.
    """
    from app.services.cache_service import get_cache
    cache = get_cache()

    if not cache.is_available():
        return jsonify({
            'status': 'degraded',
            'cache': 'unavailable',
            'message': 'Cache disabled or Redis unavailable',
        }), 200

    cache.set('system', 'health_check', {'test': 'ok'}, ttl=10)
    result = cache.get('system', 'health_check')
    if result and result.get('test') == 'ok':
        return jsonify({'status': 'ok', 'cache': 'connected'}), 200
    return jsonify({'status': 'degraded', 'cache': 'error'}), 200
