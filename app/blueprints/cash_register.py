"""Cash register blueprint - daily entries and summary (JSON)."""
from datetime import date, datetime

from flask import Blueprint, request, jsonify, current_app

from app.database import get_session
from app.exceptions import BusinessLogicError
from app.services.cache_service import get_cache
from app.services.cash_ledger_service import daily_summary, list_entries

cash_register_bp = Blueprint('cash_register', __name__, url_prefix='/cash-register')


def _parse_day(value) -> date:
    if not value:
        return date.today()
    try:
        return datetime.strptime(value, '%Y-%m-%d').date()
    except ValueError:
        raise BusinessLogicError(f'Fecha inválida: {value}. Use AAAA-MM-DD')


@cash_register_bp.route('/', methods=['GET'])
def day_view():
    """Entries and income/expense/balance for ``?date=YYYY-MM-DD`` (today by default)."""
    db_session = get_session()
    day = _parse_day(request.args.get('date'))
    entry_type = request.args.get('type')
    if entry_type not in (None, '', 'income', 'expense'):
        raise BusinessLogicError(f'Tipo de movimiento inválido: {entry_type}')

    entries = list_entries(db_session, day, entry_type or None)
    summary = daily_summary(
        db_session, day, cache=get_cache(), ttl=current_app.config.get('CACHE_CASH_SUMMARY_TTL')
    )
    return jsonify({
        'status': 'ok',
        'date': day.isoformat(),
        'entries': [
            {
                'id': e.id,
                'entry_type': e.entry_type,
                'category': e.category,
                'amount': str(e.amount),
                'description': e.description,
                'payment_method': e.payment_method,
                'order_id': e.order_id,
                'created_at': e.created_at.isoformat() if e.created_at else None,
            }
            for e in entries
        ],
        'summary': {key: str(value) for key, value in summary.items()},
    })
