"""Tests for the cash register ledger."""
from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import event
from sqlalchemy.exc import SQLAlchemyError

from app.domain.enums import EntryType
from app.exceptions import PersistenceError
from app.services.cash_ledger_service import SqlCashLedger, daily_summary, list_entries
from app.services.order_service import create_order


def test_idempotency_key_books_once(session):
    ledger = SqlCashLedger(session)
    first = ledger.append_entry(amount='50', description='Cobro', idempotency_key='order-payment:1')
    second = ledger.append_entry(amount='50', description='Cobro', idempotency_key='order-payment:1')
    session.commit()

    assert first.id == second.id
    assert len(list_entries(session, date.today())) == 1


def test_entries_without_key_always_book(session):
    ledger = SqlCashLedger(session)
    ledger.append_entry(amount='10')
    ledger.append_entry(amount='10')
    session.commit()
    assert len(list_entries(session, date.today())) == 2


@pytest.mark.parametrize('amount', ['0', '-5'])
def test_non_positive_amount_rejected(session, amount):
    with pytest.raises(ValueError):
        SqlCashLedger(session).append_entry(amount=amount)


def test_daily_summary_and_type_filter(session):
    ledger = SqlCashLedger(session)
    ledger.append_entry(amount='100.00', payment_method='CASH')
    ledger.append_entry(amount='40.00', payment_method='CARD')
    ledger.append_entry(amount='25.50', entry_type=EntryType.EXPENSE, category='Insumos',
                        description='Detergente')
    session.commit()

    summary = daily_summary(session, date.today())
    assert summary == {
        'income': Decimal('140.00'),
        'expense': Decimal('25.50'),
        'balance': Decimal('114.50'),
    }
    expenses = list_entries(session, date.today(), 'expense')
    assert [e.category for e in expenses] == ['Insumos']


def test_summary_of_empty_day(session):
    summary = daily_summary(session, date(2020, 1, 1))
    assert summary['balance'] == Decimal('0.00')


class RecordingCache:
    """Stands in for CacheService and records invalidations next to commits."""

    def __init__(self, events):
        self.events = events

    def invalidate_module(self, module):
        self.events.append(f'invalidate:{module}')
        return 0


@pytest.fixture
def commit_log(session):
    events = []
    db = session()

    def on_commit(_session):
        events.append('commit')

    event.listen(db, 'after_commit', on_commit)
    yield events
    event.remove(db, 'after_commit', on_commit)


def test_append_alone_keeps_cache(session, commit_log):
    ledger = SqlCashLedger(session, RecordingCache(commit_log))
    ledger.append_entry(amount='10')
    assert commit_log == []

    session.commit()
    ledger.invalidate_summary()
    ledger.invalidate_summary()
    assert commit_log == ['commit', 'invalidate:cash']


def test_intake_advance_invalidates_after_commit(session, policy, commit_log):
    create_order(
        {'customer_name': 'Elena', 'paid_amount': '5.00',
         'items': [{'name': 'Blusa', 'item_type': 'piece', 'quantity': 1, 'unit_price': '10'}]},
        session, policy, cache=RecordingCache(commit_log),
    )
    assert commit_log == ['commit', 'invalidate:cash']


def test_collect_payment_invalidates_after_commit(session, make_controller, make_order, commit_log):
    order = make_order()
    controller = make_controller(cash_ledger=SqlCashLedger(session, RecordingCache(commit_log)))
    for _ in range(4):
        controller.advance(order.id)
    del commit_log[:]

    result = controller.collect_payment_and_complete(order.id, '110.00')
    assert result.applied
    assert commit_log == ['commit', 'invalidate:cash']


def test_failed_collect_leaves_cache_alone(session, make_controller, make_order, commit_log, monkeypatch):
    order = make_order()
    controller = make_controller(cash_ledger=SqlCashLedger(session, RecordingCache(commit_log)))
    for _ in range(4):
        controller.advance(order.id)
    del commit_log[:]

    def broken_status(*args, **kwargs):
        raise SQLAlchemyError('write failed')

    monkeypatch.setattr(controller.order_store, 'persist_status', broken_status)
    with pytest.raises(PersistenceError):
        controller.collect_payment_and_complete(order.id, '110.00')
    assert commit_log == []
