"""
Cash ledger service - append-only cash register entries.

The lifecycle controller emits income entries through ``SqlCashLedger``
inside its own transaction; commit is handled by the caller, which then
calls ``invalidate_summary()`` so the cached daily summary is dropped only
once the new entries are visible. Entries carry an optional idempotency key
so a retried payment never books twice.
"""
import logging
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Dict, List, Optional, Protocol

from sqlalchemy import func

from app.domain.enums import EntryType, normalize_payment_method
from app.models import CashRegisterEntry

logger = logging.getLogger(__name__)

CATEGORY_ORDER_PAYMENT = 'Cobro de pedido'
CATEGORY_ORDER_ADVANCE = 'Anticipo de pedido'


def order_payment_key(order_id: int) -> str:
    """Idempotency key of the balance collected when an order is handed off."""
    return f'order-payment:{order_id}'


def order_advance_key(order_id: int) -> str:
    """Idempotency key of the advance paid at intake."""
    return f'order-advance:{order_id}'


class CashLedger(Protocol):

    def append_entry(self, amount: Decimal, entry_type: EntryType, category: str, description: str,
                     order_id: Optional[int] = None, payment_method: str = 'CASH',
                     idempotency_key: Optional[str] = None) -> CashRegisterEntry: ...

    def invalidate_summary(self) -> None: ...


class SqlCashLedger:
    """SQLAlchemy implementation of :class:`CashLedger`."""

    def __init__(self, session, cache=None):
        self.session = session
        self.cache = cache
        self._summary_stale = False

    def find_by_key(self, idempotency_key: str) -> Optional[CashRegisterEntry]:
        return self.session.query(CashRegisterEntry).filter_by(idempotency_key=idempotency_key).first()

    def append_entry(self, amount, entry_type=EntryType.INCOME, category=CATEGORY_ORDER_PAYMENT,
                     description='', order_id=None, payment_method='CASH', idempotency_key=None,
                     created_by=None) -> CashRegisterEntry:
        """
        Append one entry and flush it.

        Args:
            amount: Positive amount
            entry_type: income / expense
            category: Free-form category label
            description: Human readable note
            order_id: Related order, if any
            payment_method: 'CASH', 'CARD', 'TRANSFER'
            idempotency_key: When set, a second call with the same key returns
                the first entry instead of booking again

        Returns:
            CashRegisterEntry
        """
        amount = Decimal(str(amount)).quantize(Decimal('0.01'))
        if amount <= 0:
            raise ValueError('El monto del movimiento debe ser mayor a 0.')

        if idempotency_key:
            existing = self.find_by_key(idempotency_key)
            if existing is not None:
                logger.info(f"[CASH] Entry {idempotency_key} already booked (id={existing.id}), skipping")
                return existing

        entry = CashRegisterEntry(
            entry_type=EntryType(entry_type).value,
            category=category,
            amount=amount,
            description=(description or '')[:500],
            payment_method=normalize_payment_method(payment_method),
            order_id=order_id,
            idempotency_key=idempotency_key,
            created_by=created_by,
        )
        self.session.add(entry)
        self.session.flush()
        logger.info(f"[CASH] {entry.entry_type} {amount} ({entry.payment_method}) order={order_id}")

        self._summary_stale = True
        return entry

    def invalidate_summary(self) -> None:
        """Drop the cached daily summaries once the caller has committed new entries."""
        if self._summary_stale and self.cache is not None:
            self.cache.invalidate_module('cash')
        self._summary_stale = False


def _day_bounds(day: date):
    start = datetime.combine(day, time.min)
    return start, start + timedelta(days=1)


def list_entries(session, day: date, entry_type: Optional[str] = None) -> List[CashRegisterEntry]:
    """Entries booked on ``day``, newest first."""
    start, end = _day_bounds(day)
    query = session.query(CashRegisterEntry).filter(
        CashRegisterEntry.created_at >= start,
        CashRegisterEntry.created_at < end,
    )
    if entry_type:
        query = query.filter(CashRegisterEntry.entry_type == EntryType(entry_type).value)
    return query.order_by(CashRegisterEntry.created_at.desc(), CashRegisterEntry.id.desc()).all()


def _compute_summary(session, day: date) -> Dict[str, Decimal]:
    start, end = _day_bounds(day)
    rows = (
        session.query(CashRegisterEntry.entry_type, func.coalesce(func.sum(CashRegisterEntry.amount), 0))
        .filter(CashRegisterEntry.created_at >= start, CashRegisterEntry.created_at < end)
        .group_by(CashRegisterEntry.entry_type)
        .all()
    )
    totals = {row[0]: Decimal(str(row[1])).quantize(Decimal('0.01')) for row in rows}
    income = totals.get(EntryType.INCOME.value, Decimal('0.00'))
    expense = totals.get(EntryType.EXPENSE.value, Decimal('0.00'))
    return {'income': income, 'expense': expense, 'balance': income - expense}


def daily_summary(session, day: date, cache=None, ttl: Optional[int] = None) -> Dict[str, Decimal]:
    """Income / expense / balance for ``day``, cached when a cache is given."""
    if cache is None:
        return _compute_summary(session, day)
    return cache.memoize('cash', f'summary:{day.isoformat()}', lambda: _compute_summary(session, day), ttl)
