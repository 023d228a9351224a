"""
Order store - persistence boundary of the order lifecycle.

``OrderStore`` is the contract the lifecycle controller depends on;
``SqlOrderStore`` implements it on the SQLAlchemy session. Every persist
call is a single-row UPDATE; ``transaction()`` groups the calls of one
lifecycle operation so they commit or roll back together.
"""
import logging
from contextlib import contextmanager
from datetime import datetime
from decimal import Decimal
from typing import Iterator, List, Optional, Protocol

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import selectinload

from app.domain.enums import (
    DeliveryStatus, ItemType, OrderStatus, PickupStatus, TimeSlot,
)
from app.domain.snapshots import (
    DeliveryLeg, LineItem, NoDelivery, NoPickup, OrderSnapshot, PickupLeg,
)
from app.exceptions import (
    ConcurrencyConflictError, LaundryError, NotFoundError, PersistenceError,
)
from app.models import Order

logger = logging.getLogger(__name__)


class OrderStore(Protocol):
    """Contract consumed by the lifecycle controller."""

    def transaction(self) -> Iterator[None]: ...

    def fetch_orders(self) -> List[OrderSnapshot]: ...

    def fetch_order(self, order_id: int) -> OrderSnapshot: ...

    def claim(self, order_id: int, expected_version: int, timestamp: datetime) -> None: ...

    def persist_status(self, order_id: int, status: OrderStatus, timestamp: datetime,
                       delivered_at: Optional[datetime] = None) -> None: ...

    def persist_payment(self, order_id: int, paid_amount: Decimal, is_paid: bool) -> None: ...

    def persist_pickup_assignment(self, order_id: int, driver_id: int) -> None: ...

    def persist_delivery_assignment(self, order_id: int, driver_id: int) -> None: ...

    def persist_pickup_sub_status(self, order_id: int, status: PickupStatus,
                                  completed_at: Optional[datetime] = None) -> None: ...

    def persist_delivery_sub_status(self, order_id: int, status: DeliveryStatus,
                                    completed_at: Optional[datetime] = None) -> None: ...


def _slot(value) -> Optional[TimeSlot]:
    return TimeSlot(value) if value else None


def _money(value) -> Decimal:
    return Decimal(str(value if value is not None else 0)).quantize(Decimal('0.01'))


def order_to_snapshot(order: Order) -> OrderSnapshot:
    """Map an ORM row onto the immutable snapshot used by the lifecycle core."""
    if order.needs_pickup:
        pickup = PickupLeg(
            status=PickupStatus(order.pickup_status or PickupStatus.PENDING_PICKUP.value),
            address=order.pickup_address or order.customer_address or '',
            slot=_slot(order.pickup_slot),
            driver_id=order.pickup_driver_id,
            scheduled_date=order.pickup_date,
            completed_at=order.pickup_completed_at,
        )
    else:
        pickup = NoPickup()

    if order.needs_delivery:
        delivery = DeliveryLeg(
            status=DeliveryStatus(order.delivery_status or DeliveryStatus.PENDING_DELIVERY.value),
            address=order.delivery_address or order.customer_address or '',
            slot=_slot(order.delivery_slot),
            driver_id=order.delivery_driver_id,
            scheduled_date=order.delivery_date,
            completed_at=order.delivery_completed_at,
        )
    else:
        delivery = NoDelivery()

    items = tuple(
        LineItem(
            name=item.name,
            item_type=ItemType(item.item_type),
            quantity=Decimal(str(item.quantity)),
            unit_price=_money(item.unit_price),
            extras=tuple(item.extras or ()),
        )
        for item in order.items
    )

    return OrderSnapshot(
        id=order.id,
        ticket_code=order.ticket_code,
        status=OrderStatus(order.status),
        total_amount=_money(order.total_amount),
        paid_amount=_money(order.paid_amount),
        is_paid=bool(order.is_paid),
        version=order.version,
        customer_id=order.customer_id,
        customer_name=order.customer_name,
        customer_phone=order.customer_phone or '',
        customer_address=order.customer_address,
        pickup=pickup,
        delivery=delivery,
        items=items,
        created_at=order.created_at,
        updated_at=order.updated_at,
        delivered_at=order.delivered_at,
    )


class SqlOrderStore:
    """SQLAlchemy implementation of :class:`OrderStore`."""

    def __init__(self, session):
        self.session = session

    @contextmanager
    def transaction(self):
        """Commit everything written inside the block, or roll all of it back."""
        try:
            yield
            self.session.commit()
        except LaundryError:
            self.session.rollback()
            raise
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error(f"[LIFECYCLE] Store failure, transaction rolled back: {e}")
            raise PersistenceError(f'Error al guardar los cambios: {e}') from e
        except Exception:
            self.session.rollback()
            raise

    def fetch_orders(self, statuses=None) -> List[OrderSnapshot]:
        query = self.session.query(Order).options(selectinload(Order.items)).populate_existing()
        if statuses:
            query = query.filter(Order.status.in_([OrderStatus(s).value for s in statuses]))
        return [order_to_snapshot(o) for o in query.order_by(Order.created_at, Order.id).all()]

    def fetch_order(self, order_id: int) -> OrderSnapshot:
        order = (
            self.session.query(Order)
            .options(selectinload(Order.items))
            .populate_existing()
            .filter(Order.id == order_id)
            .one_or_none()
        )
        if order is None:
            raise NotFoundError(f'Pedido con ID {order_id} no encontrado')
        return order_to_snapshot(order)

    def _update(self, order_id: int, **values) -> int:
        stmt = (
            update(Order)
            .where(Order.id == order_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return self.session.execute(stmt).rowcount

    def claim(self, order_id: int, expected_version: int, timestamp: datetime) -> None:
        """Bump the version iff it still matches the snapshot (optimistic lock)."""
        stmt = (
            update(Order)
            .where(Order.id == order_id, Order.version == expected_version)
            .values(version=Order.version + 1, updated_at=timestamp)
            .execution_options(synchronize_session=False)
        )
        if self.session.execute(stmt).rowcount != 1:
            raise ConcurrencyConflictError(order_id, expected_version)

    def persist_status(self, order_id, status, timestamp, delivered_at=None) -> None:
        values = {'status': OrderStatus(status).value, 'updated_at': timestamp}
        if delivered_at is not None:
            values['delivered_at'] = delivered_at
        self._update(order_id, **values)

    def persist_payment(self, order_id, paid_amount, is_paid) -> None:
        self._update(order_id, paid_amount=paid_amount, is_paid=is_paid)

    def persist_pickup_assignment(self, order_id, driver_id) -> None:
        self._update(order_id, pickup_driver_id=driver_id)

    def persist_delivery_assignment(self, order_id, driver_id) -> None:
        self._update(order_id, delivery_driver_id=driver_id)

    def persist_pickup_sub_status(self, order_id, status, completed_at=None) -> None:
        values = {'pickup_status': PickupStatus(status).value}
        if completed_at is not None:
            values['pickup_completed_at'] = completed_at
        self._update(order_id, **values)

    def persist_delivery_sub_status(self, order_id, status, completed_at=None) -> None:
        values = {'delivery_status': DeliveryStatus(status).value}
        if completed_at is not None:
            values['delivery_completed_at'] = completed_at
        self._update(order_id, **values)
