"""
Immutable snapshots the lifecycle core works on.

The ORM rows are loaded into these frozen dataclasses by the stores; the
controller validates against a snapshot and then issues explicit persistence
calls. Pickup and delivery are modelled as tagged unions
(``NoPickup | PickupLeg``, ``NoDelivery | DeliveryLeg``) so an order without
a sub-workflow simply has no sub-status to look at.
"""
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Optional, Tuple, Union

from app.domain.enums import (
    DeliveryStatus, DriverStatus, ItemType, OrderStatus, PickupStatus,
    TaskKind, TimeSlot, TransitionReason,
)


@dataclass(frozen=True)
class NoPickup:
    """The customer brings the order to the store."""


@dataclass(frozen=True)
class PickupLeg:
    status: PickupStatus = PickupStatus.PENDING_PICKUP
    address: str = ''
    slot: Optional[TimeSlot] = None
    driver_id: Optional[int] = None
    scheduled_date: Optional[date] = None
    completed_at: Optional[datetime] = None

    kind = TaskKind.PICKUP

    @property
    def is_initial(self) -> bool:
        return self.status == PickupStatus.PENDING_PICKUP

    @property
    def is_terminal(self) -> bool:
        return self.status == PickupStatus.RECEIVED


@dataclass(frozen=True)
class NoDelivery:
    """The customer collects the order at the store."""


@dataclass(frozen=True)
class DeliveryLeg:
    status: DeliveryStatus = DeliveryStatus.PENDING_DELIVERY
    address: str = ''
    slot: Optional[TimeSlot] = None
    driver_id: Optional[int] = None
    scheduled_date: Optional[date] = None
    completed_at: Optional[datetime] = None

    kind = TaskKind.DELIVERY

    @property
    def is_initial(self) -> bool:
        return self.status == DeliveryStatus.PENDING_DELIVERY

    @property
    def is_terminal(self) -> bool:
        return self.status == DeliveryStatus.DELIVERED


Pickup = Union[NoPickup, PickupLeg]
Delivery = Union[NoDelivery, DeliveryLeg]
ServiceLeg = Union[PickupLeg, DeliveryLeg]

# Status a leg moves to on start / completion, keyed by its current status.
LEG_START = {
    PickupStatus.PENDING_PICKUP: PickupStatus.ON_WAY_TO_STORE,
    DeliveryStatus.PENDING_DELIVERY: DeliveryStatus.IN_TRANSIT,
}
LEG_COMPLETE = {
    PickupStatus.ON_WAY_TO_STORE: PickupStatus.RECEIVED,
    DeliveryStatus.IN_TRANSIT: DeliveryStatus.DELIVERED,
}


@dataclass(frozen=True)
class LineItem:
    name: str
    item_type: ItemType
    quantity: Decimal
    unit_price: Decimal
    extras: Tuple[str, ...] = ()

    @property
    def line_total(self) -> Decimal:
        return (self.quantity * self.unit_price).quantize(Decimal('0.01'))


@dataclass(frozen=True)
class OrderSnapshot:
    id: int
    ticket_code: str
    status: OrderStatus
    total_amount: Decimal
    paid_amount: Decimal
    is_paid: bool
    version: int
    customer_name: str = ''
    customer_phone: str = ''
    customer_address: Optional[str] = None
    customer_id: Optional[int] = None
    pickup: Pickup = field(default_factory=NoPickup)
    delivery: Delivery = field(default_factory=NoDelivery)
    items: Tuple[LineItem, ...] = ()
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None

    @property
    def needs_pickup(self) -> bool:
        return isinstance(self.pickup, PickupLeg)

    @property
    def needs_delivery(self) -> bool:
        return isinstance(self.delivery, DeliveryLeg)

    @property
    def outstanding(self) -> Decimal:
        """Balance still owed, never negative."""
        return max(self.total_amount - self.paid_amount, Decimal('0.00'))

    def leg(self, kind: TaskKind) -> Optional[ServiceLeg]:
        """Return the pickup/delivery leg for ``kind`` or None if the order has none."""
        leg = self.pickup if TaskKind(kind) == TaskKind.PICKUP else self.delivery
        if isinstance(leg, (PickupLeg, DeliveryLeg)):
            return leg
        return None


@dataclass(frozen=True)
class DriverSnapshot:
    id: int
    name: str
    status: DriverStatus
    current_orders: int = 0
    completed_today: int = 0
    is_active: bool = True
    phone: str = ''
    zone: str = ''
    counters_date: Optional[date] = None

    @property
    def can_take_tasks(self) -> bool:
        return self.is_active and self.status != DriverStatus.OFFLINE


@dataclass(frozen=True)
class FulfillmentTask:
    """A projected pickup or delivery, one per order and kind."""
    order_id: int
    ticket_code: str
    kind: TaskKind
    status: Union[PickupStatus, DeliveryStatus]
    address: str
    slot: Optional[TimeSlot]
    driver_id: Optional[int]
    customer_name: str = ''
    customer_phone: str = ''
    order_status: Optional[OrderStatus] = None

    def to_dict(self) -> dict:
        return {
            'order_id': self.order_id,
            'ticket_code': self.ticket_code,
            'kind': self.kind.value,
            'status': self.status.value,
            'address': self.address,
            'slot': self.slot.value if self.slot else None,
            'driver_id': self.driver_id,
            'customer_name': self.customer_name,
            'customer_phone': self.customer_phone,
            'order_status': self.order_status.value if self.order_status else None,
        }


@dataclass(frozen=True)
class TransitionResult:
    """Outcome of a lifecycle operation.

    ``applied`` is False when the operation was refused; ``reason`` then says
    why and ``order`` is the unchanged snapshot.
    """
    applied: bool
    order: OrderSnapshot
    reason: Optional[TransitionReason] = None
    change_due: Decimal = Decimal('0.00')

    @classmethod
    def refused(cls, order: OrderSnapshot, reason: TransitionReason) -> 'TransitionResult':
        return cls(applied=False, order=order, reason=reason)

    def to_dict(self) -> dict:
        return {
            'applied': self.applied,
            'reason': self.reason.value if self.reason else None,
            'order_id': self.order.id,
            'order_status': self.order.status.value,
            'change_due': str(self.change_due),
        }
