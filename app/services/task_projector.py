"""
Fulfillment task projector.

Derives the pickup/delivery work list shown on the deliveries board and the
driver portal from the current order snapshots. Pure functions, no I/O.
"""
from typing import Dict, Iterable, List, Optional

from app.domain.enums import DeliveryStatus, OrderStatus, PickupStatus, TaskKind
from app.domain.snapshots import (
    DeliveryLeg, FulfillmentTask, OrderSnapshot, PickupLeg,
)
from app.services.flow_policy import FlowPolicy

_IN_PROGRESS = {PickupStatus.ON_WAY_TO_STORE, DeliveryStatus.IN_TRANSIT}
_COMPLETED = {PickupStatus.RECEIVED, DeliveryStatus.DELIVERED}


def _delivery_is_actionable(order: OrderSnapshot, leg: DeliveryLeg, policy: FlowPolicy) -> bool:
    # Deliveries appear once processing output exists, or earlier if a
    # driver was already put on them.
    if leg.driver_id is not None:
        return True
    return policy.has_reached(order.status, OrderStatus.READY_DELIVERY)


def project_tasks(orders: Iterable[OrderSnapshot], policy: FlowPolicy) -> List[FulfillmentTask]:
    """Flatten orders into one pickup task and/or one delivery task each."""
    tasks = []
    for order in orders:
        pickup = order.pickup
        if isinstance(pickup, PickupLeg):
            tasks.append(FulfillmentTask(
                order_id=order.id,
                ticket_code=order.ticket_code,
                kind=TaskKind.PICKUP,
                status=pickup.status or PickupStatus.PENDING_PICKUP,
                address=pickup.address or order.customer_address or '',
                slot=pickup.slot,
                driver_id=pickup.driver_id,
                customer_name=order.customer_name,
                customer_phone=order.customer_phone,
                order_status=order.status,
            ))

        delivery = order.delivery
        if isinstance(delivery, DeliveryLeg) and _delivery_is_actionable(order, delivery, policy):
            tasks.append(FulfillmentTask(
                order_id=order.id,
                ticket_code=order.ticket_code,
                kind=TaskKind.DELIVERY,
                status=delivery.status or DeliveryStatus.PENDING_DELIVERY,
                address=delivery.address or order.customer_address or '',
                slot=delivery.slot,
                driver_id=delivery.driver_id,
                customer_name=order.customer_name,
                customer_phone=order.customer_phone,
                order_status=order.status,
            ))
    return tasks


def filter_tasks(
    tasks: Iterable[FulfillmentTask],
    kind: Optional[str] = None,
    status: Optional[str] = None,
    slot: Optional[str] = None,
    query: Optional[str] = None,
    driver_id: Optional[int] = None,
) -> List[FulfillmentTask]:
    """Apply the deliveries board filters; ``None``/'all' disables a filter."""
    result = []
    needle = (query or '').strip().lower()
    for task in tasks:
        if kind and kind != 'all' and task.kind.value != kind:
            continue
        if status and status != 'all' and task.status.value != status:
            continue
        if slot and slot != 'all' and (task.slot.value if task.slot else None) != slot:
            continue
        if driver_id is not None and task.driver_id != driver_id:
            continue
        if needle and not (
            needle in task.ticket_code.lower()
            or needle in task.customer_name.lower()
            or needle in (task.customer_phone or '')
            or needle in task.address.lower()
        ):
            continue
        result.append(task)
    return result


def summarize_tasks(tasks: Iterable[FulfillmentTask]) -> Dict[str, Dict[str, int]]:
    """Pending / in progress / completed counts per task kind."""
    summary = {
        kind.value: {'pending': 0, 'in_progress': 0, 'completed': 0}
        for kind in TaskKind
    }
    for task in tasks:
        bucket = summary[task.kind.value]
        if task.status in _COMPLETED:
            bucket['completed'] += 1
        elif task.status in _IN_PROGRESS:
            bucket['in_progress'] += 1
        else:
            bucket['pending'] += 1
    return summary
