"""Unit tests for the pickup/delivery task projection."""
from decimal import Decimal

from app.domain.enums import DeliveryStatus, OrderStatus, PickupStatus, TaskKind, TimeSlot
from app.domain.snapshots import DeliveryLeg, NoDelivery, NoPickup, OrderSnapshot, PickupLeg
from app.services.flow_policy import FlowPolicy
from app.services.task_projector import filter_tasks, project_tasks, summarize_tasks


def _order(order_id, status, pickup=None, delivery=None, name='Cliente'):
    return OrderSnapshot(
        id=order_id,
        ticket_code=f'LC-20260101-{order_id:04d}',
        status=status,
        total_amount=Decimal('100.00'),
        paid_amount=Decimal('0.00'),
        is_paid=False,
        version=1,
        customer_name=name,
        customer_phone='555',
        customer_address='Av. Siempre Viva 742',
        pickup=pickup or NoPickup(),
        delivery=delivery or NoDelivery(),
    )


def test_orders_without_legs_produce_no_tasks():
    assert project_tasks([_order(1, OrderStatus.IN_STORE)], FlowPolicy.default()) == []


def test_pickup_task_for_every_pickup_leg():
    order = _order(1, OrderStatus.PENDING_PICKUP, pickup=PickupLeg(slot=TimeSlot.MORNING, address='Calle 1'))
    [task] = project_tasks([order], FlowPolicy.default())
    assert task.kind == TaskKind.PICKUP
    assert task.status == PickupStatus.PENDING_PICKUP
    assert task.slot == TimeSlot.MORNING
    assert task.address == 'Calle 1'


def test_delivery_task_hidden_until_ready():
    policy = FlowPolicy.default()
    washing = _order(1, OrderStatus.WASHING, delivery=DeliveryLeg())
    ready = _order(2, OrderStatus.READY_DELIVERY, delivery=DeliveryLeg())
    tasks = project_tasks([washing, ready], policy)
    assert [(t.order_id, t.kind) for t in tasks] == [(2, TaskKind.DELIVERY)]


def test_delivery_task_visible_early_when_driver_assigned():
    order = _order(1, OrderStatus.WASHING, delivery=DeliveryLeg(driver_id=7))
    [task] = project_tasks([order], FlowPolicy.default())
    assert task.driver_id == 7


def test_order_with_both_legs_yields_two_tasks():
    order = _order(
        1, OrderStatus.READY_DELIVERY,
        pickup=PickupLeg(status=PickupStatus.RECEIVED),
        delivery=DeliveryLeg(status=DeliveryStatus.PENDING_DELIVERY),
    )
    kinds = [t.kind for t in project_tasks([order], FlowPolicy.default())]
    assert sorted(k.value for k in kinds) == ['delivery', 'pickup']


def test_filters_and_summary():
    policy = FlowPolicy.default()
    orders = [
        _order(1, OrderStatus.PENDING_PICKUP, pickup=PickupLeg(slot=TimeSlot.MORNING), name='Lucía'),
        _order(2, OrderStatus.PENDING_PICKUP,
               pickup=PickupLeg(status=PickupStatus.ON_WAY_TO_STORE, slot=TimeSlot.AFTERNOON), name='Pedro'),
        _order(3, OrderStatus.IN_TRANSIT,
               delivery=DeliveryLeg(status=DeliveryStatus.IN_TRANSIT, driver_id=4), name='Lucía'),
        _order(4, OrderStatus.DELIVERED, delivery=DeliveryLeg(status=DeliveryStatus.DELIVERED)),
    ]
    tasks = project_tasks(orders, policy)

    assert [t.order_id for t in filter_tasks(tasks, kind='pickup')] == [1, 2]
    assert [t.order_id for t in filter_tasks(tasks, slot='afternoon')] == [2]
    assert [t.order_id for t in filter_tasks(tasks, query='lucía')] == [1, 3]
    assert [t.order_id for t in filter_tasks(tasks, status='in_transit')] == [3]
    assert [t.order_id for t in filter_tasks(tasks, driver_id=4)] == [3]
    assert len(filter_tasks(tasks, kind='all', status='all')) == 4

    summary = summarize_tasks(tasks)
    assert summary['pickup'] == {'pending': 1, 'in_progress': 1, 'completed': 0}
    assert summary['delivery'] == {'pending': 0, 'in_progress': 1, 'completed': 1}
