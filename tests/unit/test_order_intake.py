"""Tests for order creation: totals, quantities, legs and advance payments."""
from decimal import Decimal

import pytest

from app.domain.enums import DeliveryStatus, OrderStatus, PickupStatus, TimeSlot
from app.domain.snapshots import NoDelivery, NoPickup
from app.exceptions import BusinessLogicError, NotFoundError
from app.models import CashRegisterEntry, Customer, Order
from app.services.cash_ledger_service import order_advance_key
from app.services.order_service import create_order, serialize_order


def _data(**overrides):
    data = {
        'customer_name': 'Juan López',
        'customer_address': 'Calle 8 #12',
        'items': [{'name': 'Pantalón', 'item_type': 'piece', 'quantity': 3, 'unit_price': '20.00'}],
    }
    data.update(overrides)
    return data


def test_walk_in_order_defaults(session, policy):
    order = create_order(_data(), session, policy)
    assert order.status == OrderStatus.IN_STORE
    assert order.total_amount == Decimal('60.00')
    assert order.paid_amount == Decimal('0.00')
    assert not order.is_paid
    assert order.version == 1
    assert isinstance(order.pickup, NoPickup)
    assert isinstance(order.delivery, NoDelivery)
    assert order.ticket_code.startswith('LC-')


def test_totals_fold_extras_discount_and_service_costs(make_order):
    order = make_order(
        needs_pickup=True, needs_delivery=True,
        extras_total='12.50', discount_amount='7.50',
    )
    # 2 x 25 + 1.5 x 40 + 12.50 - 7.50 + 10 + 15
    assert order.total_amount == Decimal('140.00')


def test_service_costs_ignored_without_service(make_order):
    assert make_order().total_amount == Decimal('110.00')


def test_pickup_and_delivery_legs(make_order):
    order = make_order(needs_pickup=True, needs_delivery=True)
    assert order.status == OrderStatus.PENDING_PICKUP
    assert order.pickup.status == PickupStatus.PENDING_PICKUP
    assert order.pickup.slot == TimeSlot.MORNING
    assert order.pickup.address == 'Calle Falsa 123'
    assert order.delivery.status == DeliveryStatus.PENDING_DELIVERY
    assert order.delivery.slot == TimeSlot.AFTERNOON
    assert order.pickup.driver_id is None


@pytest.mark.parametrize('item', [
    {'name': 'Camisa', 'item_type': 'piece', 'quantity': '1.5', 'unit_price': '10'},
    {'name': 'Edredón', 'item_type': 'weight', 'quantity': '1.25', 'unit_price': '10'},
    {'name': 'Saco', 'item_type': 'piece', 'quantity': 0, 'unit_price': '10'},
    {'name': '', 'item_type': 'piece', 'quantity': 1, 'unit_price': '10'},
    {'name': 'Cortina', 'item_type': 'bulk', 'quantity': 1, 'unit_price': '10'},
])
def test_invalid_items_are_rejected(session, policy, item):
    with pytest.raises(BusinessLogicError):
        create_order(_data(items=[item]), session, policy)
    assert session.query(Order).count() == 0


def test_weight_accepts_half_kilos(session, policy):
    order = create_order(
        _data(items=[{'name': 'Ropa mixta', 'item_type': 'weight', 'quantity': '2.5', 'unit_price': '30'}]),
        session, policy,
    )
    assert order.total_amount == Decimal('75.00')
    assert order.items[0].quantity == Decimal('2.5')


def test_order_requires_items_and_customer(session, policy):
    with pytest.raises(BusinessLogicError):
        create_order(_data(items=[]), session, policy)
    with pytest.raises(BusinessLogicError):
        create_order(_data(customer_name=''), session, policy)


def test_delivery_requires_address(session, policy):
    with pytest.raises(BusinessLogicError):
        create_order(_data(customer_address=None, needs_delivery=True), session, policy)


def test_registered_customer_fills_contact(session, policy):
    customer = Customer(name='Rosa Díaz', phone='555-9999', address='Av. Norte 1')
    session.add(customer)
    session.commit()

    order = create_order(
        {'customer_id': customer.id, 'items': _data()['items'], 'needs_delivery': True},
        session, policy,
    )
    assert order.customer_name == 'Rosa Díaz'
    assert order.delivery.address == 'Av. Norte 1'

    with pytest.raises(NotFoundError):
        create_order({'customer_id': 999, 'items': _data()['items']}, session, policy)


def test_advance_payment_is_booked_once(session, policy):
    order = create_order(_data(paid_amount='25.00', payment_method='card'), session, policy)
    entry = session.query(CashRegisterEntry).filter_by(order_id=order.id).one()
    assert entry.amount == Decimal('25.00')
    assert entry.payment_method == 'CARD'
    assert entry.idempotency_key == order_advance_key(order.id)


def test_full_prepayment_marks_order_paid(session, policy):
    order = create_order(_data(paid_amount='60.00'), session, policy)
    assert order.is_paid
    assert order.outstanding == Decimal('0.00')


def test_advance_cannot_exceed_total(session, policy):
    with pytest.raises(BusinessLogicError):
        create_order(_data(paid_amount='61.00'), session, policy)
    with pytest.raises(BusinessLogicError):
        create_order(_data(payment_method='bitcoin', paid_amount='10'), session, policy)


def test_serialize_order(make_order):
    data = serialize_order(make_order(needs_delivery=True))
    assert data['status'] == 'in_store'
    assert data['total_amount'] == '125.00'
    assert data['pickup'] is None
    assert data['delivery']['status'] == 'pending_delivery'
    assert data['items'][1]['item_type'] == 'weight'
