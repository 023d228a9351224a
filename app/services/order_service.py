"""
Order intake service.
Handles order creation (ticket code, line items, totals, optional advance
payment) and JSON serialization of order snapshots.
"""
import logging
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

from app.domain.enums import (
    DeliveryStatus, EntryType, ItemType, PickupStatus, TimeSlot, normalize_payment_method,
)
from app.domain.snapshots import DeliveryLeg, OrderSnapshot, PickupLeg
from app.exceptions import BusinessLogicError, NotFoundError
from app.models import Customer, Order, OrderItem
from app.blueprints.metrics import orders_created_total
from app.services.cash_ledger_service import (
    CATEGORY_ORDER_ADVANCE, SqlCashLedger, order_advance_key,
)
from app.services.flow_policy import FlowPolicy
from app.services.order_store import order_to_snapshot
from app.services.ticket_service import unique_ticket_code

logger = logging.getLogger(__name__)

# Minimum quantity step per pricing unit
QUANTITY_STEP = {
    ItemType.PIECE: Decimal('1'),
    ItemType.WEIGHT: Decimal('0.5'),
}


def _decimal(value, field: str, default: str = '0') -> Decimal:
    try:
        return Decimal(str(value if value not in (None, '') else default)).quantize(Decimal('0.01'))
    except (InvalidOperation, ValueError):
        raise BusinessLogicError(f'Valor inválido para {field}: {value}')


def _slot(value) -> Optional[str]:
    if not value:
        return None
    try:
        return TimeSlot(value).value
    except ValueError:
        raise BusinessLogicError(f'Horario inválido: {value}. Use morning o afternoon')


def _parse_date(value) -> Optional[date]:
    if not value:
        return None
    if isinstance(value, date):
        return value
    try:
        return datetime.strptime(str(value), '%Y-%m-%d').date()
    except ValueError:
        raise BusinessLogicError(f'Fecha inválida: {value}. Use AAAA-MM-DD')


def validate_item(raw: Dict[str, Any]) -> Dict[str, Any]:
    """Validate one line item and compute its total."""
    name = (raw.get('name') or '').strip()
    if not name:
        raise BusinessLogicError('Cada prenda debe tener un nombre')
    try:
        item_type = ItemType(raw.get('item_type') or raw.get('type') or ItemType.PIECE.value)
    except ValueError:
        raise BusinessLogicError(f'Tipo de prenda inválido: {raw.get("item_type")}')

    quantity = _decimal(raw.get('quantity'), 'cantidad')
    if quantity <= 0:
        raise BusinessLogicError(f'La cantidad de "{name}" debe ser mayor a 0')
    step = QUANTITY_STEP[item_type]
    if quantity % step != 0:
        unit = 'kilos en múltiplos de 0.5' if item_type == ItemType.WEIGHT else 'piezas enteras'
        raise BusinessLogicError(f'La cantidad de "{name}" debe expresarse en {unit}')

    unit_price = _decimal(raw.get('unit_price'), 'precio unitario')
    if unit_price < 0:
        raise BusinessLogicError(f'El precio de "{name}" no puede ser negativo')

    extras = raw.get('extras') or []
    if not isinstance(extras, list) or not all(isinstance(e, str) for e in extras):
        raise BusinessLogicError('Los extras deben ser una lista de nombres')

    return {
        'name': name,
        'item_type': item_type.value,
        'quantity': quantity,
        'unit_price': unit_price,
        'line_total': (quantity * unit_price).quantize(Decimal('0.01')),
        'extras': list(extras),
    }


def create_order(
    data: Dict[str, Any],
    session,
    flow_policy: FlowPolicy,
    ticket_prefix: str = 'LC',
    cache=None,
) -> OrderSnapshot:
    """
    Create an order with its line items (transactional).

    ``data`` keys: customer_id or customer_name/customer_phone/customer_address,
    items, needs_pickup, needs_delivery, pickup/delivery ({address, slot, date}),
    extras_total, discount_amount, pickup_cost, delivery_cost, paid_amount,
    payment_method, notes.

    Totals are folded once here and never recomputed afterwards.
    """
    raw_items = data.get('items') or []
    if not raw_items:
        raise BusinessLogicError('El pedido debe tener al menos una prenda')

    try:
        customer = None
        if data.get('customer_id'):
            customer = session.query(Customer).filter_by(id=data['customer_id']).first()
            if not customer:
                raise NotFoundError(f'Cliente con ID {data["customer_id"]} no encontrado')

        customer_name = (data.get('customer_name') or (customer.name if customer else '')).strip()
        if not customer_name:
            raise BusinessLogicError('El nombre del cliente es requerido')
        customer_phone = data.get('customer_phone') or (customer.phone if customer else None)
        customer_address = data.get('customer_address') or (customer.address if customer else None)

        items = [validate_item(raw) for raw in raw_items]
        subtotal = sum((i['line_total'] for i in items), Decimal('0.00'))

        needs_pickup = bool(data.get('needs_pickup'))
        needs_delivery = bool(data.get('needs_delivery'))
        pickup = data.get('pickup') or {}
        delivery = data.get('delivery') or {}

        pickup_address = pickup.get('address') or customer_address
        delivery_address = delivery.get('address') or customer_address
        if needs_pickup and not pickup_address:
            raise BusinessLogicError('La recogida a domicilio requiere una dirección')
        if needs_delivery and not delivery_address:
            raise BusinessLogicError('La entrega a domicilio requiere una dirección')

        extras_total = _decimal(data.get('extras_total'), 'extras')
        discount = _decimal(data.get('discount_amount'), 'descuento')
        pickup_cost = _decimal(data.get('pickup_cost'), 'costo de recogida') if needs_pickup else Decimal('0.00')
        delivery_cost = _decimal(data.get('delivery_cost'), 'costo de entrega') if needs_delivery else Decimal('0.00')
        if min(extras_total, discount, pickup_cost, delivery_cost) < 0:
            raise BusinessLogicError('Los importes no pueden ser negativos')
        if discount > subtotal + extras_total:
            raise BusinessLogicError('El descuento no puede superar el importe del servicio')

        total = subtotal + extras_total + pickup_cost + delivery_cost - discount
        paid = _decimal(data.get('paid_amount'), 'anticipo')
        if paid < 0:
            raise BusinessLogicError('El anticipo no puede ser negativo')
        if paid > total:
            raise BusinessLogicError(f'El anticipo (${paid}) no puede superar el total (${total})')
        payment_method = normalize_payment_method(data.get('payment_method'))

        code = unique_ticket_code(
            lambda c: session.query(Order.id).filter_by(ticket_code=c).first() is not None,
            prefix=ticket_prefix,
        )

        now = datetime.now()
        order = Order(
            ticket_code=code,
            customer_id=customer.id if customer else None,
            customer_name=customer_name,
            customer_phone=customer_phone,
            customer_address=customer_address,
            status=flow_policy.first_step(needs_pickup).value,
            subtotal=subtotal,
            extras_total=extras_total,
            discount_amount=discount,
            pickup_cost=pickup_cost,
            delivery_cost=delivery_cost,
            total_amount=total,
            paid_amount=paid,
            is_paid=paid >= total,
            needs_pickup=needs_pickup,
            pickup_status=PickupStatus.PENDING_PICKUP.value if needs_pickup else None,
            pickup_address=pickup_address if needs_pickup else None,
            pickup_slot=_slot(pickup.get('slot')) if needs_pickup else None,
            pickup_date=_parse_date(pickup.get('date')) if needs_pickup else None,
            needs_delivery=needs_delivery,
            delivery_status=DeliveryStatus.PENDING_DELIVERY.value if needs_delivery else None,
            delivery_address=delivery_address if needs_delivery else None,
            delivery_slot=_slot(delivery.get('slot')) if needs_delivery else None,
            delivery_date=_parse_date(delivery.get('date')) if needs_delivery else None,
            notes=data.get('notes'),
            created_at=now,
            updated_at=now,
            version=1,
        )
        session.add(order)
        session.flush()

        for item in items:
            session.add(OrderItem(order_id=order.id, **item))

        ledger = SqlCashLedger(session, cache)
        if paid > 0:
            ledger.append_entry(
                amount=paid,
                entry_type=EntryType.INCOME,
                category=CATEGORY_ORDER_ADVANCE,
                description=f'Anticipo pedido {code}',
                order_id=order.id,
                payment_method=payment_method,
                idempotency_key=order_advance_key(order.id),
            )

        session.commit()
        ledger.invalidate_summary()
        orders_created_total.labels(
            needs_pickup=str(needs_pickup).lower(), needs_delivery=str(needs_delivery).lower()
        ).inc()
        logger.info(f"[ORDERS] Created {code} total={total} paid={paid} pickup={needs_pickup} delivery={needs_delivery}")
        session.refresh(order)
        return order_to_snapshot(order)

    except (BusinessLogicError, NotFoundError):
        session.rollback()
        raise
    except ValueError as e:
        session.rollback()
        raise BusinessLogicError(str(e))
    except Exception:
        session.rollback()
        raise


def get_order(session, order_id: int) -> OrderSnapshot:
    order = session.query(Order).filter_by(id=order_id).first()
    if not order:
        raise NotFoundError(f'Pedido con ID {order_id} no encontrado')
    return order_to_snapshot(order)


def _leg_dict(leg) -> Optional[Dict[str, Any]]:
    if not isinstance(leg, (PickupLeg, DeliveryLeg)):
        return None
    return {
        'status': leg.status.value,
        'address': leg.address,
        'slot': leg.slot.value if leg.slot else None,
        'driver_id': leg.driver_id,
        'scheduled_date': leg.scheduled_date.isoformat() if leg.scheduled_date else None,
        'completed_at': leg.completed_at.isoformat() if leg.completed_at else None,
    }


def serialize_order(order: OrderSnapshot) -> Dict[str, Any]:
    """JSON-friendly representation of an order snapshot."""
    return {
        'id': order.id,
        'ticket_code': order.ticket_code,
        'status': order.status.value,
        'customer': {
            'id': order.customer_id,
            'name': order.customer_name,
            'phone': order.customer_phone,
            'address': order.customer_address,
        },
        'items': [
            {
                'name': item.name,
                'item_type': item.item_type.value,
                'quantity': str(item.quantity),
                'unit_price': str(item.unit_price),
                'line_total': str(item.line_total),
                'extras': list(item.extras),
            }
            for item in order.items
        ],
        'total_amount': str(order.total_amount),
        'paid_amount': str(order.paid_amount),
        'is_paid': order.is_paid,
        'outstanding': str(order.outstanding),
        'needs_pickup': order.needs_pickup,
        'needs_delivery': order.needs_delivery,
        'pickup': _leg_dict(order.pickup),
        'delivery': _leg_dict(order.delivery),
        'version': order.version,
        'created_at': order.created_at.isoformat() if order.created_at else None,
        'updated_at': order.updated_at.isoformat() if order.updated_at else None,
        'delivered_at': order.delivered_at.isoformat() if order.delivered_at else None,
    }


def serialize_orders(orders: List[OrderSnapshot]) -> List[Dict[str, Any]]:
    return [serialize_order(o) for o in orders]
