"""
Domain enums shared by models, services and blueprints.
"""
import enum


class OrderStatus(str, enum.Enum):
    """Main pipeline step of an order (fixed vocabulary)."""
    PENDING_PICKUP = 'pending_pickup'
    IN_STORE = 'in_store'
    WASHING = 'washing'
    DRYING = 'drying'
    IRONING = 'ironing'
    READY_DELIVERY = 'ready_delivery'
    IN_TRANSIT = 'in_transit'
    DELIVERED = 'delivered'


# Steps that denote "handed off to the customer"; only reachable through
# the handoff operations, never through a plain advance.
HANDOFF_STEPS = frozenset({OrderStatus.IN_TRANSIT, OrderStatus.DELIVERED})


class PickupStatus(str, enum.Enum):
    PENDING_PICKUP = 'pending_pickup'
    ON_WAY_TO_STORE = 'on_way_to_store'
    RECEIVED = 'received'


class DeliveryStatus(str, enum.Enum):
    PENDING_DELIVERY = 'pending_delivery'
    IN_TRANSIT = 'in_transit'
    DELIVERED = 'delivered'


class TaskKind(str, enum.Enum):
    PICKUP = 'pickup'
    DELIVERY = 'delivery'


class TimeSlot(str, enum.Enum):
    MORNING = 'morning'
    AFTERNOON = 'afternoon'


class ItemType(str, enum.Enum):
    """Pricing unit of a line item."""
    PIECE = 'piece'
    WEIGHT = 'weight'


class DriverStatus(str, enum.Enum):
    AVAILABLE = 'available'
    DELIVERING = 'delivering'
    OFFLINE = 'offline'


class EntryType(str, enum.Enum):
    """Cash register entry direction."""
    INCOME = 'income'
    EXPENSE = 'expense'


class PaymentMethod(str, enum.Enum):
    CASH = 'CASH'
    CARD = 'CARD'
    TRANSFER = 'TRANSFER'


def normalize_payment_method(value) -> str:
    """
    Normalize payment method value to string for DB storage.

    Args:
        value: Can be None, PaymentMethod enum, or string

    Returns:
        str: 'CASH', 'CARD' or 'TRANSFER'

    Raises:
        ValueError: If value is invalid
    """
    # Default to CASH if None
    if value is None:
        return PaymentMethod.CASH.value

    if isinstance(value, PaymentMethod):
        return value.value

    normalized = str(value).upper().strip()
    if normalized in PaymentMethod.__members__:
        return normalized

    raise ValueError(f"Invalid payment method: {value}. Must be one of CASH, CARD, TRANSFER.")


class TransitionReason(str, enum.Enum):
    """Why a lifecycle operation was refused (or skipped) without mutating state."""
    NO_NEXT_STEP = 'NO_NEXT_STEP'
    NO_PREVIOUS_STEP = 'NO_PREVIOUS_STEP'
    HANDOFF_REQUIRED = 'HANDOFF_REQUIRED'
    PICKUP_NOT_RECEIVED = 'PICKUP_NOT_RECEIVED'
    PICKUP_NOT_PENDING = 'PICKUP_NOT_PENDING'
    NOT_READY = 'NOT_READY'
    DELIVERY_REQUIRED = 'DELIVERY_REQUIRED'
    NO_SUCH_TASK = 'NO_SUCH_TASK'
    TASK_ALREADY_STARTED = 'TASK_ALREADY_STARTED'
    TASK_NOT_STARTED = 'TASK_NOT_STARTED'
    ALREADY_ASSIGNED = 'ALREADY_ASSIGNED'
    NO_DRIVER = 'NO_DRIVER'
    INSUFFICIENT_PAYMENT = 'INSUFFICIENT_PAYMENT'
    ALREADY_COMPLETED = 'ALREADY_COMPLETED'
