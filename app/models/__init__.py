"""Models package - exports all SQLAlchemy models."""
from app.models.customer import Customer
from app.models.driver import Driver
from app.models.order import Order
from app.models.order_item import OrderItem
from app.models.cash_register_entry import CashRegisterEntry
from app.models.operation_step import OperationStep

__all__ = [
    'Customer', 'Driver', 'Order', 'OrderItem', 'CashRegisterEntry', 'OperationStep',
]
