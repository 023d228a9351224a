"""Laundry order model."""
from datetime import datetime
from sqlalchemy import (
    Column, BigInteger, String, Text, Numeric, DateTime, Date, Boolean, Integer,
    ForeignKey, CheckConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.database import Base, BigIntPK
from app.domain.enums import OrderStatus

_STATUS_VALUES = ', '.join(f"'{s.value}'" for s in OrderStatus)


class Order(Base):
    """
    Order (pedido) - aggregate root of the fulfillment lifecycle.

    Pickup and delivery sub-workflows live in the ``pickup_*`` and
    ``delivery_*`` columns, which must stay NULL unless the matching
    ``needs_*`` flag is set. ``version`` is bumped on every lifecycle write
    and used as an optimistic-concurrency token.
    """

    __tablename__ = 'laundry_order'
    __table_args__ = (
        CheckConstraint(f'status IN ({_STATUS_VALUES})', name='ck_order_status_known'),
        CheckConstraint(
            '(needs_pickup AND pickup_status IS NOT NULL) OR '
            '(NOT needs_pickup AND pickup_status IS NULL AND pickup_driver_id IS NULL)',
            name='ck_order_pickup_leg',
        ),
        CheckConstraint(
            '(needs_delivery AND delivery_status IS NOT NULL) OR '
            '(NOT needs_delivery AND delivery_status IS NULL AND delivery_driver_id IS NULL)',
            name='ck_order_delivery_leg',
        ),
        CheckConstraint(
            "status <> 'delivered' OR NOT needs_delivery OR delivery_status = 'delivered'",
            name='ck_order_delivered_after_delivery_leg',
        ),
        CheckConstraint('paid_amount >= 0', name='ck_order_paid_non_negative'),
    )

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    ticket_code = Column(String(20), unique=True, nullable=False, index=True)

    # Customer reference (denormalized for tickets)
    customer_id = Column(BigInteger, ForeignKey('customer.id'), nullable=True)
    customer_name = Column(String(200), nullable=False)
    customer_phone = Column(String(50), nullable=True)
    customer_address = Column(Text, nullable=True)

    status = Column(String(30), nullable=False, default=OrderStatus.IN_STORE.value, index=True)

    # Money - folded once at creation
    subtotal = Column(Numeric(10, 2), nullable=False, default=0)
    extras_total = Column(Numeric(10, 2), nullable=False, default=0)
    discount_amount = Column(Numeric(10, 2), nullable=False, default=0)
    pickup_cost = Column(Numeric(10, 2), nullable=False, default=0)
    delivery_cost = Column(Numeric(10, 2), nullable=False, default=0)
    total_amount = Column(Numeric(10, 2), nullable=False)
    paid_amount = Column(Numeric(10, 2), nullable=False, default=0)
    is_paid = Column(Boolean, nullable=False, default=False)

    # Pickup sub-workflow
    needs_pickup = Column(Boolean, nullable=False, default=False)
    pickup_status = Column(String(20), nullable=True)
    pickup_driver_id = Column(BigInteger, ForeignKey('driver.id'), nullable=True)
    pickup_address = Column(Text, nullable=True)
    pickup_slot = Column(String(10), nullable=True)
    pickup_date = Column(Date, nullable=True)
    pickup_completed_at = Column(DateTime(timezone=True), nullable=True)

    # Delivery sub-workflow
    needs_delivery = Column(Boolean, nullable=False, default=False)
    delivery_status = Column(String(20), nullable=True)
    delivery_driver_id = Column(BigInteger, ForeignKey('driver.id'), nullable=True)
    delivery_address = Column(Text, nullable=True)
    delivery_slot = Column(String(10), nullable=True)
    delivery_date = Column(Date, nullable=True)
    delivery_completed_at = Column(DateTime(timezone=True), nullable=True)

    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=datetime.now, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, default=datetime.now, server_default=func.now())
    delivered_at = Column(DateTime(timezone=True), nullable=True)

    version = Column(Integer, nullable=False, default=1)

    # Relationships
    customer = relationship('Customer', back_populates='orders')
    items = relationship('OrderItem', back_populates='order', cascade='all, delete-orphan',
                         order_by='OrderItem.id')
    cash_entries = relationship('CashRegisterEntry', back_populates='order')

    def __repr__(self):
        return f"<Order(id={self.id}, ticket={self.ticket_code}, status={self.status})>"
