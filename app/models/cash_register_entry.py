"""Cash register entry model."""
from datetime import datetime
from sqlalchemy import Column, BigInteger, String, Text, Numeric, DateTime, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.database import Base, BigIntPK


class CashRegisterEntry(Base):
    """Cash register entry (movimiento de caja). Append-only."""

    __tablename__ = 'cash_register_entry'
    __table_args__ = (
        CheckConstraint('amount > 0', name='ck_cash_entry_amount_positive'),
        CheckConstraint("entry_type IN ('income', 'expense')", name='ck_cash_entry_type'),
    )

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    entry_type = Column(String(10), nullable=False)  # income, expense
    category = Column(String(100), nullable=False)
    amount = Column(Numeric(10, 2), nullable=False)
    description = Column(Text, nullable=True)
    payment_method = Column(String(20), nullable=False, default='CASH')
    order_id = Column(BigInteger, ForeignKey('laundry_order.id'), nullable=True, index=True)

    # Idempotency key to prevent duplicate entries on retried payments
    idempotency_key = Column(String(64), unique=True, nullable=True, index=True)

    created_by = Column(String(100), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=datetime.now, server_default=func.now())

    # Relationships
    order = relationship('Order', back_populates='cash_entries')

    def __repr__(self):
        return f"<CashRegisterEntry(id={self.id}, type={self.entry_type}, amount={self.amount})>"
