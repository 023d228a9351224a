"""Order line item model."""
from sqlalchemy import Column, String, Numeric, ForeignKey, JSON, CheckConstraint
from sqlalchemy.orm import relationship
from app.database import Base, BigIntPK


class OrderItem(Base):
    """Line item of a laundry order (prendas o kilos)."""

    __tablename__ = 'order_item'
    __table_args__ = (
        CheckConstraint('quantity > 0', name='ck_order_item_quantity_positive'),
        CheckConstraint("item_type IN ('piece', 'weight')", name='ck_order_item_type'),
    )

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    order_id = Column(BigIntPK, ForeignKey('laundry_order.id', ondelete='CASCADE'), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    item_type = Column(String(10), nullable=False)  # piece, weight
    quantity = Column(Numeric(10, 2), nullable=False)
    unit_price = Column(Numeric(10, 2), nullable=False)
    line_total = Column(Numeric(10, 2), nullable=False)
    extras = Column(JSON, nullable=False, default=list)

    # Relationships
    order = relationship('Order', back_populates='items')

    def __repr__(self):
        return f"<OrderItem(id={self.id}, order_id={self.order_id}, name='{self.name}', qty={self.quantity})>"
