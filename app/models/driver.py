"""Driver model."""
from datetime import datetime
from sqlalchemy import Column, String, Boolean, Integer, Date, DateTime, CheckConstraint
from sqlalchemy.sql import func
from app.database import Base, BigIntPK
from app.domain.enums import DriverStatus


class Driver(Base):
    """
    Driver (repartidor).

    Created and edited by staff administration; ``status`` and the two
    counters are written only by the order lifecycle controller.
    """

    __tablename__ = 'driver'
    __table_args__ = (
        CheckConstraint('current_orders >= 0', name='ck_driver_current_orders'),
        CheckConstraint('completed_today >= 0', name='ck_driver_completed_today'),
    )

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    phone = Column(String(50), nullable=True)
    zone = Column(String(100), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    status = Column(String(20), nullable=False, default=DriverStatus.AVAILABLE.value)
    current_orders = Column(Integer, nullable=False, default=0)
    completed_today = Column(Integer, nullable=False, default=0)
    counters_date = Column(Date, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=datetime.now, server_default=func.now())

    def __repr__(self):
        return f"<Driver(id={self.id}, name='{self.name}', status={self.status}, current={self.current_orders})>"
