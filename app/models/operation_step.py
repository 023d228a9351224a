"""Operation step model (configurable processing flow)."""
from sqlalchemy import Column, String, Boolean, Integer
from app.database import Base, BigIntPK


class OperationStep(Base):
    """One configurable step of the processing pipeline (paso de operación)."""

    __tablename__ = 'operation_step'

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    key = Column(String(30), unique=True, nullable=False)
    name = Column(String(100), nullable=False)
    icon = Column(String(50), nullable=True)
    color = Column(String(50), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    is_required = Column(Boolean, nullable=False, default=False)
    position = Column(Integer, nullable=False)

    def __repr__(self):
        return f"<OperationStep(key={self.key}, position={self.position}, active={self.is_active})>"
