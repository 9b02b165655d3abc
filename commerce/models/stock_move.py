"""Stock Move model."""
import enum
from sqlalchemy import Column, Integer, DateTime, Text, Enum, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from commerce.database import Base, BigIntPK


class StockMoveType(str, enum.Enum):
    """Stock move type enum."""
    IN = 'IN'
    OUT = 'OUT'
    ADJUST = 'ADJUST'


class StockReferenceType(str, enum.Enum):
    """Stock move reference type enum."""
    ORDER = 'ORDER'
    MANUAL = 'MANUAL'


class StockMove(Base):
    """Audit trail row for a single stock change."""

    __tablename__ = 'stock_move'

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    tenant_id = Column(BigIntPK, ForeignKey('tenant.id'), nullable=False, index=True)
    product_id = Column(BigIntPK, ForeignKey('product.id'), nullable=False, index=True)
    type = Column(Enum(StockMoveType, name='stock_move_type'), nullable=False)
    reference_type = Column(Enum(StockReferenceType, name='stock_ref_type'), nullable=False)
    reference_id = Column(BigIntPK, nullable=True)
    qty = Column(Integer, nullable=False)  # signed for ADJUST
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    # Relationships
    product = relationship('Product')

    def to_dict(self):
        return {
            'id': self.id,
            'productId': self.product_id,
            'type': self.type.value,
            'qty': self.qty,
            'referenceType': self.reference_type.value,
            'referenceId': self.reference_id,
            'notes': self.notes,
            'createdAt': self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<StockMove(id={self.id}, type={self.type.value}, qty={self.qty})>"
