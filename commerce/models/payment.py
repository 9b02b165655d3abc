"""Payment model - one row per payment attempt."""
import enum
from sqlalchemy import Column, String, Numeric, DateTime, Text, Enum, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from commerce.database import Base, BigIntPK


class PaymentStatus(str, enum.Enum):
    PENDING = 'PENDING'
    COMPLETED = 'COMPLETED'
    FAILED = 'FAILED'
    REFUNDED = 'REFUNDED'


class Payment(Base):
    """Payment attempt for an order."""

    __tablename__ = 'payment'

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    tenant_id = Column(BigIntPK, ForeignKey('tenant.id'), nullable=False, index=True)
    order_id = Column(BigIntPK, ForeignKey('orders.id'), nullable=False, index=True)
    provider = Column(String(30), nullable=True)
    amount = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(3), nullable=False)
    status = Column(Enum(PaymentStatus, name='payment_status'), nullable=False, default=PaymentStatus.PENDING)
    transaction_id = Column(String(128), nullable=True)
    error_message = Column(Text, nullable=True)
    attempted_at = Column(DateTime(timezone=True), nullable=True)
    processed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    # Relationships
    order = relationship('Order', back_populates='payments')

    def to_dict(self):
        return {
            'id': self.id,
            'orderId': self.order_id,
            'provider': self.provider,
            'amount': str(self.amount),
            'currency': self.currency,
            'status': self.status.value,
            'transactionId': self.transaction_id,
            'error': self.error_message,
        }

    def __repr__(self):
        return f"<Payment(id={self.id}, order_id={self.order_id}, status={self.status.value})>"
