"""Customer model."""
from sqlalchemy import Column, String, DateTime, ForeignKey, Boolean, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from commerce.database import Base, BigIntPK


class Customer(Base):
    """Storefront customer. Guests are upserted by (tenant_id, email)."""

    __tablename__ = 'customer'
    __table_args__ = (
        UniqueConstraint('tenant_id', 'email', name='uq_customer_tenant_email'),
    )

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    tenant_id = Column(BigIntPK, ForeignKey('tenant.id'), nullable=False, index=True)
    uid = Column(String(128), nullable=True, index=True)  # identity subject for signed-in customers
    email = Column(String(255), nullable=False)
    name = Column(String(200), nullable=False)
    phone = Column(String(50), nullable=True)
    is_guest = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # Relationships
    tenant = relationship('Tenant')
    orders = relationship('Order', back_populates='customer')

    def to_dict(self):
        return {
            'id': self.id,
            'email': self.email,
            'name': self.name,
            'phone': self.phone,
            'isGuest': self.is_guest,
            'createdAt': self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<Customer(id={self.id}, email='{self.email}', is_guest={self.is_guest})>"
