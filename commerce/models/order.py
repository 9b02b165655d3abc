"""Order and OrderItem models."""
import enum
from sqlalchemy import Column, String, Integer, Numeric, DateTime, Text, Enum, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from commerce.database import Base, BigIntPK


class OrderStatus(str, enum.Enum):
    """Order status enum."""
    PENDING = 'PENDING'
    CONFIRMED = 'CONFIRMED'
    PROCESSING = 'PROCESSING'
    SHIPPED = 'SHIPPED'
    DELIVERED = 'DELIVERED'
    CANCELLED = 'CANCELLED'
    REFUNDED = 'REFUNDED'


class Order(Base):
    """Storefront order."""

    __tablename__ = 'orders'

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    tenant_id = Column(BigIntPK, ForeignKey('tenant.id'), nullable=False, index=True)
    order_number = Column(String(40), nullable=False, unique=True)
    status = Column(Enum(OrderStatus, name='order_status'), nullable=False, default=OrderStatus.PENDING)

    customer_id = Column(BigIntPK, ForeignKey('customer.id'), nullable=True)
    customer_name = Column(String(200), nullable=False)
    customer_email = Column(String(255), nullable=False)
    customer_phone = Column(String(50), nullable=True)
    notes = Column(Text, nullable=True)

    # total == subtotal + tax + shipping
    subtotal = Column(Numeric(12, 2), nullable=False)
    tax = Column(Numeric(12, 2), nullable=False, default=0)
    shipping = Column(Numeric(12, 2), nullable=False, default=0)
    total = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(3), nullable=False)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # Relationships
    tenant = relationship('Tenant')
    customer = relationship('Customer', back_populates='orders')
    items = relationship('OrderItem', back_populates='order', cascade='all, delete-orphan',
                         order_by='OrderItem.id')
    payments = relationship('Payment', back_populates='order', order_by='Payment.id')

    def to_dict(self, include_items=True):
        data = {
            'id': self.id,
            'orderNumber': self.order_number,
            'status': self.status.value,
            'customerId': self.customer_id,
            'customerName': self.customer_name,
            'customerEmail': self.customer_email,
            'customerPhone': self.customer_phone,
            'notes': self.notes,
            'subtotal': str(self.subtotal),
            'tax': str(self.tax),
            'shipping': str(self.shipping),
            'total': str(self.total),
            'currency': self.currency,
            'createdAt': self.created_at.isoformat() if self.created_at else None,
            'updatedAt': self.updated_at.isoformat() if self.updated_at else None,
        }
        if include_items:
            data['items'] = [item.to_dict() for item in self.items]
        return data

    def __repr__(self):
        return f"<Order(id={self.id}, number='{self.order_number}', status={self.status.value})>"


class OrderItem(Base):
    """Order line. Snapshots are frozen when the order is created."""

    __tablename__ = 'order_item'

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    order_id = Column(BigIntPK, ForeignKey('orders.id'), nullable=False, index=True)
    product_id = Column(BigIntPK, ForeignKey('product.id'), nullable=False)
    name_snapshot = Column(String(200), nullable=False)
    price_snapshot = Column(Numeric(12, 2), nullable=False)
    cart_price_snapshot = Column(Numeric(12, 2), nullable=True)  # informational
    qty = Column(Integer, nullable=False)
    line_total = Column(Numeric(12, 2), nullable=False)

    # Relationships
    order = relationship('Order', back_populates='items')
    product = relationship('Product')

    def to_dict(self):
        return {
            'productId': self.product_id,
            'name': self.name_snapshot,
            'price': str(self.price_snapshot),
            'qty': self.qty,
            'lineTotal': str(self.line_total),
        }

    def __repr__(self):
        return f"<OrderItem(order_id={self.order_id}, product_id={self.product_id}, qty={self.qty})>"
