"""Audit Log model for tracking administrative actions."""
import enum
import json
from sqlalchemy import Column, String, Text, DateTime, ForeignKey, Enum as SQLEnum
from sqlalchemy.sql import func
from commerce.database import Base, BigIntPK


class AuditAction(str, enum.Enum):
    """Enumeration of auditable actions."""
    # Orders
    ORDER_UPDATED = 'ORDER_UPDATED'
    ORDER_STATUS_CHANGED = 'ORDER_STATUS_CHANGED'
    ORDER_CANCELLED = 'ORDER_CANCELLED'

    # Products
    PRODUCT_CREATED = 'PRODUCT_CREATED'
    PRODUCT_UPDATED = 'PRODUCT_UPDATED'
    STOCK_ADJUSTED = 'STOCK_ADJUSTED'

    # Members
    MEMBER_ROLE_CHANGED = 'MEMBER_ROLE_CHANGED'
    MEMBER_REVOKED = 'MEMBER_REVOKED'

    # Platform
    TENANT_STATUS_CHANGED = 'TENANT_STATUS_CHANGED'


class AuditLog(Base):
    """
    Audit log for tracking admin actions.
    Multi-tenant: filtered by tenant_id.
    """
    __tablename__ = 'audit_log'

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    tenant_id = Column(BigIntPK, ForeignKey('tenant.id'), nullable=False, index=True)
    actor_uid = Column(String(128), nullable=True)
    action = Column(SQLEnum(AuditAction, name='audit_action'), nullable=False, index=True)
    resource_type = Column(String(50))  # e.g. 'order', 'product', 'membership'
    resource_id = Column(BigIntPK)
    details = Column(Text)  # JSON
    ip_address = Column(String(45))
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), index=True)

    def to_dict(self):
        return {
            'id': self.id,
            'action': self.action.value,
            'actorUid': self.actor_uid,
            'resourceType': self.resource_type,
            'resourceId': self.resource_id,
            'details': json.loads(self.details) if self.details else None,
            'createdAt': self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<AuditLog {self.action.value} by {self.actor_uid} at {self.created_at}>"
