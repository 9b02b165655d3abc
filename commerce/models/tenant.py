"""Tenant model - each store hosted on the platform."""
import enum
from sqlalchemy import Column, String, DateTime, Enum, JSON
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from commerce.database import Base, BigIntPK


class TenantStatus(str, enum.Enum):
    """Tenant lifecycle status. ARCHIVED is terminal."""
    ACTIVE = 'ACTIVE'
    SUSPENDED = 'SUSPENDED'
    ARCHIVED = 'ARCHIVED'


class Tenant(Base):
    """Tenant model - each store."""

    __tablename__ = 'tenant'

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    slug = Column(String(80), nullable=False, unique=True)  # URL-safe, lowercase, immutable
    name = Column(String(200), nullable=False)
    status = Column(Enum(TenantStatus, name='tenant_status'), nullable=False, default=TenantStatus.ACTIVE)
    template = Column(String(50), nullable=True)
    settings = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # Relationships
    memberships = relationship('Membership', back_populates='tenant')

    @property
    def is_active(self):
        return self.status == TenantStatus.ACTIVE

    def setting(self, key, default=None):
        """Read a single key from the tenant settings blob."""
        return (self.settings or {}).get(key, default)

    def __repr__(self):
        return f"<Tenant(id={self.id}, slug='{self.slug}', status={self.status.value})>"
