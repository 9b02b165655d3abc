"""Membership model - links users to tenants with a ranked role."""
import enum
from sqlalchemy import Column, String, DateTime, ForeignKey, Enum, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from commerce.database import Base, BigIntPK


class MembershipRole(str, enum.Enum):
    """Roles within a tenant. Ranks live in access_service.ROLE_RANKS."""
    OWNER = 'OWNER'
    ADMIN = 'ADMIN'
    STAFF = 'STAFF'
    EDITOR = 'EDITOR'
    VIEWER = 'VIEWER'


class MembershipStatus(str, enum.Enum):
    ACTIVE = 'ACTIVE'
    PENDING = 'PENDING'
    REVOKED = 'REVOKED'


class Membership(Base):
    """Membership model. Never hard-deleted; revocation flips the status."""

    __tablename__ = 'membership'
    __table_args__ = (
        UniqueConstraint('tenant_id', 'user_id', name='uq_membership_tenant_user'),
    )

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    tenant_id = Column(BigIntPK, ForeignKey('tenant.id'), nullable=False, index=True)
    user_id = Column(BigIntPK, ForeignKey('app_user.id'), nullable=False)
    role = Column(String(20), nullable=False, default=MembershipRole.STAFF.value)
    status = Column(Enum(MembershipStatus, name='membership_status'), nullable=False,
                    default=MembershipStatus.ACTIVE)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # Relationships
    user = relationship('AppUser', back_populates='memberships')
    tenant = relationship('Tenant', back_populates='memberships')

    @property
    def is_active(self):
        return self.status == MembershipStatus.ACTIVE

    def is_owner(self):
        """Check if the member owns the tenant."""
        return self.role == MembershipRole.OWNER.value

    def __repr__(self):
        return f"<Membership(user_id={self.user_id}, tenant_id={self.tenant_id}, role='{self.role}')>"
