"""PlatformAdmin model - operators of the whole platform."""
import enum
from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from commerce.database import Base, BigIntPK


class PlatformRole(str, enum.Enum):
    SUPER_ADMIN = 'SUPER_ADMIN'
    ADMIN = 'ADMIN'
    SUPPORT = 'SUPPORT'


class PlatformAdmin(Base):
    __tablename__ = 'platform_admin'

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    user_id = Column(BigIntPK, ForeignKey('app_user.id'), nullable=False, unique=True)
    role = Column(String(20), nullable=False, default=PlatformRole.SUPPORT.value)
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    # Relationships
    user = relationship('AppUser', back_populates='platform_admin')

    def __repr__(self):
        return f"<PlatformAdmin(user_id={self.user_id}, role='{self.role}')>"
