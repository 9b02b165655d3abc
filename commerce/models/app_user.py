"""AppUser model - principals known to the identity provider."""
from sqlalchemy import Column, String, Boolean, DateTime
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from commerce.database import Base, BigIntPK


class AppUser(Base):
    """AppUser model - staff and platform users."""

    __tablename__ = 'app_user'

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    uid = Column(String(128), nullable=False, unique=True)  # identity provider subject
    email = Column(String(255), nullable=False, unique=True)
    full_name = Column(String(200), nullable=True)
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # Relationships
    memberships = relationship('Membership', back_populates='user')
    platform_admin = relationship('PlatformAdmin', uselist=False, back_populates='user')

    def __repr__(self):
        return f"<AppUser(id={self.id}, uid='{self.uid}', email='{self.email}')>"
