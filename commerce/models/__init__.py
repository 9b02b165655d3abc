"""Models package - exports all SQLAlchemy models."""
# Platform
from commerce.models.tenant import Tenant, TenantStatus
from commerce.models.app_user import AppUser
from commerce.models.platform_admin import PlatformAdmin, PlatformRole
from commerce.models.membership import Membership, MembershipRole, MembershipStatus

# Storefront
from commerce.models.customer import Customer
from commerce.models.product import Product, ProductStatus
from commerce.models.order import Order, OrderItem, OrderStatus
from commerce.models.payment import Payment, PaymentStatus
from commerce.models.stock_move import StockMove, StockMoveType, StockReferenceType
from commerce.models.audit_log import AuditLog, AuditAction

__all__ = [
    'Tenant', 'TenantStatus', 'AppUser', 'PlatformAdmin', 'PlatformRole',
    'Membership', 'MembershipRole', 'MembershipStatus',
    'Customer', 'Product', 'ProductStatus',
    'Order', 'OrderItem', 'OrderStatus', 'Payment', 'PaymentStatus',
    'StockMove', 'StockMoveType', 'StockReferenceType',
    'AuditLog', 'AuditAction',
]
