"""
Role hierarchy and access decisions.

Roles are ranked data: comparing two roles is a numeric comparison of
their ranks, so adding a role means adding one entry below.
"""
import enum
from dataclasses import dataclass
from typing import Iterable, Optional


class UserType(str, enum.Enum):
    """The three disjoint kinds of caller."""
    CUSTOMER = 'customer'
    MERCHANT_ADMIN = 'merchant_admin'
    PLATFORM_ADMIN = 'platform_admin'


CUSTOMER_ROLE = 'CUSTOMER'

# Tenant membership roles: OWNER > ADMIN > STAFF = EDITOR > VIEWER
ROLE_RANKS = {
    'OWNER': 4,
    'ADMIN': 3,
    'STAFF': 2,
    'EDITOR': 2,
    'VIEWER': 1,
    CUSTOMER_ROLE: 0,
}

# Platform operator roles, compared on the same scale when an endpoint
# names tenant roles and a platform admin calls it.
PLATFORM_ROLE_RANKS = {
    'SUPER_ADMIN': 4,
    'ADMIN': 3,
    'SUPPORT': 1,
}

ALL_PERMISSIONS = '*'

# Permission map
PERMISSION_MAP = {
    UserType.CUSTOMER: {
        CUSTOMER_ROLE: ['view_products', 'add_to_cart', 'place_order', 'view_orders'],
    },
    UserType.MERCHANT_ADMIN: {
        'OWNER': [ALL_PERMISSIONS],
        'ADMIN': ['manage_products', 'manage_orders', 'manage_customers', 'view_analytics', 'manage_settings',
                  'view_members', 'view_audit_log'],
        'STAFF': ['manage_products', 'manage_orders', 'view_analytics'],
        'EDITOR': ['manage_products', 'view_analytics'],
        'VIEWER': ['view_orders', 'view_products'],
    },
    UserType.PLATFORM_ADMIN: {
        'SUPER_ADMIN': [ALL_PERMISSIONS],
        'ADMIN': ['manage_tenants', 'view_tenants', 'view_platform_analytics', 'manage_platform_settings',
                  'view_audit_log'],
        'SUPPORT': ['view_tenants', 'view_platform_analytics'],
    },
}


class DenyReason(str, enum.Enum):
    UNAUTHENTICATED = 'UNAUTHENTICATED'
    WRONG_USER_TYPE = 'WRONG_USER_TYPE'
    WRONG_TENANT = 'WRONG_TENANT'
    INSUFFICIENT_ROLE = 'INSUFFICIENT_ROLE'


@dataclass(frozen=True)
class AccessDecision:
    allowed: bool
    reason: Optional[DenyReason] = None

    @classmethod
    def allow(cls):
        return cls(True)

    @classmethod
    def deny(cls, reason):
        return cls(False, reason)


def role_rank(user_type, role):
    """Rank of a caller's role on the shared 0..4 scale (unknown roles rank 0)."""
    if user_type == UserType.PLATFORM_ADMIN:
        return PLATFORM_ROLE_RANKS.get(role, 0)
    return ROLE_RANKS.get(role, 0)


def required_rank(required_roles: Iterable[str]) -> int:
    """
    Minimum rank satisfying any of ``required_roles``.

    Raises:
        ValueError: if a required role is not a known tenant role
    """
    ranks = []
    for role in required_roles:
        if role not in ROLE_RANKS:
            raise ValueError(f'Unknown role: {role}')
        ranks.append(ROLE_RANKS[role])
    return min(ranks) if ranks else 0


def permissions_for(user_type, role):
    """Permission names granted to a role of the given user type."""
    return tuple(PERMISSION_MAP.get(UserType(user_type), {}).get(role, ()))


def has_permission(context, permission_name):
    """Check whether a classified caller holds ``permission_name``."""
    if context is None:
        return False
    permissions = context.permissions or ()
    return ALL_PERMISSIONS in permissions or permission_name in permissions


def _normalize_slug(slug):
    return (slug or '').strip().lower()


def check_access(context, required_user_type, required_roles=(), target_tenant_slug=None):
    """
    Decide whether ``context`` may act on ``target_tenant_slug``.

    Rules, evaluated in order:
      0. no context -> UNAUTHENTICATED
      1. user type differs and caller is not a platform admin -> WRONG_USER_TYPE
      2. tenant-bound types must target their own tenant -> WRONG_TENANT
      3. caller rank below the lowest required role -> INSUFFICIENT_ROLE
    Platform admins skip rules 1 and 2 but not rule 3.

    Returns:
        AccessDecision
    """
    if context is None:
        return AccessDecision.deny(DenyReason.UNAUTHENTICATED)

    required_user_type = UserType(required_user_type)
    is_platform = context.user_type == UserType.PLATFORM_ADMIN

    if context.user_type != required_user_type and not is_platform:
        return AccessDecision.deny(DenyReason.WRONG_USER_TYPE)

    if required_user_type in (UserType.MERCHANT_ADMIN, UserType.CUSTOMER) and not is_platform:
        if _normalize_slug(context.tenant_slug) != _normalize_slug(target_tenant_slug):
            return AccessDecision.deny(DenyReason.WRONG_TENANT)

    required_roles = tuple(required_roles or ())
    if required_roles:
        if role_rank(context.user_type, context.role) < required_rank(required_roles):
            return AccessDecision.deny(DenyReason.INSUFFICIENT_ROLE)

    return AccessDecision.allow()
