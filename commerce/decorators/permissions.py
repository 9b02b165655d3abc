"""
Access decorators for tenant-scoped and platform endpoints.

require_access is the single gate in front of tenant data: it resolves the
tenant from the ``tenant_slug`` view argument, evaluates check_access and
only then calls the view with ``g.tenant`` set.
"""

from functools import wraps

from flask import current_app, g

from commerce.database import get_session
from commerce.exceptions import ForbiddenError, UnauthenticatedError
from commerce.models import TenantStatus
from commerce.services.access_service import DenyReason, UserType, check_access, has_permission
from commerce.services.tenant_service import resolve_from_config

DENY_MESSAGES = {
    DenyReason.WRONG_USER_TYPE: 'This endpoint is not available for your account type',
    DenyReason.WRONG_TENANT: 'Your account is not bound to this store',
    DenyReason.INSUFFICIENT_ROLE: 'Your role does not allow this action',
}


def _raise_unauthenticated():
    error = g.get('identity_error')
    if error is not None:
        raise error
    raise UnauthenticatedError()


def require_access(user_type, roles=()):
    """
    Decorator to gate a view on user type, tenant binding and role.

    Usage:
        @require_access(UserType.MERCHANT_ADMIN, roles=('OWNER', 'ADMIN'))
        @require_access('customer')

    Args:
        user_type: required UserType (or its value)
        roles: tenant roles, any of which suffices (minimum rank applies)
    """
    user_type = UserType(user_type)
    roles = tuple(roles)

    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            context = g.get('identity')
            if context is None:
                _raise_unauthenticated()

            target_slug = kwargs.get('tenant_slug')
            decision = check_access(context, user_type, roles, target_slug)
            if not decision.allowed:
                current_app.logger.info(
                    f"Access denied ({decision.reason.value}) for {context.uid} on {target_slug or '-'}"
                )
                raise ForbiddenError(DENY_MESSAGES[decision.reason], code=decision.reason.value)

            if target_slug is not None:
                tenant = resolve_from_config(get_session(), target_slug, current_app.config)
                if tenant.status != TenantStatus.ACTIVE and context.user_type != UserType.PLATFORM_ADMIN:
                    raise ForbiddenError(f'Store "{tenant.slug}" is {tenant.status.value.lower()}',
                                         code='TENANT_NOT_ACTIVE')
                g.tenant = tenant

            return f(*args, **kwargs)

        return decorated_function
    return decorator


def require_permission(permission_name):
    """
    Decorator to check a named permission on the classified caller.
    Must be used AFTER require_access.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            context = g.get('identity')
            if context is None:
                _raise_unauthenticated()
            if not has_permission(context, permission_name):
                raise ForbiddenError(f'Missing permission: {permission_name}', code=DenyReason.INSUFFICIENT_ROLE.value)
            return f(*args, **kwargs)

        return decorated_function
    return decorator


def owner_or_admin(f):
    """Shortcut for merchant endpoints limited to OWNER and ADMIN."""
    return require_access(UserType.MERCHANT_ADMIN, roles=('OWNER', 'ADMIN'))(f)


def owner_only(f):
    """Shortcut for OWNER-only merchant endpoints."""
    return require_access(UserType.MERCHANT_ADMIN, roles=('OWNER',))(f)
