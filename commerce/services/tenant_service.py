"""Tenant resolution and the tenant status guard."""
import logging
import time

from sqlalchemy.exc import DBAPIError, OperationalError

from commerce.exceptions import BusinessLogicError, StorageError, TenantNotFoundError, ValidationError
from commerce.models import Tenant, TenantStatus
from commerce.models.audit_log import AuditAction
from commerce.services import audit_service

logger = logging.getLogger(__name__)

DEFAULT_ATTEMPTS = 3
DEFAULT_BACKOFF = 0.05  # seconds, doubled after every failed attempt

TENANTS_CACHE_MODULE = 'tenant'


def normalize_slug(slug):
    return (slug or '').strip().lower()


def resolve_by_slug(session, slug, attempts=DEFAULT_ATTEMPTS, backoff=DEFAULT_BACKOFF):
    """
    Map a slug to its Tenant row.

    Transient database failures are retried up to ``attempts`` times with
    a doubling backoff, rolling the session back in between.

    Raises:
        TenantNotFoundError: no tenant has this slug
        StorageError: the database kept failing after every attempt
    """
    slug = normalize_slug(slug)
    if not slug:
        raise TenantNotFoundError(slug)

    last_error = None
    for attempt in range(1, max(attempts, 1) + 1):
        try:
            tenant = session.query(Tenant).filter(Tenant.slug == slug).first()
            break
        except (OperationalError, DBAPIError) as e:
            last_error = e
            logger.warning(f"Tenant lookup for '{slug}' failed (attempt {attempt}/{attempts}): {e}")
            session.rollback()
            if attempt < attempts and backoff:
                time.sleep(backoff * (2 ** (attempt - 1)))
    else:
        logger.error(f"Tenant lookup for '{slug}' exhausted {attempts} attempts: {last_error}")
        raise StorageError(f'Could not resolve tenant "{slug}"')

    if tenant is None:
        raise TenantNotFoundError(slug)
    return tenant


def resolve_from_config(session, slug, config):
    """resolve_by_slug with the retry budget taken from app config."""
    return resolve_by_slug(
        session,
        slug,
        attempts=config.get('TENANT_RESOLVE_ATTEMPTS', DEFAULT_ATTEMPTS),
        backoff=config.get('TENANT_RESOLVE_BACKOFF', DEFAULT_BACKOFF),
    )


def tenant_summary(tenant):
    return {
        'id': tenant.id,
        'slug': tenant.slug,
        'name': tenant.name,
        'status': tenant.status.value,
        'template': tenant.template,
        'settings': tenant.settings or {},
    }


def get_tenant_summary_cached(session, slug, cache, ttl=None):
    """Read-mostly tenant lookup through the cache; never used by checkout."""
    slug = normalize_slug(slug)
    return cache.memoize(
        slug, TENANTS_CACHE_MODULE, 'summary',
        lambda: tenant_summary(resolve_by_slug(session, slug)),
        ttl
    )


def list_tenants(session, status=None):
    query = session.query(Tenant)
    if status:
        query = query.filter(Tenant.status == status)
    return query.order_by(Tenant.slug).all()


def change_tenant_status(session, slug, new_status, actor=None, cache=None):
    """
    Move a tenant to ``new_status``. ARCHIVED is terminal.

    Raises:
        ValidationError: unknown status
        BusinessLogicError: TENANT_ARCHIVED when leaving ARCHIVED
    """
    try:
        new_status = TenantStatus(new_status)
    except ValueError:
        raise ValidationError(f'Unknown tenant status: {new_status}')

    tenant = resolve_by_slug(session, slug)
    old_status = tenant.status

    if old_status == TenantStatus.ARCHIVED and new_status != TenantStatus.ARCHIVED:
        raise BusinessLogicError(
            f'Tenant "{tenant.slug}" is archived and cannot be reactivated',
            code='TENANT_ARCHIVED',
            payload={'tenantSlug': tenant.slug}
        )

    if old_status == new_status:
        return tenant

    tenant.status = new_status
    audit_service.log_action(
        session,
        AuditAction.TENANT_STATUS_CHANGED,
        tenant_id=tenant.id,
        actor=actor,
        resource_type='tenant',
        resource_id=tenant.id,
        details={'from': old_status.value, 'to': new_status.value}
    )
    session.commit()
    logger.info(f"Tenant {tenant.slug} status {old_status.value} -> {new_status.value}")

    if cache is not None:
        cache.invalidate_module(tenant.slug, TENANTS_CACHE_MODULE)
    return tenant
