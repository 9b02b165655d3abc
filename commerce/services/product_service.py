"""Tenant-scoped product administration and catalog reads."""
import logging
from decimal import Decimal, InvalidOperation

from commerce.exceptions import NotFoundError, ValidationError
from commerce.models import Product, ProductStatus
from commerce.models.audit_log import AuditAction
from commerce.services import audit_service

logger = logging.getLogger(__name__)

PRODUCTS_CACHE_MODULE = 'products'
EDITABLE_FIELDS = ('name', 'sku', 'price', 'status')


def _parse_price(value):
    if isinstance(value, bool):
        raise ValidationError('price must be a number', details={'price': value})
    try:
        price = Decimal(str(value))
    except InvalidOperation:
        raise ValidationError('price must be a number', details={'price': value})
    if not price.is_finite() or price < 0:
        raise ValidationError('price must be zero or more', details={'price': str(value)})
    return price.quantize(Decimal('0.01'))


def _parse_status(value):
    try:
        return ProductStatus(str(value).lower())
    except ValueError:
        raise ValidationError(f'Unknown product status: {value}', details={'status': value})


def _parse_name(value):
    name = str(value or '').strip()
    if not 1 <= len(name) <= 200:
        raise ValidationError('name must be between 1 and 200 characters')
    return name


def get_product(session, tenant_id, product_id):
    product = session.query(Product).filter(
        Product.id == product_id,
        Product.tenant_id == tenant_id
    ).first()
    if product is None:
        raise NotFoundError(f'Product {product_id} not found', code='PRODUCT_NOT_FOUND',
                            payload={'productId': product_id})
    return product


def list_products(session, tenant_id, status=None):
    query = session.query(Product).filter(Product.tenant_id == tenant_id)
    if status:
        query = query.filter(Product.status == _parse_status(status))
    return query.order_by(Product.id).all()


def catalog(session, tenant_id, cache, ttl=None):
    """Active products as dicts, read through the cache."""
    return cache.memoize(
        tenant_id, PRODUCTS_CACHE_MODULE, 'catalog',
        lambda: [p.to_dict() for p in list_products(session, tenant_id, ProductStatus.ACTIVE.value)],
        ttl
    )


def product_snapshot(session, tenant_id, product_id, cache, ttl=None):
    """
    Name/price/status of one product, read through the cache. Used for
    cart snapshots only; checkout always re-reads the live row.
    """
    def load():
        product = session.query(Product).filter(
            Product.id == product_id,
            Product.tenant_id == tenant_id
        ).first()
        return product.to_dict() if product else None

    return cache.memoize(tenant_id, PRODUCTS_CACHE_MODULE, f'product:{product_id}', load, ttl)


def create_product(session, tenant_id, data, actor=None, cache=None):
    """Create a product. ``data`` needs name and price; sku, stock and status are optional."""
    if not isinstance(data, dict):
        raise ValidationError('Product body must be an object')

    stock = data.get('stock', 0)
    if isinstance(stock, bool) or not isinstance(stock, int) or stock < 0:
        raise ValidationError('stock must be a non-negative integer', details={'stock': stock})

    product = Product(
        tenant_id=tenant_id,
        name=_parse_name(data.get('name')),
        sku=(data.get('sku') or None),
        price=_parse_price(data.get('price')),
        stock=stock,
        status=_parse_status(data.get('status', ProductStatus.DRAFT.value)),
    )
    try:
        session.add(product)
        session.flush()
        audit_service.log_action(
            session, AuditAction.PRODUCT_CREATED, tenant_id=tenant_id, actor=actor,
            resource_type='product', resource_id=product.id, details={'name': product.name}
        )
        session.commit()
    except Exception:
        session.rollback()
        raise

    invalidate_catalog(cache, tenant_id)
    logger.info(f"Product {product.id} created for tenant {tenant_id}")
    return product


def update_product(session, tenant_id, product_id, data, actor=None, cache=None):
    """Update name, sku, price or status. Stock changes go through inventory_service."""
    if not isinstance(data, dict) or not data:
        raise ValidationError('Patch body must be a non-empty object')
    rejected = sorted(key for key in data if key not in EDITABLE_FIELDS)
    if rejected:
        raise ValidationError('These fields cannot be changed here', details={'fields': rejected})

    parsers = {'name': _parse_name, 'sku': lambda v: v or None, 'price': _parse_price, 'status': _parse_status}

    try:
        product = get_product(session, tenant_id, product_id)
        changes = {}
        for field, raw in data.items():
            value = parsers[field](raw)
            if getattr(product, field) != value:
                changes[field] = {'from': getattr(product, field), 'to': value}
                setattr(product, field, value)

        if changes:
            audit_service.log_action(
                session, AuditAction.PRODUCT_UPDATED, tenant_id=tenant_id, actor=actor,
                resource_type='product', resource_id=product.id, details=changes
            )
        session.commit()
    except Exception:
        session.rollback()
        raise

    invalidate_catalog(cache, tenant_id)
    return product


def invalidate_catalog(cache, tenant_id):
    if cache is not None:
        cache.invalidate_module(tenant_id, PRODUCTS_CACHE_MODULE)
