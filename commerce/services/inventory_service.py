"""
Stock changes. Every change is a single conditional UPDATE so concurrent
writers can never drive stock negative, plus a StockMove audit row.
"""
import logging

from commerce.exceptions import InsufficientStockError, NotFoundError, ValidationError
from commerce.models import Product, StockMove, StockMoveType, StockReferenceType
from commerce.models.audit_log import AuditAction
from commerce.services import audit_service

logger = logging.getLogger(__name__)


def _available(session, tenant_id, product_id):
    row = session.query(Product.stock).filter(
        Product.id == product_id,
        Product.tenant_id == tenant_id
    ).first()
    return row[0] if row else 0


def decrement_if_available(session, tenant_id, product_id, qty, product_name=None):
    """
    Take ``qty`` units out of stock iff at least ``qty`` are available.

    Raises:
        InsufficientStockError: naming the product, requested and available qty
    """
    updated = session.query(Product).filter(
        Product.id == product_id,
        Product.tenant_id == tenant_id,
        Product.stock >= qty
    ).update({Product.stock: Product.stock - qty}, synchronize_session=False)

    if updated == 0:
        available = _available(session, tenant_id, product_id)
        raise InsufficientStockError(product_id, product_name or str(product_id), qty, available)


def restock(session, tenant_id, product_id, qty):
    """Return ``qty`` units to stock."""
    session.query(Product).filter(
        Product.id == product_id,
        Product.tenant_id == tenant_id
    ).update({Product.stock: Product.stock + qty}, synchronize_session=False)


def record_move(session, tenant_id, product_id, move_type, qty, reference_type, reference_id=None, notes=None):
    move = StockMove(
        tenant_id=tenant_id,
        product_id=product_id,
        type=move_type,
        reference_type=reference_type,
        reference_id=reference_id,
        qty=qty,
        notes=notes
    )
    session.add(move)
    return move


def adjust_stock(session, tenant_id, product_id, delta, notes=None, actor=None):
    """
    Manual stock adjustment by ``delta`` (positive or negative). Commits.

    Raises:
        ValidationError: delta is not a non-zero integer
        NotFoundError: product does not belong to the tenant
        InsufficientStockError: a negative delta exceeds current stock
    """
    if isinstance(delta, bool) or not isinstance(delta, int) or delta == 0:
        raise ValidationError('delta must be a non-zero integer', details={'delta': delta})

    product = session.query(Product).filter(
        Product.id == product_id,
        Product.tenant_id == tenant_id
    ).first()
    if not product:
        raise NotFoundError(f'Product {product_id} not found', code='PRODUCT_NOT_FOUND')

    try:
        if delta < 0:
            decrement_if_available(session, tenant_id, product_id, -delta, product.name)
        else:
            restock(session, tenant_id, product_id, delta)

        record_move(
            session, tenant_id, product_id, StockMoveType.ADJUST, delta,
            StockReferenceType.MANUAL, notes=notes
        )
        audit_service.log_action(
            session, AuditAction.STOCK_ADJUSTED, tenant_id=tenant_id, actor=actor,
            resource_type='product', resource_id=product_id, details={'delta': delta, 'notes': notes}
        )
        session.commit()
    except Exception:
        session.rollback()
        raise

    session.refresh(product)
    logger.info(f"Stock adjusted for product {product_id} (tenant {tenant_id}): {delta:+d} -> {product.stock}")
    return product


def list_stock_moves(session, tenant_id, product_id=None, limit=50, offset=0):
    """Stock movements of a tenant, newest first, optionally for one product."""
    query = session.query(StockMove).filter(StockMove.tenant_id == tenant_id)
    if product_id is not None:
        query = query.filter(StockMove.product_id == product_id)
    return query.order_by(StockMove.id.desc()).limit(limit).offset(offset).all()
