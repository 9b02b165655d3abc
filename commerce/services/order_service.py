"""
Order state machine and administrative order operations.

    PENDING -> CONFIRMED -> PROCESSING -> SHIPPED -> DELIVERED
    any non-terminal -> CANCELLED
    CONFIRMED | PROCESSING | SHIPPED -> REFUNDED

DELIVERED, CANCELLED and REFUNDED are terminal.
"""
import logging

from commerce.exceptions import (
    ForbiddenError, ImmutableOrderError, InvalidTransitionError, OrderNotFoundError, ValidationError,
)
from commerce.models import (
    Customer, Order, OrderStatus, Payment, PaymentStatus, StockMoveType, StockReferenceType,
)
from commerce.models.audit_log import AuditAction
from commerce.services import audit_service, inventory_service
from commerce.services.access_service import UserType
from commerce.services.checkout_service import EMAIL_RE

logger = logging.getLogger(__name__)

TERMINAL_STATUSES = frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED, OrderStatus.REFUNDED})

ALLOWED_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.CONFIRMED, OrderStatus.CANCELLED},
    OrderStatus.CONFIRMED: {OrderStatus.PROCESSING, OrderStatus.CANCELLED, OrderStatus.REFUNDED},
    OrderStatus.PROCESSING: {OrderStatus.SHIPPED, OrderStatus.CANCELLED, OrderStatus.REFUNDED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED, OrderStatus.CANCELLED, OrderStatus.REFUNDED},
}

PATCHABLE_FIELDS = ('status', 'customer_name', 'customer_email', 'customer_phone', 'notes')


def parse_status(value) -> OrderStatus:
    if isinstance(value, OrderStatus):
        return value
    try:
        return OrderStatus(str(value).upper())
    except ValueError:
        raise ValidationError(f'Unknown order status: {value}', details={'status': value})


def is_terminal(status) -> bool:
    return status in TERMINAL_STATUSES


def transition_order(order, new_status) -> bool:
    """
    Move ``order`` to ``new_status`` in memory.

    Returns:
        True if the status changed, False for a same-status no-op

    Raises:
        ImmutableOrderError: the order is already terminal
        InvalidTransitionError: the move is not allowed from the current status
    """
    new_status = OrderStatus(new_status)
    if is_terminal(order.status):
        raise ImmutableOrderError(order.id, order.status.value)
    if new_status == order.status:
        return False
    if new_status not in ALLOWED_TRANSITIONS.get(order.status, ()):
        raise InvalidTransitionError(order.status.value, new_status.value)
    order.status = new_status
    return True


def get_order(session, tenant_id, order_id, for_update=False):
    """Tenant-scoped order lookup. Raises OrderNotFoundError."""
    query = session.query(Order).filter(Order.id == order_id, Order.tenant_id == tenant_id)
    if for_update:
        query = query.with_for_update()
    order = query.first()
    if order is None:
        raise OrderNotFoundError(order_id)
    return order


def assert_customer_owns(session, order, context):
    """Customers may only see or pay their own orders; staff and operators are not limited here."""
    if context is None or context.user_type != UserType.CUSTOMER:
        return
    owner_uid = None
    if order.customer_id is not None:
        owner_uid = session.query(Customer.uid).filter(Customer.id == order.customer_id).scalar()
    if owner_uid is None or owner_uid != context.uid:
        raise ForbiddenError('This order belongs to another customer')


def list_orders(session, tenant_id, status=None, limit=50, offset=0):
    query = session.query(Order).filter(Order.tenant_id == tenant_id)
    if status:
        query = query.filter(Order.status == parse_status(status))
    return query.order_by(Order.id.desc()).limit(limit).offset(offset).all()


def list_customer_orders(session, tenant_id, uid, limit=50, offset=0):
    """Orders of the signed-in customer ``uid`` in one tenant, newest first."""
    return session.query(Order).join(Customer, Order.customer_id == Customer.id).filter(
        Order.tenant_id == tenant_id,
        Customer.tenant_id == tenant_id,
        Customer.uid == uid
    ).order_by(Order.id.desc()).limit(limit).offset(offset).all()


def _restock_items(session, order):
    for item in order.items:
        inventory_service.restock(session, order.tenant_id, item.product_id, item.qty)
        inventory_service.record_move(
            session, order.tenant_id, item.product_id, StockMoveType.IN, item.qty,
            StockReferenceType.ORDER, order.id, notes=f'{order.order_number} cancelled'
        )


def _apply_side_effects(session, order, new_status, restock_on_cancel):
    payments = session.query(Payment).filter(Payment.order_id == order.id)

    if new_status == OrderStatus.CANCELLED:
        if restock_on_cancel:
            _restock_items(session, order)
        # Attempted payments may still settle at the provider; they stay PENDING for reconciliation
        for payment in payments.filter(Payment.status == PaymentStatus.PENDING, Payment.attempted_at.is_(None)):
            payment.status = PaymentStatus.FAILED
            payment.error_message = 'Order cancelled'

    elif new_status == OrderStatus.REFUNDED:
        for payment in payments.filter(Payment.status == PaymentStatus.COMPLETED):
            payment.status = PaymentStatus.REFUNDED


def _validate_patch(patch):
    if not isinstance(patch, dict) or not patch:
        raise ValidationError('Patch body must be a non-empty object')

    rejected = sorted(key for key in patch if key not in PATCHABLE_FIELDS)
    if rejected:
        raise ValidationError('These fields cannot be changed on an order', details={'fields': rejected})

    errors = {}
    if 'customer_name' in patch and not 2 <= len(str(patch['customer_name'] or '').strip()) <= 80:
        errors['customer_name'] = 'Name must be between 2 and 80 characters'
    if 'customer_email' in patch and not EMAIL_RE.match(str(patch['customer_email'] or '').strip()):
        errors['customer_email'] = 'A valid email address is required'
    if 'customer_phone' in patch and not 6 <= len(str(patch['customer_phone'] or '').strip()) <= 20:
        errors['customer_phone'] = 'Phone must be between 6 and 20 characters'
    if 'notes' in patch and patch['notes'] is not None and not isinstance(patch['notes'], str):
        errors['notes'] = 'Notes must be text'
    if errors:
        raise ValidationError('Invalid order fields', details=errors)


def update_order(session, tenant_id, order_id, patch, actor=None, restock_on_cancel=True):
    """
    Patch a non-terminal order. Commits.

    Only contact fields, notes and status are patchable; status changes go
    through the state machine.

    Raises:
        OrderNotFoundError, ValidationError, ImmutableOrderError, InvalidTransitionError
    """
    _validate_patch(patch)

    try:
        order = get_order(session, tenant_id, order_id, for_update=True)
        if is_terminal(order.status):
            raise ImmutableOrderError(order.id, order.status.value)

        old_status = order.status
        changes = {}

        for field in ('customer_name', 'customer_email', 'customer_phone', 'notes'):
            if field in patch:
                value = patch[field]
                if isinstance(value, str):
                    value = value.strip()
                if field == 'customer_email':
                    value = value.lower()
                if getattr(order, field) != value:
                    changes[field] = {'from': getattr(order, field), 'to': value}
                    setattr(order, field, value)

        if 'status' in patch:
            new_status = parse_status(patch['status'])
            if transition_order(order, new_status):
                _apply_side_effects(session, order, new_status, restock_on_cancel)
                changes['status'] = {'from': old_status.value, 'to': new_status.value}

        if changes:
            if set(changes) == {'status'}:
                action = AuditAction.ORDER_CANCELLED if order.status == OrderStatus.CANCELLED \
                    else AuditAction.ORDER_STATUS_CHANGED
            else:
                action = AuditAction.ORDER_UPDATED
            audit_service.log_action(
                session, action, tenant_id=tenant_id, actor=actor,
                resource_type='order', resource_id=order.id, details=changes
            )
        session.commit()

    except Exception:
        session.rollback()
        raise

    if 'status' in changes:
        logger.info(f"Order {order.order_number} {changes['status']['from']} -> {changes['status']['to']}")
    return order


def update_order_status(session, tenant_id, order_id, new_status, actor=None, restock_on_cancel=True):
    """Status-only patch."""
    return update_order(
        session, tenant_id, order_id, {'status': new_status},
        actor=actor, restock_on_cancel=restock_on_cancel
    )


def cancel_order(session, tenant_id, order_id, actor=None, restock_on_cancel=True):
    """
    Cancel an order, returning its stock when ``restock_on_cancel`` is set
    and failing any PENDING payments.

    Raises:
        OrderNotFoundError, ImmutableOrderError
    """
    return update_order_status(
        session, tenant_id, order_id, OrderStatus.CANCELLED,
        actor=actor, restock_on_cancel=restock_on_cancel
    )
