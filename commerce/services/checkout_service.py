"""
Checkout: turns a session cart into a PENDING order and payment.

Prices and stock are re-read live inside the transaction; the cart's
snapshots are only kept for reference. Stock decrement, stock moves, the
order, its items and the payment row are committed together or not at
all, and the cart is cleared only after that commit.
"""
import logging
import re
import secrets
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal

from commerce.exceptions import CartEmptyError, ForbiddenError, ProductUnavailableError, ValidationError
from commerce.models import (
    Order, OrderItem, OrderStatus, Payment, PaymentStatus, Product, ProductStatus,
    StockMoveType, StockReferenceType, TenantStatus,
)
from commerce.services import customer_service, inventory_service
from commerce.services.identity_service import CustomerContext
from commerce.services.pricing import default_policy_for, quantize
from commerce.services.tenant_service import resolve_by_slug

logger = logging.getLogger(__name__)

EMAIL_RE = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')


@dataclass
class CustomerInfo:
    name: str
    email: str
    phone: str
    notes: str = None


@dataclass
class CheckoutResult:
    order: Order
    payment: Payment


def generate_order_number(now=None):
    now = now or datetime.now(timezone.utc)
    return f"ORD-{now:%Y%m%d}-{secrets.token_hex(4).upper()}"


def validate_customer_info(data) -> CustomerInfo:
    """
    Validate checkout contact details.

    Rules: name 2..80 chars, a plausible email, phone 6..20 chars.

    Raises:
        ValidationError: with per-field details
    """
    if not isinstance(data, dict):
        raise ValidationError('Customer details are required')

    name = str(data.get('name') or '').strip()
    email = str(data.get('email') or '').strip().lower()
    phone = str(data.get('phone') or '').strip()
    notes = data.get('notes')

    errors = {}
    if not 2 <= len(name) <= 80:
        errors['name'] = 'Name must be between 2 and 80 characters'
    if not EMAIL_RE.match(email):
        errors['email'] = 'A valid email address is required'
    if not 6 <= len(phone) <= 20:
        errors['phone'] = 'Phone must be between 6 and 20 characters'
    if notes is not None and not isinstance(notes, str):
        errors['notes'] = 'Notes must be text'

    if errors:
        raise ValidationError('Invalid customer details', details=errors)

    return CustomerInfo(name=name, email=email, phone=phone, notes=notes)


def _bind_customer(session, tenant, info, customer_context):
    """Customer row for the order, or None when the email belongs to someone else's account."""
    uid = None
    if isinstance(customer_context, CustomerContext) and customer_context.tenant_id == tenant.id:
        uid = customer_context.uid
        customer = customer_service.get_customer_by_uid(session, tenant.id, uid)
        if customer:
            return customer
        customer = customer_service.get_or_create_customer(
            session, tenant.id, customer_context.email, info.name, info.phone, uid=uid
        )
    else:
        customer = customer_service.get_or_create_customer(session, tenant.id, info.email, info.name, info.phone)

    if customer.uid is not None and customer.uid != uid:
        return None
    return customer


def _live_lines(session, tenant, cart):
    """Fetch every cart product within the tenant and price it at today's price."""
    product_ids = [item.product_id for item in cart.items]
    products = {
        p.id: p for p in session.query(Product).filter(
            Product.tenant_id == tenant.id,
            Product.id.in_(product_ids)
        ).all()
    }

    lines = []
    for item in cart.items:
        product = products.get(item.product_id)
        if product is None or product.status != ProductStatus.ACTIVE:
            raise ProductUnavailableError(item.product_id)
        lines.append((item, product, quantize(product.price * item.qty)))
    return lines


def checkout(session, tenant_slug, cart_store, customer_info, customer_context=None, pricing_policy=None):
    """
    Place an order from the session cart.

    Args:
        session: SQLAlchemy session
        tenant_slug: Target store
        cart_store: CartStore over the caller's session
        customer_info: dict with name, email, phone and optional notes
        customer_context: CustomerContext of a signed-in customer, if any
        pricing_policy: PricingPolicy; defaults from the tenant settings

    Returns:
        CheckoutResult with the PENDING order and its PENDING payment

    Raises:
        TenantNotFoundError, ForbiddenError (TENANT_NOT_ACTIVE), ValidationError,
        CartEmptyError, ProductUnavailableError, InsufficientStockError
    """
    try:
        tenant = resolve_by_slug(session, tenant_slug)
        if tenant.status != TenantStatus.ACTIVE:
            raise ForbiddenError(f'Store "{tenant.slug}" is not accepting orders', code='TENANT_NOT_ACTIVE')

        info = validate_customer_info(customer_info)

        cart = cart_store.get(tenant.slug)
        if cart.is_empty:
            raise CartEmptyError()

        customer = _bind_customer(session, tenant, info, customer_context)
        lines = _live_lines(session, tenant, cart)

        policy = pricing_policy or default_policy_for(tenant)
        subtotal, tax, shipping, total = policy.totals(
            tenant, sum((line_total for _, _, line_total in lines), Decimal('0'))
        )
        currency = tenant.setting('currency') or cart.currency

        order = Order(
            tenant_id=tenant.id,
            order_number=generate_order_number(),
            status=OrderStatus.PENDING,
            customer_id=customer.id if customer else None,
            customer_name=info.name,
            customer_email=info.email,
            customer_phone=info.phone,
            notes=info.notes,
            subtotal=subtotal,
            tax=tax,
            shipping=shipping,
            total=total,
            currency=currency,
        )
        session.add(order)
        session.flush()

        for item, product, line_total in lines:
            inventory_service.decrement_if_available(session, tenant.id, product.id, item.qty, product.name)
            inventory_service.record_move(
                session, tenant.id, product.id, StockMoveType.OUT, item.qty,
                StockReferenceType.ORDER, order.id, notes=order.order_number
            )
            order.items.append(OrderItem(
                product_id=product.id,
                name_snapshot=product.name,
                price_snapshot=product.price,
                cart_price_snapshot=item.price_snapshot,
                qty=item.qty,
                line_total=line_total,
            ))

        payment = Payment(
            tenant_id=tenant.id,
            order_id=order.id,
            amount=total,
            currency=currency,
            status=PaymentStatus.PENDING,
        )
        session.add(payment)
        session.commit()

    except Exception:
        session.rollback()
        raise

    cart_store.clear()
    logger.info(f"Order {order.order_number} placed for tenant {tenant.slug}: total {total} {currency}")
    return CheckoutResult(order=order, payment=payment)
