"""Storefront JSON API: store header, catalog, cart, checkout, payments and customer orders."""
from decimal import Decimal

from flask import Blueprint, current_app, g, jsonify, request, session

from commerce.blueprints.metrics import record_checkout, record_payment
from commerce.database import get_session
from commerce.decorators.permissions import require_access
from commerce.exceptions import CommerceError, ForbiddenError, ProductUnavailableError, ValidationError
from commerce.models import PaymentStatus, ProductStatus, TenantStatus
from commerce.services import checkout_service, order_service, payment_service, product_service
from commerce.services.access_service import UserType
from commerce.services.cache_service import get_cache
from commerce.services.cart_service import CartStore
from commerce.services.identity_service import CustomerContext
from commerce.services.tenant_service import get_tenant_summary_cached, resolve_from_config

storefront_bp = Blueprint('storefront', __name__, url_prefix='/api/storefront/<tenant_slug>')

MAX_PAGE_SIZE = 100


def _json_body():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError('Request body must be a JSON object')
    return data


def _int_arg(name, default, maximum=None):
    raw = request.args.get(name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValidationError(f'{name} must be an integer', details={name: raw})
    if value < 0:
        raise ValidationError(f'{name} must not be negative', details={name: raw})
    return min(value, maximum) if maximum else value


def _cart_store():
    session.permanent = True
    return CartStore(session, currency=current_app.config.get('DEFAULT_CURRENCY', 'KWD'))


def _open_tenant(tenant_slug):
    """Resolve a tenant for public storefront reads; only ACTIVE stores are open."""
    tenant = resolve_from_config(get_session(), tenant_slug, current_app.config)
    if tenant.status != TenantStatus.ACTIVE:
        raise ForbiddenError(f'Store "{tenant.slug}" is not open', code='TENANT_NOT_ACTIVE')
    return tenant


def _cart_response(cart):
    data = cart.to_dict()
    data['itemCount'] = cart.item_count
    data['snapshotTotal'] = str(cart.snapshot_total)
    return jsonify({'success': True, 'cart': data})


@storefront_bp.route('', methods=['GET'])
def store_info(tenant_slug):
    """Public store header, read through the cache."""
    summary = get_tenant_summary_cached(
        get_session(), tenant_slug, get_cache(), current_app.config.get('CACHE_TENANTS_TTL')
    )
    if summary['status'] != TenantStatus.ACTIVE.value:
        raise ForbiddenError(f'Store "{summary["slug"]}" is not open', code='TENANT_NOT_ACTIVE')
    settings = summary.get('settings') or {}
    return jsonify({'success': True, 'store': {
        'slug': summary['slug'],
        'name': summary['name'],
        'template': summary['template'],
        'currency': settings.get('currency') or current_app.config.get('DEFAULT_CURRENCY', 'KWD'),
    }})


@storefront_bp.route('/products', methods=['GET'])
def list_products(tenant_slug):
    """Active catalog, read through the cache."""
    tenant = _open_tenant(tenant_slug)
    products = product_service.catalog(
        get_session(), tenant.id, get_cache(), current_app.config.get('CACHE_PRODUCTS_TTL')
    )
    return jsonify({'success': True, 'products': products})


@storefront_bp.route('/cart', methods=['GET'])
def get_cart(tenant_slug):
    tenant = _open_tenant(tenant_slug)
    return _cart_response(_cart_store().get(tenant.slug))


@storefront_bp.route('/cart/add', methods=['POST'])
def cart_add(tenant_slug):
    """Add a product; name and price are snapshotted from the cached product read."""
    tenant = _open_tenant(tenant_slug)
    data = _json_body()
    product_id = data.get('productId')
    qty = data.get('qty', 1)

    if isinstance(product_id, bool) or not isinstance(product_id, int):
        raise ValidationError('productId must be an integer', details={'productId': product_id})

    snapshot = product_service.product_snapshot(
        get_session(), tenant.id, product_id, get_cache(), current_app.config.get('CACHE_PRODUCTS_TTL')
    )
    if not snapshot or snapshot.get('status') != ProductStatus.ACTIVE.value:
        raise ProductUnavailableError(product_id)

    cart = _cart_store().add(
        tenant.slug, product_id, snapshot['name'], Decimal(str(snapshot['price'])), qty
    )
    return _cart_response(cart)


@storefront_bp.route('/cart/update', methods=['POST'])
def cart_update(tenant_slug):
    tenant = _open_tenant(tenant_slug)
    data = _json_body()
    cart = _cart_store().update_qty(tenant.slug, data.get('productId'), data.get('qty'))
    return _cart_response(cart)


@storefront_bp.route('/cart/remove', methods=['POST'])
def cart_remove(tenant_slug):
    tenant = _open_tenant(tenant_slug)
    data = _json_body()
    cart = _cart_store().remove(tenant.slug, data.get('productId'))
    return _cart_response(cart)


@storefront_bp.route('/cart', methods=['DELETE'])
def cart_clear(tenant_slug):
    tenant = _open_tenant(tenant_slug)
    store = _cart_store()
    store.clear()
    return _cart_response(store.get(tenant.slug))


@storefront_bp.route('/checkout', methods=['POST'])
def checkout(tenant_slug):
    """Place an order from the session cart. Guests may check out."""
    context = g.get('identity')
    customer_context = context if isinstance(context, CustomerContext) else None

    try:
        result = checkout_service.checkout(
            get_session(),
            tenant_slug,
            _cart_store(),
            request.get_json(silent=True),
            customer_context=customer_context,
        )
    except CommerceError as e:
        record_checkout(e.code)
        raise

    record_checkout('ok')
    order = result.order
    return jsonify({
        'success': True,
        'orderId': order.id,
        'orderNumber': order.order_number,
        'status': order.status.value,
        'total': str(order.total),
        'currency': order.currency,
        'paymentId': result.payment.id,
    }), 201


@storefront_bp.route('/payments/process', methods=['POST'])
@require_access(UserType.CUSTOMER)
def process_payment(tenant_slug):
    data = _json_body()
    order_id = data.get('orderId')
    if isinstance(order_id, bool) or not isinstance(order_id, int):
        raise ValidationError('orderId must be an integer', details={'orderId': order_id})

    provider = data.get('provider') or 'mock'
    try:
        outcome = payment_service.process_payment(
            get_session(),
            g.tenant.id,
            order_id,
            provider,
            data.get('amount'),
            data.get('currency'),
            g.identity,
            current_app.extensions['payment_providers'],
        )
    except CommerceError as e:
        record_payment(provider, e.code)
        raise

    record_payment(provider, 'ok')
    return jsonify({
        'success': True,
        'paymentId': outcome.payment.id,
        'transactionId': outcome.result.transaction_id,
        'orderStatus': outcome.order.status.value,
    })


@storefront_bp.route('/orders/<int:order_id>', methods=['GET'])
@require_access(UserType.CUSTOMER)
def get_order(tenant_slug, order_id):
    db_session = get_session()
    order = order_service.get_order(db_session, g.tenant.id, order_id)
    order_service.assert_customer_owns(db_session, order, g.identity)
    return jsonify({'success': True, 'order': order.to_dict()})


@storefront_bp.route('/orders', methods=['GET'])
@require_access(UserType.CUSTOMER)
def list_orders(tenant_slug):
    """The caller's order history in this store."""
    orders = order_service.list_customer_orders(
        get_session(), g.tenant.id, g.identity.uid,
        limit=_int_arg('limit', 50, MAX_PAGE_SIZE), offset=_int_arg('offset', 0)
    )
    return jsonify({'success': True, 'orders': [o.to_dict(include_items=False) for o in orders]})


@storefront_bp.route('/payments/status', methods=['GET'])
@require_access(UserType.CUSTOMER)
def payment_status(tenant_slug):
    """Query: ?orderId=<int>."""
    order_id = _int_arg('orderId', None)
    if order_id is None:
        raise ValidationError('orderId is required')
    order, payments = payment_service.payment_status(get_session(), g.tenant.id, order_id, g.identity)
    return jsonify({
        'success': True,
        'orderId': order.id,
        'orderStatus': order.status.value,
        'paid': any(p.status == PaymentStatus.COMPLETED for p in payments),
        'payments': [p.to_dict() for p in payments],
    })
