"""Merchant admin JSON API: orders, products, stock, customers, members and audit trail of one store."""
from flask import Blueprint, current_app, g, jsonify, request

from commerce.database import get_session
from commerce.decorators.permissions import owner_only, owner_or_admin, require_access, require_permission
from commerce.exceptions import ValidationError
from commerce.models.audit_log import AuditAction
from commerce.services import (
    audit_service, customer_service, inventory_service, membership_service, order_service, product_service,
)
from commerce.services.access_service import UserType
from commerce.services.cache_service import get_cache

admin_bp = Blueprint('admin', __name__, url_prefix='/api/admin/<tenant_slug>')

MAX_PAGE_SIZE = 200


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


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------

@admin_bp.route('/orders', methods=['GET'])
@require_access(UserType.MERCHANT_ADMIN, roles=('VIEWER',))
def list_orders(tenant_slug):
    orders = order_service.list_orders(
        get_session(),
        g.tenant.id,
        status=request.args.get('status'),
        limit=_int_arg('limit', 50, MAX_PAGE_SIZE),
        offset=_int_arg('offset', 0),
    )
    return jsonify({'success': True, 'orders': [o.to_dict(include_items=False) for o in orders]})


@admin_bp.route('/orders/<int:order_id>', methods=['GET'])
@require_access(UserType.MERCHANT_ADMIN, roles=('VIEWER',))
def get_order(tenant_slug, order_id):
    order = order_service.get_order(get_session(), g.tenant.id, order_id)
    data = order.to_dict()
    data['payments'] = [p.to_dict() for p in order.payments]
    return jsonify({'success': True, 'order': data})


@admin_bp.route('/orders/<int:order_id>', methods=['PATCH'])
@owner_or_admin
def update_order(tenant_slug, order_id):
    order = order_service.update_order(
        get_session(), g.tenant.id, order_id, _json_body(),
        actor=g.identity, restock_on_cancel=current_app.config.get('RESTOCK_ON_CANCEL', True)
    )
    return jsonify({'success': True, 'order': order.to_dict()})


@admin_bp.route('/orders/<int:order_id>/status', methods=['PATCH'])
@owner_or_admin
def update_order_status(tenant_slug, order_id):
    data = _json_body()
    if 'status' not in data:
        raise ValidationError('status is required')
    order = order_service.update_order_status(
        get_session(), g.tenant.id, order_id, data['status'],
        actor=g.identity, restock_on_cancel=current_app.config.get('RESTOCK_ON_CANCEL', True)
    )
    return jsonify({'success': True, 'order': order.to_dict()})


@admin_bp.route('/orders/<int:order_id>', methods=['DELETE'])
@owner_or_admin
def cancel_order(tenant_slug, order_id):
    """Cancel; orders are never deleted."""
    order = order_service.cancel_order(
        get_session(), g.tenant.id, order_id,
        actor=g.identity, restock_on_cancel=current_app.config.get('RESTOCK_ON_CANCEL', True)
    )
    return jsonify({'success': True, 'order': order.to_dict()})


# ---------------------------------------------------------------------------
# Products
# ---------------------------------------------------------------------------

@admin_bp.route('/products', methods=['GET'])
@require_access(UserType.MERCHANT_ADMIN, roles=('VIEWER',))
def list_products(tenant_slug):
    products = product_service.list_products(get_session(), g.tenant.id, request.args.get('status'))
    return jsonify({'success': True, 'products': [p.to_dict() for p in products]})


@admin_bp.route('/products', methods=['POST'])
@require_access(UserType.MERCHANT_ADMIN, roles=('STAFF',))
def create_product(tenant_slug):
    product = product_service.create_product(
        get_session(), g.tenant.id, _json_body(), actor=g.identity, cache=get_cache()
    )
    return jsonify({'success': True, 'product': product.to_dict()}), 201


@admin_bp.route('/products/<int:product_id>', methods=['PATCH'])
@require_access(UserType.MERCHANT_ADMIN, roles=('STAFF',))
def update_product(tenant_slug, product_id):
    product = product_service.update_product(
        get_session(), g.tenant.id, product_id, _json_body(), actor=g.identity, cache=get_cache()
    )
    return jsonify({'success': True, 'product': product.to_dict()})


@admin_bp.route('/products/<int:product_id>/stock', methods=['POST'])
@require_access(UserType.MERCHANT_ADMIN, roles=('STAFF',))
def adjust_stock(tenant_slug, product_id):
    """Body: {"delta": int, "notes": str}."""
    data = _json_body()
    db_session = get_session()
    product = inventory_service.adjust_stock(
        db_session, g.tenant.id, product_id, data.get('delta'), notes=data.get('notes'),
        actor=g.identity
    )
    product_service.invalidate_catalog(get_cache(), g.tenant.id)
    return jsonify({'success': True, 'product': product.to_dict()})


# ---------------------------------------------------------------------------
# Members
# ---------------------------------------------------------------------------

@admin_bp.route('/members', methods=['GET'])
@require_access(UserType.MERCHANT_ADMIN, roles=('ADMIN',))
def list_members(tenant_slug):
    include_revoked = request.args.get('include_revoked', 'false').lower() == 'true'
    members = membership_service.list_members(get_session(), g.tenant.id, include_revoked)
    return jsonify({'success': True, 'members': [membership_service.member_to_dict(m) for m in members]})


@admin_bp.route('/members/<int:user_id>', methods=['PATCH'])
@owner_only
def change_member_role(tenant_slug, user_id):
    data = _json_body()
    if 'role' not in data:
        raise ValidationError('role is required')
    membership = membership_service.change_role(get_session(), g.tenant.id, user_id, data['role'], actor=g.identity)
    return jsonify({'success': True, 'member': membership_service.member_to_dict(membership)})


@admin_bp.route('/members/<int:user_id>', methods=['DELETE'])
@owner_only
def revoke_member(tenant_slug, user_id):
    membership = membership_service.revoke_member(get_session(), g.tenant.id, user_id, actor=g.identity)
    return jsonify({'success': True, 'member': membership_service.member_to_dict(membership)})


# ---------------------------------------------------------------------------
# Inventory, customers and audit trail
# ---------------------------------------------------------------------------

@admin_bp.route('/inventory/movements', methods=['GET'])
@require_access(UserType.MERCHANT_ADMIN, roles=('STAFF',))
def list_stock_movements(tenant_slug):
    """Query: productId, limit, offset."""
    moves = inventory_service.list_stock_moves(
        get_session(),
        g.tenant.id,
        product_id=_int_arg('productId', None),
        limit=_int_arg('limit', 50, MAX_PAGE_SIZE),
        offset=_int_arg('offset', 0),
    )
    return jsonify({'success': True, 'movements': [m.to_dict() for m in moves]})


@admin_bp.route('/customers', methods=['GET'])
@require_access(UserType.MERCHANT_ADMIN, roles=('ADMIN',))
@require_permission('manage_customers')
def list_customers(tenant_slug):
    customers = customer_service.list_customers(
        get_session(),
        g.tenant.id,
        search=request.args.get('q'),
        limit=_int_arg('limit', 50, MAX_PAGE_SIZE),
        offset=_int_arg('offset', 0),
    )
    return jsonify({'success': True, 'customers': [c.to_dict() for c in customers]})


@admin_bp.route('/audit-logs', methods=['GET'])
@require_access(UserType.MERCHANT_ADMIN, roles=('ADMIN',))
@require_permission('view_audit_log')
def list_audit_logs(tenant_slug):
    action = request.args.get('action')
    if action:
        try:
            action = AuditAction(action.upper())
        except ValueError:
            raise ValidationError(f'Unknown audit action: {action}')
    logs = audit_service.get_audit_logs(
        get_session(),
        g.tenant.id,
        limit=_int_arg('limit', 100, MAX_PAGE_SIZE),
        offset=_int_arg('offset', 0),
        action_filter=action or None,
    )
    return jsonify({'success': True, 'logs': [entry.to_dict() for entry in logs]})
