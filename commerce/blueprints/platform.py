"""Platform operator JSON API."""
from flask import Blueprint, jsonify, request, g

from commerce.database import get_session
from commerce.decorators.permissions import require_access
from commerce.exceptions import ValidationError
from commerce.models import TenantStatus
from commerce.services import tenant_service
from commerce.services.access_service import UserType
from commerce.services.cache_service import get_cache

platform_bp = Blueprint('platform', __name__, url_prefix='/api/platform')


@platform_bp.route('/tenants', methods=['GET'])
@require_access(UserType.PLATFORM_ADMIN)
def list_tenants():
    tenants = tenant_service.list_tenants(get_session(), status=_status_filter())
    return jsonify({'success': True, 'tenants': [tenant_service.tenant_summary(t) for t in tenants]})


@platform_bp.route('/tenants/<slug>/status', methods=['PATCH'])
@require_access(UserType.PLATFORM_ADMIN, roles=('ADMIN',))
def change_status(slug):
    """Body: {"status": "ACTIVE" | "SUSPENDED" | "ARCHIVED"}. ARCHIVED is final."""
    data = request.get_json(silent=True)
    if not isinstance(data, dict) or 'status' not in data:
        raise ValidationError('status is required')
    tenant = tenant_service.change_tenant_status(
        get_session(), slug, str(data['status']).upper(), actor=g.identity, cache=get_cache()
    )
    return jsonify({'success': True, 'tenant': tenant_service.tenant_summary(tenant)})


def _status_filter():
    raw = request.args.get('status')
    if not raw:
        return None
    try:
        return TenantStatus(raw.upper())
    except ValueError:
        raise ValidationError(f'Unknown tenant status: {raw}')
