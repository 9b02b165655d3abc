"""Identity endpoint."""
from flask import Blueprint, g, jsonify

from commerce.exceptions import UnauthenticatedError
from commerce.services.identity_service import context_to_dict

auth_bp = Blueprint('auth', __name__, url_prefix='/api/auth')


@auth_bp.route('/me', methods=['GET'])
def me():
    """Return the classified caller, or 401."""
    context = g.get('identity')
    if context is None:
        raise g.get('identity_error') or UnauthenticatedError()
    return jsonify({'success': True, 'user': context_to_dict(context)})
