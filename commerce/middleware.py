"""Per-request identity loading."""
from flask import current_app, g, request

from commerce.database import get_session
from commerce.exceptions import UnauthenticatedError
from commerce.services.identity_service import TokenVerifier, classify_identity, extract_token


def load_identity():
    """
    Classify the caller's credentials into g.identity.

    Called before each request. Sets g.identity to a UserContext, or None
    when the request carries no credentials or they do not classify; the
    failure is kept in g.identity_error so protected endpoints can report it.
    """
    g.identity = None
    g.identity_error = None

    token = extract_token(request, current_app.config.get('IDENTITY_COOKIE_NAME', 'session'))
    if not token:
        return

    verifier = current_app.extensions.get('identity_verifier') or TokenVerifier.from_config(current_app.config)
    try:
        identity = verifier.verify(token)
        g.identity = classify_identity(get_session(), identity)
    except UnauthenticatedError as e:
        g.identity_error = e
        current_app.logger.info(f"Unauthenticated request to {request.path}: {e.message}")
