"""Builds the provider table from app config."""
import logging

from commerce.payments.http_gateway import HttpGatewayProvider
from commerce.payments.mock import MockPaymentProvider

logger = logging.getLogger(__name__)


def build_providers(config):
    """
    Map provider name -> PaymentProvider for every name in PAYMENT_PROVIDERS.

    ``mock`` is the in-process provider; any other name (stripe, paypal, ...)
    is served by the HTTP gateway configured with PAYMENT_GATEWAY_URL.
    """
    providers = {}
    for name in config.get('PAYMENT_PROVIDERS', ['mock']):
        name = name.strip().lower()
        if not name:
            continue
        if name == 'mock':
            providers[name] = MockPaymentProvider()
        elif config.get('PAYMENT_GATEWAY_URL'):
            providers[name] = HttpGatewayProvider(
                name,
                config['PAYMENT_GATEWAY_URL'],
                config.get('PAYMENT_GATEWAY_API_KEY', ''),
                timeout=config.get('PAYMENT_TIMEOUT_SECONDS', 15)
            )
        else:
            logger.warning(f"Payment provider '{name}' configured without PAYMENT_GATEWAY_URL; skipped")
    return providers
