"""Payment provider boundary."""
from commerce.payments.base import PaymentIntent, PaymentProvider, PaymentResult
from commerce.payments.http_gateway import HttpGatewayProvider
from commerce.payments.mock import MockPaymentProvider
from commerce.payments.registry import build_providers

__all__ = [
    'PaymentIntent', 'PaymentProvider', 'PaymentResult',
    'HttpGatewayProvider', 'MockPaymentProvider', 'build_providers',
]
