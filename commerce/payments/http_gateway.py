"""REST payment gateway client."""
import logging

import requests

from commerce.exceptions import ProviderTimeoutError
from commerce.payments.base import PaymentProvider, PaymentResult

logger = logging.getLogger(__name__)


class HttpGatewayProvider(PaymentProvider):
    """
    Charges through a JSON gateway:

        POST {base_url}/charges
        {"amount": "12.50", "currency": "KWD", "reference": "ORD-...", ...}

    The gateway answers ``{"status": "succeeded", "id": "..."}`` or a
    failure status with an ``error`` message.
    """

    def __init__(self, name, base_url, api_key, timeout=15, session=None):
        if not base_url:
            raise ValueError("PAYMENT_GATEWAY_URL is required")
        self.name = name
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.http = session or requests.Session()
        self.headers = {
            'Authorization': f'Bearer {api_key}',
            'Content-Type': 'application/json'
        }

    def process(self, intent):
        url = f"{self.base_url}/charges"
        payload = {
            'amount': str(intent.amount),
            'currency': intent.currency,
            'reference': intent.order_number,
            'customer_email': intent.customer_email,
            'metadata': {
                'tenant_id': intent.tenant_id,
                'order_id': intent.order_id,
                'payment_id': intent.payment_id,
            }
        }
        # Same attempt, same key: lets the gateway dedupe a retried request
        headers = dict(self.headers)
        if intent.payment_id is not None:
            headers['Idempotency-Key'] = f"pay-{intent.tenant_id}-{intent.payment_id}"

        logger.info(f"[GATEWAY:{self.name}] Charging {intent.amount} {intent.currency} for {intent.order_number}")

        try:
            response = self.http.post(url, json=payload, headers=headers, timeout=self.timeout)
        except requests.Timeout:
            logger.warning(f"[GATEWAY:{self.name}] Timeout charging {intent.order_number}")
            raise ProviderTimeoutError()
        except requests.RequestException as e:
            logger.error(f"[GATEWAY:{self.name}] Request failed: {e}")
            return PaymentResult(success=False, error=f'Gateway unreachable: {e}')

        try:
            data = response.json()
        except ValueError:
            data = None
        if not isinstance(data, dict):
            data = {}

        if response.ok and data.get('status') == 'succeeded' and data.get('id'):
            return PaymentResult(success=True, transaction_id=str(data['id']))

        error = data.get('error') or f'Gateway returned HTTP {response.status_code}'
        logger.info(f"[GATEWAY:{self.name}] Declined {intent.order_number}: {error}")
        return PaymentResult(success=False, error=error)
