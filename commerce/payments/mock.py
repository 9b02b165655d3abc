"""Deterministic in-process provider for development and tests."""
import hashlib
import logging
from decimal import Decimal

from commerce.exceptions import ProviderTimeoutError
from commerce.payments.base import PaymentProvider, PaymentResult

logger = logging.getLogger(__name__)


class MockPaymentProvider(PaymentProvider):
    """
    Approves everything except:
      - emails listed in ``decline_emails``
      - amounts listed in ``decline_amounts``
      - amounts listed in ``timeout_amounts``, which raise ProviderTimeoutError
    Transaction ids are derived from the order so retries are reproducible.
    """
    name = 'mock'

    def __init__(self, decline_emails=(), decline_amounts=(), timeout_amounts=()):
        self.decline_emails = {email.lower() for email in decline_emails}
        self.decline_amounts = {Decimal(str(a)) for a in decline_amounts}
        self.timeout_amounts = {Decimal(str(a)) for a in timeout_amounts}
        self.calls = []

    def process(self, intent):
        self.calls.append(intent)
        amount = Decimal(str(intent.amount))

        if amount in self.timeout_amounts:
            logger.info(f"[MOCK PAY] Simulated timeout for {intent.order_number}")
            raise ProviderTimeoutError()

        if intent.customer_email.lower() in self.decline_emails or amount in self.decline_amounts:
            logger.info(f"[MOCK PAY] Declined {intent.order_number}")
            return PaymentResult(success=False, error='Card declined')

        digest = hashlib.sha256(
            f"{intent.tenant_id}:{intent.order_id}:{intent.payment_id}".encode()
        ).hexdigest()[:16]
        return PaymentResult(success=True, transaction_id=f"mock_{digest}")
