"""Payment provider interface."""
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional


@dataclass(frozen=True)
class PaymentIntent:
    """What the provider is asked to charge."""
    tenant_id: int
    order_id: int
    order_number: str
    amount: Decimal
    currency: str
    customer_email: str
    payment_id: Optional[int] = None


@dataclass(frozen=True)
class PaymentResult:
    success: bool
    transaction_id: Optional[str] = None
    error: Optional[str] = None


class PaymentProvider:
    """
    A payment processor. ``process`` returns a PaymentResult for a definite
    outcome and raises ProviderTimeoutError when the outcome is unknown.
    """
    name = None

    def process(self, intent: PaymentIntent) -> PaymentResult:
        raise NotImplementedError
