"""
Payment processing for storefront orders.

The order is validated and a Payment row is committed before the
provider is called; the provider call itself runs outside any database
transaction, and its outcome is recorded in a second short transaction.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation

from commerce.exceptions import (
    AmountMismatchError, BusinessLogicError, PaymentProviderError,
    ProviderTimeoutError, ValidationError,
)
from commerce.models import OrderStatus, Payment, PaymentStatus
from commerce.payments.base import PaymentIntent, PaymentResult
from commerce.services.order_service import assert_customer_owns, get_order, transition_order

logger = logging.getLogger(__name__)

AMOUNT_TOLERANCE = Decimal('0.01')


@dataclass
class PaymentOutcome:
    order: object
    payment: Payment
    result: PaymentResult


def _utcnow():
    return datetime.now(timezone.utc)


def _parse_amount(amount):
    if isinstance(amount, bool) or amount is None:
        raise ValidationError('amount must be a number', details={'amount': amount})
    try:
        value = Decimal(str(amount))
    except InvalidOperation:
        raise ValidationError('amount must be a number', details={'amount': amount})
    if not value.is_finite() or value <= 0:
        raise ValidationError('amount must be positive', details={'amount': str(amount)})
    return value


def _reserve_attempt(session, order, provider_name):
    """Reuse the checkout's untouched PENDING payment or open a new attempt."""
    payment = session.query(Payment).filter(
        Payment.order_id == order.id,
        Payment.status == PaymentStatus.PENDING,
        Payment.attempted_at.is_(None)
    ).order_by(Payment.id).first()

    if payment is None:
        payment = Payment(
            tenant_id=order.tenant_id,
            order_id=order.id,
            amount=order.total,
            currency=order.currency,
            status=PaymentStatus.PENDING,
        )
        session.add(payment)

    payment.provider = provider_name
    payment.attempted_at = _utcnow()
    session.flush()
    return payment


def process_payment(session, tenant_id, order_id, provider_name, amount, currency, context, providers):
    """
    Charge an order through ``providers[provider_name]``.

    Returns:
        PaymentOutcome with the COMPLETED payment and CONFIRMED order

    Raises:
        OrderNotFoundError: order absent in this tenant
        ForbiddenError: a customer paying someone else's order
        BusinessLogicError: ORDER_NOT_PAYABLE, UNSUPPORTED_PROVIDER, CURRENCY_MISMATCH
        AmountMismatchError: amount differs from the order total by more than 0.01
        PaymentProviderError: the provider declined (payment FAILED)
        ProviderTimeoutError: outcome unknown (payment left PENDING)
    """
    amount = _parse_amount(amount)
    provider_name = (provider_name or '').strip().lower()
    provider = providers.get(provider_name)
    if provider is None:
        raise BusinessLogicError(
            f'Payment provider "{provider_name}" is not supported',
            code='UNSUPPORTED_PROVIDER',
            payload={'provider': provider_name, 'supported': sorted(providers)}
        )

    # Phase 1: validate and reserve the attempt
    try:
        order = get_order(session, tenant_id, order_id, for_update=True)
        assert_customer_owns(session, order, context)

        if order.status != OrderStatus.PENDING:
            raise BusinessLogicError(
                f'Order {order.order_number} is {order.status.value} and cannot be paid',
                code='ORDER_NOT_PAYABLE',
                payload={'orderId': order.id, 'currentStatus': order.status.value}
            )
        if abs(order.total - amount) > AMOUNT_TOLERANCE:
            raise AmountMismatchError(order.total, amount)
        if (currency or '').strip().upper() != order.currency.upper():
            raise BusinessLogicError(
                f'Payment currency {currency} does not match order currency {order.currency}',
                code='CURRENCY_MISMATCH',
                payload={'orderCurrency': order.currency, 'currency': currency}
            )

        payment = _reserve_attempt(session, order, provider_name)
        intent = PaymentIntent(
            tenant_id=order.tenant_id,
            order_id=order.id,
            order_number=order.order_number,
            amount=order.total,
            currency=order.currency,
            customer_email=order.customer_email,
            payment_id=payment.id,
        )
        payment_id = payment.id
        session.commit()
    except Exception:
        session.rollback()
        raise

    # Phase 2: provider call, no transaction open
    try:
        result = provider.process(intent)
    except ProviderTimeoutError as e:
        logger.warning(f"Payment {payment_id} for order {intent.order_number} timed out; left PENDING")
        raise ProviderTimeoutError(e.message, payment_id=payment_id)

    # Phase 3: record the outcome
    try:
        payment = session.query(Payment).filter(Payment.id == payment_id).one()
        order = get_order(session, tenant_id, order_id, for_update=True)
        payment.processed_at = _utcnow()

        if not result.success:
            payment.status = PaymentStatus.FAILED
            payment.error_message = result.error or 'Payment declined'
            session.commit()
            logger.info(f"Payment {payment_id} for order {intent.order_number} failed: {payment.error_message}")
            raise PaymentProviderError(payment.error_message, payment_id=payment_id)

        already_paid = session.query(Payment.id).filter(
            Payment.order_id == order.id,
            Payment.status == PaymentStatus.COMPLETED,
            Payment.id != payment.id
        ).first()
        if already_paid or order.status != OrderStatus.PENDING:
            # Keep a single COMPLETED payment per order; this charge has to be refunded
            payment.status = PaymentStatus.FAILED
            payment.transaction_id = result.transaction_id
            payload = {'paymentId': payment_id, 'transactionId': result.transaction_id}
            if already_paid:
                payment.error_message = 'Order already paid; charge requires refund'
                error = BusinessLogicError(
                    f'Order {intent.order_number} was already paid',
                    status_code=409, code='DUPLICATE_PAYMENT', payload=payload
                )
            else:
                payment.error_message = f'Order {order.status.value.lower()} during payment; charge requires refund'
                payload['currentStatus'] = order.status.value
                error = BusinessLogicError(
                    f'Order {intent.order_number} is {order.status.value} and the charge must be refunded',
                    status_code=409, code='ORDER_NOT_PAYABLE', payload=payload
                )
            session.commit()
            logger.error(f"Unexpected charge {result.transaction_id} on order {intent.order_number}: "
                         f"{payment.error_message}")
            raise error

        payment.status = PaymentStatus.COMPLETED
        payment.transaction_id = result.transaction_id
        transition_order(order, OrderStatus.CONFIRMED)
        session.commit()
    except (PaymentProviderError, BusinessLogicError):
        raise
    except Exception:
        session.rollback()
        raise

    logger.info(f"Payment {payment_id} completed for order {intent.order_number} ({result.transaction_id})")
    return PaymentOutcome(order=order, payment=payment, result=result)


def payment_status(session, tenant_id, order_id, context):
    """
    Order status and payment attempts for a customer's own order.

    Raises:
        OrderNotFoundError, ForbiddenError
    """
    order = get_order(session, tenant_id, order_id)
    assert_customer_owns(session, order, context)
    payments = session.query(Payment).filter(Payment.order_id == order.id).order_by(Payment.id).all()
    return order, payments
