"""Custom exceptions for the commerce platform.

Every error carries a machine-readable ``code`` and a human-readable
``message``; the Flask error handler renders them through ``to_dict``.
"""


class CommerceError(Exception):
    """Base exception for all application errors."""
    code = 'INTERNAL_ERROR'

    def __init__(self, message="An internal error occurred", status_code=500, payload=None, code=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload
        if code:
            self.code = code

    def to_dict(self):
        rv = dict(self.payload or ())
        rv['error'] = self.code
        rv['message'] = self.message
        rv['status'] = 'error'
        return rv


class UnauthenticatedError(CommerceError):
    """No verifiable identity on the request."""
    code = 'UNAUTHENTICATED'

    def __init__(self, message="Authentication required", payload=None):
        super().__init__(message, 401, payload)


class ForbiddenError(CommerceError):
    """Identity is valid but not allowed to act (wrong type, tenant or role)."""
    code = 'FORBIDDEN'

    def __init__(self, message="Access denied", code=None, payload=None):
        super().__init__(message, 403, payload, code=code)


class NotFoundError(CommerceError):
    """Exception raised when a resource is not found."""
    code = 'NOT_FOUND'

    def __init__(self, message="Resource not found", code=None, payload=None):
        super().__init__(message, 404, payload, code=code)


class TenantNotFoundError(NotFoundError):
    code = 'TENANT_NOT_FOUND'

    def __init__(self, slug):
        super().__init__(f'Tenant "{slug}" not found', payload={'tenantSlug': slug})


class OrderNotFoundError(NotFoundError):
    code = 'ORDER_NOT_FOUND'

    def __init__(self, order_id):
        super().__init__(f'Order {order_id} not found', payload={'orderId': order_id})


class ValidationError(CommerceError):
    """Malformed input or schema violation."""
    code = 'VALIDATION_ERROR'

    def __init__(self, message, details=None):
        payload = {'details': details} if details else None
        super().__init__(message, 400, payload)


class BusinessLogicError(CommerceError):
    """Exception raised for business rule violations."""
    code = 'BUSINESS_RULE_VIOLATION'

    def __init__(self, message, status_code=400, payload=None, code=None):
        super().__init__(message, status_code, payload, code=code)


class CartEmptyError(BusinessLogicError):
    code = 'CART_EMPTY'

    def __init__(self):
        super().__init__('The cart is empty')


class ProductUnavailableError(BusinessLogicError):
    """A cart line references a product that is missing or not purchasable."""
    code = 'PRODUCT_NOT_FOUND'

    def __init__(self, product_id):
        super().__init__(
            f'Product {product_id} is not available',
            payload={'productId': product_id}
        )


class InsufficientStockError(BusinessLogicError):
    """Raised when an operation fails due to lack of stock."""
    code = 'INSUFFICIENT_STOCK'

    def __init__(self, product_id, product_name, requested, available):
        message = (
            f'Insufficient stock for "{product_name}": '
            f'requested {requested}, available {available}'
        )
        super().__init__(message, payload={
            'productId': product_id,
            'requested': requested,
            'available': available,
        })


class ImmutableOrderError(BusinessLogicError):
    code = 'IMMUTABLE_ORDER'

    def __init__(self, order_id, status):
        super().__init__(
            f'Order {order_id} is {status} and can no longer change',
            payload={'orderId': order_id, 'currentStatus': status}
        )


class InvalidTransitionError(BusinessLogicError):
    code = 'INVALID_STATUS_TRANSITION'

    def __init__(self, current, requested):
        super().__init__(
            f'Cannot move order from {current} to {requested}',
            payload={'currentStatus': current, 'requestedStatus': requested}
        )


class AmountMismatchError(BusinessLogicError):
    code = 'AMOUNT_MISMATCH'

    def __init__(self, order_total, amount):
        super().__init__(
            f'Payment amount {amount} does not match order total {order_total}',
            payload={'orderTotal': str(order_total), 'amount': str(amount)}
        )


class PaymentProviderError(CommerceError):
    """The payment provider declined or failed the attempt."""
    code = 'PROVIDER_FAILURE'

    def __init__(self, message, payment_id=None):
        payload = {'paymentId': payment_id} if payment_id is not None else None
        super().__init__(message, 402, payload)


class ProviderTimeoutError(PaymentProviderError):
    """The provider did not answer in time; the outcome is unknown."""
    code = 'PROVIDER_TIMEOUT'

    def __init__(self, message="Payment provider timed out", payment_id=None):
        super().__init__(message, payment_id)
        self.status_code = 504


class StorageError(CommerceError):
    """Transient persistence failure that survived the retry budget."""
    code = 'STORAGE_ERROR'

    def __init__(self, message="Storage temporarily unavailable"):
        super().__init__(message, 503)
