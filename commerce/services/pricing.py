"""Tax and shipping policies applied at checkout."""
from decimal import Decimal, ROUND_HALF_UP

CENT = Decimal('0.01')


def quantize(amount) -> Decimal:
    return Decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP)


class PricingPolicy:
    """Computes tax and shipping for a subtotal. Subclasses override both."""

    def tax(self, tenant, subtotal: Decimal) -> Decimal:
        raise NotImplementedError

    def shipping(self, tenant, subtotal: Decimal) -> Decimal:
        raise NotImplementedError

    def totals(self, tenant, subtotal: Decimal):
        """Return (subtotal, tax, shipping, total) with total == subtotal + tax + shipping."""
        subtotal = quantize(subtotal)
        tax = quantize(self.tax(tenant, subtotal))
        shipping = quantize(self.shipping(tenant, subtotal))
        return subtotal, tax, shipping, subtotal + tax + shipping


class ZeroPricingPolicy(PricingPolicy):
    """No tax, free shipping."""

    def tax(self, tenant, subtotal):
        return Decimal('0')

    def shipping(self, tenant, subtotal):
        return Decimal('0')


class FlatRatePricingPolicy(PricingPolicy):
    """
    Reads the tenant settings:
      tax_rate                 fraction of the subtotal, e.g. "0.05"
      shipping_flat            fixed shipping fee
      free_shipping_threshold  subtotal at or above which shipping is free
    Missing keys mean zero / no threshold.
    """

    def tax(self, tenant, subtotal):
        rate = Decimal(str(tenant.setting('tax_rate', 0) or 0))
        return subtotal * rate

    def shipping(self, tenant, subtotal):
        flat = Decimal(str(tenant.setting('shipping_flat', 0) or 0))
        threshold = tenant.setting('free_shipping_threshold')
        if threshold is not None and subtotal >= Decimal(str(threshold)):
            return Decimal('0')
        return flat


def default_policy_for(tenant) -> PricingPolicy:
    """FlatRate when the tenant configured any pricing keys, else Zero."""
    settings = tenant.settings or {}
    if any(key in settings for key in ('tax_rate', 'shipping_flat')):
        return FlatRatePricingPolicy()
    return ZeroPricingPolicy()
