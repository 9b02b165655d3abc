"""
Cart store over a client-side session mapping.

The cart is one blob per session, bound to a single tenant. It is read
once, changed in memory and written back whole. Product data is never
looked up here; callers pass the snapshots in.
"""
import logging
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import List, MutableMapping, Optional

from commerce.exceptions import ValidationError

logger = logging.getLogger(__name__)

CART_KEY = 'cart'
MIN_QTY = 1
MAX_QTY = 99


def clamp_quantity(qty: int) -> int:
    return max(MIN_QTY, min(MAX_QTY, qty))


def _require_int(value, field_name):
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f'{field_name} must be an integer', details={field_name: value})
    return value


def _serialize_value(val):
    """Helper to ensure values are JSON serializable for the session."""
    if isinstance(val, Decimal):
        return str(val)
    return val


@dataclass
class CartItem:
    product_id: int
    qty: int
    price_snapshot: Optional[Decimal] = None
    name_snapshot: Optional[str] = None

    def to_dict(self):
        return {
            'productId': self.product_id,
            'qty': self.qty,
            'priceSnapshot': _serialize_value(self.price_snapshot),
            'nameSnapshot': self.name_snapshot,
        }

    @classmethod
    def from_dict(cls, data):
        price = data.get('priceSnapshot')
        return cls(
            product_id=int(data['productId']),
            qty=clamp_quantity(int(data['qty'])),
            price_snapshot=Decimal(str(price)) if price is not None else None,
            name_snapshot=data.get('nameSnapshot'),
        )


@dataclass
class Cart:
    tenant_slug: str
    currency: str
    items: List[CartItem] = field(default_factory=list)

    @property
    def is_empty(self):
        return not self.items

    def find(self, product_id):
        for item in self.items:
            if item.product_id == product_id:
                return item
        return None

    @property
    def item_count(self):
        return sum(item.qty for item in self.items)

    @property
    def snapshot_total(self):
        """Informational total from the price snapshots; checkout reprices."""
        return sum(
            ((item.price_snapshot or Decimal('0')) * item.qty for item in self.items),
            Decimal('0.00')
        )

    def to_dict(self):
        return {
            'tenantSlug': self.tenant_slug,
            'currency': self.currency,
            'items': [item.to_dict() for item in self.items],
        }


class CartStore:
    """Per-session cart persisted in ``storage`` (e.g. the Flask session)."""

    def __init__(self, storage: MutableMapping, currency: str = 'KWD'):
        self.storage = storage
        self.currency = currency

    def _empty(self, tenant_slug):
        return Cart(tenant_slug=tenant_slug, currency=self.currency)

    def get(self, tenant_slug: str) -> Cart:
        """Current cart for ``tenant_slug``; another tenant's cart reads as empty."""
        tenant_slug = tenant_slug.strip().lower()
        data = self.storage.get(CART_KEY)
        if not data:
            return self._empty(tenant_slug)

        if not isinstance(data, dict) or data.get('tenantSlug') != tenant_slug:
            return self._empty(tenant_slug)

        try:
            items = [CartItem.from_dict(raw) for raw in data.get('items', [])]
        except (KeyError, TypeError, ValueError, InvalidOperation) as e:
            logger.warning(f"Discarding malformed cart for {tenant_slug}: {e}")
            return self._empty(tenant_slug)

        return Cart(tenant_slug=tenant_slug, currency=data.get('currency') or self.currency, items=items)

    def save(self, cart: Cart) -> Cart:
        self.storage[CART_KEY] = cart.to_dict()
        return cart

    def add(self, tenant_slug, product_id, name_snapshot, price_snapshot, qty=1) -> Cart:
        """Add ``qty`` of a product, merging into an existing line."""
        qty = clamp_quantity(_require_int(qty, 'qty'))
        product_id = _require_int(product_id, 'productId')

        cart = self.get(tenant_slug)
        existing = cart.find(product_id)
        if existing:
            existing.qty = clamp_quantity(existing.qty + qty)
            existing.name_snapshot = name_snapshot
            existing.price_snapshot = price_snapshot
        else:
            cart.items.append(CartItem(
                product_id=product_id,
                qty=qty,
                price_snapshot=price_snapshot,
                name_snapshot=name_snapshot,
            ))
        return self.save(cart)

    def update_qty(self, tenant_slug, product_id, qty) -> Cart:
        """Set a line's quantity; zero or less removes the line."""
        qty = _require_int(qty, 'qty')
        product_id = _require_int(product_id, 'productId')

        cart = self.get(tenant_slug)
        existing = cart.find(product_id)
        if existing:
            if qty <= 0:
                cart.items.remove(existing)
            else:
                existing.qty = clamp_quantity(qty)
        return self.save(cart)

    def remove(self, tenant_slug, product_id) -> Cart:
        product_id = _require_int(product_id, 'productId')
        cart = self.get(tenant_slug)
        cart.items = [item for item in cart.items if item.product_id != product_id]
        return self.save(cart)

    def clear(self) -> None:
        self.storage.pop(CART_KEY, None)
