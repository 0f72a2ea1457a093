"""Shopper cart state.

``CartStore`` is the only owner of cart lines. Lines are keyed by
``(product_id, variant_id or None)`` so adding the same selection twice
bumps the quantity instead of creating a second line. Callers get copies;
the only way to change a line is through the store's methods.
"""
import logging
import secrets
import threading
import time
from decimal import Decimal
from typing import Callable, Dict, List, Optional

from storefront.core.config import CART_SESSION_TTL_SECONDS
from storefront.core.errors import ValidationFailed
from storefront.models.schemas import AppliedCoupon, CartLine, LineKey
from storefront.services.variants import load_product, resolve_variant

logger = logging.getLogger(__name__)

Listener = Callable[["CartStore"], None]


class CartStore:
    def __init__(self):
        self._lines: Dict[LineKey, CartLine] = {}
        self._listeners: List[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self):
        for listener in list(self._listeners):
            listener(self)

    @staticmethod
    def _capped(line: CartLine, quantity: int) -> int:
        if line.max_quantity is not None and quantity > line.max_quantity:
            logger.info(f"Clamping quantity {quantity} to {line.max_quantity} for product {line.product_id}")
            return line.max_quantity
        return quantity

    @property
    def lines(self) -> List[CartLine]:
        return [line.model_copy(deep=True) for line in self._lines.values()]

    def get(self, key: LineKey) -> Optional[CartLine]:
        line = self._lines.get(key)
        return line.model_copy(deep=True) if line else None

    def is_empty(self) -> bool:
        return not self._lines

    def __len__(self):
        return len(self._lines)

    def __contains__(self, key):
        return key in self._lines

    def add(self, line: CartLine) -> CartLine:
        existing = self._lines.get(line.key)
        if existing is not None:
            existing.max_quantity = line.max_quantity
            existing.quantity = self._capped(existing, existing.quantity + line.quantity)
        else:
            existing = self._lines[line.key] = line.model_copy(deep=True)
            existing.quantity = self._capped(existing, existing.quantity)
        self._notify()
        return existing.model_copy(deep=True)

    def set_quantity(self, key: LineKey, quantity: int) -> bool:
        # no floor of our own: removal flows call remove()
        if quantity < 1 or key not in self._lines:
            return False
        line = self._lines[key]
        line.quantity = self._capped(line, quantity)
        self._notify()
        return True

    def remove(self, key: LineKey) -> bool:
        if self._lines.pop(key, None) is None:
            return False
        self._notify()
        return True

    def clear(self):
        if not self._lines:
            return
        self._lines.clear()
        self._notify()

    def item_count(self) -> int:
        return sum(line.quantity for line in self._lines.values())

    def discounted_total(self) -> Decimal:
        return sum((line.line_total for line in self._lines.values()), Decimal(0))

    def cod_eligible(self) -> bool:
        return all(line.cash_on_delivery is True for line in self._lines.values())


class ShopperSession:
    """One shopper's cart plus the coupon currently applied at checkout."""

    def __init__(self, token: Optional[str], last_seen: Optional[float] = None):
        self.token = token
        self.last_seen = time.monotonic() if last_seen is None else last_seen
        self.lock = threading.Lock()
        self.cart = CartStore()
        self.applied_coupon: Optional[AppliedCoupon] = None
        self.cart.subscribe(self._on_cart_change)

    def _on_cart_change(self, cart: CartStore):
        if cart.is_empty() and self.applied_coupon is not None:
            logger.info(f"Cart emptied, dropping coupon {self.applied_coupon.code}")
            self.applied_coupon = None


class SessionRegistry:
    def __init__(self, ttl: int = CART_SESSION_TTL_SECONDS, clock: Callable[[], float] = time.monotonic):
        self._sessions: Dict[str, ShopperSession] = {}
        self._ttl = ttl
        self._clock = clock
        self._lock = threading.Lock()

    def get(self, token: Optional[str]) -> Optional[ShopperSession]:
        if not token:
            return None
        with self._lock:
            session = self._sessions.get(token)
            if session is None:
                return None
            now = self._clock()
            if now - session.last_seen > self._ttl:
                del self._sessions[token]
                return None
            session.last_seen = now
            return session

    def get_or_create(self, token: Optional[str]) -> ShopperSession:
        session = self.get(token)
        if session is None:
            self.evict_idle()
            token = secrets.token_urlsafe(16)
            session = ShopperSession(token, self._clock())
            with self._lock:
                self._sessions[token] = session
        return session

    def evict_idle(self) -> int:
        with self._lock:
            cutoff = self._clock() - self._ttl
            idle = [token for token, s in self._sessions.items() if s.last_seen < cutoff]
            for token in idle:
                del self._sessions[token]
        if idle:
            logger.info(f"Evicted {len(idle)} idle cart sessions")
        return len(idle)

    def drop(self, token: str):
        with self._lock:
            self._sessions.pop(token, None)

    def __len__(self):
        return len(self._sessions)


sessions = SessionRegistry()


UNAVAILABLE_MESSAGES = {
    "sold_out": "This product is sold out",
    "unavailable": "The selected option is not available",
    "out_of_stock": "The selected option is out of stock",
}


def add_selection(client, cart: CartStore, product_id: str, quantity: int = 1, selection=None) -> CartLine:
    """Resolve price for a product selection and add it to the cart."""
    catalog = load_product(client, product_id)
    resolution = resolve_variant(catalog, selection)
    if not resolution.available:
        raise ValidationFailed(UNAVAILABLE_MESSAGES[resolution.reason or "sold_out"])

    product = catalog.product
    images = product.get("images") or []
    line = CartLine(
        product_id=str(product["id"]),
        name=product["name"],
        price=resolution.price,
        discount_percentage=resolution.discount_percentage,
        quantity=quantity,
        image_url=images[0] if images else product.get("image_url"),
        cash_on_delivery=product.get("cash_on_delivery") is True,
        variant_info=resolution.variant_info(),
        max_quantity=resolution.max_quantity,
    )
    return cart.add(line)
