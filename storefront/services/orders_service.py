import logging
import secrets
import string
from typing import Optional

from storefront.core.config import ORDER_ID_LENGTH, ORDER_ID_PREFIX
from storefront.core.errors import BackendError, CouponRejected, OrderPlacementError, ValidationFailed
from storefront.db.rows import insert_rows, select_one
from storefront.models.schemas import AppliedCoupon, CartLine, CheckoutIn, CheckoutSummary, PlacedOrder
from storefront.services.cart import CartStore, ShopperSession
from storefront.services.coupons import apply_coupon, coupon_discount, increment_usage
from storefront.utils.money import quantize
from storefront.utils.phone import normalize_indian_mobile

logger = logging.getLogger(__name__)

ORDER_ID_ALPHABET = string.ascii_uppercase + string.digits
ORDER_ID_ATTEMPTS = 3


def generate_order_id(prefix: str = ORDER_ID_PREFIX, length: int = ORDER_ID_LENGTH) -> str:
    return prefix + "".join(secrets.choice(ORDER_ID_ALPHABET) for _ in range(length))


def _unused_order_id(client) -> str:
    for _ in range(ORDER_ID_ATTEMPTS):
        order_id = generate_order_id()
        if select_one(client, "orders", "id", order_id=order_id) is None:
            return order_id
        logger.warning(f"Generated order id {order_id} already taken, drawing again")
    raise BackendError("generate order id", "no free order id")


def validate_checkout(cart: CartStore, details: CheckoutIn) -> str:
    """Returns the normalised phone."""
    if not details.name.strip() or not details.phone.strip() or not details.address.strip():
        raise ValidationFailed("Please fill in all required fields")
    phone = normalize_indian_mobile(details.phone)
    if phone is None:
        raise ValidationFailed("Please enter a valid 10-digit mobile number")
    if not details.agree_policies:
        raise ValidationFailed("Please agree to the FAQs and Privacy Policy before placing your order.")
    if cart.is_empty():
        raise ValidationFailed("Your cart is empty")
    if details.payment_method == "cod" and not cart.cod_eligible():
        raise ValidationFailed("Cash on Delivery is not available for some items in your cart.")
    return phone


def refresh_coupon(client, session: ShopperSession) -> Optional[AppliedCoupon]:
    """Check the applied coupon again against the current cart; drop it if it no longer qualifies."""
    coupon = session.applied_coupon
    if coupon is None:
        return None
    try:
        fresh, _ = apply_coupon(client, coupon.code, session.cart.discounted_total())
    except CouponRejected as e:
        logger.info(f"Coupon {coupon.code} no longer applies ({e.reason}), removing it")
        session.applied_coupon = None
        raise
    session.applied_coupon = fresh
    return fresh


def checkout_summary(session: ShopperSession) -> CheckoutSummary:
    subtotal = session.cart.discounted_total()
    discount = coupon_discount(session.applied_coupon, subtotal)
    return CheckoutSummary(
        subtotal=quantize(subtotal),
        coupon=session.applied_coupon,
        coupon_discount=quantize(discount),
        total=quantize(subtotal - discount),
        cod_available=not session.cart.is_empty() and session.cart.cod_eligible(),
    )


def _item_row(order_row_id, line: CartLine):
    variant = line.variant_info
    return {
        "order_id": order_row_id,
        "product_id": line.product_id,
        "product_name": line.name,
        "product_price": str(quantize(line.unit_price)),
        "quantity": line.quantity,
        "variant_info": variant.model_dump() if variant else None,
    }


def place_order(client, session: ShopperSession, details: CheckoutIn) -> PlacedOrder:
    """Order row, then item rows, then coupon usage. The cart is cleared once the items are stored."""
    cart = session.cart
    phone = validate_checkout(cart, details)
    coupon = refresh_coupon(client, session)

    lines = cart.lines
    subtotal = cart.discounted_total()
    total = quantize(subtotal - coupon_discount(coupon, subtotal))

    try:
        order_id = _unused_order_id(client)
        order = insert_rows(client, "orders", {
            "order_id": order_id,
            "customer_name": details.name.strip(),
            "customer_phone": phone,
            "customer_email": details.email,
            "customer_address": details.address.strip(),
            "total": str(total),
            "status": "pending",
            "payment_method": details.payment_method,
        })[0]
    except BackendError as e:
        logger.error(f"Could not create order: {e.detail}")
        raise OrderPlacementError("order") from e

    try:
        insert_rows(client, "order_items", [_item_row(order["id"], line) for line in lines])
    except BackendError as e:
        logger.warning(f"Order {order_id} was stored without items and awaits reconciliation")
        raise OrderPlacementError("items", order_id) from e

    if coupon is not None:
        try:
            increment_usage(client, coupon.id)
        except BackendError as e:
            logger.warning(f"Usage of coupon {coupon.code} not counted for order {order_id}: {e.detail}")

    cart.clear()
    session.applied_coupon = None
    logger.info(f"Placed order {order_id} ({len(lines)} lines, total {total})")
    return PlacedOrder(order_id=order_id, total=total)
