"""Coupon validation, discount computation and usage counting."""
import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from storefront.core.config import COUPON_INCREMENT_RETRIES
from storefront.core.errors import CouponRejected, NotFound, ValidationFailed
from storefront.db.rows import delete_rows, insert_rows, select_one, select_rows, update_rows
from storefront.models.schemas import AppliedCoupon, CouponIn
from storefront.utils.money import format_amount, to_decimal

logger = logging.getLogger(__name__)


def parse_timestamp(value) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        ts = value
    else:
        ts = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


def coupon_discount(coupon: Optional[AppliedCoupon], subtotal: Decimal) -> Decimal:
    """Discount for ``subtotal``; never negative, never more than the subtotal."""
    if coupon is None or subtotal <= 0:
        return Decimal(0)
    if coupon.discount_type == "percentage":
        discount = subtotal * coupon.discount_value / 100
    else:
        discount = coupon.discount_value
    return max(Decimal(0), min(discount, subtotal))


def apply_coupon(client, code: str, subtotal: Decimal, now: Optional[datetime] = None) -> Tuple[AppliedCoupon, Decimal]:
    """Checks run in order and the first failure wins. Nothing is written."""
    code = (code or "").strip().upper()
    if not code:
        raise ValidationFailed("Please enter a coupon code")

    coupon = select_one(client, "coupons", code=code, is_active=True)
    if not coupon:
        raise CouponRejected("invalid_code", "Invalid coupon code")

    now = now or datetime.now(timezone.utc)
    expires_at = parse_timestamp(coupon.get("expires_at"))
    if expires_at is not None and expires_at < now:
        raise CouponRejected("expired", "This coupon has expired")

    max_uses = coupon.get("max_uses")
    if max_uses and (coupon.get("used_count") or 0) >= max_uses:
        raise CouponRejected("usage_limit_reached", "This coupon has reached its usage limit")

    min_order = to_decimal(coupon.get("min_order_amount"))
    if min_order and subtotal < min_order:
        raise CouponRejected(
            "minimum_order_not_met", f"Minimum order amount is ₹{format_amount(min_order)}"
        )

    applied = AppliedCoupon(
        id=str(coupon["id"]),
        code=coupon["code"],
        discount_type=coupon["discount_type"],
        discount_value=to_decimal(coupon["discount_value"]),
    )
    return applied, coupon_discount(applied, subtotal)


def increment_usage(client, coupon_id: str, retries: int = COUPON_INCREMENT_RETRIES) -> bool:
    """Compare-and-swap on ``used_count``, refused at ``max_uses``. False when nothing was counted."""
    for attempt in range(1, retries + 1):
        row = select_one(client, "coupons", "id,used_count,max_uses", id=coupon_id)
        if row is None:
            logger.warning(f"Coupon {coupon_id} vanished before its usage could be counted")
            return False
        seen = row.get("used_count")
        used = seen or 0
        if row.get("max_uses") and used >= row["max_uses"]:
            logger.warning(f"Coupon {coupon_id} already at its usage cap ({used}), not counting")
            return False
        if update_rows(client, "coupons", {"used_count": used + 1}, id=coupon_id, used_count=seen):
            return True
        logger.info(f"used_count of coupon {coupon_id} moved, retrying ({attempt}/{retries})")
    logger.warning(f"Gave up counting usage of coupon {coupon_id} after {retries} attempts")
    return False


# Admin console

def _coupon_row(payload: CouponIn) -> Dict[str, Any]:
    return payload.model_dump(mode="json")


def list_coupons(client) -> List[Dict[str, Any]]:
    return select_rows(client, "coupons", order_by="created_at", desc=True)


def create_coupon(client, payload: CouponIn) -> Dict[str, Any]:
    if select_one(client, "coupons", "id", code=payload.code):
        raise ValidationFailed(f"Coupon code {payload.code} already exists")
    row = _coupon_row(payload)
    row["used_count"] = 0
    return insert_rows(client, "coupons", row)[0]


def update_coupon(client, coupon_id: str, payload: CouponIn) -> Dict[str, Any]:
    clash = select_one(client, "coupons", "id", code=payload.code)
    if clash and str(clash["id"]) != str(coupon_id):
        raise ValidationFailed(f"Coupon code {payload.code} already exists")
    rows = update_rows(client, "coupons", _coupon_row(payload), id=coupon_id)
    if not rows:
        raise NotFound("Coupon not found")
    return rows[0]


def delete_coupon(client, coupon_id: str):
    if not delete_rows(client, "coupons", id=coupon_id):
        raise NotFound("Coupon not found")
