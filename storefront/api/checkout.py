import logging

from fastapi import APIRouter, Depends

from storefront.api.deps import get_db, get_session
from storefront.core.errors import ValidationFailed
from storefront.models.schemas import CheckoutIn, CheckoutSummary, CouponApplyIn, PlacedOrder
from storefront.services.cart import ShopperSession
from storefront.services.coupons import apply_coupon
from storefront.services.orders_service import checkout_summary, place_order, refresh_coupon

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/summary", response_model=CheckoutSummary)
def summary(session: ShopperSession = Depends(get_session), client=Depends(get_db)):
    with session.lock:
        refresh_coupon(client, session)
        return checkout_summary(session)


@router.post("/coupon", response_model=CheckoutSummary)
def apply(payload: CouponApplyIn, session: ShopperSession = Depends(get_session), client=Depends(get_db)):
    with session.lock:
        if session.cart.is_empty():
            raise ValidationFailed("Your cart is empty")
        coupon, _ = apply_coupon(client, payload.code, session.cart.discounted_total())
        session.applied_coupon = coupon
        logger.info(f"Coupon {coupon.code} applied")
        return checkout_summary(session)


@router.delete("/coupon", response_model=CheckoutSummary)
def remove(session: ShopperSession = Depends(get_session)):
    with session.lock:
        # used_count is only ever touched by a placed order
        session.applied_coupon = None
        return checkout_summary(session)


@router.post("/", response_model=PlacedOrder)
def checkout(payload: CheckoutIn, session: ShopperSession = Depends(get_session), client=Depends(get_db)):
    with session.lock:
        return place_order(client, session, payload)
