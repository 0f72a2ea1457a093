from typing import Optional

from fastapi import APIRouter, Depends

from storefront.api.deps import get_admin_user, get_db
from storefront.models.schemas import CouponIn, MessageIn, OrderStatus, StatusIn
from storefront.services import coupons, order_lifecycle

router = APIRouter(dependencies=[Depends(get_admin_user)])


@router.get("/coupons")
def list_coupons(client=Depends(get_db)):
    return coupons.list_coupons(client)


@router.post("/coupons")
def create_coupon(payload: CouponIn, client=Depends(get_db)):
    return coupons.create_coupon(client, payload)


@router.put("/coupons/{coupon_id}")
def update_coupon(coupon_id: str, payload: CouponIn, client=Depends(get_db)):
    return coupons.update_coupon(client, coupon_id, payload)


@router.delete("/coupons/{coupon_id}")
def delete_coupon(coupon_id: str, client=Depends(get_db)):
    coupons.delete_coupon(client, coupon_id)
    return {"deleted": True}


@router.get("/orders")
def list_orders(status: Optional[OrderStatus] = None, client=Depends(get_db)):
    return order_lifecycle.list_orders(client, status)


@router.get("/orders/{order_row_id}")
def get_order(order_row_id: str, client=Depends(get_db)):
    return order_lifecycle.order_detail(client, order_lifecycle.get_order(client, order_row_id))


@router.patch("/orders/{order_row_id}/status")
def update_status(order_row_id: str, payload: StatusIn, client=Depends(get_db)):
    return order_lifecycle.update_status(client, order_row_id, payload.status)


@router.delete("/orders/{order_row_id}")
def delete_order(order_row_id: str, client=Depends(get_db)):
    order_lifecycle.delete_order(client, order_row_id)
    return {"deleted": True}


@router.get("/orders/{order_row_id}/messages")
def list_messages(order_row_id: str, client=Depends(get_db)):
    order_lifecycle.get_order(client, order_row_id)
    return order_lifecycle.list_messages(client, order_row_id)


@router.post("/orders/{order_row_id}/messages")
def send_message(order_row_id: str, payload: MessageIn, client=Depends(get_db)):
    order_lifecycle.get_order(client, order_row_id)
    return order_lifecycle.post_message(client, order_row_id, payload.message, is_admin=True)


@router.post("/reconcile")
def reconcile(client=Depends(get_db)):
    return {"voided": order_lifecycle.reconcile_orphan_orders(client)}
