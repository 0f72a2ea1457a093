from fastapi import APIRouter, Depends

from storefront.api.deps import get_db
from storefront.models.schemas import CustomerMessageIn, OrderLookupIn
from storefront.services import order_lifecycle

router = APIRouter()


@router.get("/track/{order_id}")
def track(order_id: str, phone: str, client=Depends(get_db)):
    order = order_lifecycle.find_order(client, order_id, phone)
    return order_lifecycle.order_detail(client, order)


@router.post("/{order_id}/cancel")
def cancel(order_id: str, payload: OrderLookupIn, client=Depends(get_db)):
    return order_lifecycle.cancel_by_customer(client, order_id, payload.phone)


@router.post("/{order_id}/messages")
def send_message(order_id: str, payload: CustomerMessageIn, client=Depends(get_db)):
    order = order_lifecycle.find_order(client, order_id, payload.phone)
    return order_lifecycle.post_message(client, order["id"], payload.message, is_admin=False)
