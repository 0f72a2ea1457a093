"""Order status changes, tracking, messages and cleanup after placement."""
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from storefront.core.config import ORPHAN_ORDER_GRACE_SECONDS
from storefront.core.errors import InvalidStatusTransition, NotFound, OrderNotDeletable, ValidationFailed
from storefront.db.rows import delete_rows, insert_rows, select_one, select_rows, update_rows
from storefront.services.coupons import parse_timestamp
from storefront.utils.phone import normalize_indian_mobile

logger = logging.getLogger(__name__)

ORDER_STATUSES = ("pending", "confirmed", "packed", "shipped", "delivered", "cancelled")
FORWARD_FLOW = ORDER_STATUSES[:-1]
TERMINAL_STATUSES = ("delivered", "cancelled")


def can_transition(current: str, requested: str) -> bool:
    if current == requested:
        return True
    if current in TERMINAL_STATUSES or current not in FORWARD_FLOW:
        return False
    if requested == "cancelled":
        return True
    return FORWARD_FLOW.index(requested) > FORWARD_FLOW.index(current)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def get_order(client, row_id: str) -> Dict[str, Any]:
    order = select_one(client, "orders", id=row_id)
    if not order:
        raise NotFound("Order not found")
    return order


def list_orders(client, status: Optional[str] = None) -> List[Dict[str, Any]]:
    filters = {"status": status} if status else {}
    return select_rows(client, "orders", order_by="created_at", desc=True, **filters)


def find_order(client, order_id: str, phone: str) -> Dict[str, Any]:
    """Customer lookup by public order id and the phone used at checkout."""
    order = select_one(client, "orders", order_id=order_id.strip().upper())
    wanted = normalize_indian_mobile(phone)
    if not order or wanted is None or normalize_indian_mobile(order["customer_phone"]) != wanted:
        raise NotFound("Order not found")
    return order


def order_detail(client, order: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "order": order,
        "items": select_rows(client, "order_items", order_id=order["id"]),
        "messages": list_messages(client, order["id"]),
    }


def update_status(client, row_id: str, status: str) -> Dict[str, Any]:
    if status not in ORDER_STATUSES:
        raise ValidationFailed(f"Unknown order status '{status}'")
    order = get_order(client, row_id)
    if order["status"] == status:
        return order
    if not can_transition(order["status"], status):
        raise InvalidStatusTransition(order["status"], status)
    # guard on the status we read so a concurrent change is not overwritten
    rows = update_rows(
        client, "orders", {"status": status, "updated_at": _now()}, id=row_id, status=order["status"]
    )
    if not rows:
        raise InvalidStatusTransition(get_order(client, row_id)["status"], status)
    logger.info(f"Order {order['order_id']} moved {order['status']} -> {status}")
    return rows[0]


def cancel_by_customer(client, order_id: str, phone: str) -> Dict[str, Any]:
    order = find_order(client, order_id, phone)
    return update_status(client, order["id"], "cancelled")


def delete_order(client, row_id: str):
    order = get_order(client, row_id)
    if order["status"] != "delivered":
        raise OrderNotDeletable(order["status"])
    delete_rows(client, "order_messages", order_id=row_id)
    delete_rows(client, "order_items", order_id=row_id)
    delete_rows(client, "orders", id=row_id)
    logger.info(f"Deleted delivered order {order['order_id']}")


def list_messages(client, order_row_id: str) -> List[Dict[str, Any]]:
    return select_rows(client, "order_messages", order_by="created_at", order_id=order_row_id)


def post_message(client, order_row_id: str, message: str, is_admin: bool) -> Dict[str, Any]:
    text = (message or "").strip()
    if not text:
        raise ValidationFailed("Message cannot be empty")
    return insert_rows(client, "order_messages", {
        "order_id": order_row_id,
        "message": text,
        "is_admin": is_admin,
    })[0]


def reconcile_orphan_orders(
    client, now: Optional[datetime] = None, grace_seconds: int = ORPHAN_ORDER_GRACE_SECONDS
) -> List[str]:
    """
    Void pending orders that never got their items written.

    Only rows older than ``grace_seconds`` are considered so an order whose
    items are still being inserted is left alone. Returns the voided order ids.
    """
    now = now or datetime.now(timezone.utc)
    cutoff = now - timedelta(seconds=grace_seconds)
    pending = [
        o for o in select_rows(client, "orders", status="pending")
        if (parse_timestamp(o.get("created_at")) or now) <= cutoff
    ]
    if not pending:
        return []
    with_items = {
        item["order_id"]
        for item in select_rows(client, "order_items", "order_id", in_={"order_id": [o["id"] for o in pending]})
    }
    voided = []
    for order in pending:
        if order["id"] in with_items:
            continue
        if not update_rows(client, "orders", {"status": "cancelled", "updated_at": _now()},
                           id=order["id"], status="pending"):
            continue
        post_message(client, order["id"], "Order voided: no line items were recorded.", is_admin=True)
        logger.warning(f"Voided order {order['order_id']} with no items")
        voided.append(order["order_id"])
    return voided
