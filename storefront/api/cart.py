from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from storefront.api.deps import get_db, get_session, start_session
from storefront.models.schemas import CartItemIn, CartOut, LineKey, QuantityIn
from storefront.services.cart import ShopperSession, add_selection

router = APIRouter()


def _cart_out(session: ShopperSession) -> CartOut:
    cart = session.cart
    return CartOut(items=cart.lines, item_count=cart.item_count(), subtotal=cart.discounted_total())


@router.get("/", response_model=CartOut)
def get_cart(session: ShopperSession = Depends(get_session)):
    with session.lock:
        return _cart_out(session)


@router.post("/items", response_model=CartOut)
def add_item(item: CartItemIn, session: ShopperSession = Depends(start_session), client=Depends(get_db)):
    with session.lock:
        add_selection(client, session.cart, item.product_id, item.quantity, item.selection)
        return _cart_out(session)


@router.patch("/items/{product_id}", response_model=CartOut)
def update_item(product_id: str, payload: QuantityIn, variant_id: Optional[str] = None,
                session: ShopperSession = Depends(get_session)):
    key = LineKey(product_id, variant_id)
    with session.lock:
        if key not in session.cart:
            raise HTTPException(status_code=404, detail="Item not in cart")
        if payload.quantity < 1:
            session.cart.remove(key)
        else:
            session.cart.set_quantity(key, payload.quantity)
        return _cart_out(session)


@router.delete("/items/{product_id}", response_model=CartOut)
def remove_item(product_id: str, variant_id: Optional[str] = None,
                session: ShopperSession = Depends(get_session)):
    with session.lock:
        if not session.cart.remove(LineKey(product_id, variant_id)):
            raise HTTPException(status_code=404, detail="Item not in cart")
        return _cart_out(session)


@router.delete("/", response_model=CartOut)
def clear_cart(session: ShopperSession = Depends(get_session)):
    with session.lock:
        session.cart.clear()
        return _cart_out(session)
