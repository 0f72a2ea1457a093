from dataclasses import asdict
from typing import Dict

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from storefront.api.deps import get_db
from storefront.services.variants import VariantResolution, load_product, resolve_variant

router = APIRouter()


class SelectionIn(BaseModel):
    selection: Dict[str, str] = {}


def _resolution_out(res: VariantResolution) -> dict:
    out = asdict(res)
    out["discounted_price"] = res.discounted_price
    out["stock_label"] = res.stock_label
    return out


@router.get("/{product_id}")
def get_product(product_id: str, client=Depends(get_db)):
    catalog = load_product(client, product_id)
    return {"product": catalog.product, "resolution": _resolution_out(resolve_variant(catalog))}


@router.post("/{product_id}/resolve")
def resolve(product_id: str, payload: SelectionIn, client=Depends(get_db)):
    catalog = load_product(client, product_id)
    return _resolution_out(resolve_variant(catalog, payload.selection))
