"""Variant resolution for the product detail and add-to-cart paths."""
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Optional

from storefront.core.config import FALLBACK_QUANTITY_CEILING, LOW_STOCK_THRESHOLD
from storefront.core.errors import NotFound
from storefront.db.rows import select_one, select_rows
from storefront.models.schemas import VariantInfo
from storefront.utils.money import to_decimal

logger = logging.getLogger(__name__)

SOLD_OUT_STATUSES = ("sold_out", "out_of_stock")


@dataclass
class ProductCatalog:
    product: Dict[str, Any]
    variants: List[Dict[str, Any]] = field(default_factory=list)
    attribute_values: List[Dict[str, Any]] = field(default_factory=list)
    attributes: List[Dict[str, Any]] = field(default_factory=list)


@dataclass
class VariantOption:
    value_id: str
    value: str
    variant_id: str
    price: Decimal
    stock_quantity: Optional[int]
    unavailable: bool  # flagged off by the admin
    out_of_stock: bool
    selected: bool

    @property
    def selectable(self) -> bool:
        return not self.unavailable and not self.out_of_stock


@dataclass
class AttributeOptions:
    attribute_id: str
    name: str
    icon_url: Optional[str]
    values: List[VariantOption]


@dataclass
class VariantResolution:
    price: Decimal
    discount_percentage: Decimal
    stock_quantity: Optional[int]
    available: bool
    max_quantity: int
    low_stock: bool
    variant: Optional[Dict[str, Any]] = None
    attribute_name: Optional[str] = None
    value_name: Optional[str] = None
    reason: Optional[str] = None
    selection: Dict[str, str] = field(default_factory=dict)
    options: List[AttributeOptions] = field(default_factory=list)

    @property
    def discounted_price(self) -> Decimal:
        return self.price * (1 - self.discount_percentage / 100)

    @property
    def stock_label(self) -> str:
        stock = self.stock_quantity or 0
        if not self.available:
            return "Out of Stock"
        if self.low_stock and stock > 0:
            return f"Only {stock} left!"
        if stock > 0:
            return f"{stock} in stock"
        return "In Stock"

    def variant_info(self) -> Optional[VariantInfo]:
        if self.variant is None:
            return None
        return VariantInfo(
            variant_id=str(self.variant["id"]),
            attribute_name=self.attribute_name or "",
            value_name=self.value_name or "",
        )


def is_unavailable(variant: Dict[str, Any]) -> bool:
    # a null flag counts as switched off
    return not variant.get("is_available")


def is_out_of_stock(variant: Dict[str, Any]) -> bool:
    return variant.get("stock_quantity") == 0


def load_product(client, product_id: str) -> ProductCatalog:
    product = select_one(client, "products", id=product_id)
    if not product:
        raise NotFound("Product not found")
    variants = select_rows(client, "product_variants", product_id=product_id)
    if not variants:
        return ProductCatalog(product=product)
    value_ids = {v["attribute_value_id"] for v in variants}
    attribute_values = select_rows(
        client, "product_attribute_values", order_by="sort_order", in_={"id": value_ids}
    )
    attribute_ids = {v["attribute_id"] for v in attribute_values}
    attributes = select_rows(
        client, "product_attributes", order_by="sort_order", in_={"id": attribute_ids}
    )
    return ProductCatalog(product, variants, attribute_values, attributes)


def _options(catalog: ProductCatalog, selection: Dict[str, str]) -> List[AttributeOptions]:
    by_value = {v["attribute_value_id"]: v for v in catalog.variants}
    options = []
    for attr in catalog.attributes:
        values = []
        for val in catalog.attribute_values:
            if val["attribute_id"] != attr["id"] or val["id"] not in by_value:
                continue
            variant = by_value[val["id"]]
            values.append(VariantOption(
                value_id=val["id"],
                value=val["value"],
                variant_id=str(variant["id"]),
                price=to_decimal(variant.get("price")),
                stock_quantity=variant.get("stock_quantity"),
                unavailable=is_unavailable(variant),
                out_of_stock=is_out_of_stock(variant),
                selected=selection.get(attr["id"]) == val["id"],
            ))
        if values:
            options.append(AttributeOptions(attr["id"], attr["name"], attr.get("icon_url"), values))
    return options


def _base(product: Dict[str, Any], ceiling: int, **extra) -> VariantResolution:
    stock = product.get("stock_quantity")
    return VariantResolution(
        price=to_decimal(product.get("price")),
        discount_percentage=to_decimal(product.get("discount_percentage")),
        stock_quantity=stock,
        available=product.get("stock_status") not in SOLD_OUT_STATUSES,
        max_quantity=stock or ceiling,
        low_stock=product.get("stock_status") == "low_stock",
        reason="sold_out" if product.get("stock_status") in SOLD_OUT_STATUSES else None,
        **extra,
    )


def resolve_variant(
    catalog: ProductCatalog,
    selection: Optional[Dict[str, str]] = None,
    ceiling: int = FALLBACK_QUANTITY_CEILING,
) -> VariantResolution:
    """``selection`` maps attribute id to attribute value id; the last entry picks the variant."""
    product = catalog.product
    effective = dict(selection or {})
    if not catalog.variants:
        return _base(product, ceiling, selection=effective)

    options = _options(catalog, effective)
    if len(options) == 1 and options[0].attribute_id not in effective:
        first = next((o for o in options[0].values if o.selectable), None)
        if first is not None:
            effective[options[0].attribute_id] = first.value_id
            first.selected = True

    dims = {o.attribute_id: o for o in options}
    chosen = [(attr_id, value_id) for attr_id, value_id in effective.items() if attr_id in dims]
    if not options or len(chosen) < len(dims):
        return _base(product, ceiling, selection=effective, options=options)

    attr_id, value_id = chosen[-1]
    option = next((o for o in dims[attr_id].values if o.value_id == value_id), None)
    stale = any(
        not any(o.value_id == v for o in dims[a].values) for a, v in chosen
    )
    if option is None or stale:
        logger.info(f"Selection {effective} no longer matches a variant of product {product.get('id')}")
        return _base(product, ceiling, selection=effective, options=options)

    if not option.selectable:
        # shown to the shopper, but never priced
        resolution = _base(product, ceiling, selection=effective, options=options)
        resolution.available = False
        resolution.reason = "unavailable" if option.unavailable else "out_of_stock"
        resolution.attribute_name = dims[attr_id].name
        resolution.value_name = option.value
        return resolution

    variant = next(v for v in catalog.variants if str(v["id"]) == option.variant_id)
    stock = option.stock_quantity
    return VariantResolution(
        price=option.price,
        discount_percentage=Decimal(0),
        stock_quantity=stock,
        available=True,
        max_quantity=stock or ceiling,
        low_stock=stock is not None and 0 < stock <= LOW_STOCK_THRESHOLD,
        variant=variant,
        attribute_name=dims[attr_id].name,
        value_name=option.value,
        selection=effective,
        options=options,
    )
