from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Literal, NamedTuple, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator

OrderStatus = Literal["pending", "confirmed", "packed", "shipped", "delivered", "cancelled"]
PaymentMethod = Literal["online", "cod"]
DiscountType = Literal["percentage", "fixed"]


class LineKey(NamedTuple):
    product_id: str
    variant_id: Optional[str]


# Cart

class VariantInfo(BaseModel):
    variant_id: str
    attribute_name: str
    value_name: str


class CartLine(BaseModel):
    product_id: str
    name: str
    price: Decimal
    discount_percentage: Decimal = Decimal(0)
    quantity: int = Field(1, ge=1)
    image_url: Optional[str] = None
    cash_on_delivery: bool = False
    variant_info: Optional[VariantInfo] = None
    max_quantity: Optional[int] = None

    @property
    def key(self) -> LineKey:
        return LineKey(self.product_id, self.variant_info.variant_id if self.variant_info else None)

    @property
    def unit_price(self) -> Decimal:
        return self.price * (1 - self.discount_percentage / 100)

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity


class CartItemIn(BaseModel):
    product_id: str
    quantity: int = Field(1, ge=1)
    # attribute id -> attribute value id
    selection: Dict[str, str] = {}


class QuantityIn(BaseModel):
    quantity: int


class CartOut(BaseModel):
    items: List[CartLine]
    item_count: int
    subtotal: Decimal


# Coupons

class CouponIn(BaseModel):
    code: str = Field(..., min_length=1)
    discount_type: DiscountType
    discount_value: Decimal = Field(..., gt=0)
    min_order_amount: Decimal = Field(Decimal(0), ge=0)
    max_uses: Optional[int] = Field(None, ge=1)
    is_active: bool = True
    expires_at: Optional[datetime] = None

    @field_validator("code")
    @classmethod
    def upper_code(cls, v: str) -> str:
        v = v.strip().upper()
        if not v:
            raise ValueError("code must not be blank")
        return v

    @model_validator(mode="after")
    def percentage_in_range(self):
        if self.discount_type == "percentage" and self.discount_value > 100:
            raise ValueError("percentage discount cannot exceed 100")
        return self


class AppliedCoupon(BaseModel):
    id: str
    code: str
    discount_type: DiscountType
    discount_value: Decimal


class CouponApplyIn(BaseModel):
    code: str


# Checkout and orders

class CustomerInfo(BaseModel):
    name: str = ""
    phone: str = ""
    email: Optional[EmailStr] = None
    address: str = ""

    @field_validator("email", mode="before")
    @classmethod
    def blank_email_is_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v


class CheckoutIn(CustomerInfo):
    payment_method: PaymentMethod = "online"
    agree_policies: bool = False


class CheckoutSummary(BaseModel):
    subtotal: Decimal
    coupon: Optional[AppliedCoupon] = None
    coupon_discount: Decimal
    total: Decimal
    cod_available: bool


class PlacedOrder(BaseModel):
    order_id: str
    total: Decimal


class StatusIn(BaseModel):
    status: OrderStatus


class MessageIn(BaseModel):
    message: str


class OrderLookupIn(BaseModel):
    phone: str


class CustomerMessageIn(OrderLookupIn):
    message: str
