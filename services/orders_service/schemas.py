"""Pydantic schemas for orders service."""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from services.orders_service.models import OrderStatus

# ============================================================================
# CHECKOUT SCHEMAS
# ============================================================================


class CheckoutConfirmRequest(BaseModel):
    # Validated by the checkout service so failures come back as 400s
    payment_method: str = Field(..., max_length=32)
    agree_terms: bool = False
    address_id: Optional[int] = None
    shipping_address_id: Optional[int] = None
    comment: str = Field("", max_length=2000)
    voucher_code: Optional[str] = Field(None, max_length=20)
    alternate_mobile: Optional[str] = Field(None, max_length=32)
    gst_no: Optional[str] = Field(None, max_length=32)

    @model_validator(mode="after")
    def _strip_codes(self):
        self.payment_method = self.payment_method.strip().lower()
        if self.voucher_code is not None:
            self.voucher_code = self.voucher_code.strip() or None
        return self

    @property
    def resolved_address_id(self) -> Optional[int]:
        return self.shipping_address_id or self.address_id


class PaymentPrefill(BaseModel):
    name: str = ""
    email: str = ""
    contact: str = ""


class PaymentInfo(BaseModel):
    razorpay_order_id: str
    amount: int  # paise
    currency: str
    key_id: str
    prefill: PaymentPrefill


class CheckoutConfirmResponse(BaseModel):
    success: bool = True
    payment_method: str
    order_id: Optional[int] = None
    parent_order_id: Optional[str] = None
    order_ids: list[int] = []
    total: Decimal
    payment_info: Optional[PaymentInfo] = None


# ============================================================================
# ORDER SCHEMAS
# ============================================================================


class StatusLabelled(BaseModel):
    """Adds the human label for ``order_status_id`` as ``status``."""

    order_status_id: int
    status: str = ""

    @field_validator("status", mode="before")
    @classmethod
    def _label_enum(cls, value):
        if isinstance(value, OrderStatus):
            return value.label
        return value

    @model_validator(mode="after")
    def _fill_label(self):
        if not self.status:
            self.status = OrderStatus(self.order_status_id).label
        return self


class OrderLineResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    order_product_id: int
    product_id: int
    name: str
    model: str
    quantity: int
    price: Decimal
    total: Decimal
    tax: Decimal
    options: list = []


class OrderTotalResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    code: str
    title: str
    value: Decimal
    sort_order: int


class OrderHistoryResponse(StatusLabelled):
    model_config = ConfigDict(from_attributes=True)

    notify: bool
    comment: str
    date_added: datetime


class OrderResponse(StatusLabelled):
    model_config = ConfigDict(from_attributes=True)

    order_id: int
    parent_order_id: Optional[str] = None
    vendor_id: int
    customer_id: int
    firstname: str
    lastname: str
    email: str
    telephone: str
    payment_method: str
    payment_code: str
    shipping_method: str
    shipping_city: str
    shipping_postcode: str
    comment: str
    total: Decimal
    courier_charge: Decimal
    currency_code: str
    date_added: datetime
    date_modified: datetime
    products: list[OrderLineResponse] = []
    totals: list[OrderTotalResponse] = []


class OrderSummary(StatusLabelled):
    model_config = ConfigDict(from_attributes=True)

    order_id: int
    vendor_id: int
    total: Decimal


class ParentOrderResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    parent_order_id: str
    customer_id: int
    order_ids: list[int]
    courier_charges: Decimal
    total: Decimal
    date_added: datetime
    orders: list[OrderSummary] = []


# ============================================================================
# STATUS SCHEMAS
# ============================================================================


class CancelOrderRequest(BaseModel):
    reason: str = Field("Cancelled by customer", max_length=1000)


class StatusUpdateRequest(BaseModel):
    order_status_id: int
    comment: str = Field("", max_length=2000)
    notify: bool = False
