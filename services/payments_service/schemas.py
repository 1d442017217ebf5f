"""Pydantic schemas for payments service."""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from services.payments_service.models import (
    PaymentStatus,
    RefundStatus,
    RefundType,
)

# ============================================================================
# CREATE ORDER
# ============================================================================


class CreateOrderRequest(BaseModel):
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)  # rupees
    currency: str = Field(default="INR", min_length=3, max_length=3)
    # Ignored unless the caller is an admin acting for a customer
    customer_id: Optional[int] = None


class Prefill(BaseModel):
    name: str = ""
    email: str = ""
    contact: str = ""


class CreateOrderResponse(BaseModel):
    order_id: str  # Razorpay order id
    amount: int  # paise
    currency: str
    key_id: str
    receipt: str
    prefill: Prefill


# ============================================================================
# VERIFY PAYMENT
# ============================================================================


class VerifyPaymentRequest(BaseModel):
    razorpay_order_id: str = Field(..., min_length=1, max_length=64)
    razorpay_payment_id: str = Field(..., min_length=1, max_length=64)
    razorpay_signature: str = Field(..., min_length=1, max_length=128)


class VerifyPaymentResponse(BaseModel):
    status: str
    oc_order_id: Optional[int] = None
    order_ids: list[int] = []
    parent_order_id: Optional[str] = None
    amount: Decimal
    payment_method: Optional[str] = None


# ============================================================================
# PAYMENT STATUS
# ============================================================================


class PaymentStatusResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    razorpay_order_id: str
    razorpay_payment_id: Optional[str] = None
    status: PaymentStatus
    amount: int
    amount_refunded: int
    currency: str
    receipt: str
    payment_method: Optional[str] = None
    order_id: Optional[int] = None
    parent_order_id: Optional[str] = None
    error_description: Optional[str] = None
    paid_at: Optional[datetime] = None
    created_at: datetime


# ============================================================================
# REFUNDS
# ============================================================================


class RefundRequest(BaseModel):
    payment_id: str = Field(..., min_length=1, max_length=64)
    amount: Optional[Decimal] = Field(None, gt=0, max_digits=12, decimal_places=2)
    reason: Optional[str] = Field(None, max_length=255)
    receipt: Optional[str] = Field(None, max_length=40)
    notes: Optional[dict] = None


class RefundResponse(BaseModel):
    refund_id: str
    payment_id: str
    amount: Decimal
    status: RefundStatus
    refund_type: RefundType
    payment_status: PaymentStatus
    order_ids: list[int] = []


# ============================================================================
# WEBHOOKS
# ============================================================================


class WebhookAck(BaseModel):
    received: bool = True
    event_id: str
    outcome: str


class WebhookEventResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    event_id: str
    event_type: str
    entity_type: Optional[str] = None
    entity_id: Optional[str] = None
    signature_verified: bool
    processed: bool
    processed_at: Optional[datetime] = None
    retry_count: int
    delivery_count: int
    dead_lettered: bool
    processing_error: Optional[str] = None
    created_at: datetime
