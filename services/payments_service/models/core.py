import uuid
from datetime import datetime
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.db.base import Base, JSONType
from services.orders_service.models import Order, ParentOrder
from services.payments_service.models.enums import (
    PaymentStatus,
    RefundStatus,
    RefundType,
    enum_values,
)
from sqlalchemy import Boolean, DateTime
from sqlalchemy import Enum as SAEnum
from sqlalchemy import ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column


class PaymentRecord(Base):
    """A Razorpay order and what became of it.

    Amounts are integer paise. ``order_id`` links a single local order;
    ``parent_order_id`` links every child of a multi-vendor checkout.
    """

    __tablename__ = "payment_order"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    razorpay_order_id: Mapped[str] = mapped_column(
        String(64), unique=True, index=True, nullable=False
    )
    customer_id: Mapped[int] = mapped_column(Integer, index=True, nullable=False)

    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    amount_refunded: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="INR", nullable=False)
    receipt: Mapped[str] = mapped_column(String(40), unique=True, nullable=False)

    status: Mapped[PaymentStatus] = mapped_column(
        SAEnum(
            PaymentStatus,
            name="payment_order_status_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        default=PaymentStatus.CREATED,
        nullable=False,
    )

    razorpay_payment_id: Mapped[Optional[str]] = mapped_column(
        String(64), index=True, nullable=True
    )
    razorpay_signature: Mapped[Optional[str]] = mapped_column(
        String(128), nullable=True
    )
    payment_method: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)

    order_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey(Order.order_id), index=True, nullable=True
    )
    parent_order_id: Mapped[Optional[str]] = mapped_column(
        ForeignKey(ParentOrder.parent_order_id), index=True, nullable=True
    )

    notes: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)
    error_description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    paid_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )

    @property
    def refundable_amount(self) -> int:
        return self.amount - (self.amount_refunded or 0)

    @staticmethod
    def generate_receipt(prefix: str, customer_id: int) -> str:
        # Razorpay caps receipts at 40 characters
        return f"{prefix}{customer_id}_{uuid.uuid4().hex}"[:40]

    def __repr__(self):
        return f"<PaymentRecord {self.razorpay_order_id} {self.status.value}>"


class WebhookEvent(Base):
    """Every inbound webhook delivery, logged before it is processed."""

    __tablename__ = "payment_webhook_log"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    event_id: Mapped[str] = mapped_column(
        String(128), unique=True, index=True, nullable=False
    )
    event_type: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    entity_type: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    entity_id: Mapped[Optional[str]] = mapped_column(
        String(64), index=True, nullable=True
    )

    payload: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)
    raw_body: Mapped[str] = mapped_column(Text, nullable=False)
    signature: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    signature_verified: Mapped[bool] = mapped_column(Boolean, default=False)

    processed: Mapped[bool] = mapped_column(Boolean, default=False, index=True)
    processed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    retry_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    delivery_count: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    processing_error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    dead_lettered: Mapped[bool] = mapped_column(Boolean, default=False, index=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )

    def __repr__(self):
        return f"<WebhookEvent {self.event_id} processed={self.processed}>"


class RefundRecord(Base):
    __tablename__ = "payment_refund"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    razorpay_refund_id: Mapped[str] = mapped_column(
        String(64), unique=True, index=True, nullable=False
    )
    razorpay_payment_id: Mapped[str] = mapped_column(
        String(64), index=True, nullable=False
    )
    payment_record_id: Mapped[int] = mapped_column(
        ForeignKey("payment_order.id"), index=True, nullable=False
    )
    order_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey(Order.order_id), nullable=True
    )

    amount: Mapped[int] = mapped_column(Integer, nullable=False)  # paise
    currency: Mapped[str] = mapped_column(String(3), default="INR", nullable=False)
    status: Mapped[RefundStatus] = mapped_column(
        SAEnum(
            RefundStatus,
            name="payment_refund_status_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        default=RefundStatus.PENDING,
        nullable=False,
    )
    refund_type: Mapped[RefundType] = mapped_column(
        SAEnum(
            RefundType,
            name="payment_refund_type_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        nullable=False,
    )
    reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    receipt: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)
    notes: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )
    processed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    def __repr__(self):
        return f"<RefundRecord {self.razorpay_refund_id} {self.amount}>"
