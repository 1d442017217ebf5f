"""Razorpay payment flows: create order, verify client payment, reconcile.

Gateway HTTP calls are made before the database writes that depend on them,
so a gateway failure or timeout never leaves a half-written record.
"""

from dataclasses import dataclass, field
from datetime import timedelta
from decimal import Decimal
from typing import Optional

from libs.common.config import Settings, get_settings
from libs.common.currency import from_minor_units, to_minor_units
from libs.common.datetime_utils import utc_now
from libs.common.errors import bad_request, not_found
from libs.common.logging import get_logger
from libs.db.unit_of_work import UnitOfWork
from services.payments_service.models import PaymentRecord, PaymentStatus
from services.payments_service.razorpay_client import RazorpayClient
from services.payments_service.repositories import (
    PaymentRepository,
    stale_created_payment_ids,
)
from services.payments_service.services.reconciliation import (
    apply_capture,
    apply_failure,
)
from services.payments_service.signatures import verify_payment_signature
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)


@dataclass
class CreatedPayment:
    record: PaymentRecord
    key_id: str
    prefill: dict = field(default_factory=dict)

    def as_payment_info(self) -> dict:
        return {
            "razorpay_order_id": self.record.razorpay_order_id,
            "amount": self.record.amount,
            "currency": self.record.currency,
            "key_id": self.key_id,
            "prefill": self.prefill,
        }


@dataclass
class VerifiedPayment:
    razorpay_order_id: str
    razorpay_payment_id: str
    amount: Decimal
    order_ids: list[int]
    parent_order_id: Optional[str] = None
    payment_method: Optional[str] = None
    status: str = PaymentStatus.PAID.value

    @property
    def oc_order_id(self) -> Optional[int]:
        return self.order_ids[0] if self.order_ids else None


class PaymentGateway:
    def __init__(self, client: RazorpayClient, settings: Settings = None):
        self.client = client
        self.settings = settings or get_settings()

    # =========================================================================
    # Create order
    # =========================================================================

    async def create_order(
        self,
        uow: UnitOfWork,
        *,
        amount: Decimal,
        currency: str,
        customer_id: int,
        prefill: Optional[dict] = None,
        notes: Optional[dict] = None,
        order_id: Optional[int] = None,
        parent_order_id: Optional[str] = None,
    ) -> CreatedPayment:
        """Open a Razorpay order and record it as ``created``.

        The record is only written once Razorpay has answered.
        """
        amount_paise = to_minor_units(amount)
        if amount_paise <= 0:
            raise bad_request(
                "Amount must be greater than zero", "INVALID_AMOUNT", field="amount"
            )

        receipt = PaymentRecord.generate_receipt(
            self.settings.RAZORPAY_RECEIPT_PREFIX, customer_id
        )
        order_notes = {"customer_id": str(customer_id), **(notes or {})}
        gateway_order = await self.client.create_order(
            amount=amount_paise,
            currency=currency,
            receipt=receipt,
            notes=order_notes,
            payment_capture=self.settings.RAZORPAY_PAYMENT_CAPTURE,
        )

        record = await PaymentRepository(uow).add(
            PaymentRecord(
                razorpay_order_id=gateway_order.id,
                customer_id=customer_id,
                amount=gateway_order.amount,
                currency=gateway_order.currency,
                receipt=gateway_order.receipt or receipt,
                status=PaymentStatus.CREATED,
                order_id=order_id,
                parent_order_id=parent_order_id,
                notes=order_notes,
            )
        )
        logger.info(
            "Razorpay order created",
            extra={
                "extra_fields": {
                    "razorpay_order_id": record.razorpay_order_id,
                    "customer_id": customer_id,
                    "amount": record.amount,
                    "order_id": order_id,
                    "parent_order_id": parent_order_id,
                }
            },
        )
        return CreatedPayment(
            record=record, key_id=self.client.key_id, prefill=prefill or {}
        )

    # =========================================================================
    # Verify client payment
    # =========================================================================

    async def verify_payment(
        self,
        db: AsyncSession,
        *,
        razorpay_order_id: str,
        razorpay_payment_id: str,
        razorpay_signature: str,
    ) -> VerifiedPayment:
        """Check the Checkout signature, then settle the payment.

        A bad signature marks the record failed (committed) and is reported
        as 400. A gateway timeout while fetching the payment leaves the
        record ``created`` for the webhook to settle.
        """
        valid = verify_payment_signature(
            razorpay_order_id,
            razorpay_payment_id,
            razorpay_signature,
            self.settings.RAZORPAY_KEY_SECRET,
        )

        async with UnitOfWork(db) as uow:
            record = await PaymentRepository(uow).by_gateway_order_id(
                razorpay_order_id, lock=True
            )
            if record is None:
                raise not_found("Payment order not found", code="PAYMENT_NOT_FOUND")
            if not valid:
                apply_failure(
                    record,
                    payment_id=razorpay_payment_id,
                    signature=razorpay_signature,
                    error_description="Invalid payment signature",
                )
            already_settled = (
                record.status == PaymentStatus.PAID
                and record.razorpay_payment_id == razorpay_payment_id
            )

        if not valid:
            logger.warning(
                "Payment signature mismatch",
                extra={
                    "extra_fields": {
                        "razorpay_order_id": razorpay_order_id,
                        "razorpay_payment_id": razorpay_payment_id,
                    }
                },
            )
            raise bad_request(
                "Invalid payment signature",
                "INVALID_SIGNATURE",
                field="razorpay_signature",
            )

        payment_method = record.payment_method
        captured_amount = None
        if not already_settled:
            payment = await self.client.fetch_payment(razorpay_payment_id)
            if payment.order_id and payment.order_id != razorpay_order_id:
                raise bad_request(
                    "Payment does not belong to this order", "PAYMENT_ORDER_MISMATCH"
                )
            payment_method = payment.method
            captured_amount = payment.amount

        async with UnitOfWork(db) as uow:
            record = await PaymentRepository(uow).by_gateway_order_id(
                razorpay_order_id, lock=True
            )
            outcome = await apply_capture(
                uow,
                record,
                payment_id=razorpay_payment_id,
                amount=captured_amount,
                method=payment_method,
                signature=razorpay_signature,
                source="verify",
            )

        return VerifiedPayment(
            razorpay_order_id=razorpay_order_id,
            razorpay_payment_id=razorpay_payment_id,
            amount=from_minor_units(record.amount),
            order_ids=outcome.order_ids,
            parent_order_id=record.parent_order_id,
            payment_method=record.payment_method,
        )

    # =========================================================================
    # Status and reconciliation
    # =========================================================================

    async def reconcile_stale(
        self, db: AsyncSession, *, older_than_minutes: int = 30, limit: int = 50
    ) -> int:
        """Settle ``created`` records whose payment was captured but never
        confirmed by the client or a webhook. Returns how many were settled.
        """
        cutoff = utc_now() - timedelta(minutes=older_than_minutes)
        order_ids = await stale_created_payment_ids(db, cutoff, limit)
        await db.rollback()  # end the read transaction before gateway calls

        settled = 0
        for razorpay_order_id in order_ids:
            payments = await self.client.fetch_order_payments(razorpay_order_id)
            captured = next((p for p in payments if p.captured), None)
            if captured is None:
                continue
            async with UnitOfWork(db) as uow:
                record = await PaymentRepository(uow).by_gateway_order_id(
                    razorpay_order_id, lock=True
                )
                if record is None or record.status != PaymentStatus.CREATED:
                    continue
                await apply_capture(
                    uow,
                    record,
                    payment_id=captured.id,
                    amount=captured.amount,
                    method=captured.method,
                    source="reconcile",
                )
            settled += 1
        return settled
