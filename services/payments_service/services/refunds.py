"""Refunds against paid Razorpay payments.

The PaymentRecord row stays locked from the "is it paid, how much is left"
check until the refund is recorded, so two concurrent refund requests cannot
both pass the check. A full refund also locks the linked orders and checks
they can become ``refunded`` before Razorpay is called. Partial refunds
accumulate until the payment is fully refunded, at which point the payment
and its orders become ``refunded``.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from libs.common.currency import from_minor_units, to_minor_units
from libs.common.datetime_utils import utc_now
from libs.common.errors import bad_request, not_found
from libs.common.logging import get_logger
from libs.db.unit_of_work import UnitOfWork
from services.payments_service.models import (
    PaymentRecord,
    PaymentStatus,
    RefundRecord,
    RefundStatus,
    RefundType,
)
from services.payments_service.razorpay_client import RazorpayClient
from services.payments_service.repositories import PaymentRepository
from services.payments_service.services.reconciliation import (
    apply_full_refund,
    lock_orders_for_refund,
)
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)


@dataclass
class RefundResult:
    refund: RefundRecord
    payment_status: PaymentStatus
    order_ids: list[int]

    @property
    def amount(self) -> Decimal:
        return from_minor_units(self.refund.amount)


def refund_type_for(
    record: PaymentRecord, requested: Optional[int], already_refunded: int
) -> RefundType:
    """Full when no amount is given or the refund completes the payment."""
    if requested is None or already_refunded + requested >= record.amount:
        return RefundType.FULL
    return RefundType.PARTIAL


def gateway_refund_status(status: str) -> RefundStatus:
    try:
        return RefundStatus(status)
    except ValueError:
        return RefundStatus.PENDING


class RefundManager:
    def __init__(self, client: RazorpayClient):
        self.client = client

    async def create_refund(
        self,
        db: AsyncSession,
        *,
        payment_id: str,
        amount: Optional[Decimal] = None,
        reason: Optional[str] = None,
        receipt: Optional[str] = None,
        notes: Optional[dict] = None,
    ) -> RefundResult:
        """Refund ``amount`` rupees (or everything left) of a paid payment.

        Over-refunds are rejected before Razorpay is called.
        """
        async with UnitOfWork(db) as uow:
            payments = PaymentRepository(uow)
            record = await payments.by_gateway_payment_id(payment_id, lock=True)
            if record is None:
                raise not_found("Payment not found", code="PAYMENT_NOT_FOUND")
            if record.status != PaymentStatus.PAID:
                status = record.status.value
                raise bad_request(
                    f"Only paid payments can be refunded (status: {status})",
                    "PAYMENT_NOT_REFUNDABLE",
                    field="payment_id",
                )

            already_refunded = await payments.refunded_total(record.id)
            remaining = record.amount - already_refunded
            requested = to_minor_units(amount) if amount is not None else None
            if requested is not None and requested <= 0:
                raise bad_request(
                    "Refund amount must be greater than zero",
                    "INVALID_REFUND_AMOUNT",
                    field="amount",
                )
            if requested is not None and requested > remaining:
                raise bad_request(
                    f"Refund of {from_minor_units(requested)} exceeds the refundable "
                    f"amount {from_minor_units(remaining)}",
                    "REFUND_EXCEEDS_PAYMENT",
                    field="amount",
                )
            if remaining <= 0:
                raise bad_request(
                    "Payment has already been fully refunded",
                    "PAYMENT_NOT_REFUNDABLE",
                    field="payment_id",
                )

            refund_amount = requested if requested is not None else remaining
            refund_type = refund_type_for(record, requested, already_refunded)
            if refund_type == RefundType.FULL:
                await lock_orders_for_refund(uow, record)
            refund_notes = {
                "reason": reason or "Customer request",
                "refund_type": refund_type.value,
                **(notes or {}),
            }
            gateway_refund = await self.client.refund_payment(
                payment_id,
                amount=refund_amount,
                notes=refund_notes,
                receipt=receipt,
            )

            refund = await payments.add_refund(
                RefundRecord(
                    razorpay_refund_id=gateway_refund.id,
                    razorpay_payment_id=payment_id,
                    payment_record_id=record.id,
                    order_id=record.order_id,
                    amount=gateway_refund.amount or refund_amount,
                    currency=gateway_refund.currency or record.currency,
                    status=gateway_refund_status(gateway_refund.status),
                    refund_type=refund_type,
                    reason=reason,
                    receipt=gateway_refund.receipt or receipt,
                    notes=refund_notes,
                    processed_at=(
                        utc_now()
                        if gateway_refund.status == RefundStatus.PROCESSED.value
                        else None
                    ),
                )
            )

            order_ids: list[int] = []
            if refund_type == RefundType.FULL:
                order_ids = await apply_full_refund(
                    uow, record, f"Refunded via Razorpay ({gateway_refund.id})"
                )
            else:
                record.amount_refunded = already_refunded + refund.amount

        logger.info(
            "Refund created",
            extra={
                "extra_fields": {
                    "razorpay_payment_id": payment_id,
                    "razorpay_refund_id": refund.razorpay_refund_id,
                    "amount": refund.amount,
                    "refund_type": refund_type.value,
                    "order_ids": order_ids,
                }
            },
        )
        return RefundResult(
            refund=refund, payment_status=record.status, order_ids=order_ids
        )
