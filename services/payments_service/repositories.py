"""Data access for payment records, refunds and webhook events."""

from datetime import datetime
from typing import Optional

from libs.db.unit_of_work import Repository
from services.payments_service.models import (
    PaymentRecord,
    PaymentStatus,
    RefundRecord,
    RefundStatus,
    WebhookEvent,
)
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession


def _locked(query, lock: bool):
    if lock:
        return query.with_for_update().execution_options(populate_existing=True)
    return query


class PaymentRepository(Repository):
    async def add(self, record: PaymentRecord) -> PaymentRecord:
        self.session.add(record)
        await self.session.flush()
        return record

    async def by_gateway_order_id(
        self, razorpay_order_id: str, *, lock: bool = False
    ) -> Optional[PaymentRecord]:
        result = await self.session.execute(
            _locked(
                select(PaymentRecord).where(
                    PaymentRecord.razorpay_order_id == razorpay_order_id
                ),
                lock,
            )
        )
        return result.scalar_one_or_none()

    async def by_gateway_payment_id(
        self, razorpay_payment_id: str, *, lock: bool = False
    ) -> Optional[PaymentRecord]:
        result = await self.session.execute(
            _locked(
                select(PaymentRecord)
                .where(PaymentRecord.razorpay_payment_id == razorpay_payment_id)
                .order_by(PaymentRecord.id.desc())
                .limit(1),
                lock,
            )
        )
        return result.scalar_one_or_none()

    # ------------------------------------------------------------------
    # Refunds
    # ------------------------------------------------------------------

    async def add_refund(self, refund: RefundRecord) -> RefundRecord:
        self.session.add(refund)
        await self.session.flush()
        return refund

    async def refund_by_gateway_id(
        self, razorpay_refund_id: str
    ) -> Optional[RefundRecord]:
        return await self.session.scalar(
            select(RefundRecord).where(
                RefundRecord.razorpay_refund_id == razorpay_refund_id
            )
        )

    async def refunded_total(self, payment_record_id: int) -> int:
        """Paise refunded so far, excluding refunds the gateway rejected."""
        total = await self.session.scalar(
            select(func.coalesce(func.sum(RefundRecord.amount), 0)).where(
                RefundRecord.payment_record_id == payment_record_id,
                RefundRecord.status != RefundStatus.FAILED,
            )
        )
        return int(total or 0)


class WebhookRepository(Repository):
    async def add(self, event: WebhookEvent) -> WebhookEvent:
        self.session.add(event)
        await self.session.flush()
        return event

    async def by_event_id(
        self, event_id: str, *, lock: bool = False
    ) -> Optional[WebhookEvent]:
        result = await self.session.execute(
            _locked(select(WebhookEvent).where(WebhookEvent.event_id == event_id), lock)
        )
        return result.scalar_one_or_none()


async def pending_webhook_event_ids(
    session: AsyncSession, limit: int = 100
) -> list[str]:
    """Verified, unprocessed, live events awaiting another processing attempt."""
    result = await session.execute(
        select(WebhookEvent.event_id)
        .where(
            WebhookEvent.signature_verified.is_(True),
            WebhookEvent.processed.is_(False),
            WebhookEvent.dead_lettered.is_(False),
        )
        .order_by(WebhookEvent.created_at)
        .limit(limit)
    )
    return list(result.scalars().all())


async def stale_created_payment_ids(
    session: AsyncSession, older_than: datetime, limit: int = 50
) -> list[str]:
    """Gateway order ids still ``created`` after ``older_than``."""
    result = await session.execute(
        select(PaymentRecord.razorpay_order_id)
        .where(
            PaymentRecord.status == PaymentStatus.CREATED,
            PaymentRecord.created_at < older_than,
        )
        .order_by(PaymentRecord.created_at)
        .limit(limit)
    )
    return list(result.scalars().all())
