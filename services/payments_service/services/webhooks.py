"""Razorpay webhook ingestion.

Every delivery is logged verbatim (and committed) before anything else
happens. Only signature-verified events are dispatched, each under a row
lock on its ``payment_webhook_log`` row, so an event id is marked processed
at most once however often Razorpay redelivers it.

A processing failure rolls back that attempt, bumps ``retry_count`` and keeps
the event for redelivery, the replay cron or a manual replay. After
``WEBHOOK_MAX_RETRIES`` failures the event is dead-lettered and an alert is
logged; redeliveries of a dead-lettered event are acknowledged untouched.
"""

import json
from dataclasses import dataclass
from typing import Optional

from libs.common.config import Settings, get_settings
from libs.common.datetime_utils import utc_now
from libs.common.logging import get_logger
from libs.db.unit_of_work import UnitOfWork
from services.payments_service.models import (
    PaymentStatus,
    RefundRecord,
    RefundStatus,
    WebhookEvent,
    WebhookEventType,
)
from services.payments_service.repositories import (
    PaymentRepository,
    WebhookRepository,
)
from services.payments_service.services.reconciliation import (
    apply_capture,
    apply_failure,
    apply_full_refund,
)
from services.payments_service.services.refunds import (
    gateway_refund_status,
    refund_type_for,
)
from services.payments_service.signatures import verify_webhook_signature
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

# Outcomes reported back to the router
PROCESSED = "processed"
DUPLICATE = "duplicate"
IGNORED = "ignored"
FAILED = "failed"
REJECTED = "rejected"
DEAD_LETTERED = "dead_lettered"
UNKNOWN_EVENT = "unknown_event"


class WebhookProcessingError(Exception):
    """The event is valid but cannot be applied (yet)."""


@dataclass
class IngestResult:
    event_id: str
    outcome: str

    @property
    def acknowledged(self) -> bool:
        return self.outcome != REJECTED


def _entity(payload: dict, name: str) -> dict:
    return ((payload.get("payload") or {}).get(name) or {}).get("entity") or {}


def event_identity(payload: dict, header_event_id: Optional[str]) -> tuple[str, str, str]:
    """Return ``(event_id, entity_type, entity_id)`` for a webhook body.

    Razorpay sends the event id in ``X-Razorpay-Event-Id``; without it the
    id falls back to ``<event>:<entity id>``.
    """
    event_type = payload.get("event") or "unknown"
    if event_type == WebhookEventType.PAYMENT_REFUNDED.value and _entity(
        payload, "refund"
    ):
        entity_type = "refund"
    elif event_type.startswith("order.") and _entity(payload, "order"):
        entity_type = "order"
    elif _entity(payload, "payment"):
        entity_type = "payment"
    else:
        entity_type = next(iter((payload.get("payload") or {}).keys()), "")
    entity_id = _entity(payload, entity_type).get("id", "") if entity_type else ""
    event_id = header_event_id or f"{event_type}:{entity_id}"
    return event_id, entity_type, entity_id


class WebhookIngestor:
    def __init__(self, db: AsyncSession, settings: Settings = None):
        self.db = db
        self.settings = settings or get_settings()

    # =========================================================================
    # Ingestion
    # =========================================================================

    async def ingest(
        self,
        raw_body: bytes,
        signature: Optional[str],
        header_event_id: Optional[str] = None,
    ) -> IngestResult:
        raw_text = raw_body.decode("utf-8", errors="replace")
        try:
            payload = json.loads(raw_text or "{}")
        except ValueError:
            payload = {}
        if not isinstance(payload, dict):
            payload = {}

        event_id, entity_type, entity_id = event_identity(payload, header_event_id)
        verified = verify_webhook_signature(
            raw_body, signature, self.settings.RAZORPAY_WEBHOOK_SECRET
        )

        event = await self._log_delivery(
            event_id=event_id,
            event_type=payload.get("event") or "unknown",
            entity_type=entity_type,
            entity_id=entity_id,
            payload=payload,
            raw_text=raw_text,
            signature=signature,
            verified=verified,
        )
        log_fields = {
            "event_id": event_id,
            "event_type": event.event_type,
            "delivery_count": event.delivery_count,
        }

        if not verified:
            logger.warning(
                "Webhook signature verification failed",
                extra={"extra_fields": log_fields},
            )
            return IngestResult(event_id, REJECTED)
        if event.processed:
            logger.info(
                "Duplicate webhook delivery acknowledged",
                extra={"extra_fields": log_fields},
            )
            return IngestResult(event_id, DUPLICATE)
        if event.dead_lettered:
            logger.error(
                "ALERT: redelivery of dead-lettered webhook event",
                extra={
                    "extra_fields": {**log_fields, "retry_count": event.retry_count}
                },
            )
            return IngestResult(event_id, DEAD_LETTERED)

        return IngestResult(event_id, await self.process(event_id))

    async def _log_delivery(
        self,
        *,
        event_id: str,
        event_type: str,
        entity_type: str,
        entity_id: str,
        payload: dict,
        raw_text: str,
        signature: Optional[str],
        verified: bool,
    ) -> WebhookEvent:
        """Insert the delivery, or count a redelivery of a known event id."""
        for _ in range(2):
            try:
                async with UnitOfWork(self.db) as uow:
                    events = WebhookRepository(uow)
                    event = await events.by_event_id(event_id, lock=True)
                    if event is None:
                        event = await events.add(
                            WebhookEvent(
                                event_id=event_id,
                                event_type=event_type,
                                entity_type=entity_type or None,
                                entity_id=entity_id or None,
                                payload=payload,
                                raw_body=raw_text,
                                signature=signature,
                                signature_verified=verified,
                                delivery_count=1,
                            )
                        )
                    else:
                        event.delivery_count = (event.delivery_count or 0) + 1
                        if verified and not event.signature_verified:
                            # An earlier forged or corrupted copy must not shadow
                            # the genuine delivery
                            event.payload = payload
                            event.raw_body = raw_text
                            event.signature = signature
                            event.signature_verified = True
                return event
            except IntegrityError:
                # A concurrent delivery inserted the same event id first
                continue
        raise WebhookProcessingError(f"Could not log webhook event {event_id}")

    # =========================================================================
    # Processing
    # =========================================================================

    async def process(self, event_id: str, *, force: bool = False) -> str:
        """Dispatch one logged event. ``force`` also replays dead letters."""
        try:
            async with UnitOfWork(self.db) as uow:
                event = await WebhookRepository(uow).by_event_id(event_id, lock=True)
                if event is None:
                    return UNKNOWN_EVENT
                if not event.signature_verified:
                    return REJECTED
                if event.processed:
                    return DUPLICATE
                if event.dead_lettered and not force:
                    return DEAD_LETTERED

                outcome = await self._dispatch(uow, event)
                event.processed = True
                event.processed_at = utc_now()
                event.processing_error = None
                event.dead_lettered = False
        except WebhookProcessingError as exc:
            await self._record_failure(event_id, exc)
            return FAILED
        except Exception as exc:
            logger.exception(
                "Webhook processing raised",
                extra={"extra_fields": {"event_id": event_id}},
            )
            await self._record_failure(event_id, exc)
            return FAILED

        logger.info(
            "Webhook event %s",
            outcome,
            extra={"extra_fields": {"event_id": event_id}},
        )
        return outcome

    async def _record_failure(self, event_id: str, exc: Exception) -> None:
        async with UnitOfWork(self.db) as uow:
            event = await WebhookRepository(uow).by_event_id(event_id, lock=True)
            if event is None:
                return
            event.retry_count = (event.retry_count or 0) + 1
            event.processing_error = str(exc)[:2000] or exc.__class__.__name__
            if event.retry_count >= self.settings.WEBHOOK_MAX_RETRIES:
                event.dead_lettered = True
            retry_count = event.retry_count
            dead_lettered = event.dead_lettered
            event_type = event.event_type

        fields = {
            "event_id": event_id,
            "event_type": event_type,
            "retry_count": retry_count,
            "error": str(exc)[:500],
        }
        if dead_lettered:
            logger.error(
                "ALERT: webhook event dead-lettered after %d failed attempts",
                retry_count,
                extra={"extra_fields": fields},
            )
        else:
            logger.warning(
                "Webhook processing failed", extra={"extra_fields": fields}
            )

    async def _dispatch(self, uow: UnitOfWork, event: WebhookEvent) -> str:
        payload = event.payload or {}
        handlers = {
            WebhookEventType.PAYMENT_CAPTURED.value: self._on_payment_captured,
            WebhookEventType.ORDER_PAID.value: self._on_payment_captured,
            WebhookEventType.PAYMENT_FAILED.value: self._on_payment_failed,
            WebhookEventType.PAYMENT_REFUNDED.value: self._on_payment_refunded,
        }
        handler = handlers.get(event.event_type)
        if handler is None:
            logger.info(
                "Ignoring unhandled webhook event type %s",
                event.event_type,
                extra={"extra_fields": {"event_id": event.event_id}},
            )
            return IGNORED
        await handler(uow, payload)
        return PROCESSED

    # =========================================================================
    # Handlers
    # =========================================================================

    async def _on_payment_captured(self, uow: UnitOfWork, payload: dict) -> None:
        payment = _entity(payload, "payment")
        order = _entity(payload, "order")
        razorpay_order_id = payment.get("order_id") or order.get("id")
        if not razorpay_order_id or not payment.get("id"):
            raise WebhookProcessingError("Event carries no payment/order id")

        record = await PaymentRepository(uow).by_gateway_order_id(
            razorpay_order_id, lock=True
        )
        if record is None:
            raise WebhookProcessingError(
                f"No payment record for Razorpay order {razorpay_order_id}"
            )
        await apply_capture(
            uow,
            record,
            payment_id=payment["id"],
            amount=int(payment["amount"]) if payment.get("amount") is not None else None,
            method=payment.get("method"),
            source="webhook",
        )

    async def _on_payment_failed(self, uow: UnitOfWork, payload: dict) -> None:
        payment = _entity(payload, "payment")
        razorpay_order_id = payment.get("order_id")
        if not razorpay_order_id:
            raise WebhookProcessingError("Event carries no order id")
        record = await PaymentRepository(uow).by_gateway_order_id(
            razorpay_order_id, lock=True
        )
        if record is None:
            raise WebhookProcessingError(
                f"No payment record for Razorpay order {razorpay_order_id}"
            )
        apply_failure(
            record,
            payment_id=payment.get("id"),
            error_description=payment.get("error_description"),
        )

    async def _on_payment_refunded(self, uow: UnitOfWork, payload: dict) -> None:
        refund_entity = _entity(payload, "refund")
        payment_entity = _entity(payload, "payment")
        payment_id = refund_entity.get("payment_id") or payment_entity.get("id")
        if not payment_id:
            raise WebhookProcessingError("Event carries no payment id")

        payments = PaymentRepository(uow)
        record = await payments.by_gateway_payment_id(payment_id, lock=True)
        if record is None:
            raise WebhookProcessingError(f"No payment record for payment {payment_id}")
        if record.status == PaymentStatus.REFUNDED:
            return

        if refund_entity.get("id"):
            refund = await payments.refund_by_gateway_id(refund_entity["id"])
            if refund is not None:
                refund.status = RefundStatus.PROCESSED
                refund.processed_at = refund.processed_at or utc_now()
            else:
                # Refund issued outside this service (e.g. Razorpay dashboard)
                already = await payments.refunded_total(record.id)
                amount = int(refund_entity.get("amount") or 0)
                await payments.add_refund(
                    RefundRecord(
                        razorpay_refund_id=refund_entity["id"],
                        razorpay_payment_id=payment_id,
                        payment_record_id=record.id,
                        order_id=record.order_id,
                        amount=amount,
                        currency=refund_entity.get("currency") or record.currency,
                        status=gateway_refund_status(
                            refund_entity.get("status") or RefundStatus.PROCESSED.value
                        ),
                        refund_type=refund_type_for(record, amount, already),
                        notes=refund_entity.get("notes") or None,
                        processed_at=utc_now(),
                    )
                )

        refunded = max(
            await payments.refunded_total(record.id),
            int(payment_entity.get("amount_refunded") or 0),
        )
        if refunded >= record.amount:
            await apply_full_refund(uow, record, "Refund processed by Razorpay")
        else:
            record.amount_refunded = refunded
