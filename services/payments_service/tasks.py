"""Background reconciliation tasks for payments service."""

from libs.common.config import get_settings
from libs.common.logging import get_logger
from libs.db.config import AsyncSessionLocal
from services.payments_service.razorpay_client import get_razorpay_client
from services.payments_service.repositories import pending_webhook_event_ids
from services.payments_service.services.gateway import PaymentGateway
from services.payments_service.services.webhooks import (
    FAILED,
    WebhookIngestor,
)

logger = get_logger(__name__)


async def replay_pending_webhooks(limit: int = 100) -> int:
    """Retry verified webhook events that have not been processed yet.

    Returns how many were processed on this pass. Each failure counts towards
    the event's dead-letter threshold.
    """
    processed = 0
    async with AsyncSessionLocal() as db:
        event_ids = await pending_webhook_event_ids(db, limit)
        await db.rollback()

        ingestor = WebhookIngestor(db)
        for event_id in event_ids:
            outcome = await ingestor.process(event_id)
            if outcome != FAILED:
                processed += 1

    if event_ids:
        logger.info(
            "Webhook replay pass: %d/%d processed", processed, len(event_ids)
        )
    return processed


async def reconcile_stale_payments(older_than_minutes: int = 30) -> int:
    """Settle ``created`` payments Razorpay reports as captured."""
    if not get_settings().razorpay_configured:
        logger.warning("Razorpay not configured; skipping payment reconciliation")
        return 0

    async with AsyncSessionLocal() as db:
        try:
            settled = await PaymentGateway(get_razorpay_client()).reconcile_stale(
                db, older_than_minutes=older_than_minutes
            )
        except Exception as exc:
            logger.warning("Stale payment reconciliation failed: %s", exc)
            return 0

    if settled:
        logger.info("Reconciled %d stale payment(s)", settled)
    return settled
