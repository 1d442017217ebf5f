"""Razorpay webhook receiver."""

from fastapi import APIRouter, Depends, Header, Request
from libs.common.errors import bad_request
from libs.common.logging import get_logger
from libs.db.session import get_async_db
from services.payments_service.schemas import WebhookAck
from services.payments_service.services.webhooks import WebhookIngestor
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(prefix="/razorpay", tags=["razorpay-webhooks"])
logger = get_logger(__name__)


@router.post("/webhook", response_model=WebhookAck)
async def razorpay_webhook(
    request: Request,
    x_razorpay_signature: str = Header(None),
    x_razorpay_event_id: str = Header(None),
    db: AsyncSession = Depends(get_async_db),
):
    """
    Handle Razorpay webhook events.

    The raw body is logged and its HMAC checked before anything is parsed
    into state. Once a verified delivery is logged the response is 200 even
    if processing failed, so Razorpay does not retry a fault we already track.
    """
    raw_body = await request.body()
    result = await WebhookIngestor(db).ingest(
        raw_body, x_razorpay_signature, x_razorpay_event_id
    )
    if not result.acknowledged:
        raise bad_request("Invalid webhook signature", "INVALID_SIGNATURE")
    return WebhookAck(event_id=result.event_id, outcome=result.outcome)
