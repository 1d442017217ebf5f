"""Admin tooling for webhook events."""

from fastapi import APIRouter, Depends
from libs.auth.dependencies import require_admin
from libs.auth.models import AuthUser
from libs.common.errors import not_found
from libs.common.logging import get_logger
from libs.db.session import get_async_db
from libs.db.unit_of_work import UnitOfWork
from services.payments_service.repositories import WebhookRepository
from services.payments_service.schemas import WebhookAck, WebhookEventResponse
from services.payments_service.services.webhooks import (
    UNKNOWN_EVENT,
    WebhookIngestor,
)
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(prefix="/admin/razorpay", tags=["admin-razorpay"])
logger = get_logger(__name__)


@router.get("/webhooks/{event_id}", response_model=WebhookEventResponse)
async def get_webhook_event(
    event_id: str,
    _admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    async with UnitOfWork(db) as uow:
        event = await WebhookRepository(uow).by_event_id(event_id)
    if event is None:
        raise not_found("Webhook event not found", code="EVENT_NOT_FOUND")
    return WebhookEventResponse.model_validate(event)


@router.post("/webhooks/{event_id}/replay", response_model=WebhookAck)
async def replay_webhook_event(
    event_id: str,
    admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    """
    Process a logged event now, dead-lettered ones included.
    """
    logger.info(
        "Manual webhook replay requested",
        extra={"extra_fields": {"event_id": event_id, "admin": admin.user_id}},
    )
    outcome = await WebhookIngestor(db).process(event_id, force=True)
    if outcome == UNKNOWN_EVENT:
        raise not_found("Webhook event not found", code="EVENT_NOT_FOUND")
    return WebhookAck(event_id=event_id, outcome=outcome)
