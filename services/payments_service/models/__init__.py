"""Payments Service models package."""

from services.payments_service.models.core import (
    PaymentRecord,
    RefundRecord,
    WebhookEvent,
)
from services.payments_service.models.enums import (
    PaymentStatus,
    RefundStatus,
    RefundType,
    WebhookEventType,
)

__all__ = [
    "PaymentRecord",
    "PaymentStatus",
    "RefundRecord",
    "RefundStatus",
    "RefundType",
    "WebhookEvent",
    "WebhookEventType",
]
