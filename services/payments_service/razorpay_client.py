"""
Razorpay API client for orders, payments and refunds.

Provides async methods for:
- Creating gateway orders
- Fetching a payment and the payments of an order
- Issuing full or partial refunds

Amounts are always integer paise.
"""

import asyncio
from dataclasses import dataclass, field
from typing import List, Optional

import httpx
from libs.common.config import get_settings
from libs.common.errors import UpstreamError, UpstreamTimeoutError
from libs.common.logging import get_logger

logger = get_logger(__name__)


@dataclass
class GatewayOrder:
    """Razorpay order."""

    id: str
    amount: int
    currency: str
    receipt: str
    status: str  # created, attempted, paid


@dataclass
class GatewayPayment:
    """Razorpay payment."""

    id: str
    order_id: Optional[str]
    amount: int
    currency: str
    status: str  # created, authorized, captured, refunded, failed
    method: Optional[str] = None
    email: Optional[str] = None
    contact: Optional[str] = None
    amount_refunded: int = 0
    error_description: Optional[str] = None

    @property
    def captured(self) -> bool:
        return self.status == "captured"

    @classmethod
    def from_api(cls, data: dict) -> "GatewayPayment":
        return cls(
            id=data.get("id", ""),
            order_id=data.get("order_id"),
            amount=int(data.get("amount") or 0),
            currency=data.get("currency", "INR"),
            status=data.get("status", ""),
            method=data.get("method"),
            email=data.get("email"),
            contact=data.get("contact"),
            amount_refunded=int(data.get("amount_refunded") or 0),
            error_description=data.get("error_description"),
        )


@dataclass
class GatewayRefund:
    """Razorpay refund."""

    id: str
    payment_id: str
    amount: int
    currency: str
    status: str  # pending, processed, failed
    receipt: Optional[str] = None
    notes: dict = field(default_factory=dict)

    @classmethod
    def from_api(cls, data: dict) -> "GatewayRefund":
        return cls(
            id=data.get("id", ""),
            payment_id=data.get("payment_id", ""),
            amount=int(data.get("amount") or 0),
            currency=data.get("currency", "INR"),
            status=data.get("status", "pending"),
            receipt=data.get("receipt"),
            notes=data.get("notes") or {},
        )


class RazorpayError(UpstreamError):
    """Base exception for Razorpay API errors."""


class RazorpayTimeoutError(RazorpayError, UpstreamTimeoutError):
    """Razorpay did not answer within RAZORPAY_TIMEOUT_SECONDS."""


class RazorpayClient:
    """Async client for the Razorpay Orders, Payments and Refunds APIs."""

    def __init__(
        self,
        key_id: str = None,
        key_secret: str = None,
        base_url: str = None,
        timeout: float = None,
        max_retries: int = None,
        retry_delay: float = None,
        transport: httpx.AsyncBaseTransport = None,
    ):
        settings = get_settings()
        self.key_id = key_id if key_id is not None else settings.RAZORPAY_KEY_ID
        self.key_secret = (
            key_secret if key_secret is not None else settings.RAZORPAY_KEY_SECRET
        )
        self.base_url = (base_url or settings.RAZORPAY_BASE_URL).rstrip("/")
        self.timeout = timeout or settings.RAZORPAY_TIMEOUT_SECONDS
        self.max_retries = max(
            1, max_retries if max_retries is not None else settings.RAZORPAY_MAX_RETRIES
        )
        self.retry_delay = (
            retry_delay
            if retry_delay is not None
            else settings.RAZORPAY_RETRY_DELAY_SECONDS
        )
        self._transport = transport

    async def _request(
        self,
        method: str,
        endpoint: str,
        params: dict = None,
        json_data: dict = None,
        idempotent: bool = True,
    ) -> dict:
        """Make an async request to the Razorpay API, retrying transient failures.

        4xx responses are never retried. Non-idempotent calls (refunds) are
        only retried when the connection could not be opened, so a request
        the gateway may have seen is never sent twice.
        """
        if not self.key_id or not self.key_secret:
            raise RazorpayError("Razorpay credentials are not configured")

        url = f"{self.base_url}{endpoint}"
        last_error: Optional[RazorpayError] = None

        for attempt in range(1, self.max_retries + 1):
            try:
                async with httpx.AsyncClient(
                    auth=(self.key_id, self.key_secret),
                    timeout=self.timeout,
                    transport=self._transport,
                ) as client:
                    response = await client.request(
                        method=method, url=url, params=params, json=json_data
                    )
            except httpx.TimeoutException as exc:
                last_error = RazorpayTimeoutError(f"Razorpay request timed out: {exc}")
                if not idempotent and not isinstance(exc, httpx.ConnectTimeout):
                    raise last_error from exc
            except httpx.TransportError as exc:
                last_error = RazorpayError(f"Razorpay connection failed: {exc}")
                if not idempotent and not isinstance(exc, httpx.ConnectError):
                    raise last_error from exc
            else:
                data = _json_or_empty(response)
                if response.is_success:
                    return data
                error = data.get("error") or {}
                last_error = RazorpayError(
                    message=error.get("description", "Unknown Razorpay error"),
                    status_code=response.status_code,
                    response_data=data,
                )
                logger.error(
                    "Razorpay API error: %s %s",
                    response.status_code,
                    error.get("code", ""),
                    extra={
                        "extra_fields": {
                            "endpoint": endpoint,
                            "attempt": attempt,
                        }
                    },
                )
                if response.status_code < 500:
                    raise last_error

            if attempt < self.max_retries:
                logger.warning(
                    "Retrying Razorpay %s %s (attempt %d/%d)",
                    method,
                    endpoint,
                    attempt + 1,
                    self.max_retries,
                )
                await asyncio.sleep(self.retry_delay * attempt)

        raise last_error

    # =========================================================================
    # Orders
    # =========================================================================

    async def create_order(
        self,
        amount: int,
        currency: str,
        receipt: str,
        notes: dict = None,
        payment_capture: bool = True,
    ) -> GatewayOrder:
        """
        Create a Razorpay order the client SDK will collect payment against.

        Razorpay de-duplicates orders by receipt, so a retried create with
        the same receipt cannot open two orders.
        """
        data = await self._request(
            "POST",
            "/orders",
            json_data={
                "amount": amount,
                "currency": currency,
                "receipt": receipt,
                "payment_capture": 1 if payment_capture else 0,
                "notes": notes or {},
            },
        )
        return GatewayOrder(
            id=data["id"],
            amount=int(data.get("amount", amount)),
            currency=data.get("currency", currency),
            receipt=data.get("receipt", receipt),
            status=data.get("status", "created"),
        )

    async def fetch_order_payments(self, order_id: str) -> List[GatewayPayment]:
        data = await self._request("GET", f"/orders/{order_id}/payments")
        return [GatewayPayment.from_api(item) for item in data.get("items", [])]

    # =========================================================================
    # Payments
    # =========================================================================

    async def fetch_payment(self, payment_id: str) -> GatewayPayment:
        data = await self._request("GET", f"/payments/{payment_id}")
        return GatewayPayment.from_api(data)

    # =========================================================================
    # Refunds
    # =========================================================================

    async def refund_payment(
        self,
        payment_id: str,
        amount: Optional[int] = None,
        notes: dict = None,
        receipt: Optional[str] = None,
        speed: str = "normal",
    ) -> GatewayRefund:
        """
        Refund a captured payment. ``amount`` omitted refunds the remainder.
        """
        payload = {"speed": speed, "notes": notes or {}}
        if amount is not None:
            payload["amount"] = amount
        if receipt:
            payload["receipt"] = receipt

        data = await self._request(
            "POST",
            f"/payments/{payment_id}/refund",
            json_data=payload,
            idempotent=False,
        )
        return GatewayRefund.from_api(data)


def _json_or_empty(response: httpx.Response) -> dict:
    try:
        data = response.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


def get_razorpay_client() -> RazorpayClient:
    """Get a RazorpayClient instance."""
    return RazorpayClient()


def check_razorpay_configuration(settings=None) -> bool:
    """Fail fast in production when Razorpay credentials are missing.

    Elsewhere a warning is logged and gateway calls fail when attempted.
    """
    settings = settings or get_settings()
    if settings.razorpay_configured:
        return True
    if settings.ENVIRONMENT == "production":
        raise RuntimeError(
            "RAZORPAY_KEY_ID, RAZORPAY_KEY_SECRET and RAZORPAY_WEBHOOK_SECRET "
            "must be set in production"
        )
    logger.warning("Razorpay credentials are not configured")
    return False
