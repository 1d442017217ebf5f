"""Razorpay endpoints used by the storefront and mobile clients."""

from fastapi import APIRouter, Depends, Request, status
from libs.auth.dependencies import get_current_user, require_admin
from libs.auth.models import AuthUser
from libs.common.errors import ApiError, bad_request, not_found
from libs.common.logging import get_logger
from libs.common.rate_limit import PAYMENT_LIMIT, REFUND_LIMIT, limiter
from libs.db.session import get_async_db
from libs.db.unit_of_work import UnitOfWork
from services.orders_service.repositories import CatalogLookup
from services.payments_service.razorpay_client import (
    RazorpayClient,
    get_razorpay_client,
)
from services.payments_service.repositories import PaymentRepository
from services.payments_service.schemas import (
    CreateOrderRequest,
    CreateOrderResponse,
    PaymentStatusResponse,
    Prefill,
    RefundRequest,
    RefundResponse,
    VerifyPaymentRequest,
    VerifyPaymentResponse,
)
from services.payments_service.services.gateway import PaymentGateway
from services.payments_service.services.refunds import RefundManager
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(prefix="/razorpay", tags=["razorpay"])
logger = get_logger(__name__)


def _acting_customer_id(current_user: AuthUser, requested: int = None) -> int:
    """Shoppers act for themselves; admins must name the customer."""
    if current_user.is_admin:
        if requested is None:
            raise bad_request(
                "customer_id is required", "CUSTOMER_REQUIRED", field="customer_id"
            )
        return requested
    if not current_user.user_id.isdigit():
        raise ApiError(
            status.HTTP_403_FORBIDDEN, "Customer account required", "FORBIDDEN"
        )
    if requested is not None and requested != current_user.customer_id:
        raise ApiError(
            status.HTTP_403_FORBIDDEN,
            "Cannot create payments for another customer",
            "FORBIDDEN",
        )
    return current_user.customer_id


@router.post("/create-order", response_model=CreateOrderResponse)
@limiter.limit(PAYMENT_LIMIT)
async def create_order(
    request: Request,
    payload: CreateOrderRequest,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
    client: RazorpayClient = Depends(get_razorpay_client),
):
    """
    Open a Razorpay order for a standalone (mobile) payment.

    The local order is created once the payment is verified.
    """
    customer_id = _acting_customer_id(current_user, payload.customer_id)
    customer = await CatalogLookup(db).customer(customer_id)
    if customer is None:
        raise not_found("Customer not found", code="CUSTOMER_NOT_FOUND")
    prefill = {
        "name": customer.full_name,
        "email": customer.email,
        "contact": customer.telephone,
    }

    async with UnitOfWork(db) as uow:
        created = await PaymentGateway(client).create_order(
            uow,
            amount=payload.amount,
            currency=payload.currency.upper(),
            customer_id=customer_id,
            prefill=prefill,
            notes={"source": "mobile"},
        )

    return CreateOrderResponse(
        order_id=created.record.razorpay_order_id,
        amount=created.record.amount,
        currency=created.record.currency,
        key_id=created.key_id,
        receipt=created.record.receipt,
        prefill=Prefill(**prefill),
    )


@router.post("/verify-payment", response_model=VerifyPaymentResponse)
@limiter.limit(PAYMENT_LIMIT)
async def verify_payment(
    request: Request,
    payload: VerifyPaymentRequest,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
    client: RazorpayClient = Depends(get_razorpay_client),
):
    """
    Verify the Checkout signature and settle the payment.

    A tampered signature marks the payment failed and returns 400.
    """
    verified = await PaymentGateway(client).verify_payment(
        db,
        razorpay_order_id=payload.razorpay_order_id,
        razorpay_payment_id=payload.razorpay_payment_id,
        razorpay_signature=payload.razorpay_signature,
    )
    return VerifyPaymentResponse(
        status=verified.status,
        oc_order_id=verified.oc_order_id,
        order_ids=verified.order_ids,
        parent_order_id=verified.parent_order_id,
        amount=verified.amount,
        payment_method=verified.payment_method,
    )


@router.get(
    "/payment-status/{razorpay_order_id}", response_model=PaymentStatusResponse
)
async def get_payment_status(
    razorpay_order_id: str,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    async with UnitOfWork(db) as uow:
        record = await PaymentRepository(uow).by_gateway_order_id(razorpay_order_id)
    if record is None or not (
        current_user.is_admin or str(record.customer_id) == current_user.user_id
    ):
        raise not_found("Payment order not found", code="PAYMENT_NOT_FOUND")
    return PaymentStatusResponse.model_validate(record)


@router.post("/refund", response_model=RefundResponse)
@limiter.limit(REFUND_LIMIT)
async def create_refund(
    request: Request,
    payload: RefundRequest,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
    client: RazorpayClient = Depends(get_razorpay_client),
):
    """
    Refund a paid payment in full (no amount) or in part (admin only).
    """
    result = await RefundManager(client).create_refund(
        db,
        payment_id=payload.payment_id,
        amount=payload.amount,
        reason=payload.reason,
        receipt=payload.receipt,
        notes={**(payload.notes or {}), "initiated_by": current_user.user_id},
    )
    return RefundResponse(
        refund_id=result.refund.razorpay_refund_id,
        payment_id=result.refund.razorpay_payment_id,
        amount=result.amount,
        status=result.refund.status,
        refund_type=result.refund.refund_type,
        payment_status=result.payment_status,
        order_ids=result.order_ids,
    )
