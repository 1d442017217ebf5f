"""Checkout endpoint."""

from typing import Mapping

from fastapi import APIRouter, Depends, Request
from libs.auth.dependencies import get_current_customer
from libs.auth.models import AuthUser
from libs.common.rate_limit import CHECKOUT_LIMIT, limiter
from libs.db.session import get_async_db
from services.orders_service.schemas import (
    CheckoutConfirmRequest,
    CheckoutConfirmResponse,
    PaymentInfo,
)
from services.orders_service.services.checkout import CheckoutRequest, place_order
from services.orders_service.services.settlement import (
    CashOnDelivery,
    PaymentMethod,
)
from services.payments_service.razorpay_client import (
    RazorpayClient,
    get_razorpay_client,
)
from services.payments_service.services.settlement import RazorpaySettlement
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(prefix="/checkout", tags=["checkout"])


def get_payment_methods(
    client: RazorpayClient = Depends(get_razorpay_client),
) -> Mapping[str, PaymentMethod]:
    """Payment methods offered at checkout, keyed by code."""
    methods = [CashOnDelivery(), RazorpaySettlement(client)]
    return {method.code.value: method for method in methods}


@router.post("/confirm", response_model=CheckoutConfirmResponse)
@limiter.limit(CHECKOUT_LIMIT)
async def confirm_checkout(
    request: Request,
    payload: CheckoutConfirmRequest,
    current_user: AuthUser = Depends(get_current_customer),
    db: AsyncSession = Depends(get_async_db),
    methods: Mapping[str, PaymentMethod] = Depends(get_payment_methods),
):
    """
    Turn the customer's cart into one order per vendor.

    COD orders are confirmed immediately. Razorpay orders stay pending and
    the response carries what the Checkout SDK needs to collect payment.
    """
    result = await place_order(
        db,
        CheckoutRequest(
            customer_id=current_user.customer_id,
            payment_method=payload.payment_method,
            agree_terms=payload.agree_terms,
            shipping_address_id=payload.resolved_address_id,
            comment=payload.comment,
            voucher_code=payload.voucher_code,
            alternate_mobile=payload.alternate_mobile,
            gst_no=payload.gst_no,
            ip=request.client.host if request.client else "",
            user_agent=request.headers.get("user-agent", ""),
        ),
        methods,
    )

    order_ids = result.order_ids
    return CheckoutConfirmResponse(
        payment_method=result.payment_method.value,
        order_id=order_ids[0] if result.parent_order_id is None else None,
        parent_order_id=result.parent_order_id,
        order_ids=order_ids,
        total=result.persisted.total,
        payment_info=(
            PaymentInfo(**result.payment_info) if result.payment_info else None
        ),
    )
