"""Razorpay as a checkout payment method."""

from typing import Optional

from libs.common.config import Settings
from libs.db.unit_of_work import UnitOfWork
from services.orders_service.models import PaymentMethodCode
from services.orders_service.services.persister import OrderHeader, PersistResult
from services.payments_service.razorpay_client import RazorpayClient
from services.payments_service.services.gateway import PaymentGateway


class RazorpaySettlement:
    """Opens a Razorpay order for the checkout total.

    Orders stay pending until the payment is verified or captured by webhook.
    """

    code = PaymentMethodCode.RAZORPAY
    collects_upfront = True

    def __init__(self, client: RazorpayClient, settings: Settings = None):
        self.gateway = PaymentGateway(client, settings)

    @property
    def title(self) -> str:
        return self.code.title

    async def settle(
        self, uow: UnitOfWork, header: OrderHeader, result: PersistResult
    ) -> Optional[dict]:
        single = result.parent_order_id is None and len(result.orders) == 1
        created = await self.gateway.create_order(
            uow,
            amount=result.total,
            currency=header.currency_code,
            customer_id=header.customer_id,
            prefill={
                "name": f"{header.firstname} {header.lastname}".strip(),
                "email": header.email,
                "contact": header.telephone,
            },
            notes={
                "order_ids": ",".join(str(order_id) for order_id in result.order_ids),
                "parent_order_id": result.parent_order_id or "",
            },
            order_id=result.order_ids[0] if single else None,
            parent_order_id=result.parent_order_id,
        )
        return created.as_payment_info()
