"""Payment method variants.

Each method settles a freshly persisted checkout in the same unit of work
that wrote the orders. Adding a method means adding a class here (or in the
service that owns the gateway) and registering it with the checkout router.
"""

from typing import Optional, Protocol

from libs.db.unit_of_work import UnitOfWork
from services.orders_service.models import OrderStatus, PaymentMethodCode
from services.orders_service.services.persister import OrderHeader, PersistResult
from services.orders_service.services.status_machine import StatusStateMachine


class PaymentMethod(Protocol):
    code: PaymentMethodCode
    # Prepaid-only products need a method that collects money up front
    collects_upfront: bool

    @property
    def title(self) -> str: ...

    async def settle(
        self, uow: UnitOfWork, header: OrderHeader, result: PersistResult
    ) -> Optional[dict]:
        """Confirm or start payment; return client payment instructions."""
        ...


class CashOnDelivery:
    code = PaymentMethodCode.COD
    collects_upfront = False

    @property
    def title(self) -> str:
        return self.code.title

    async def settle(
        self, uow: UnitOfWork, header: OrderHeader, result: PersistResult
    ) -> Optional[dict]:
        # Nothing to collect now; the order is confirmed immediately
        await StatusStateMachine(uow).transition_many(
            result.order_ids,
            OrderStatus.PROCESSING,
            "Cash on delivery order confirmed",
            notify=True,
        )
        return None
