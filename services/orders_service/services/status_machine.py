"""Order status lifecycle.

``StatusStateMachine.transition`` is the only code path that writes
``order.order_status_id``. A transition updates, in the caller's unit of
work:

* the order's status and ``date_modified``
* one ``order_history`` row
* every ``vendor_order_product`` row of the order
* one ``order_vendorhistory`` row per vendor line

so the customer log, the vendor mirror and the vendor log always agree.
"""

from typing import Optional, Sequence

from libs.common.datetime_utils import utc_now
from libs.common.errors import ApiError, not_found
from libs.common.logging import get_logger
from libs.db.unit_of_work import UnitOfWork
from services.orders_service.models import (
    Order,
    OrderHistory,
    OrderStatus,
    OrderVendorHistory,
)
from services.orders_service.repositories import OrderRepository

logger = get_logger(__name__)

ALLOWED_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: frozenset(
        {OrderStatus.PROCESSING, OrderStatus.CANCELLED, OrderStatus.REFUNDED}
    ),
    OrderStatus.PROCESSING: frozenset(
        {OrderStatus.SHIPPED, OrderStatus.CANCELLED, OrderStatus.REFUNDED}
    ),
    OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED, OrderStatus.REFUNDED}),
    OrderStatus.DELIVERED: frozenset({OrderStatus.REFUNDED}),
    OrderStatus.CANCELLED: frozenset({OrderStatus.REFUNDED}),
    OrderStatus.REFUNDED: frozenset(),
}


class InvalidTransitionError(ApiError):
    def __init__(self, current: OrderStatus, target: OrderStatus):
        super().__init__(
            status_code=400,
            message=(
                f"Order cannot move from {current.label.lower()} "
                f"to {target.label.lower()}"
            ),
            code="INVALID_STATUS_TRANSITION",
        )
        self.current = current
        self.target = target


def can_transition(current: OrderStatus, target: OrderStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


class StatusStateMachine:
    def __init__(self, uow: UnitOfWork):
        self.uow = uow
        self.orders = OrderRepository(uow)

    async def transition(
        self,
        order_id: int,
        target: OrderStatus,
        comment: str = "",
        *,
        notify: bool = False,
        lock: bool = False,
    ) -> Order:
        """Move one order to ``target``.

        Setting the status an order already has is a no-op, so repeated
        reconciliation of the same payment converges. ``lock`` re-reads the
        order under a row lock for check-then-act callers.
        """
        order = (
            await self.orders.get_for_update(order_id)
            if lock
            else await self.orders.get(order_id)
        )
        if order is None:
            raise not_found(f"Order {order_id} not found", code="ORDER_NOT_FOUND")
        return await self.apply(order, target, comment, notify=notify)

    async def transition_many(
        self,
        order_ids: Sequence[int],
        target: OrderStatus,
        comment: str = "",
        *,
        notify: bool = False,
        lock: bool = False,
    ) -> list[Order]:
        orders = await self.orders.list_by_ids(order_ids, lock=lock)
        missing = set(order_ids) - {order.order_id for order in orders}
        if missing:
            raise not_found(
                f"Order(s) not found: {', '.join(str(i) for i in sorted(missing))}",
                code="ORDER_NOT_FOUND",
            )
        return [
            await self.apply(order, target, comment, notify=notify)
            for order in orders
        ]

    async def apply(
        self,
        order: Order,
        target: OrderStatus,
        comment: str = "",
        *,
        notify: bool = False,
    ) -> Order:
        current = OrderStatus(order.order_status_id)
        target = OrderStatus(target)
        if current == target:
            return order
        if not can_transition(current, target):
            raise InvalidTransitionError(current, target)

        now = utc_now()
        order.order_status_id = int(target)
        order.date_modified = now

        await self.orders.add_history(
            OrderHistory(
                order_id=order.order_id,
                order_status_id=int(target),
                notify=notify,
                comment=comment,
                date_added=now,
            )
        )

        vendor_lines = await self.orders.vendor_lines(order.order_id)
        for line in vendor_lines:
            line.order_status_id = int(target)
            line.date_modified = now
        await self.orders.add_vendor_history(
            [
                OrderVendorHistory(
                    order_id=order.order_id,
                    order_status_id=int(target),
                    vendor_id=line.vendor_id,
                    order_product_id=line.order_product_id,
                    comment=comment,
                    date_added=now,
                )
                for line in vendor_lines
            ]
        )

        logger.info(
            "Order %s status %s -> %s",
            order.order_id,
            current.name,
            target.name,
            extra={
                "extra_fields": {
                    "order_id": order.order_id,
                    "from_status": int(current),
                    "to_status": int(target),
                }
            },
        )
        return order


async def cancel_order(
    uow: UnitOfWork,
    order_id: int,
    *,
    comment: str = "Cancelled by customer",
    customer_id: Optional[int] = None,
) -> Order:
    """Cancel under a row lock; only pending and processing orders qualify."""
    orders = OrderRepository(uow)
    order = await orders.get_for_update(order_id)
    if order is None or (customer_id is not None and order.customer_id != customer_id):
        raise not_found(f"Order {order_id} not found", code="ORDER_NOT_FOUND")
    current = OrderStatus(order.order_status_id)
    if current == OrderStatus.CANCELLED:
        return order
    if current not in (OrderStatus.PENDING, OrderStatus.PROCESSING):
        raise InvalidTransitionError(current, OrderStatus.CANCELLED)
    return await StatusStateMachine(uow).apply(
        order, OrderStatus.CANCELLED, comment, notify=True
    )
