"""Write vendor orders and their parent atomically.

Each vendor order (header, lines, vendor mirrors, totals and both "created"
history rows) is written inside its own savepoint, so a failure rolls back
only that vendor's rows. Whether one failed vendor sinks the checkout is the
caller's decision; the default is to abort.
"""

from dataclasses import asdict, dataclass, field
from decimal import Decimal
from typing import Optional, Sequence

from libs.common.datetime_utils import utc_now
from libs.common.logging import get_logger
from libs.db.unit_of_work import UnitOfWork
from services.orders_service.models import (
    Order,
    OrderHistory,
    OrderProduct,
    OrderStatus,
    OrderTotal,
    OrderVendorHistory,
    ParentOrder,
    VendorOrderProduct,
)
from services.orders_service.repositories import OrderRepository
from services.orders_service.services.cart import CartLine
from services.orders_service.services.totals import (
    LineInput,
    TotalRow,
    calculate_totals,
    grand_total,
)

logger = get_logger(__name__)

CREATED_COMMENT = "Order created"


@dataclass(frozen=True)
class AddressSnapshot:
    firstname: str = ""
    lastname: str = ""
    address_1: str = ""
    address_2: str = ""
    city: str = ""
    postcode: str = ""
    country: str = ""
    zone: str = ""

    def columns(self, prefix: str) -> dict:
        return {f"{prefix}_{name}": value for name, value in asdict(self).items()}


@dataclass(frozen=True)
class OrderHeader:
    """Everything an order snapshots at checkout time."""

    customer_id: int
    firstname: str
    lastname: str
    email: str
    telephone: str
    payment_address: AddressSnapshot
    shipping_address: AddressSnapshot
    payment_method: str
    payment_code: str
    shipping_method: str = "Courier"
    shipping_code: str = "courier.courier"
    comment: str = ""
    store_name: str = ""
    store_url: str = ""
    currency_code: str = "INR"
    ip: str = ""
    user_agent: str = ""
    alternate_mobile: Optional[str] = None
    gst_no: Optional[str] = None


@dataclass
class VendorOrderPlan:
    vendor_id: int
    lines: list[CartLine]
    totals: list[TotalRow]
    courier_charge: Decimal = Decimal("0")

    @property
    def total(self) -> Decimal:
        return grand_total(self.totals)


@dataclass
class PersistResult:
    orders: list[Order] = field(default_factory=list)
    parent_order_id: Optional[str] = None
    failed_vendor_ids: list[int] = field(default_factory=list)

    @property
    def order_ids(self) -> list[int]:
        return [order.order_id for order in self.orders]

    @property
    def total(self) -> Decimal:
        return sum((order.total for order in self.orders), Decimal("0"))


class VendorOrderFailed(Exception):
    def __init__(self, vendor_id: int, cause: Exception):
        self.vendor_id = vendor_id
        self.cause = cause
        super().__init__(f"Order for vendor {vendor_id} could not be written: {cause}")


class OrderPersister:
    def __init__(self, uow: UnitOfWork):
        self.uow = uow
        self.orders = OrderRepository(uow)

    async def persist_checkout(
        self,
        header: OrderHeader,
        plans: Sequence[VendorOrderPlan],
        *,
        abort_on_vendor_failure: bool = True,
    ) -> PersistResult:
        """Write one order per plan; more than one plan gets a parent order."""
        if not plans:
            raise ValueError("Nothing to persist")

        result = PersistResult()
        parent: Optional[ParentOrder] = None
        if len(plans) > 1:
            parent = await self.orders.add_parent(
                ParentOrder(
                    parent_order_id=ParentOrder.generate_parent_order_id(),
                    customer_id=header.customer_id,
                    firstname=header.firstname,
                    lastname=header.lastname,
                    email=header.email,
                    telephone=header.telephone,
                    payment_method=header.payment_method,
                    payment_code=header.payment_code,
                    order_ids=[],
                    ip=header.ip,
                    user_agent=header.user_agent,
                )
            )
            result.parent_order_id = parent.parent_order_id

        for plan in plans:
            try:
                order = await self.persist_vendor_order(
                    header,
                    plan,
                    parent_order_id=parent.parent_order_id if parent else None,
                )
            except VendorOrderFailed as exc:
                logger.error(
                    "Vendor order write failed",
                    extra={
                        "extra_fields": {
                            "vendor_id": exc.vendor_id,
                            "parent_order_id": result.parent_order_id,
                        }
                    },
                )
                if abort_on_vendor_failure:
                    raise
                result.failed_vendor_ids.append(exc.vendor_id)
                continue
            result.orders.append(order)

        if parent is not None:
            await self.orders.finalize_parent(
                parent,
                result.order_ids,
                courier_charges=sum(
                    (order.courier_charge for order in result.orders), Decimal("0")
                ),
                total=result.total,
            )

        logger.info(
            "Checkout persisted %d order(s)",
            len(result.orders),
            extra={
                "extra_fields": {
                    "order_ids": result.order_ids,
                    "parent_order_id": result.parent_order_id,
                    "customer_id": header.customer_id,
                }
            },
        )
        return result

    async def persist_prepaid_order(
        self, header: OrderHeader, total: Decimal, *, vendor_id: int = 0
    ) -> Order:
        """Order for a payment taken without a cart (mobile create-order)."""
        now = utc_now()
        order = await self.orders.add_order(
            Order(
                vendor_id=vendor_id,
                invoice_prefix=f"INV-{now.year}-00",
                store_name=header.store_name,
                store_url=header.store_url,
                customer_id=header.customer_id,
                firstname=header.firstname,
                lastname=header.lastname,
                email=header.email,
                telephone=header.telephone,
                **header.payment_address.columns("payment"),
                payment_method=header.payment_method,
                payment_code=header.payment_code,
                **header.shipping_address.columns("shipping"),
                total=total,
                order_status_id=int(OrderStatus.PENDING),
                currency_code=header.currency_code,
                date_added=now,
                date_modified=now,
            )
        )
        await self.orders.add_totals(
            [
                OrderTotal(
                    order_id=order.order_id,
                    code=row.code,
                    title=row.title,
                    value=row.value,
                    sort_order=row.sort_order,
                )
                for row in calculate_totals([LineInput(unit_price=total, quantity=1)])
            ]
        )
        await self.orders.add_history(
            OrderHistory(
                order_id=order.order_id,
                order_status_id=int(OrderStatus.PENDING),
                comment=CREATED_COMMENT,
                date_added=now,
            )
        )
        return order

    async def persist_vendor_order(
        self,
        header: OrderHeader,
        plan: VendorOrderPlan,
        *,
        parent_order_id: Optional[str] = None,
    ) -> Order:
        try:
            async with self.uow.savepoint():
                return await self._write_vendor_order(header, plan, parent_order_id)
        except VendorOrderFailed:
            raise
        except Exception as exc:
            raise VendorOrderFailed(plan.vendor_id, exc) from exc

    async def _write_vendor_order(
        self,
        header: OrderHeader,
        plan: VendorOrderPlan,
        parent_order_id: Optional[str],
    ) -> Order:
        now = utc_now()
        status_id = int(OrderStatus.PENDING)
        order = await self.orders.add_order(
            Order(
                parent_order_id=parent_order_id,
                vendor_id=plan.vendor_id,
                invoice_prefix=f"INV-{now.year}-00",
                store_name=header.store_name,
                store_url=header.store_url,
                customer_id=header.customer_id,
                firstname=header.firstname,
                lastname=header.lastname,
                email=header.email,
                telephone=header.telephone,
                alternate_mobile=header.alternate_mobile,
                gst_no=header.gst_no,
                **header.payment_address.columns("payment"),
                payment_method=header.payment_method,
                payment_code=header.payment_code,
                **header.shipping_address.columns("shipping"),
                shipping_method=header.shipping_method,
                shipping_code=header.shipping_code,
                comment=header.comment,
                total=plan.total,
                courier_charge=plan.courier_charge,
                order_status_id=status_id,
                currency_code=header.currency_code,
                ip=header.ip,
                user_agent=header.user_agent,
                date_added=now,
                date_modified=now,
            )
        )

        vendor_history = []
        for cart_line in plan.lines:
            line = await self.orders.add_line(
                OrderProduct(
                    order_id=order.order_id,
                    product_id=cart_line.product_id,
                    name=cart_line.name,
                    model=cart_line.model,
                    quantity=cart_line.quantity,
                    price=cart_line.effective_unit_price,
                    total=cart_line.line_total,
                    tax=Decimal("0"),
                    options=list(cart_line.options),
                )
            )
            await self.orders.add_vendor_line(
                VendorOrderProduct(
                    vendor_id=plan.vendor_id,
                    order_id=order.order_id,
                    order_product_id=line.order_product_id,
                    product_id=line.product_id,
                    name=line.name,
                    model=line.model,
                    quantity=line.quantity,
                    price=line.price,
                    total=line.total,
                    order_status_id=status_id,
                    date_added=now,
                    date_modified=now,
                )
            )
            vendor_history.append(
                OrderVendorHistory(
                    order_id=order.order_id,
                    order_status_id=status_id,
                    vendor_id=plan.vendor_id,
                    order_product_id=line.order_product_id,
                    comment=CREATED_COMMENT,
                    date_added=now,
                )
            )

        await self.orders.add_totals(
            [
                OrderTotal(
                    order_id=order.order_id,
                    code=row.code,
                    title=row.title,
                    value=row.value,
                    sort_order=row.sort_order,
                )
                for row in plan.totals
            ]
        )
        await self.orders.add_history(
            OrderHistory(
                order_id=order.order_id,
                order_status_id=status_id,
                notify=False,
                comment=CREATED_COMMENT,
                date_added=now,
            )
        )
        await self.orders.add_vendor_history(vendor_history)
        return order
