"""Data access for orders and the catalog tables checkout depends on."""

from datetime import datetime
from decimal import Decimal
from typing import Optional, Sequence

from libs.common.datetime_utils import utc_now
from libs.db.unit_of_work import Repository
from services.orders_service.models import (
    Address,
    CartItem,
    CourierPincodeZone,
    CourierZone,
    Customer,
    Order,
    OrderHistory,
    OrderProduct,
    OrderTotal,
    OrderVendorHistory,
    ParentOrder,
    Product,
    VendorOrderProduct,
    VendorToProduct,
    Voucher,
)
from services.orders_service.services.cart import CartLine
from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload


class OrderRepository(Repository):
    # ------------------------------------------------------------------
    # Orders
    # ------------------------------------------------------------------

    async def get(self, order_id: int) -> Optional[Order]:
        return await self.session.get(Order, order_id)

    async def get_with_details(self, order_id: int) -> Optional[Order]:
        """Order with its lines and totals eagerly loaded."""
        result = await self.session.execute(
            select(Order)
            .options(selectinload(Order.products), selectinload(Order.totals))
            .where(Order.order_id == order_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_for_update(self, order_id: int) -> Optional[Order]:
        """Load the order with a row lock, re-reading current status."""
        result = await self.session.execute(
            select(Order)
            .where(Order.order_id == order_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def list_by_ids(
        self, order_ids: Sequence[int], *, lock: bool = False
    ) -> list[Order]:
        if not order_ids:
            return []
        query = select(Order).where(Order.order_id.in_(list(order_ids)))
        if lock:
            query = query.with_for_update().execution_options(populate_existing=True)
        result = await self.session.execute(query.order_by(Order.order_id))
        return list(result.scalars().all())

    async def list_by_parent(self, parent_order_id: str) -> list[Order]:
        result = await self.session.execute(
            select(Order)
            .where(Order.parent_order_id == parent_order_id)
            .order_by(Order.order_id)
        )
        return list(result.scalars().all())

    async def add_order(self, order: Order) -> Order:
        self.session.add(order)
        await self.session.flush()
        return order

    async def is_first_order(self, customer_id: int) -> bool:
        count = await self.session.scalar(
            select(func.count(Order.order_id)).where(Order.customer_id == customer_id)
        )
        return not count

    # ------------------------------------------------------------------
    # Lines, totals, history
    # ------------------------------------------------------------------

    async def add_line(self, line: OrderProduct) -> OrderProduct:
        self.session.add(line)
        await self.session.flush()
        return line

    async def add_totals(self, totals: Sequence[OrderTotal]) -> None:
        self.session.add_all(list(totals))
        await self.session.flush()

    async def add_history(self, entry: OrderHistory) -> OrderHistory:
        self.session.add(entry)
        await self.session.flush()
        return entry

    async def lines(self, order_id: int) -> list[OrderProduct]:
        result = await self.session.execute(
            select(OrderProduct)
            .where(OrderProduct.order_id == order_id)
            .order_by(OrderProduct.order_product_id)
        )
        return list(result.scalars().all())

    async def totals(self, order_id: int) -> list[OrderTotal]:
        result = await self.session.execute(
            select(OrderTotal)
            .where(OrderTotal.order_id == order_id)
            .order_by(OrderTotal.sort_order, OrderTotal.order_total_id)
        )
        return list(result.scalars().all())

    async def history(self, order_id: int) -> list[OrderHistory]:
        result = await self.session.execute(
            select(OrderHistory)
            .where(OrderHistory.order_id == order_id)
            .order_by(OrderHistory.order_history_id)
        )
        return list(result.scalars().all())

    # ------------------------------------------------------------------
    # Vendor mirrors
    # ------------------------------------------------------------------

    async def add_vendor_line(self, line: VendorOrderProduct) -> VendorOrderProduct:
        self.session.add(line)
        await self.session.flush()
        return line

    async def add_vendor_history(self, entries: Sequence[OrderVendorHistory]) -> None:
        self.session.add_all(list(entries))
        await self.session.flush()

    async def vendor_lines(self, order_id: int) -> list[VendorOrderProduct]:
        result = await self.session.execute(
            select(VendorOrderProduct)
            .where(VendorOrderProduct.order_id == order_id)
            .order_by(VendorOrderProduct.id)
        )
        return list(result.scalars().all())

    async def vendor_history(self, order_id: int) -> list[OrderVendorHistory]:
        result = await self.session.execute(
            select(OrderVendorHistory)
            .where(OrderVendorHistory.order_id == order_id)
            .order_by(OrderVendorHistory.order_vendorhistory_id)
        )
        return list(result.scalars().all())

    # ------------------------------------------------------------------
    # Parent orders
    # ------------------------------------------------------------------

    async def get_parent(self, parent_order_id: str) -> Optional[ParentOrder]:
        return await self.session.get(ParentOrder, parent_order_id)

    async def add_parent(self, parent: ParentOrder) -> ParentOrder:
        self.session.add(parent)
        await self.session.flush()
        return parent

    async def finalize_parent(
        self,
        parent: ParentOrder,
        order_ids: Sequence[int],
        courier_charges: Decimal,
        total: Decimal,
    ) -> ParentOrder:
        parent.order_ids = list(order_ids)
        parent.courier_charges = courier_charges
        parent.total = total
        parent.date_modified = utc_now()
        await self.session.flush()
        return parent


class CatalogLookup:
    """Read access to customer, address, cart and catalog rows.

    Reads need no transaction scope; checkout validates through this before
    any unit of work is opened.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def customer(self, customer_id: int) -> Optional[Customer]:
        return await self.session.get(Customer, customer_id)

    async def address(self, address_id: int) -> Optional[Address]:
        return await self.session.get(Address, address_id)

    async def cart_lines(self, customer_id: int) -> list[CartLine]:
        """Cart rows joined to product and vendor, in cart insertion order."""
        result = await self.session.execute(
            select(CartItem, Product, VendorToProduct)
            .join(Product, Product.product_id == CartItem.product_id, isouter=True)
            .join(
                VendorToProduct,
                VendorToProduct.product_id == CartItem.product_id,
                isouter=True,
            )
            .where(CartItem.customer_id == customer_id)
            .order_by(CartItem.cart_id)
        )
        lines = []
        for cart_item, product, vendor in result.all():
            lines.append(
                CartLine(
                    cart_id=cart_item.cart_id,
                    product_id=cart_item.product_id,
                    name=product.name if product else "",
                    model=product.model if product else "",
                    quantity=cart_item.quantity,
                    unit_price=product.price if product else Decimal("0"),
                    options=list(cart_item.option or []),
                    vendor_id=vendor.vendor_id if vendor else None,
                    vendor_pincode=vendor.pincode if vendor else "",
                    stock=product.quantity if product else 0,
                    minimum=product.minimum if product else 1,
                    enabled=bool(product and product.status),
                    requires_shipping=bool(product and product.shipping),
                    no_shipping=bool(product and product.no_shipping),
                )
            )
        return lines

    async def vendor_for_product(self, product_id: int) -> Optional[int]:
        return await self.session.scalar(
            select(VendorToProduct.vendor_id).where(
                VendorToProduct.product_id == product_id
            )
        )

    async def courier_zone(
        self, origin_pincode: str, destination_pincode: str
    ) -> Optional[CourierZone]:
        return await self.session.scalar(
            select(CourierPincodeZone.zone).where(
                CourierPincodeZone.origin_pincode == origin_pincode,
                CourierPincodeZone.destination_pincode == destination_pincode,
            )
        )

    async def voucher(self, code: str) -> Optional[Voucher]:
        voucher = await self.session.scalar(
            select(Voucher).where(Voucher.code == code, Voucher.status.is_(True))
        )
        if voucher is None:
            return None
        if voucher.date_end is not None and _aware(voucher.date_end) < utc_now():
            return None
        return voucher


class CatalogWriter(Repository):
    """The two catalog side effects of a successful checkout."""

    async def decrement_stock(self, product_id: int, quantity: int) -> bool:
        """Take ``quantity`` units; False when stock ran out concurrently."""
        result = await self.session.execute(
            update(Product)
            .where(Product.product_id == product_id, Product.quantity >= quantity)
            .values(quantity=Product.quantity - quantity)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def clear_cart(self, customer_id: int) -> None:
        await self.session.execute(
            delete(CartItem)
            .where(CartItem.customer_id == customer_id)
            .execution_options(synchronize_session=False)
        )


def _aware(value: datetime) -> datetime:
    # SQLite hands back naive datetimes
    if value.tzinfo is None:
        return value.replace(tzinfo=utc_now().tzinfo)
    return value
