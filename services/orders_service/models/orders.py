"""Order models: parent orders, vendor orders, lines, totals and both history logs.

Table and column names follow the storefront's legacy schema so existing
admin and vendor panels keep reading the same rows.
"""

import random
import string
from datetime import datetime
from decimal import Decimal
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.db.base import Base, JSONType
from services.orders_service.models.enums import OrderStatus
from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

MONEY = Numeric(15, 4)

# ============================================================================
# PARENT ORDER
# ============================================================================


class ParentOrder(Base):
    """Groups the vendor orders created by one multi-vendor checkout."""

    __tablename__ = "order_parent"

    parent_order_id: Mapped[str] = mapped_column(String(32), primary_key=True)
    customer_id: Mapped[int] = mapped_column(Integer, index=True, nullable=False)

    firstname: Mapped[str] = mapped_column(String(32), default="")
    lastname: Mapped[str] = mapped_column(String(32), default="")
    email: Mapped[str] = mapped_column(String(96), default="")
    telephone: Mapped[str] = mapped_column(String(32), default="")

    payment_method: Mapped[str] = mapped_column(String(128), default="")
    payment_code: Mapped[str] = mapped_column(String(128), default="")

    # Child order ids in creation order
    order_ids: Mapped[list] = mapped_column(JSONType, default=list)
    courier_charges: Mapped[Decimal] = mapped_column(MONEY, default=Decimal("0"))
    total: Mapped[Decimal] = mapped_column(MONEY, default=Decimal("0"))

    ip: Mapped[str] = mapped_column(String(40), default="")
    user_agent: Mapped[str] = mapped_column(String(255), default="")

    date_added: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )
    date_modified: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )

    @staticmethod
    def generate_parent_order_id() -> str:
        """Generate an id like PO-20261019-7K2QX9MA."""
        date_part = utc_now().strftime("%Y%m%d")
        random_part = "".join(
            random.choices(string.ascii_uppercase + string.digits, k=8)
        )
        return f"PO-{date_part}-{random_part}"

    def __repr__(self):
        return f"<ParentOrder {self.parent_order_id} orders={self.order_ids}>"


# ============================================================================
# ORDER
# ============================================================================


class Order(Base):
    """One vendor-scoped purchase.

    Customer and address columns are snapshots taken at checkout; they are
    never joined back to the live customer or address rows.
    """

    __tablename__ = "order"

    order_id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    parent_order_id: Mapped[Optional[str]] = mapped_column(
        String(32),
        ForeignKey("order_parent.parent_order_id"),
        index=True,
        nullable=True,
    )
    vendor_id: Mapped[int] = mapped_column(Integer, index=True, nullable=False)

    invoice_no: Mapped[int] = mapped_column(Integer, default=0)
    invoice_prefix: Mapped[str] = mapped_column(String(26), default="")
    store_name: Mapped[str] = mapped_column(String(64), default="")
    store_url: Mapped[str] = mapped_column(String(255), default="")

    # Customer snapshot
    customer_id: Mapped[int] = mapped_column(Integer, index=True, nullable=False)
    firstname: Mapped[str] = mapped_column(String(32), default="")
    lastname: Mapped[str] = mapped_column(String(32), default="")
    email: Mapped[str] = mapped_column(String(96), default="")
    telephone: Mapped[str] = mapped_column(String(32), default="")
    alternate_mobile: Mapped[Optional[str]] = mapped_column(
        String(32), nullable=True
    )
    gst_no: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)

    # Payment address snapshot
    payment_firstname: Mapped[str] = mapped_column(String(32), default="")
    payment_lastname: Mapped[str] = mapped_column(String(32), default="")
    payment_address_1: Mapped[str] = mapped_column(String(128), default="")
    payment_address_2: Mapped[str] = mapped_column(String(128), default="")
    payment_city: Mapped[str] = mapped_column(String(128), default="")
    payment_postcode: Mapped[str] = mapped_column(String(10), default="")
    payment_country: Mapped[str] = mapped_column(String(128), default="")
    payment_zone: Mapped[str] = mapped_column(String(128), default="")
    payment_method: Mapped[str] = mapped_column(String(128), default="")
    payment_code: Mapped[str] = mapped_column(String(128), default="")

    # Shipping address snapshot
    shipping_firstname: Mapped[str] = mapped_column(String(32), default="")
    shipping_lastname: Mapped[str] = mapped_column(String(32), default="")
    shipping_address_1: Mapped[str] = mapped_column(String(128), default="")
    shipping_address_2: Mapped[str] = mapped_column(String(128), default="")
    shipping_city: Mapped[str] = mapped_column(String(128), default="")
    shipping_postcode: Mapped[str] = mapped_column(String(10), default="")
    shipping_country: Mapped[str] = mapped_column(String(128), default="")
    shipping_zone: Mapped[str] = mapped_column(String(128), default="")
    shipping_method: Mapped[str] = mapped_column(String(128), default="")
    shipping_code: Mapped[str] = mapped_column(String(128), default="")

    comment: Mapped[str] = mapped_column(Text, default="")
    total: Mapped[Decimal] = mapped_column(MONEY, default=Decimal("0"))
    courier_charge: Mapped[Decimal] = mapped_column(MONEY, default=Decimal("0"))
    order_status_id: Mapped[int] = mapped_column(
        Integer, default=int(OrderStatus.PENDING), nullable=False, index=True
    )
    currency_code: Mapped[str] = mapped_column(String(3), default="INR")

    ip: Mapped[str] = mapped_column(String(40), default="")
    user_agent: Mapped[str] = mapped_column(String(255), default="")

    date_added: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )
    date_modified: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )

    products: Mapped[list["OrderProduct"]] = relationship(
        back_populates="order", order_by="OrderProduct.order_product_id"
    )
    totals: Mapped[list["OrderTotal"]] = relationship(
        back_populates="order", order_by="OrderTotal.sort_order"
    )

    @property
    def status(self) -> OrderStatus:
        return OrderStatus(self.order_status_id)

    def __repr__(self):
        return f"<Order {self.order_id} status={self.order_status_id}>"


class OrderProduct(Base):
    """Line item with product name/model snapshot."""

    __tablename__ = "order_product"

    order_product_id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    order_id: Mapped[int] = mapped_column(
        ForeignKey("order.order_id"), index=True, nullable=False
    )
    product_id: Mapped[int] = mapped_column(Integer, nullable=False)
    name: Mapped[str] = mapped_column(String(255), default="")
    model: Mapped[str] = mapped_column(String(64), default="")
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    price: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    total: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    tax: Mapped[Decimal] = mapped_column(MONEY, default=Decimal("0"))
    # Selected options as stored in the cart: [{name, value, price, price_prefix}]
    options: Mapped[list] = mapped_column(JSONType, default=list)

    order: Mapped["Order"] = relationship(back_populates="products")


class OrderTotal(Base):
    __tablename__ = "order_total"

    order_total_id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    order_id: Mapped[int] = mapped_column(
        ForeignKey("order.order_id"), index=True, nullable=False
    )
    code: Mapped[str] = mapped_column(String(32), nullable=False)
    title: Mapped[str] = mapped_column(String(255), default="")
    value: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    sort_order: Mapped[int] = mapped_column(Integer, default=0)

    order: Mapped["Order"] = relationship(back_populates="totals")


class OrderHistory(Base):
    """Customer-facing, append-only status log."""

    __tablename__ = "order_history"

    order_history_id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    order_id: Mapped[int] = mapped_column(
        ForeignKey("order.order_id"), index=True, nullable=False
    )
    order_status_id: Mapped[int] = mapped_column(Integer, nullable=False)
    notify: Mapped[bool] = mapped_column(Boolean, default=False)
    comment: Mapped[str] = mapped_column(Text, default="")
    date_added: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )


# ============================================================================
# VENDOR MIRRORS
# ============================================================================


class VendorOrderProduct(Base):
    """Per-vendor copy of an order line carrying the vendor-visible status."""

    __tablename__ = "vendor_order_product"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    vendor_id: Mapped[int] = mapped_column(Integer, index=True, nullable=False)
    order_id: Mapped[int] = mapped_column(
        ForeignKey("order.order_id"), index=True, nullable=False
    )
    order_product_id: Mapped[int] = mapped_column(
        ForeignKey("order_product.order_product_id"), nullable=False
    )
    product_id: Mapped[int] = mapped_column(Integer, nullable=False)
    name: Mapped[str] = mapped_column(String(255), default="")
    model: Mapped[str] = mapped_column(String(64), default="")
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    price: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    total: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    order_status_id: Mapped[int] = mapped_column(Integer, nullable=False)
    date_added: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )
    date_modified: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )


class OrderVendorHistory(Base):
    """Vendor-facing, append-only status log (one row per vendor line)."""

    __tablename__ = "order_vendorhistory"
    __table_args__ = (
        Index("ix_order_vendorhistory_order_line", "order_id", "order_product_id"),
    )

    order_vendorhistory_id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    order_id: Mapped[int] = mapped_column(
        ForeignKey("order.order_id"), nullable=False
    )
    order_status_id: Mapped[int] = mapped_column(Integer, nullable=False)
    vendor_id: Mapped[int] = mapped_column(Integer, nullable=False)
    order_product_id: Mapped[int] = mapped_column(Integer, nullable=False)
    comment: Mapped[str] = mapped_column(Text, default="")
    date_added: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )
