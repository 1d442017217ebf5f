"""Read-side mappings of storefront tables owned by the catalog, cart and
account modules.

Checkout reads these rows and only ever writes two things back: product stock
(decremented) and the customer's cart (cleared).
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.db.base import Base, JSONType
from services.orders_service.models.enums import CourierZone, enum_values
from sqlalchemy import Boolean, DateTime
from sqlalchemy import Enum as SAEnum
from sqlalchemy import ForeignKey, Integer, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column


class Customer(Base):
    __tablename__ = "customer"

    customer_id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    firstname: Mapped[str] = mapped_column(String(32), default="")
    lastname: Mapped[str] = mapped_column(String(32), default="")
    email: Mapped[str] = mapped_column(String(96), default="")
    telephone: Mapped[str] = mapped_column(String(32), default="")
    address_id: Mapped[int] = mapped_column(Integer, default=0)  # default address
    status: Mapped[bool] = mapped_column(Boolean, default=True)
    date_added: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )

    @property
    def full_name(self) -> str:
        return f"{self.firstname} {self.lastname}".strip()


class Address(Base):
    __tablename__ = "address"

    address_id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    customer_id: Mapped[int] = mapped_column(Integer, index=True, nullable=False)
    firstname: Mapped[str] = mapped_column(String(32), default="")
    lastname: Mapped[str] = mapped_column(String(32), default="")
    address_1: Mapped[str] = mapped_column(String(128), default="")
    address_2: Mapped[str] = mapped_column(String(128), default="")
    city: Mapped[str] = mapped_column(String(128), default="")
    postcode: Mapped[str] = mapped_column(String(10), default="")
    country: Mapped[str] = mapped_column(String(128), default="India")
    zone: Mapped[str] = mapped_column(String(128), default="")


class Product(Base):
    __tablename__ = "product"

    product_id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    name: Mapped[str] = mapped_column(String(255), default="")
    model: Mapped[str] = mapped_column(String(64), default="")
    price: Mapped[Decimal] = mapped_column(Numeric(15, 4), default=Decimal("0"))
    quantity: Mapped[int] = mapped_column(Integer, default=0)
    minimum: Mapped[int] = mapped_column(Integer, default=1)
    status: Mapped[bool] = mapped_column(Boolean, default=True)
    shipping: Mapped[bool] = mapped_column(Boolean, default=True)
    # Digital goods and services that can only be prepaid
    no_shipping: Mapped[bool] = mapped_column(Boolean, default=False)


class VendorToProduct(Base):
    __tablename__ = "vendor_to_product"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    vendor_id: Mapped[int] = mapped_column(Integer, index=True, nullable=False)
    product_id: Mapped[int] = mapped_column(
        ForeignKey("product.product_id"), unique=True, nullable=False
    )
    # Vendor warehouse pincode, origin for courier zone lookup
    pincode: Mapped[str] = mapped_column(String(10), default="")


class CartItem(Base):
    __tablename__ = "cart"

    cart_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    customer_id: Mapped[int] = mapped_column(Integer, index=True, nullable=False)
    product_id: Mapped[int] = mapped_column(Integer, nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    # [{"name": "Size", "value": "XL", "price": "10.00", "price_prefix": "+"}]
    option: Mapped[list] = mapped_column(JSONType, default=list)
    date_added: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )


class CourierPincodeZone(Base):
    __tablename__ = "courier_pincode_zone"
    __table_args__ = (
        UniqueConstraint("origin_pincode", "destination_pincode"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    origin_pincode: Mapped[str] = mapped_column(String(10), nullable=False)
    destination_pincode: Mapped[str] = mapped_column(String(10), nullable=False)
    zone: Mapped[CourierZone] = mapped_column(
        SAEnum(
            CourierZone,
            name="courier_zone_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        nullable=False,
    )


class Voucher(Base):
    __tablename__ = "voucher"

    voucher_id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    code: Mapped[str] = mapped_column(String(20), unique=True, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(15, 4), nullable=False)
    status: Mapped[bool] = mapped_column(Boolean, default=True)
    date_end: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
