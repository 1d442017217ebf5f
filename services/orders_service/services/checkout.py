"""Checkout orchestration: validate, plan, persist, settle.

Validation and planning only read. The single unit of work opened by
``place_order`` takes stock, writes every vendor order, settles payment and
clears the cart; any failure inside it leaves no trace.
"""

from collections import OrderedDict
from dataclasses import dataclass
from decimal import Decimal
from typing import Mapping, Optional, Sequence

from libs.common.config import Settings, get_settings
from libs.common.currency import quantize_money
from libs.common.errors import bad_request, conflict
from libs.common.logging import get_logger
from libs.db.unit_of_work import UnitOfWork
from services.orders_service.models import (
    Address,
    CourierZone,
    Customer,
    PaymentMethodCode,
    TotalCode,
    Voucher,
)
from services.orders_service.repositories import CatalogLookup, CatalogWriter
from services.orders_service.services.cart import CartLine
from services.orders_service.services.persister import (
    AddressSnapshot,
    OrderHeader,
    OrderPersister,
    PersistResult,
    VendorOrderPlan,
)
from services.orders_service.services.settlement import PaymentMethod
from services.orders_service.services.totals import (
    Discount,
    ShippingMethod,
    calculate_totals,
    subtotal,
)
from services.orders_service.services.vendor_split import (
    VendorResolutionError,
    allocate_proportionally,
    split_by_vendor,
)
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)


@dataclass(frozen=True)
class CheckoutRequest:
    customer_id: int
    payment_method: str
    agree_terms: bool
    shipping_address_id: Optional[int]
    comment: str = ""
    voucher_code: Optional[str] = None
    alternate_mobile: Optional[str] = None
    gst_no: Optional[str] = None
    ip: str = ""
    user_agent: str = ""


@dataclass
class ValidatedCheckout:
    customer: Customer
    shipping_address: Address
    payment_address: Address
    lines: list[CartLine]
    method: PaymentMethod
    voucher: Optional[Voucher] = None


@dataclass
class CheckoutResult:
    persisted: PersistResult
    payment_method: PaymentMethodCode
    payment_info: Optional[dict] = None

    @property
    def order_ids(self) -> list[int]:
        return self.persisted.order_ids

    @property
    def parent_order_id(self) -> Optional[str]:
        return self.persisted.parent_order_id


# ============================================================================
# VALIDATION
# ============================================================================


def quantities_by_product(lines: Sequence[CartLine]) -> "OrderedDict[int, int]":
    """Requested quantity per product across all cart rows (options differ)."""
    totals: OrderedDict[int, int] = OrderedDict()
    for line in lines:
        totals[line.product_id] = totals.get(line.product_id, 0) + line.quantity
    return totals


def validate_cart_lines(lines: Sequence[CartLine], method: PaymentMethod) -> None:
    if not lines:
        raise bad_request("Your cart is empty", "CART_EMPTY", field="cart")

    by_product = {line.product_id: line for line in lines}
    for line in lines:
        if not line.enabled:
            raise bad_request(
                f"Product {line.name or line.product_id} is no longer available",
                "PRODUCT_UNAVAILABLE",
                field="cart",
            )
        if line.no_shipping and not method.collects_upfront:
            raise bad_request(
                f"{line.name} can only be paid online",
                "PREPAID_ONLY_PRODUCT",
                field="payment_method",
            )

    for product_id, quantity in quantities_by_product(lines).items():
        line = by_product[product_id]
        if quantity > line.stock:
            raise bad_request(
                f"Only {line.stock} unit(s) of {line.name} in stock, "
                f"{quantity} requested",
                "INSUFFICIENT_STOCK",
                field="cart",
            )
        if quantity < (line.minimum or 1):
            raise bad_request(
                f"Minimum quantity for {line.name} is {line.minimum}",
                "MINIMUM_QUANTITY_NOT_MET",
                field="cart",
            )


async def validate_checkout(
    lookup: CatalogLookup,
    request: CheckoutRequest,
    methods: Mapping[str, PaymentMethod],
) -> ValidatedCheckout:
    method = methods.get(request.payment_method)
    if method is None:
        raise bad_request(
            "Unsupported payment method",
            "INVALID_PAYMENT_METHOD",
            field="payment_method",
        )
    if not request.agree_terms:
        raise bad_request(
            "You must agree to the terms and conditions",
            "TERMS_NOT_ACCEPTED",
            field="agree_terms",
        )

    customer = await lookup.customer(request.customer_id)
    if customer is None or not customer.status:
        raise bad_request("Customer account not found", "CUSTOMER_NOT_FOUND")

    if not request.shipping_address_id:
        raise bad_request(
            "Shipping address is required", "ADDRESS_REQUIRED", field="address_id"
        )
    shipping_address = await lookup.address(request.shipping_address_id)
    if (
        shipping_address is None
        or shipping_address.customer_id != customer.customer_id
    ):
        raise bad_request(
            "Shipping address not found", "INVALID_ADDRESS", field="address_id"
        )

    payment_address = shipping_address
    if customer.address_id:
        default_address = await lookup.address(customer.address_id)
        if default_address and default_address.customer_id == customer.customer_id:
            payment_address = default_address

    lines = await lookup.cart_lines(customer.customer_id)
    validate_cart_lines(lines, method)

    voucher = None
    if request.voucher_code:
        voucher = await lookup.voucher(request.voucher_code)
        if voucher is None:
            raise bad_request(
                "Voucher code is invalid or expired",
                "INVALID_VOUCHER",
                field="voucher_code",
            )

    return ValidatedCheckout(
        customer=customer,
        shipping_address=shipping_address,
        payment_address=payment_address,
        lines=list(lines),
        method=method,
        voucher=voucher,
    )


# ============================================================================
# PLANNING
# ============================================================================


def courier_charge_for_zone(zone: CourierZone, settings: Settings) -> Decimal:
    return {
        CourierZone.LOCAL: settings.COURIER_CHARGE_LOCAL,
        CourierZone.ZONAL: settings.COURIER_CHARGE_ZONAL,
        CourierZone.NATIONAL: settings.COURIER_CHARGE_NATIONAL,
    }[zone]


async def courier_charge(
    lookup: CatalogLookup,
    lines: Sequence[CartLine],
    destination_pincode: str,
    settings: Settings,
) -> Decimal:
    """One courier charge per checkout; free above the threshold."""
    shippable = [line for line in lines if line.requires_shipping]
    if not shippable:
        return Decimal("0")
    cart_subtotal = subtotal(line.to_line_input() for line in lines)
    if cart_subtotal >= settings.FREE_SHIPPING_THRESHOLD:
        return Decimal("0")
    zone = await lookup.courier_zone(
        shippable[0].vendor_pincode, destination_pincode
    )
    zone = zone or CourierZone.NATIONAL
    return quantize_money(courier_charge_for_zone(zone, settings))


def build_vendor_plans(
    lines: Sequence[CartLine],
    *,
    courier: Decimal = Decimal("0"),
    voucher: Optional[Voucher] = None,
    tax_rate: Decimal = Decimal("0"),
    tax_title: str = "Tax",
) -> list[VendorOrderPlan]:
    """Split lines by vendor and compute each vendor order's totals.

    The courier charge lands on the first vendor order only; a voucher is
    shared out in proportion to vendor sub-totals.
    """
    groups = split_by_vendor(lines)
    vendor_ids = list(groups)
    vendor_subtotals = [
        subtotal(line.to_line_input() for line in groups[vendor_id])
        for vendor_id in vendor_ids
    ]

    voucher_shares = [Decimal("0")] * len(vendor_ids)
    if voucher is not None:
        cart_subtotal = sum(vendor_subtotals, Decimal("0"))
        amount = min(quantize_money(voucher.amount), cart_subtotal)
        voucher_shares = allocate_proportionally(amount, vendor_subtotals)

    plans = []
    for index, vendor_id in enumerate(vendor_ids):
        vendor_courier = courier if index == 0 else Decimal("0")
        discounts = []
        if voucher is not None and voucher_shares[index] > 0:
            discounts.append(
                Discount(
                    title=f"Voucher ({voucher.code})",
                    amount=voucher_shares[index],
                    code=TotalCode.VOUCHER,
                )
            )
        rows = calculate_totals(
            [line.to_line_input() for line in groups[vendor_id]],
            shipping=ShippingMethod(title="Courier Charges", cost=vendor_courier),
            discounts=discounts,
            tax_rate=tax_rate,
            tax_title=tax_title,
        )
        plans.append(
            VendorOrderPlan(
                vendor_id=vendor_id,
                lines=list(groups[vendor_id]),
                totals=rows,
                courier_charge=vendor_courier,
            )
        )
    return plans


def _address_snapshot(address: Address) -> AddressSnapshot:
    return AddressSnapshot(
        firstname=address.firstname,
        lastname=address.lastname,
        address_1=address.address_1,
        address_2=address.address_2,
        city=address.city,
        postcode=address.postcode,
        country=address.country,
        zone=address.zone,
    )


def build_header(
    validated: ValidatedCheckout, request: CheckoutRequest, settings: Settings
) -> OrderHeader:
    customer = validated.customer
    return OrderHeader(
        customer_id=customer.customer_id,
        firstname=customer.firstname,
        lastname=customer.lastname,
        email=customer.email,
        telephone=customer.telephone,
        payment_address=_address_snapshot(validated.payment_address),
        shipping_address=_address_snapshot(validated.shipping_address),
        payment_method=validated.method.title,
        payment_code=validated.method.code.value,
        comment=request.comment or "",
        store_name=settings.STORE_NAME,
        store_url=settings.STORE_URL,
        currency_code=settings.DEFAULT_CURRENCY,
        ip=request.ip,
        user_agent=request.user_agent[:255],
        alternate_mobile=request.alternate_mobile,
        gst_no=request.gst_no,
    )


# ============================================================================
# PLACE ORDER
# ============================================================================


async def place_order(
    db: AsyncSession,
    request: CheckoutRequest,
    methods: Mapping[str, PaymentMethod],
    settings: Optional[Settings] = None,
) -> CheckoutResult:
    settings = settings or get_settings()
    lookup = CatalogLookup(db)

    validated = await validate_checkout(lookup, request, methods)
    try:
        courier = await courier_charge(
            lookup,
            validated.lines,
            validated.shipping_address.postcode,
            settings,
        )
        plans = build_vendor_plans(
            validated.lines,
            courier=courier,
            voucher=validated.voucher,
            tax_rate=settings.ORDER_TAX_RATE,
            tax_title=settings.ORDER_TAX_TITLE,
        )
    except VendorResolutionError as exc:
        logger.warning(
            "Checkout aborted: unresolved vendor",
            extra={
                "extra_fields": {
                    "customer_id": request.customer_id,
                    "product_ids": exc.product_ids,
                }
            },
        )
        raise bad_request(
            "Some items in your cart are not sold by any vendor",
            "VENDOR_NOT_FOUND",
            field="cart",
        ) from exc
    except ValueError as exc:
        logger.warning(
            "Checkout aborted: invalid cart option",
            extra={
                "extra_fields": {
                    "customer_id": request.customer_id,
                    "error": str(exc),
                }
            },
        )
        raise bad_request(
            f"Your cart contains an invalid product option: {exc}",
            "INVALID_CART_OPTION",
            field="cart",
        ) from exc

    header = build_header(validated, request, settings)

    async with UnitOfWork(db) as uow:
        writer = CatalogWriter(uow)
        for product_id, quantity in quantities_by_product(validated.lines).items():
            if not await writer.decrement_stock(product_id, quantity):
                raise conflict(
                    "An item in your cart just went out of stock",
                    "INSUFFICIENT_STOCK",
                )

        persisted = await OrderPersister(uow).persist_checkout(header, plans)
        payment_info = await validated.method.settle(uow, header, persisted)
        await writer.clear_cart(validated.customer.customer_id)

    logger.info(
        "Checkout completed",
        extra={
            "extra_fields": {
                "customer_id": request.customer_id,
                "order_ids": persisted.order_ids,
                "parent_order_id": persisted.parent_order_id,
                "payment_code": validated.method.code.value,
            }
        },
    )
    return CheckoutResult(
        persisted=persisted,
        payment_method=validated.method.code,
        payment_info=payment_info,
    )
