"""Apply confirmed gateway outcomes to payment records and orders.

The client verify path and the webhook path both end here, holding a row lock
on the PaymentRecord. Each function sets a target state rather than
incrementing anything, so whichever path arrives second finds the work done.
"""

from dataclasses import dataclass, field
from typing import Optional

from libs.common.config import get_settings
from libs.common.currency import from_minor_units
from libs.common.datetime_utils import utc_now
from libs.common.errors import ApiError, not_found
from libs.common.logging import get_logger
from libs.db.unit_of_work import UnitOfWork
from services.orders_service.models import OrderStatus, PaymentMethodCode
from services.orders_service.repositories import CatalogLookup, OrderRepository
from services.orders_service.services.persister import (
    AddressSnapshot,
    OrderHeader,
    OrderPersister,
)
from services.orders_service.services.status_machine import (
    InvalidTransitionError,
    StatusStateMachine,
    can_transition,
)
from services.payments_service.models import PaymentRecord, PaymentStatus

logger = get_logger(__name__)


class AmountMismatchError(ApiError):
    def __init__(self, expected: int, received: int):
        super().__init__(
            status_code=409,
            message="Captured amount does not match the order amount",
            code="AMOUNT_MISMATCH",
        )
        self.expected = expected
        self.received = received


@dataclass
class CaptureOutcome:
    order_ids: list[int] = field(default_factory=list)
    already_paid: bool = False
    created_order_id: Optional[int] = None
    # Orders cancelled before the money arrived; the payment needs refunding
    refund_due_order_ids: list[int] = field(default_factory=list)


async def linked_order_ids(uow: UnitOfWork, record: PaymentRecord) -> list[int]:
    if record.order_id is not None:
        return [record.order_id]
    if record.parent_order_id:
        parent = await OrderRepository(uow).get_parent(record.parent_order_id)
        if parent is not None:
            return list(parent.order_ids or [])
    return []


async def _header_for_customer(uow: UnitOfWork, customer_id: int) -> OrderHeader:
    settings = get_settings()
    lookup = CatalogLookup(uow.session)
    customer = await lookup.customer(customer_id)
    address = None
    if customer is not None and customer.address_id:
        address = await lookup.address(customer.address_id)
    snapshot = (
        AddressSnapshot(
            firstname=address.firstname,
            lastname=address.lastname,
            address_1=address.address_1,
            address_2=address.address_2,
            city=address.city,
            postcode=address.postcode,
            country=address.country,
            zone=address.zone,
        )
        if address is not None
        else AddressSnapshot()
    )
    return OrderHeader(
        customer_id=customer_id,
        firstname=customer.firstname if customer else "",
        lastname=customer.lastname if customer else "",
        email=customer.email if customer else "",
        telephone=customer.telephone if customer else "",
        payment_address=snapshot,
        shipping_address=snapshot,
        payment_method=PaymentMethodCode.RAZORPAY.title,
        payment_code=PaymentMethodCode.RAZORPAY.value,
        store_name=settings.STORE_NAME,
        store_url=settings.STORE_URL,
        currency_code=settings.DEFAULT_CURRENCY,
    )


async def apply_capture(
    uow: UnitOfWork,
    record: PaymentRecord,
    *,
    payment_id: str,
    amount: Optional[int] = None,
    method: Optional[str] = None,
    signature: Optional[str] = None,
    source: str = "verify",
) -> CaptureOutcome:
    """Mark ``record`` paid and move its orders to processing.

    ``record`` must have been loaded with a row lock. An unlinked record
    (standalone mobile payment) gets a local order created for the paid
    amount. A second capture of the same record changes nothing. Only pending
    orders move to processing; a cancelled order stays cancelled and the
    record is flagged ``refund_due``.
    """
    if record.status in (PaymentStatus.PAID, PaymentStatus.REFUNDED):
        return CaptureOutcome(
            order_ids=await linked_order_ids(uow, record), already_paid=True
        )

    if amount is not None and amount != record.amount:
        raise AmountMismatchError(record.amount, amount)

    record.status = PaymentStatus.PAID
    record.razorpay_payment_id = payment_id
    if signature:
        record.razorpay_signature = signature
    if method:
        record.payment_method = method
    record.paid_at = utc_now()
    record.error_description = None

    outcome = CaptureOutcome()
    order_ids = await linked_order_ids(uow, record)
    if not order_ids:
        header = await _header_for_customer(uow, record.customer_id)
        order = await OrderPersister(uow).persist_prepaid_order(
            header, from_minor_units(record.amount)
        )
        record.order_id = order.order_id
        outcome.created_order_id = order.order_id
        order_ids = [order.order_id]

    orders = await OrderRepository(uow).list_by_ids(order_ids, lock=True)
    missing = set(order_ids) - {order.order_id for order in orders}
    if missing:
        raise not_found(
            f"Order(s) not found: {', '.join(str(i) for i in sorted(missing))}",
            code="ORDER_NOT_FOUND",
        )
    machine = StatusStateMachine(uow)
    for order in orders:
        current = OrderStatus(order.order_status_id)
        if current == OrderStatus.PENDING:
            await machine.apply(
                order,
                OrderStatus.PROCESSING,
                f"Payment received via Razorpay ({payment_id})",
                notify=True,
            )
        elif current == OrderStatus.CANCELLED:
            outcome.refund_due_order_ids.append(order.order_id)
    outcome.order_ids = order_ids

    if outcome.refund_due_order_ids:
        record.notes = {
            **(record.notes or {}),
            "refund_due": True,
            "refund_due_order_ids": outcome.refund_due_order_ids,
        }
        logger.warning(
            "Payment captured for cancelled order(s); refund due",
            extra={
                "extra_fields": {
                    "razorpay_order_id": record.razorpay_order_id,
                    "razorpay_payment_id": payment_id,
                    "order_ids": outcome.refund_due_order_ids,
                }
            },
        )

    logger.info(
        "Payment captured",
        extra={
            "extra_fields": {
                "razorpay_order_id": record.razorpay_order_id,
                "razorpay_payment_id": payment_id,
                "order_ids": order_ids,
                "source": source,
            }
        },
    )
    return outcome


def apply_failure(
    record: PaymentRecord,
    *,
    payment_id: Optional[str],
    signature: Optional[str] = None,
    error_description: Optional[str] = None,
) -> bool:
    """Mark an unsettled record failed. Paid and refunded records are left alone."""
    if record.status in (PaymentStatus.PAID, PaymentStatus.REFUNDED):
        return False
    record.status = PaymentStatus.FAILED
    if payment_id:
        record.razorpay_payment_id = payment_id
    if signature:
        record.razorpay_signature = signature
    if error_description:
        record.error_description = error_description[:1000]
    return True


async def apply_full_refund(
    uow: UnitOfWork, record: PaymentRecord, comment: str
) -> list[int]:
    """Mark the record refunded and every linked order refunded, under lock."""
    record.status = PaymentStatus.REFUNDED
    record.amount_refunded = record.amount
    order_ids = await linked_order_ids(uow, record)
    if order_ids:
        await StatusStateMachine(uow).transition_many(
            order_ids, OrderStatus.REFUNDED, comment, notify=True, lock=True
        )
    return order_ids


async def lock_orders_for_refund(uow: UnitOfWork, record: PaymentRecord) -> list[int]:
    """Lock the record's orders and check each one may become refunded.

    Runs before the gateway refund so a refund Razorpay accepts can always be
    recorded locally.
    """
    order_ids = await linked_order_ids(uow, record)
    for order in await OrderRepository(uow).list_by_ids(order_ids, lock=True):
        current = OrderStatus(order.order_status_id)
        if current != OrderStatus.REFUNDED and not can_transition(
            current, OrderStatus.REFUNDED
        ):
            raise InvalidTransitionError(current, OrderStatus.REFUNDED)
    return order_ids
