"""Refund bounds and the partial-then-full lifecycle."""

from decimal import Decimal

import pytest
from libs.common.errors import ApiError
from libs.db.unit_of_work import UnitOfWork
from services.orders_service.models import Order, OrderStatus
from services.orders_service.services.status_machine import cancel_order
from services.payments_service.models import (
    PaymentRecord,
    PaymentStatus,
    RefundRecord,
    RefundStatus,
    RefundType,
)
from services.payments_service.services.refunds import (
    RefundManager,
    gateway_refund_status,
    refund_type_for,
)
from sqlalchemy import select
from tests.factories import (
    PaymentRecordFactory,
    paid_razorpay_order,
    place_razorpay_order,
)

# 2 x 300 clears the free shipping threshold, so the total is exactly 600
ITEMS = [{"vendor_id": 3, "price": "300.00", "quantity": 2}]


async def _record(db, payment_id):
    result = await db.execute(
        select(PaymentRecord)
        .where(PaymentRecord.razorpay_payment_id == payment_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one()


async def _order_status(db, order_id):
    result = await db.execute(
        select(Order.order_status_id).where(Order.order_id == order_id)
    )
    return result.scalar_one()


@pytest.mark.unit
def test_refund_type_rules():
    record = PaymentRecordFactory.create(amount=60000)

    assert refund_type_for(record, None, 0) == RefundType.FULL
    assert refund_type_for(record, 10000, 0) == RefundType.PARTIAL
    assert refund_type_for(record, 50000, 10000) == RefundType.FULL


@pytest.mark.unit
def test_unknown_gateway_refund_status_is_pending():
    assert gateway_refund_status("processed") == RefundStatus.PROCESSED
    assert gateway_refund_status("queued") == RefundStatus.PENDING


@pytest.mark.unit
@pytest.mark.asyncio
async def test_partial_then_full_refund(db_session, fake_razorpay):
    _, checkout, payment_id = await paid_razorpay_order(
        db_session, fake_razorpay, ITEMS
    )
    order_id = checkout.order_ids[0]
    manager = RefundManager(fake_razorpay.client())

    partial = await manager.create_refund(
        db_session, payment_id=payment_id, amount=Decimal("100.00")
    )

    assert partial.refund.refund_type == RefundType.PARTIAL
    assert partial.refund.amount == 10000
    assert partial.amount == Decimal("100.00")
    assert partial.payment_status == PaymentStatus.PAID
    assert partial.order_ids == []
    record = await _record(db_session, payment_id)
    assert record.amount_refunded == 10000
    assert await _order_status(db_session, order_id) == OrderStatus.PROCESSING

    rest = await manager.create_refund(db_session, payment_id=payment_id)

    assert rest.refund.refund_type == RefundType.FULL
    assert rest.refund.amount == 50000
    assert rest.payment_status == PaymentStatus.REFUNDED
    assert rest.order_ids == [order_id]
    record = await _record(db_session, payment_id)
    assert record.status == PaymentStatus.REFUNDED
    assert record.amount_refunded == 60000
    assert await _order_status(db_session, order_id) == OrderStatus.REFUNDED

    refunds = (await db_session.execute(select(RefundRecord))).scalars().all()
    assert sorted(r.amount for r in refunds) == [10000, 50000]
    assert fake_razorpay.payments[payment_id]["amount_refunded"] == 60000


@pytest.mark.unit
@pytest.mark.asyncio
async def test_over_refund_rejected_before_gateway_call(db_session, fake_razorpay):
    _, _, payment_id = await paid_razorpay_order(db_session, fake_razorpay, ITEMS)

    with pytest.raises(ApiError) as exc_info:
        await RefundManager(fake_razorpay.client()).create_refund(
            db_session, payment_id=payment_id, amount=Decimal("600.01")
        )

    assert exc_info.value.code == "REFUND_EXCEEDS_PAYMENT"
    assert fake_razorpay.calls_to("POST", f"/payments/{payment_id}/refund") == []
    record = await _record(db_session, payment_id)
    assert record.status == PaymentStatus.PAID
    assert record.amount_refunded == 0


@pytest.mark.unit
@pytest.mark.asyncio
async def test_zero_amount_rejected(db_session, fake_razorpay):
    _, _, payment_id = await paid_razorpay_order(db_session, fake_razorpay, ITEMS)

    with pytest.raises(ApiError) as exc_info:
        await RefundManager(fake_razorpay.client()).create_refund(
            db_session, payment_id=payment_id, amount=Decimal("0")
        )

    assert exc_info.value.code == "INVALID_REFUND_AMOUNT"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_fully_refunded_payment_cannot_be_refunded_again(
    db_session, fake_razorpay
):
    _, _, payment_id = await paid_razorpay_order(db_session, fake_razorpay, ITEMS)
    manager = RefundManager(fake_razorpay.client())
    await manager.create_refund(db_session, payment_id=payment_id)

    with pytest.raises(ApiError) as exc_info:
        await manager.create_refund(db_session, payment_id=payment_id)

    assert exc_info.value.code == "PAYMENT_NOT_REFUNDABLE"
    assert len(fake_razorpay.calls_to("POST", f"/payments/{payment_id}/refund")) == 1


@pytest.mark.unit
@pytest.mark.asyncio
async def test_unpaid_payment_is_not_refundable(db_session, fake_razorpay):
    _, checkout = await place_razorpay_order(db_session, fake_razorpay, ITEMS)
    record = (
        await db_session.execute(
            select(PaymentRecord).where(
                PaymentRecord.razorpay_order_id
                == checkout.payment_info["razorpay_order_id"]
            )
        )
    ).scalar_one()
    record.razorpay_payment_id = "pay_unsettled00001"
    await db_session.commit()

    with pytest.raises(ApiError) as exc_info:
        await RefundManager(fake_razorpay.client()).create_refund(
            db_session, payment_id="pay_unsettled00001"
        )

    assert exc_info.value.code == "PAYMENT_NOT_REFUNDABLE"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_unknown_payment_is_not_found(db_session, fake_razorpay):
    with pytest.raises(ApiError) as exc_info:
        await RefundManager(fake_razorpay.client()).create_refund(
            db_session, payment_id="pay_missing"
        )

    assert exc_info.value.status_code == 404


@pytest.mark.unit
@pytest.mark.asyncio
async def test_refund_after_cancellation_is_recorded(db_session, fake_razorpay):
    _, checkout, payment_id = await paid_razorpay_order(
        db_session, fake_razorpay, ITEMS
    )
    order_id = checkout.order_ids[0]
    async with UnitOfWork(db_session) as uow:
        await cancel_order(uow, order_id)

    result = await RefundManager(fake_razorpay.client()).create_refund(
        db_session, payment_id=payment_id, reason="Order cancelled"
    )

    assert result.refund.refund_type == RefundType.FULL
    assert result.payment_status == PaymentStatus.REFUNDED
    assert result.order_ids == [order_id]
    record = await _record(db_session, payment_id)
    assert record.status == PaymentStatus.REFUNDED
    assert record.amount_refunded == 60000
    refunds = (await db_session.execute(select(RefundRecord))).scalars().all()
    assert [r.amount for r in refunds] == [60000]
    assert len(fake_razorpay.calls_to("POST", f"/payments/{payment_id}/refund")) == 1
    assert await _order_status(db_session, order_id) == OrderStatus.REFUNDED
