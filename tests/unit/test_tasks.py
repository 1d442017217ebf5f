"""Background jobs: webhook replay and stale payment reconciliation."""

import json

import pytest
from services.orders_service.models import Order, OrderStatus
from services.payments_service import tasks
from services.payments_service.models import PaymentRecord, PaymentStatus
from services.payments_service.services.gateway import PaymentGateway
from services.payments_service.services.webhooks import WebhookIngestor
from services.payments_service.signatures import webhook_signature
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from tests.factories import (
    PaymentRecordFactory,
    place_pending_order,
    place_razorpay_order,
)

ITEMS = [{"vendor_id": 2, "price": "600.00"}]


async def _record(db, razorpay_order_id):
    result = await db.execute(
        select(PaymentRecord)
        .where(PaymentRecord.razorpay_order_id == razorpay_order_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one()


async def _status(db, order_id):
    return await db.scalar(
        select(Order.order_status_id).where(Order.order_id == order_id)
    )


@pytest.fixture
def task_sessions(monkeypatch, test_engine):
    """Point the task module's session factory at the test database."""
    factory = async_sessionmaker(
        bind=test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    monkeypatch.setattr(tasks, "AsyncSessionLocal", factory)
    return factory


@pytest.mark.unit
@pytest.mark.asyncio
async def test_reconcile_settles_captured_payments(db_session, fake_razorpay):
    _, paid = await place_razorpay_order(db_session, fake_razorpay, ITEMS)
    _, unpaid = await place_razorpay_order(db_session, fake_razorpay, ITEMS)
    paid_gateway_id = paid.payment_info["razorpay_order_id"]
    unpaid_gateway_id = unpaid.payment_info["razorpay_order_id"]
    payment_id = fake_razorpay.capture(paid_gateway_id)

    settled = await PaymentGateway(fake_razorpay.client()).reconcile_stale(
        db_session, older_than_minutes=0
    )

    assert settled == 1
    record = await _record(db_session, paid_gateway_id)
    assert record.status == PaymentStatus.PAID
    assert record.razorpay_payment_id == payment_id
    assert await _status(db_session, paid.order_ids[0]) == OrderStatus.PROCESSING
    assert (await _record(db_session, unpaid_gateway_id)).status == (
        PaymentStatus.CREATED
    )
    assert await _status(db_session, unpaid.order_ids[0]) == OrderStatus.PENDING


@pytest.mark.unit
@pytest.mark.asyncio
async def test_recent_payments_are_left_alone(db_session, fake_razorpay):
    _, checkout = await place_razorpay_order(db_session, fake_razorpay, ITEMS)
    fake_razorpay.capture(checkout.payment_info["razorpay_order_id"])

    settled = await PaymentGateway(fake_razorpay.client()).reconcile_stale(
        db_session, older_than_minutes=30
    )

    assert settled == 0
    assert fake_razorpay.calls_to("GET", "/orders/") == []


@pytest.mark.unit
@pytest.mark.asyncio
async def test_replay_pending_webhooks(db_session, task_sessions):
    razorpay_order_id = "order_replay00001"
    body = json.dumps(
        {
            "event": "payment.captured",
            "payload": {
                "payment": {
                    "entity": {
                        "id": "pay_replay0000001",
                        "order_id": razorpay_order_id,
                        "amount": 60000,
                    }
                }
            },
        }
    ).encode("utf-8")
    first = await WebhookIngestor(db_session).ingest(
        body, webhook_signature(body, "test_webhook_secret"), "evt_replay"
    )
    assert first.outcome == "failed"

    seeded, checkout = await place_pending_order(db_session, ITEMS)
    db_session.add(
        PaymentRecordFactory.create(
            razorpay_order_id=razorpay_order_id,
            customer_id=seeded.customer_id,
            amount=60000,
            order_id=checkout.order_ids[0],
        )
    )
    await db_session.commit()

    assert await tasks.replay_pending_webhooks() == 1
    assert await tasks.replay_pending_webhooks() == 0
    assert await _status(db_session, checkout.order_ids[0]) == OrderStatus.PROCESSING


@pytest.mark.unit
@pytest.mark.asyncio
async def test_reconcile_task_skips_without_credentials(monkeypatch, task_sessions):
    settings = tasks.get_settings().model_copy(update={"RAZORPAY_KEY_ID": ""})
    monkeypatch.setattr(tasks, "get_settings", lambda: settings)

    assert await tasks.reconcile_stale_payments() == 0
