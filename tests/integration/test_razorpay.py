"""Integration tests for the Razorpay payment endpoints."""

import json
from decimal import Decimal

import pytest
from services.orders_service.models import Order, OrderStatus
from services.payments_service.models import PaymentRecord, PaymentStatus
from services.payments_service.signatures import webhook_signature
from sqlalchemy import select
from tests.factories import paid_razorpay_order, seed_checkout

TWO_VENDORS = [
    {"vendor_id": 1, "price": "400.00"},
    {"vendor_id": 2, "price": "200.00"},
]


async def _checkout_with_razorpay(orders_client, db_session, auth, items):
    seeded = await seed_checkout(db_session, items)
    auth.as_customer(seeded.customer_id)
    response = await orders_client.post(
        "/checkout/confirm",
        json={
            "payment_method": "razorpay",
            "agree_terms": True,
            "shipping_address_id": seeded.address_id,
        },
    )
    assert response.status_code == 200, response.text
    return seeded, response.json()


async def _statuses(db, order_ids):
    result = await db.execute(
        select(Order.order_status_id).where(Order.order_id.in_(order_ids))
    )
    return set(result.scalars().all())


async def _record(db, razorpay_order_id):
    result = await db.execute(
        select(PaymentRecord)
        .where(PaymentRecord.razorpay_order_id == razorpay_order_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one()


def _verify_body(fake_razorpay, razorpay_order_id, payment_id, signature=None):
    return {
        "razorpay_order_id": razorpay_order_id,
        "razorpay_payment_id": payment_id,
        "razorpay_signature": signature
        or fake_razorpay.signature_for(razorpay_order_id, payment_id),
    }


# ---------------------------------------------------------------------------
# Checkout payment: verify, webhook, tampering
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_multi_vendor_payment_verified(
    orders_client, payments_client, db_session, auth, fake_razorpay
):
    """A verified payment moves every child order to processing."""
    _, checkout = await _checkout_with_razorpay(
        orders_client, db_session, auth, TWO_VENDORS
    )
    razorpay_order_id = checkout["payment_info"]["razorpay_order_id"]
    assert checkout["payment_info"]["amount"] == 60000
    assert await _statuses(db_session, checkout["order_ids"]) == {
        OrderStatus.PENDING
    }

    payment_id = fake_razorpay.capture(razorpay_order_id, method="card")
    response = await payments_client.post(
        "/razorpay/verify-payment",
        json=_verify_body(fake_razorpay, razorpay_order_id, payment_id),
    )

    assert response.status_code == 200, response.text
    data = response.json()
    assert data["status"] == "paid"
    assert sorted(data["order_ids"]) == sorted(checkout["order_ids"])
    assert data["parent_order_id"] == checkout["parent_order_id"]
    assert Decimal(data["amount"]) == Decimal("600")
    assert data["payment_method"] == "card"
    assert await _statuses(db_session, checkout["order_ids"]) == {
        OrderStatus.PROCESSING
    }

    # Verifying again is harmless and skips the gateway lookup
    lookups = len(fake_razorpay.calls_to("GET", "/payments/"))
    again = await payments_client.post(
        "/razorpay/verify-payment",
        json=_verify_body(fake_razorpay, razorpay_order_id, payment_id),
    )
    assert again.status_code == 200
    assert len(fake_razorpay.calls_to("GET", "/payments/")) == lookups


@pytest.mark.asyncio
@pytest.mark.integration
async def test_multi_vendor_payment_settled_by_webhook(
    orders_client, payments_client, db_session, auth, fake_razorpay
):
    """Without a client verify, the captured webhook settles the checkout."""
    _, checkout = await _checkout_with_razorpay(
        orders_client, db_session, auth, TWO_VENDORS
    )
    razorpay_order_id = checkout["payment_info"]["razorpay_order_id"]
    payment_id = fake_razorpay.capture(razorpay_order_id)
    body = json.dumps(
        {
            "event": "payment.captured",
            "payload": {"payment": {"entity": fake_razorpay.payments[payment_id]}},
        }
    ).encode("utf-8")
    headers = {
        "X-Razorpay-Signature": webhook_signature(body, "test_webhook_secret"),
        "X-Razorpay-Event-Id": "evt_http_1",
        "Content-Type": "application/json",
    }

    response = await payments_client.post(
        "/razorpay/webhook", content=body, headers=headers
    )
    duplicate = await payments_client.post(
        "/razorpay/webhook", content=body, headers=headers
    )

    assert response.status_code == 200, response.text
    assert response.json() == {
        "received": True,
        "event_id": "evt_http_1",
        "outcome": "processed",
    }
    assert duplicate.json()["outcome"] == "duplicate"
    assert await _statuses(db_session, checkout["order_ids"]) == {
        OrderStatus.PROCESSING
    }
    record = await _record(db_session, razorpay_order_id)
    assert record.status == PaymentStatus.PAID


@pytest.mark.asyncio
@pytest.mark.integration
async def test_webhook_with_bad_signature_is_rejected(payments_client):
    """A forged webhook gets a 400 so the sender notices."""
    response = await payments_client.post(
        "/razorpay/webhook",
        content=b'{"event":"payment.captured"}',
        headers={"X-Razorpay-Signature": "0" * 64},
    )

    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_SIGNATURE"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_tampered_signature_fails_payment(
    orders_client, payments_client, db_session, auth, fake_razorpay
):
    """A tampered Checkout signature marks the payment failed."""
    _, checkout = await _checkout_with_razorpay(
        orders_client, db_session, auth, TWO_VENDORS
    )
    razorpay_order_id = checkout["payment_info"]["razorpay_order_id"]
    payment_id = fake_razorpay.capture(razorpay_order_id)
    genuine = fake_razorpay.signature_for(razorpay_order_id, payment_id)
    tampered = ("1" if genuine[0] != "1" else "2") + genuine[1:]

    response = await payments_client.post(
        "/razorpay/verify-payment",
        json=_verify_body(fake_razorpay, razorpay_order_id, payment_id, tampered),
    )

    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_SIGNATURE"
    record = await _record(db_session, razorpay_order_id)
    assert record.status == PaymentStatus.FAILED
    assert record.error_description == "Invalid payment signature"
    assert await _statuses(db_session, checkout["order_ids"]) == {
        OrderStatus.PENDING
    }
    assert fake_razorpay.calls_to("GET", f"/payments/{payment_id}") == []


@pytest.mark.asyncio
@pytest.mark.integration
async def test_verify_unknown_order(payments_client, auth):
    """Verifying a Razorpay order we never created is a 404."""
    response = await payments_client.post(
        "/razorpay/verify-payment",
        json={
            "razorpay_order_id": "order_unknown",
            "razorpay_payment_id": "pay_unknown",
            "razorpay_signature": "0" * 64,
        },
    )

    assert response.status_code == 404


# ---------------------------------------------------------------------------
# Standalone (mobile) create-order
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_create_order_then_verify_creates_prepaid_order(
    payments_client, db_session, auth, fake_razorpay
):
    """A mobile payment gets its local order once it is verified."""
    seeded = await seed_checkout(db_session, [])
    auth.as_customer(seeded.customer_id)

    response = await payments_client.post(
        "/razorpay/create-order", json={"amount": "249.50"}
    )

    assert response.status_code == 200, response.text
    created = response.json()
    assert created["amount"] == 24950
    assert created["currency"] == "INR"
    assert created["key_id"] == "rzp_test_key"
    assert created["prefill"]["email"] == seeded.customer.email
    assert len(created["receipt"]) <= 40
    assert fake_razorpay.orders[created["order_id"]]["notes"]["source"] == "mobile"

    payment_id = fake_razorpay.capture(created["order_id"])
    verified = await payments_client.post(
        "/razorpay/verify-payment",
        json=_verify_body(fake_razorpay, created["order_id"], payment_id),
    )

    assert verified.status_code == 200, verified.text
    data = verified.json()
    order = await db_session.get(Order, data["oc_order_id"])
    assert order.vendor_id == 0
    assert order.customer_id == seeded.customer_id
    assert order.order_status_id == OrderStatus.PROCESSING
    assert order.total == Decimal("249.50")


@pytest.mark.asyncio
@pytest.mark.integration
async def test_admin_create_order_needs_customer(payments_client, auth):
    """Admins must say which customer the payment is for."""
    auth.as_admin()

    response = await payments_client.post(
        "/razorpay/create-order", json={"amount": "100"}
    )

    assert response.status_code == 400
    assert response.json()["code"] == "CUSTOMER_REQUIRED"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_customer_cannot_pay_for_someone_else(
    payments_client, db_session, auth
):
    """Shoppers can only open payments for themselves."""
    seeded = await seed_checkout(db_session, [])
    auth.as_customer(seeded.customer_id)

    response = await payments_client.post(
        "/razorpay/create-order",
        json={"amount": "100", "customer_id": seeded.customer_id + 1},
    )

    assert response.status_code == 403


@pytest.mark.asyncio
@pytest.mark.integration
async def test_create_order_rejects_zero_amount(payments_client, auth):
    """Amounts must be positive."""
    response = await payments_client.post(
        "/razorpay/create-order", json={"amount": "0"}
    )

    assert response.status_code == 422


@pytest.mark.asyncio
@pytest.mark.integration
async def test_gateway_outage_maps_to_bad_gateway(
    payments_client, db_session, auth, fake_razorpay
):
    """A Razorpay 5xx is reported as 502 and nothing is recorded."""
    seeded = await seed_checkout(db_session, [])
    auth.as_customer(seeded.customer_id)
    fake_razorpay.failures.extend(
        [(503, {"error": {"code": "SERVER_ERROR", "description": "down"}})] * 3
    )

    response = await payments_client.post(
        "/razorpay/create-order", json={"amount": "100"}
    )

    assert response.status_code == 502
    assert response.json()["code"] == "GATEWAY_ERROR"
    assert (await db_session.execute(select(PaymentRecord))).first() is None


# ---------------------------------------------------------------------------
# Payment status
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_payment_status_visible_to_owner_only(
    orders_client, payments_client, db_session, auth, fake_razorpay
):
    """Owners and admins see the payment; everyone else gets a 404."""
    seeded, checkout = await _checkout_with_razorpay(
        orders_client, db_session, auth, [{"vendor_id": 1, "price": "600.00"}]
    )
    razorpay_order_id = checkout["payment_info"]["razorpay_order_id"]

    response = await payments_client.get(
        f"/razorpay/payment-status/{razorpay_order_id}"
    )
    assert response.status_code == 200, response.text
    data = response.json()
    assert data["status"] == "created"
    assert data["amount"] == 60000
    assert data["order_id"] == checkout["order_id"]

    auth.as_customer(seeded.customer_id + 100)
    response = await payments_client.get(
        f"/razorpay/payment-status/{razorpay_order_id}"
    )
    assert response.status_code == 404

    auth.as_admin()
    response = await payments_client.get(
        f"/razorpay/payment-status/{razorpay_order_id}"
    )
    assert response.status_code == 200


# ---------------------------------------------------------------------------
# Refunds
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_admin_full_refund(payments_client, db_session, auth, fake_razorpay):
    """A full refund marks the payment and its orders refunded."""
    _, checkout, payment_id = await paid_razorpay_order(
        db_session, fake_razorpay, [{"vendor_id": 1, "price": "600.00"}]
    )
    auth.as_admin()

    response = await payments_client.post(
        "/razorpay/refund",
        json={"payment_id": payment_id, "reason": "Damaged in transit"},
    )

    assert response.status_code == 200, response.text
    data = response.json()
    assert data["payment_id"] == payment_id
    assert Decimal(data["amount"]) == Decimal("600")
    assert data["refund_type"] == "full"
    assert data["status"] == "processed"
    assert data["payment_status"] == "refunded"
    assert data["order_ids"] == checkout.order_ids
    assert await _statuses(db_session, checkout.order_ids) == {OrderStatus.REFUNDED}

    [(_, _, sent)] = fake_razorpay.calls_to("POST", f"/payments/{payment_id}/refund")
    assert sent["amount"] == 60000
    assert sent["notes"]["reason"] == "Damaged in transit"
    assert sent["notes"]["initiated_by"] == "admin-1"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_refund_requires_admin(payments_client, db_session, auth, fake_razorpay):
    """Shoppers cannot issue refunds."""
    seeded, _, payment_id = await paid_razorpay_order(
        db_session, fake_razorpay, [{"vendor_id": 1, "price": "600.00"}]
    )
    auth.as_customer(seeded.customer_id)

    response = await payments_client.post(
        "/razorpay/refund", json={"payment_id": payment_id}
    )

    assert response.status_code == 403
    assert fake_razorpay.calls_to("POST", f"/payments/{payment_id}/refund") == []


@pytest.mark.asyncio
@pytest.mark.integration
async def test_over_refund_is_rejected(
    payments_client, db_session, auth, fake_razorpay
):
    """Refunding more than was paid is refused without calling Razorpay."""
    _, _, payment_id = await paid_razorpay_order(
        db_session, fake_razorpay, [{"vendor_id": 1, "price": "600.00"}]
    )
    auth.as_admin()

    response = await payments_client.post(
        "/razorpay/refund", json={"payment_id": payment_id, "amount": "700"}
    )

    assert response.status_code == 400
    assert response.json()["code"] == "REFUND_EXCEEDS_PAYMENT"
    assert fake_razorpay.calls_to("POST", f"/payments/{payment_id}/refund") == []


# ---------------------------------------------------------------------------
# Webhook admin
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_admin_inspects_and_replays_event(payments_client, auth):
    """Failed events can be inspected and replayed by an admin."""
    body = json.dumps(
        {
            "event": "payment.captured",
            "payload": {
                "payment": {
                    "entity": {"id": "pay_orphan", "order_id": "order_orphan"}
                }
            },
        }
    ).encode("utf-8")
    delivered = await payments_client.post(
        "/razorpay/webhook",
        content=body,
        headers={
            "X-Razorpay-Signature": webhook_signature(body, "test_webhook_secret"),
            "X-Razorpay-Event-Id": "evt_orphan",
        },
    )
    assert delivered.status_code == 200
    assert delivered.json()["outcome"] == "failed"

    auth.as_admin()
    event = await payments_client.get("/admin/razorpay/webhooks/evt_orphan")
    assert event.status_code == 200
    assert event.json()["retry_count"] == 1
    assert event.json()["processed"] is False

    replay = await payments_client.post("/admin/razorpay/webhooks/evt_orphan/replay")
    assert replay.status_code == 200
    assert replay.json()["outcome"] == "failed"

    missing = await payments_client.post("/admin/razorpay/webhooks/evt_none/replay")
    assert missing.status_code == 404
