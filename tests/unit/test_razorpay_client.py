"""Retry and error mapping in the Razorpay client."""

import httpx
import pytest
from libs.common.config import get_settings
from services.payments_service.razorpay_client import (
    RazorpayError,
    RazorpayTimeoutError,
    check_razorpay_configuration,
)

SERVER_ERROR = (503, {"error": {"code": "SERVER_ERROR", "description": "busy"}})
BAD_REQUEST = (400, {"error": {"code": "BAD_REQUEST_ERROR", "description": "nope"}})


async def _open_order(fake_razorpay, **client_options):
    return await fake_razorpay.client(**client_options).create_order(
        amount=50000, currency="INR", receipt="rcpt_1"
    )


@pytest.mark.unit
@pytest.mark.asyncio
async def test_server_error_is_retried(fake_razorpay):
    fake_razorpay.failures.append(SERVER_ERROR)

    order = await _open_order(fake_razorpay)

    assert order.amount == 50000
    assert len(fake_razorpay.calls_to("POST", "/orders")) == 2


@pytest.mark.unit
@pytest.mark.asyncio
async def test_client_error_is_not_retried(fake_razorpay):
    fake_razorpay.failures.append(BAD_REQUEST)

    with pytest.raises(RazorpayError) as exc_info:
        await _open_order(fake_razorpay)

    assert exc_info.value.status_code == 400
    assert exc_info.value.message == "nope"
    assert len(fake_razorpay.calls_to("POST", "/orders")) == 1


@pytest.mark.unit
@pytest.mark.asyncio
async def test_timeouts_exhaust_retries(fake_razorpay):
    fake_razorpay.failures.extend(
        [httpx.ReadTimeout("slow"), httpx.ReadTimeout("slow")]
    )

    with pytest.raises(RazorpayTimeoutError):
        await _open_order(fake_razorpay)

    assert len(fake_razorpay.calls_to("POST", "/orders")) == 2
    assert fake_razorpay.orders == {}


@pytest.mark.unit
@pytest.mark.asyncio
async def test_refund_is_not_resent_after_read_timeout(fake_razorpay):
    order = await _open_order(fake_razorpay)
    payment_id = fake_razorpay.capture(order.id)
    fake_razorpay.failures.append(httpx.ReadTimeout("slow"))

    with pytest.raises(RazorpayTimeoutError):
        await fake_razorpay.client().refund_payment(payment_id, amount=1000)

    assert len(fake_razorpay.calls_to("POST", f"/payments/{payment_id}/refund")) == 1


@pytest.mark.unit
@pytest.mark.asyncio
async def test_refund_is_retried_when_connection_never_opened(fake_razorpay):
    order = await _open_order(fake_razorpay)
    payment_id = fake_razorpay.capture(order.id)
    fake_razorpay.failures.append(httpx.ConnectError("refused"))

    refund = await fake_razorpay.client().refund_payment(payment_id, amount=1000)

    assert refund.amount == 1000
    assert refund.status == "processed"
    assert len(fake_razorpay.calls_to("POST", f"/payments/{payment_id}/refund")) == 2


@pytest.mark.unit
@pytest.mark.asyncio
async def test_payments_of_an_order(fake_razorpay):
    order = await _open_order(fake_razorpay)
    payment_id = fake_razorpay.capture(order.id, method="netbanking")

    payments = await fake_razorpay.client().fetch_order_payments(order.id)

    assert [p.id for p in payments] == [payment_id]
    assert payments[0].captured
    assert payments[0].method == "netbanking"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_missing_credentials_fail_before_any_call(fake_razorpay):
    with pytest.raises(RazorpayError):
        await _open_order(fake_razorpay, key_secret="")

    assert fake_razorpay.calls == []


@pytest.mark.unit
def test_configuration_check():
    settings = get_settings()
    unconfigured = settings.model_copy(update={"RAZORPAY_WEBHOOK_SECRET": ""})

    assert check_razorpay_configuration(settings) is True
    assert check_razorpay_configuration(unconfigured) is False
    with pytest.raises(RuntimeError):
        check_razorpay_configuration(
            unconfigured.model_copy(update={"ENVIRONMENT": "production"})
        )
