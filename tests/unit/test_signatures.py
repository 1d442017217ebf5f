"""Unit tests for Razorpay signature verification."""

import pytest
from services.payments_service.signatures import (
    payment_signature,
    verify_payment_signature,
    verify_webhook_signature,
    webhook_signature,
)

KEY_SECRET = "test_key_secret"
WEBHOOK_SECRET = "test_webhook_secret"
ORDER_ID = "order_IluGWxBm9U8zJ8"
PAYMENT_ID = "pay_IluGb3BZ9Pk6Wq"
PAYMENT_SIG = "2e1b45c1edd3c5a6f72aff272e88b008410b4ad90fb66b0e89bf685c49ad04a5"
WEBHOOK_BODY = b'{"event":"payment.captured"}'
WEBHOOK_SIG = "149f0921b8dab66ba5504a4de4e376f5e30470d680899c30ffda46ef7391a360"


def _mutate(value: str, index: int) -> str:
    replacement = "0" if value[index] != "0" else "1"
    return value[:index] + replacement + value[index + 1 :]


@pytest.mark.unit
def test_payment_signature_matches_reference_vector():
    assert payment_signature(ORDER_ID, PAYMENT_ID, KEY_SECRET) == PAYMENT_SIG
    assert verify_payment_signature(ORDER_ID, PAYMENT_ID, PAYMENT_SIG, KEY_SECRET)


@pytest.mark.unit
def test_payment_signature_depends_on_payment_id():
    other = "615f762ae2f5cf5650b1f2c995a70671951f3fe44ac80c9407549904cdbc531a"
    assert payment_signature(ORDER_ID, "pay_IluGb3BZ9Pk6Wr", KEY_SECRET) == other
    assert not verify_payment_signature(
        ORDER_ID, "pay_IluGb3BZ9Pk6Wr", PAYMENT_SIG, KEY_SECRET
    )


@pytest.mark.unit
@pytest.mark.parametrize("index", [0, 17, 63])
def test_single_character_change_fails(index):
    tampered = _mutate(PAYMENT_SIG, index)

    assert not verify_payment_signature(ORDER_ID, PAYMENT_ID, tampered, KEY_SECRET)


@pytest.mark.unit
@pytest.mark.parametrize(
    "signature, secret",
    [
        pytest.param(None, KEY_SECRET, id="missing-signature"),
        pytest.param("", KEY_SECRET, id="empty-signature"),
        pytest.param(PAYMENT_SIG, "", id="missing-secret"),
        pytest.param(PAYMENT_SIG, "wrong_secret", id="wrong-secret"),
        pytest.param("सत्यापन", KEY_SECRET, id="non-ascii"),
    ],
)
def test_payment_signature_rejections(signature, secret):
    assert not verify_payment_signature(ORDER_ID, PAYMENT_ID, signature, secret)


@pytest.mark.unit
def test_webhook_signature_matches_reference_vector():
    assert webhook_signature(WEBHOOK_BODY, WEBHOOK_SECRET) == WEBHOOK_SIG
    assert verify_webhook_signature(WEBHOOK_BODY, WEBHOOK_SIG, WEBHOOK_SECRET)
    assert verify_webhook_signature(
        WEBHOOK_BODY.decode("utf-8"), WEBHOOK_SIG, WEBHOOK_SECRET
    )


@pytest.mark.unit
def test_webhook_signature_covers_exact_bytes():
    reformatted = b'{"event": "payment.captured"}'

    assert not verify_webhook_signature(reformatted, WEBHOOK_SIG, WEBHOOK_SECRET)
    assert not verify_webhook_signature(
        WEBHOOK_BODY, _mutate(WEBHOOK_SIG, 40), WEBHOOK_SECRET
    )
    assert not verify_webhook_signature(WEBHOOK_BODY, None, WEBHOOK_SECRET)
