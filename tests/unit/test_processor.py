from __future__ import annotations

import hashlib
import hmac
import time
from types import SimpleNamespace

import pytest
import stripe

from street_payments.services.errors import PaymentProviderError, SignatureVerificationError
from street_payments.services.processor import (
    PaymentIntentRequest,
    StripePaymentProcessor,
    payment_method_types,
)

SECRET = "whsec_test_secret"
PAYLOAD = b'{"id": "evt_1", "type": "payment_intent.succeeded"}'


def _sign(payload: bytes, secret: str, timestamp: int | None = None) -> str:
    timestamp = timestamp if timestamp is not None else int(time.time())
    signed = f"{timestamp}.{payload.decode('utf-8')}".encode("utf-8")
    digest = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"


def _processor(**overrides: object) -> StripePaymentProcessor:
    options = {"api_key": "sk_test_123", "webhook_secret": SECRET}
    options.update(overrides)
    return StripePaymentProcessor(**options)  # type: ignore[arg-type]


def test_valid_signature_is_accepted() -> None:
    _processor().verify_webhook(PAYLOAD, _sign(PAYLOAD, SECRET))


def test_tampered_payload_is_rejected() -> None:
    signature = _sign(PAYLOAD, SECRET)

    with pytest.raises(SignatureVerificationError):
        _processor().verify_webhook(PAYLOAD.replace(b"succeeded", b"canceled"), signature)


def test_signature_from_other_secret_is_rejected() -> None:
    with pytest.raises(SignatureVerificationError):
        _processor().verify_webhook(PAYLOAD, _sign(PAYLOAD, "whsec_other"))


def test_stale_signature_is_rejected() -> None:
    with pytest.raises(SignatureVerificationError):
        _processor().verify_webhook(PAYLOAD, _sign(PAYLOAD, SECRET, timestamp=int(time.time()) - 3600))


def test_missing_signature_is_rejected() -> None:
    with pytest.raises(SignatureVerificationError, match="Missing"):
        _processor().verify_webhook(PAYLOAD, None)


def test_unconfigured_secret_rejects_everything() -> None:
    with pytest.raises(SignatureVerificationError):
        _processor(webhook_secret=None).verify_webhook(PAYLOAD, _sign(PAYLOAD, SECRET))


def test_create_payment_intent_sends_minor_units(monkeypatch: pytest.MonkeyPatch) -> None:
    captured: dict[str, object] = {}

    def fake_create(**kwargs: object) -> SimpleNamespace:
        captured.update(kwargs)
        return SimpleNamespace(id="pi_123", client_secret="pi_123_secret_abc")

    monkeypatch.setattr(stripe.PaymentIntent, "create", fake_create)
    request = PaymentIntentRequest(
        amount=500,
        currency="EUR",
        description="Tip",
        metadata={"type": "tip"},
        payment_method_types=("card", "bizum"),
        statement_descriptor_suffix="Street Music",
    )

    created = _processor().create_payment_intent(request)

    assert created.id == "pi_123"
    assert created.client_secret == "pi_123_secret_abc"
    assert captured["amount"] == 500
    assert captured["currency"] == "eur"
    assert captured["payment_method_types"] == ["card", "bizum"]
    assert captured["api_key"] == "sk_test_123"
    assert captured["statement_descriptor_suffix"] == "Street Music"


def test_processor_errors_become_provider_errors(monkeypatch: pytest.MonkeyPatch) -> None:
    def fake_create(**_: object) -> None:
        raise stripe.StripeError("network down")

    monkeypatch.setattr(stripe.PaymentIntent, "create", fake_create)
    request = PaymentIntentRequest(amount=500, currency="EUR", description="Tip", metadata={})

    with pytest.raises(PaymentProviderError):
        _processor().create_payment_intent(request)


def test_missing_api_key_is_a_provider_error() -> None:
    request = PaymentIntentRequest(amount=500, currency="EUR", description="Tip", metadata={})

    with pytest.raises(PaymentProviderError, match="not configured"):
        _processor(api_key=None).create_payment_intent(request)


def test_retrieve_reads_latest_charge(monkeypatch: pytest.MonkeyPatch) -> None:
    def fake_retrieve(intent_id: str, **_: object) -> SimpleNamespace:
        return SimpleNamespace(
            id=intent_id,
            status="succeeded",
            amount=500,
            currency="eur",
            latest_charge=SimpleNamespace(id="ch_42"),
        )

    monkeypatch.setattr(stripe.PaymentIntent, "retrieve", fake_retrieve)

    snapshot = _processor().retrieve_payment_intent("pi_9")

    assert snapshot.succeeded
    assert snapshot.latest_charge == "ch_42"


@pytest.mark.parametrize(
    ("country", "expected"),
    [
        ("ES", ["card", "bizum"]),
        ("de", ["card", "sofort", "giropay"]),
        ("FR", ["card", "bancontact"]),
        ("NL", ["card", "ideal"]),
        ("IT", ["card"]),
        (None, ["card"]),
    ],
)
def test_payment_method_types_by_country(country: str | None, expected: list[str]) -> None:
    assert payment_method_types(country) == expected
