from __future__ import annotations

from sqlalchemy import select

from street_payments.models import Transaction, TransactionStatus
from street_payments.services.errors import PaymentProviderError


def _tip_payload(**overrides: object) -> dict[str, object]:
    payload: dict[str, object] = {
        "amount": "5.00",
        "performanceId": "performance-1",
        "performerId": "artist-1",
        "isAnonymous": False,
        "publicMessage": "Bravo!",
        "performanceTitle": "Sunset Jazz at Plaza Mayor",
        "country": "ES",
    }
    payload.update(overrides)
    return payload


def test_create_tip_returns_client_secret_and_breakdown(client, db_session, processor, auth_headers) -> None:
    response = client.post("/api/payments/tip", json=_tip_payload(), headers=auth_headers("fan-1"))

    assert response.status_code == 201
    body = response.json()
    assert body["amount"] == "5.00"
    assert body["processingFee"] == "0.45"
    assert body["netAmount"] == "4.55"
    assert body["clientSecret"].startswith(body["paymentIntentId"])

    transaction = db_session.get(Transaction, body["transactionId"])
    assert transaction is not None
    assert transaction.status == TransactionStatus.PENDING
    assert transaction.payer_id == "fan-1"
    assert transaction.payment_intent_id == body["paymentIntentId"]
    assert processor.created[0].amount == 500


def test_anonymous_caller_can_tip(client, db_session) -> None:
    response = client.post("/api/payments/tip", json=_tip_payload(isAnonymous=True))

    assert response.status_code == 201
    transaction = db_session.get(Transaction, response.json()["transactionId"])
    assert transaction is not None
    assert transaction.payer_id is None
    assert transaction.is_anonymous is True


def test_tip_below_minimum_is_rejected_without_processor_call(client, db_session, processor) -> None:
    response = client.post("/api/payments/tip", json=_tip_payload(amount="0.30"))

    assert response.status_code == 400
    assert "between 0.50 and 100.00" in response.json()["detail"]
    assert processor.created == []
    assert db_session.scalars(select(Transaction)).all() == []


def test_tip_with_long_message_is_rejected(client, processor) -> None:
    response = client.post("/api/payments/tip", json=_tip_payload(publicMessage="x" * 201))

    assert response.status_code == 400
    assert processor.created == []


def test_missing_fields_fail_request_validation(client) -> None:
    response = client.post("/api/payments/tip", json={"amount": "5.00"})

    assert response.status_code == 422


def test_processor_failure_returns_bad_gateway(client, db_session, processor) -> None:
    processor.fail_with = PaymentProviderError("card network unavailable")

    response = client.post("/api/payments/tip", json=_tip_payload())

    assert response.status_code == 502
    assert response.json()["detail"] == "Failed to create payment. Please try again."
    assert db_session.scalars(select(Transaction)).all() == []


def test_invalid_bearer_token_is_rejected(client) -> None:
    response = client.post(
        "/api/payments/tip",
        json=_tip_payload(),
        headers={"Authorization": "Bearer not-a-jwt"},
    )

    assert response.status_code == 401


def test_payer_can_read_created_transaction(client, auth_headers) -> None:
    created = client.post("/api/payments/tip", json=_tip_payload(), headers=auth_headers("fan-1")).json()

    response = client.get(f"/api/payments/transactions/{created['transactionId']}", headers=auth_headers("fan-1"))

    assert response.status_code == 200
    body = response.json()
    assert body["id"] == created["transactionId"]
    assert body["paymentIntentId"] == created["paymentIntentId"]
    assert body["amount"] == "5.00"
    assert body["processingFee"] == "0.45"
    assert body["netAmount"] == "4.55"
    assert body["status"] == "pending"
    assert body["publicMessage"] == "Bravo!"
    assert "clientSecret" not in body


def test_performer_can_read_transaction(client, auth_headers) -> None:
    created = client.post("/api/payments/tip", json=_tip_payload(), headers=auth_headers("fan-1")).json()

    response = client.get(
        f"/api/payments/transactions/{created['transactionId']}", headers=auth_headers("artist-1")
    )

    assert response.status_code == 200


def test_other_users_cannot_read_transaction(client, auth_headers) -> None:
    created = client.post("/api/payments/tip", json=_tip_payload(), headers=auth_headers("fan-1")).json()

    response = client.get(
        f"/api/payments/transactions/{created['transactionId']}", headers=auth_headers("stranger")
    )

    assert response.status_code == 403


def test_unknown_transaction_returns_not_found(client, auth_headers) -> None:
    response = client.get("/api/payments/transactions/missing", headers=auth_headers("fan-1"))

    assert response.status_code == 404


def test_transaction_read_requires_authentication(client) -> None:
    response = client.get("/api/payments/transactions/anything")

    assert response.status_code in {401, 403}


def test_payment_config_defaults_to_spain(client) -> None:
    response = client.get("/api/payments/config")

    assert response.status_code == 200
    body = response.json()
    assert body["currency"] == "EUR"
    assert body["paymentMethods"] == ["card", "bizum"]
    assert body["minAmount"] == "0.50"
    assert body["maxAmount"] == "100.00"
    assert body["suggestedAmounts"] == [1, 3, 5, 10]
    assert isinstance(body["isConfigured"], bool)


def test_payment_config_for_germany(client) -> None:
    response = client.get("/api/payments/config", params={"country": "DE"})

    assert response.json()["paymentMethods"] == ["card", "sofort", "giropay"]


def test_sub_cent_amount_is_rejected(client, processor) -> None:
    response = client.post("/api/payments/tip", json=_tip_payload(amount="5.005"))

    assert response.status_code == 400
    assert "2 decimal places" in response.json()["detail"]
    assert processor.created == []
