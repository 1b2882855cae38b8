from __future__ import annotations

from sqlalchemy import select

from street_payments.models import AuditLog, TransactionStatus
from tests.conftest import VALID_SIGNATURE, build_event, make_transaction

WEBHOOK_URL = "/api/payments/webhooks/stripe"


def _post(client, payload: bytes, signature: str | None = VALID_SIGNATURE):
    headers = {"Content-Type": "application/json"}
    if signature is not None:
        headers["Stripe-Signature"] = signature
    return client.post(WEBHOOK_URL, content=payload, headers=headers)


def test_succeeded_webhook_completes_transaction(client, db_session, notifier) -> None:
    transaction = make_transaction(db_session, payment_intent_id="pi_paid")

    response = _post(client, build_event("payment_intent.succeeded", "pi_paid", latest_charge="ch_paid"))

    assert response.status_code == 200
    assert response.json() == {"received": True}
    db_session.refresh(transaction)
    assert transaction.status == TransactionStatus.COMPLETED
    assert transaction.charge_id == "ch_paid"
    assert notifier.types() == ["tip_received", "tip_sent"]


def test_duplicate_delivery_is_acknowledged_once(client, db_session, notifier) -> None:
    make_transaction(db_session, payment_intent_id="pi_dup")
    event = build_event("payment_intent.succeeded", "pi_dup")

    first = _post(client, event)
    second = _post(client, event)

    assert first.status_code == second.status_code == 200
    assert len(notifier.sent) == 2
    actions = [entry.action for entry in db_session.scalars(select(AuditLog))]
    assert actions == ["tip.completed"]


def test_failed_webhook_marks_transaction_failed(client, db_session, notifier) -> None:
    transaction = make_transaction(db_session, payment_intent_id="pi_declined")

    response = _post(
        client,
        build_event(
            "payment_intent.payment_failed",
            "pi_declined",
            last_payment_error={"message": "Your card has insufficient funds."},
        ),
    )

    assert response.status_code == 200
    db_session.refresh(transaction)
    assert transaction.status == TransactionStatus.FAILED
    assert transaction.failure_reason == "Your card has insufficient funds."
    assert notifier.types() == ["tip_failed"]


def test_bad_signature_is_rejected(client, db_session) -> None:
    transaction = make_transaction(db_session, payment_intent_id="pi_forged")

    response = _post(client, build_event("payment_intent.succeeded", "pi_forged"), signature="t=1,v1=forged")

    assert response.status_code == 400
    db_session.refresh(transaction)
    assert transaction.status == TransactionStatus.PENDING


def test_missing_signature_is_rejected(client) -> None:
    response = _post(client, build_event("payment_intent.succeeded", "pi_any"), signature=None)

    assert response.status_code == 400


def test_unknown_intent_is_acknowledged(client, notifier) -> None:
    response = _post(client, build_event("payment_intent.succeeded", "pi_never_created"))

    assert response.status_code == 200
    assert response.json() == {"received": True}
    assert notifier.sent == []


def test_malformed_body_is_rejected(client) -> None:
    response = _post(client, b'{"type": "payment_intent.succeeded"}')

    assert response.status_code == 400


def test_unhandled_event_type_is_acknowledged(client) -> None:
    response = _post(client, build_event("customer.created", "cus_1"))

    assert response.status_code == 200
