from __future__ import annotations

import json
from collections.abc import Callable, Iterator
from dataclasses import replace
from datetime import datetime
from pathlib import Path
import sys
from typing import Any
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient
from jose import jwt  # type: ignore[import-untyped]
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from street_payments.api.deps import get_db_session, get_notification_publisher, get_payment_processor
from street_payments.core.config import get_settings
from street_payments.main import app
from street_payments.models import Base, Transaction, TransactionStatus
from street_payments.services.errors import PaymentProviderError, SignatureVerificationError
from street_payments.services.fees import calculate_fees
from street_payments.services.notifications import TipNotification
from street_payments.services.processor import (
    CreatedPaymentIntent,
    PaymentIntentRequest,
    PaymentIntentSnapshot,
)

VALID_SIGNATURE = "t=1700000000,v1=valid"


class FakePaymentProcessor:
    """In-memory processor keeping intents in a dict."""

    def __init__(self) -> None:
        self.created: list[PaymentIntentRequest] = []
        self.retrieved: list[str] = []
        self.intents: dict[str, PaymentIntentSnapshot] = {}
        self.fail_with: Exception | None = None

    def create_payment_intent(self, request: PaymentIntentRequest) -> CreatedPaymentIntent:
        if self.fail_with is not None:
            raise self.fail_with
        intent_id = f"pi_{uuid4().hex[:24]}"
        self.created.append(request)
        self.intents[intent_id] = PaymentIntentSnapshot(
            id=intent_id,
            status="requires_payment_method",
            amount=request.amount,
            currency=request.currency.lower(),
        )
        return CreatedPaymentIntent(id=intent_id, client_secret=f"{intent_id}_secret_test")

    def retrieve_payment_intent(self, intent_id: str) -> PaymentIntentSnapshot:
        self.retrieved.append(intent_id)
        if intent_id not in self.intents:
            raise PaymentProviderError(f"No such payment_intent: '{intent_id}'")
        return self.intents[intent_id]

    def verify_webhook(self, payload: bytes, signature: str | None) -> None:
        if not signature:
            raise SignatureVerificationError("Missing Stripe signature")
        if signature != VALID_SIGNATURE:
            raise SignatureVerificationError("Webhook verification failed")

    def set_status(self, intent_id: str, status: str, *, latest_charge: str | None = None) -> None:
        snapshot = self.intents.get(intent_id) or PaymentIntentSnapshot(
            id=intent_id, status=status, amount=500, currency="eur"
        )
        self.intents[intent_id] = replace(snapshot, status=status, latest_charge=latest_charge)


class RecordingNotifier:
    def __init__(self) -> None:
        self.sent: list[TipNotification] = []

    def publish(self, notification: TipNotification) -> None:
        self.sent.append(notification)

    def types(self) -> list[str]:
        return [notification.type for notification in self.sent]


def build_event(event_type: str, intent_id: str, **intent_fields: Any) -> bytes:
    """Serialise a processor webhook event body."""

    body = {
        "id": f"evt_{uuid4().hex[:24]}",
        "object": "event",
        "type": event_type,
        "data": {"object": {"id": intent_id, "object": "payment_intent", **intent_fields}},
    }
    return json.dumps(body).encode("utf-8")


def make_transaction(
    session: Session,
    *,
    payment_intent_id: str | None = None,
    amount: int = 500,
    status: TransactionStatus = TransactionStatus.PENDING,
    payer_id: str | None = "fan-1",
    performer_id: str = "artist-1",
    performance_id: str = "performance-1",
    is_anonymous: bool = False,
    public_message: str | None = None,
    created_at: datetime | None = None,
) -> Transaction:
    fees = calculate_fees(amount, rate=get_settings().processing_fee_rate, fixed=get_settings().processing_fee_fixed)
    transaction = Transaction(
        payment_intent_id=payment_intent_id or f"pi_{uuid4().hex[:24]}",
        payer_id=payer_id,
        performer_id=performer_id,
        performance_id=performance_id,
        performance_title="Sunset Jazz at Plaza Mayor",
        amount=fees.amount,
        processing_fee=fees.processing_fee,
        net_amount=fees.net_amount,
        currency="EUR",
        status=status,
        is_anonymous=is_anonymous,
        public_message=public_message,
    )
    if created_at is not None:
        transaction.created_at = created_at
        transaction.updated_at = created_at
    session.add(transaction)
    session.commit()
    return transaction


def make_token(user_id: str) -> str:
    settings = get_settings()
    return jwt.encode({"sub": user_id}, settings.identity_jwt_key, algorithm=settings.identity_jwt_algorithm)


DATABASE_URL = "sqlite+pysqlite:///:memory:"


engine = create_engine(
    DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture()
def db_session() -> Iterator[Session]:
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    yield session
    session.close()


@pytest.fixture()
def processor() -> FakePaymentProcessor:
    return FakePaymentProcessor()


@pytest.fixture()
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture()
def client(
    db_session: Session,
    processor: FakePaymentProcessor,
    notifier: RecordingNotifier,
) -> Iterator[TestClient]:
    def override_get_db() -> Iterator[Session]:
        try:
            yield db_session
        finally:
            db_session.rollback()

    app.dependency_overrides[get_db_session] = override_get_db
    app.dependency_overrides[get_payment_processor] = lambda: processor
    app.dependency_overrides[get_notification_publisher] = lambda: notifier

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture()
def auth_headers() -> Callable[[str], dict[str, str]]:
    def _headers(user_id: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {make_token(user_id)}"}

    return _headers
