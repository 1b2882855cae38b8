"""Common dependencies for API routes."""
from __future__ import annotations

from collections.abc import Iterator

from sqlalchemy.orm import Session

from street_payments.core.config import get_settings
from street_payments.db.session import SessionLocal
from street_payments.services.notifications import KafkaNotificationPublisher, NotificationPublisher
from street_payments.services.processor import PaymentProcessor, StripePaymentProcessor


def get_db_session() -> Iterator[Session]:
    """Yield a database session for FastAPI dependencies."""

    session: Session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


def get_payment_processor() -> PaymentProcessor:
    return StripePaymentProcessor.from_settings(get_settings())


def get_notification_publisher() -> NotificationPublisher:
    return KafkaNotificationPublisher(settings=get_settings())


__all__ = ["get_db_session", "get_notification_publisher", "get_payment_processor"]
