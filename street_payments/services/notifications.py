"""Kafka delivery of tip notifications."""
from __future__ import annotations

import json
import logging
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any, Protocol
from uuid import uuid4

from kafka import KafkaProducer
from pydantic import BaseModel, Field

from street_payments.core.config import Settings, get_settings
from street_payments.models import Transaction, TransactionStatus
from street_payments.obs import inject_traceparent
from street_payments.services.fees import from_minor_units

logger = logging.getLogger(__name__)

TIP_RECEIVED = "tip_received"
TIP_SENT = "tip_sent"
TIP_FAILED = "tip_failed"


class TipNotification(BaseModel):
    """Message handed to the notification channel: ``{type, recipient, payload}``."""

    notification_id: str = Field(default_factory=lambda: uuid4().hex)
    type: str
    recipient: str
    payload: dict[str, Any]
    occurred_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


def build_tip_notifications(transaction: Transaction) -> list[TipNotification]:
    """Return the notifications owed for a transaction that just reached a terminal state."""

    payload: dict[str, Any] = {
        "transactionId": transaction.id,
        "amount": str(from_minor_units(transaction.amount)),
        "currency": transaction.currency,
        "performanceId": transaction.performance_id,
        "performanceTitle": transaction.performance_title,
    }
    if transaction.public_message:
        payload["message"] = transaction.public_message

    notifications: list[TipNotification] = []
    if transaction.status is TransactionStatus.COMPLETED:
        performer_payload = dict(payload)
        performer_payload["from"] = None if transaction.is_anonymous else transaction.payer_id
        notifications.append(
            TipNotification(type=TIP_RECEIVED, recipient=transaction.performer_id, payload=performer_payload)
        )
        if transaction.payer_id:
            notifications.append(TipNotification(type=TIP_SENT, recipient=transaction.payer_id, payload=payload))
    elif transaction.status is TransactionStatus.FAILED and transaction.payer_id:
        failed_payload = dict(payload)
        failed_payload["reason"] = transaction.failure_reason
        notifications.append(TipNotification(type=TIP_FAILED, recipient=transaction.payer_id, payload=failed_payload))
    return notifications


class NotificationPublisher(Protocol):
    def publish(self, notification: TipNotification) -> None:
        """Hand ``notification`` to the delivery channel."""


class KafkaNotificationPublisher:
    """Publishes tip notifications to the notification topic."""

    def __init__(
        self,
        *,
        settings: Settings | None = None,
        producer_factory: Callable[[], KafkaProducer] | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._producer_factory = producer_factory or self._default_factory
        self._producer: KafkaProducer | None = None

    def _default_factory(self) -> KafkaProducer:
        return KafkaProducer(
            bootstrap_servers=self._settings.kafka_bootstrap_servers.split(","),
            value_serializer=lambda value: json.dumps(value).encode("utf-8"),
        )

    def _get_producer(self) -> KafkaProducer:
        if self._producer is None:
            self._producer = self._producer_factory()
        return self._producer

    def publish(self, notification: TipNotification) -> None:
        producer = self._get_producer()
        headers = [(key, value.encode("utf-8")) for key, value in inject_traceparent({}).items()]
        logger.debug(
            "publishing tip notification",
            extra={"notification_type": notification.type, "recipient": notification.recipient},
        )
        producer.send(
            self._settings.notification_topic,
            value=notification.model_dump(mode="json"),
            headers=headers,
        )
        producer.flush()


__all__ = [
    "KafkaNotificationPublisher",
    "NotificationPublisher",
    "TIP_FAILED",
    "TIP_RECEIVED",
    "TIP_SENT",
    "TipNotification",
    "build_tip_notifications",
]
