"""Typed decoding of payment processor webhook events."""
from __future__ import annotations

import json
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator

from street_payments.services.errors import InvalidWebhookPayloadError

PAYMENT_SUCCEEDED = "payment_intent.succeeded"
PAYMENT_FAILED = "payment_intent.payment_failed"
PAYMENT_CANCELED = "payment_intent.canceled"


class LastPaymentError(BaseModel):
    model_config = ConfigDict(extra="ignore")

    code: str | None = None
    message: str | None = None


class PaymentIntentObject(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    status: str | None = None
    amount: int | None = None
    currency: str | None = None
    latest_charge: str | None = None
    metadata: dict[str, str] = Field(default_factory=dict)
    last_payment_error: LastPaymentError | None = None

    @field_validator("latest_charge", mode="before")
    @classmethod
    def _charge_id(cls, value: Any) -> Any:
        # Expanded charges arrive as objects.
        if isinstance(value, dict):
            return value.get("id")
        return value


class PaymentIntentData(BaseModel):
    model_config = ConfigDict(extra="ignore")

    object: PaymentIntentObject


class _PaymentIntentEvent(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    data: PaymentIntentData

    @property
    def intent(self) -> PaymentIntentObject:
        return self.data.object


class PaymentIntentSucceeded(_PaymentIntentEvent):
    type: Literal["payment_intent.succeeded"]


class PaymentIntentPaymentFailed(_PaymentIntentEvent):
    type: Literal["payment_intent.payment_failed"]


class PaymentIntentCanceled(_PaymentIntentEvent):
    type: Literal["payment_intent.canceled"]


class UnhandledEvent(BaseModel):
    """Any event type the reconciler acknowledges without acting on."""

    model_config = ConfigDict(extra="ignore")

    id: str
    type: str


PaymentIntentEvent = Annotated[
    Union[PaymentIntentSucceeded, PaymentIntentPaymentFailed, PaymentIntentCanceled],
    Field(discriminator="type"),
]
ProcessorEvent = Union[PaymentIntentSucceeded, PaymentIntentPaymentFailed, PaymentIntentCanceled, UnhandledEvent]

_HANDLED_TYPES = {PAYMENT_SUCCEEDED, PAYMENT_FAILED, PAYMENT_CANCELED}
_payment_intent_event = TypeAdapter(PaymentIntentEvent)


def decode_event(payload: bytes) -> ProcessorEvent:
    """Decode a verified webhook body, validating its shape before dispatch."""

    try:
        raw = json.loads(payload)
    except ValueError as exc:
        raise InvalidWebhookPayloadError("Webhook body is not valid JSON") from exc
    if not isinstance(raw, dict):
        raise InvalidWebhookPayloadError("Webhook body must be a JSON object")

    try:
        if raw.get("type") in _HANDLED_TYPES:
            return _payment_intent_event.validate_python(raw)
        return UnhandledEvent.model_validate(raw)
    except ValidationError as exc:
        raise InvalidWebhookPayloadError(f"Malformed {raw.get('type', 'unknown')} event") from exc


__all__ = [
    "PAYMENT_CANCELED",
    "PAYMENT_FAILED",
    "PAYMENT_SUCCEEDED",
    "PaymentIntentCanceled",
    "PaymentIntentObject",
    "PaymentIntentPaymentFailed",
    "PaymentIntentSucceeded",
    "ProcessorEvent",
    "UnhandledEvent",
    "decode_event",
]
