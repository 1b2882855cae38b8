"""Payment processor gateway."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Protocol

import stripe

from street_payments.core.config import Settings, get_settings
from street_payments.services.errors import PaymentProviderError, SignatureVerificationError

logger = logging.getLogger(__name__)

_COUNTRY_PAYMENT_METHODS: dict[str, tuple[str, ...]] = {
    "es": ("bizum",),
    "de": ("sofort", "giropay"),
    "fr": ("bancontact",),
    "nl": ("ideal",),
}


def payment_method_types(country: str | None) -> list[str]:
    """Return the payment method types offered to payers in ``country``."""
    extra = _COUNTRY_PAYMENT_METHODS.get((country or "").lower(), ())
    return ["card", *extra]


@dataclass(slots=True, frozen=True)
class PaymentIntentRequest:
    """Payload submitted to the processor when creating a payment intent."""

    amount: int
    currency: str
    description: str
    metadata: dict[str, str]
    payment_method_types: tuple[str, ...] = ("card",)
    statement_descriptor_suffix: str | None = None

    def to_params(self) -> dict[str, Any]:
        params: dict[str, Any] = {
            "amount": self.amount,
            "currency": self.currency.lower(),
            "payment_method_types": list(self.payment_method_types),
            "metadata": dict(self.metadata),
            "description": self.description,
        }
        if self.statement_descriptor_suffix:
            params["statement_descriptor_suffix"] = self.statement_descriptor_suffix
        return params


@dataclass(slots=True, frozen=True)
class CreatedPaymentIntent:
    id: str
    client_secret: str


@dataclass(slots=True, frozen=True)
class PaymentIntentSnapshot:
    """Authoritative state of an intent as reported by the processor."""

    id: str
    status: str
    amount: int
    currency: str
    latest_charge: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.status == "succeeded"

    @property
    def canceled(self) -> bool:
        return self.status == "canceled"


class PaymentProcessor(Protocol):
    """Protocol describing the operations used against the payment processor."""

    def create_payment_intent(self, request: PaymentIntentRequest) -> CreatedPaymentIntent:
        """Create a payment intent and return its id and client secret."""

    def retrieve_payment_intent(self, intent_id: str) -> PaymentIntentSnapshot:
        """Fetch the processor's current view of an intent."""

    def verify_webhook(self, payload: bytes, signature: str | None) -> None:
        """Raise ``SignatureVerificationError`` unless ``signature`` authenticates ``payload``."""


class StripePaymentProcessor:
    """Stripe-backed implementation of :class:`PaymentProcessor`."""

    def __init__(
        self,
        *,
        api_key: str | None,
        webhook_secret: str | None,
        tolerance_seconds: int = 300,
    ) -> None:
        self._api_key = api_key
        self._webhook_secret = webhook_secret
        self._tolerance = tolerance_seconds

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "StripePaymentProcessor":
        settings = settings or get_settings()
        return cls(
            api_key=settings.stripe_secret_key,
            webhook_secret=settings.stripe_webhook_secret,
            tolerance_seconds=settings.stripe_webhook_tolerance_seconds,
        )

    def create_payment_intent(self, request: PaymentIntentRequest) -> CreatedPaymentIntent:
        api_key = self._require_api_key()
        try:
            intent = stripe.PaymentIntent.create(api_key=api_key, **request.to_params())
        except stripe.StripeError as exc:
            logger.error("stripe payment intent creation failed", extra={"error": str(exc)})
            raise PaymentProviderError(f"Payment intent creation failed: {exc}") from exc

        client_secret = intent.client_secret
        if not client_secret:
            raise PaymentProviderError("Payment processor returned an intent without a client secret")
        logger.info(
            "created payment intent",
            extra={"payment_intent_id": intent.id, "amount": request.amount, "currency": request.currency},
        )
        return CreatedPaymentIntent(id=intent.id, client_secret=client_secret)

    def retrieve_payment_intent(self, intent_id: str) -> PaymentIntentSnapshot:
        api_key = self._require_api_key()
        try:
            intent = stripe.PaymentIntent.retrieve(intent_id, api_key=api_key)
        except stripe.StripeError as exc:
            logger.error(
                "stripe payment intent retrieval failed",
                extra={"payment_intent_id": intent_id, "error": str(exc)},
            )
            raise PaymentProviderError(f"Failed to retrieve payment intent {intent_id}: {exc}") from exc

        latest_charge = getattr(intent, "latest_charge", None)
        if latest_charge is not None and not isinstance(latest_charge, str):
            latest_charge = getattr(latest_charge, "id", None)
        return PaymentIntentSnapshot(
            id=intent.id,
            status=intent.status,
            amount=intent.amount,
            currency=intent.currency,
            latest_charge=latest_charge,
        )

    def verify_webhook(self, payload: bytes, signature: str | None) -> None:
        if not signature:
            raise SignatureVerificationError("Missing Stripe signature")
        if not self._webhook_secret:
            raise SignatureVerificationError("Webhook secret not configured")
        try:
            stripe.WebhookSignature.verify_header(
                payload.decode("utf-8"),
                signature,
                self._webhook_secret,
                self._tolerance,
            )
        except UnicodeDecodeError as exc:
            raise SignatureVerificationError("Webhook payload is not valid UTF-8") from exc
        except stripe.SignatureVerificationError as exc:
            raise SignatureVerificationError(f"Webhook verification failed: {exc}") from exc

    def _require_api_key(self) -> str:
        if not self._api_key:
            raise PaymentProviderError("Payment processor is not configured")
        return self._api_key


__all__ = [
    "CreatedPaymentIntent",
    "PaymentIntentRequest",
    "PaymentIntentSnapshot",
    "PaymentProcessor",
    "StripePaymentProcessor",
    "payment_method_types",
]
