"""Error taxonomy shared by the payment services."""
from __future__ import annotations


class PaymentError(RuntimeError):
    """Base class for payment service errors."""


class TipValidationError(PaymentError):
    """Raised when a tip request carries invalid caller input."""

    def __init__(self, message: str, *, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field


class PaymentProviderError(PaymentError):
    """Raised when the payment processor is unreachable or rejects a request."""


class SignatureVerificationError(PaymentError):
    """Raised when a webhook payload fails authenticity checks."""


class InvalidWebhookPayloadError(PaymentError):
    """Raised when a verified webhook body cannot be decoded."""


class TransactionNotFoundError(PaymentError):
    """Raised when no Transaction matches the requested identifier."""


__all__ = [
    "InvalidWebhookPayloadError",
    "PaymentError",
    "PaymentProviderError",
    "SignatureVerificationError",
    "TipValidationError",
    "TransactionNotFoundError",
]
