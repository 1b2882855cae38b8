"""Tip creation: validation, fee computation and payment intent orchestration."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

from sqlalchemy import select
from sqlalchemy.orm import Session

from street_payments.core.config import Settings, get_settings
from street_payments.models import AuditLog, Transaction, TransactionStatus
from street_payments.obs import TIPS_CREATED_COUNTER
from street_payments.services.errors import TipValidationError, TransactionNotFoundError
from street_payments.services.fees import CENT, calculate_fees, to_minor_units
from street_payments.services.processor import (
    PaymentIntentRequest,
    PaymentProcessor,
    StripePaymentProcessor,
    payment_method_types,
)

logger = logging.getLogger(__name__)

PUBLIC_MESSAGE_MAX_LENGTH = 200


@dataclass(slots=True, frozen=True)
class TipRequest:
    """Input data for a tip. ``amount`` is in major currency units."""

    amount: Decimal
    performance_id: str
    performer_id: str
    payer_id: str | None = None
    is_anonymous: bool = False
    public_message: str | None = None
    performance_title: str | None = None
    country: str | None = None


@dataclass(slots=True, frozen=True)
class TipPaymentResult:
    """Returned to the caller; amounts are in minor units."""

    transaction_id: str
    payment_intent_id: str
    client_secret: str
    amount: int
    processing_fee: int
    net_amount: int


class TipService:
    """Creates tip payment intents and their pending Transaction records."""

    def __init__(
        self,
        session: Session,
        *,
        settings: Settings | None = None,
        processor: PaymentProcessor | None = None,
    ) -> None:
        self._session = session
        self._settings = settings or get_settings()
        self._processor = processor or StripePaymentProcessor.from_settings(self._settings)

    def create_tip(self, request: TipRequest) -> TipPaymentResult:
        """Validate ``request``, create the processor-side intent and persist a pending record.

        Raises ``TipValidationError`` before any processor call when the input is
        invalid, and ``PaymentProviderError`` when the processor fails.
        """

        amount = self._validate(request)
        fees = calculate_fees(
            to_minor_units(amount),
            rate=self._settings.processing_fee_rate,
            fixed=self._settings.processing_fee_fixed,
        )
        currency = self._settings.currency

        intent_request = PaymentIntentRequest(
            amount=fees.amount,
            currency=currency,
            description=f"Tip for street performance {request.performance_id}",
            payment_method_types=tuple(payment_method_types(request.country)),
            statement_descriptor_suffix=self._settings.stripe_statement_descriptor_suffix,
            metadata={
                "type": "tip",
                "performanceId": request.performance_id,
                "performerId": request.performer_id,
                "payerId": request.payer_id or "anonymous",
                "isAnonymous": str(request.is_anonymous).lower(),
                "publicMessage": request.public_message or "",
                "processingFee": str(fees.processing_fee),
                "netAmount": str(fees.net_amount),
            },
        )
        intent = self._processor.create_payment_intent(intent_request)

        # The client secret is handed to the browser only and never stored.
        transaction = Transaction(
            payment_intent_id=intent.id,
            payer_id=request.payer_id,
            performer_id=request.performer_id,
            performance_id=request.performance_id,
            performance_title=request.performance_title,
            amount=fees.amount,
            processing_fee=fees.processing_fee,
            net_amount=fees.net_amount,
            currency=currency,
            status=TransactionStatus.PENDING,
            is_anonymous=request.is_anonymous,
            public_message=request.public_message,
        )
        self._session.add(transaction)
        self._session.flush()
        self._session.add(
            AuditLog(
                actor_id=request.payer_id,
                action="tip.created",
                resource_type="Transaction",
                resource_id=transaction.id,
                payload={
                    "payment_intent_id": intent.id,
                    "amount": fees.amount,
                    "processing_fee": fees.processing_fee,
                    "net_amount": fees.net_amount,
                    "currency": currency,
                    "performer_id": request.performer_id,
                    "performance_id": request.performance_id,
                },
            )
        )
        self._session.commit()

        TIPS_CREATED_COUNTER.labels(currency=currency).inc()
        logger.info(
            "created tip transaction",
            extra={
                "transaction_id": transaction.id,
                "payment_intent_id": intent.id,
                "amount": fees.amount,
                "currency": currency,
            },
        )
        return TipPaymentResult(
            transaction_id=transaction.id,
            payment_intent_id=intent.id,
            client_secret=intent.client_secret,
            amount=fees.amount,
            processing_fee=fees.processing_fee,
            net_amount=fees.net_amount,
        )

    def get_transaction(self, transaction_id: str) -> Transaction:
        transaction = self._session.get(Transaction, transaction_id)
        if transaction is None:
            raise TransactionNotFoundError(f"Transaction '{transaction_id}' was not found")
        return transaction

    def get_by_payment_intent(self, payment_intent_id: str) -> Transaction | None:
        return self._session.scalars(
            select(Transaction).where(Transaction.payment_intent_id == payment_intent_id)
        ).one_or_none()

    def _validate(self, request: TipRequest) -> Decimal:
        try:
            amount = Decimal(request.amount)
        except (InvalidOperation, TypeError, ValueError) as exc:
            raise TipValidationError("Amount must be a number", field="amount") from exc
        if not amount.is_finite():
            raise TipValidationError("Amount must be a number", field="amount")

        minimum = self._settings.tip_min_amount
        maximum = self._settings.tip_max_amount
        if amount < minimum or amount > maximum:
            raise TipValidationError(
                f"Tip amount must be between {minimum.quantize(CENT)} and {maximum.quantize(CENT)}",
                field="amount",
            )
        if amount != amount.quantize(CENT):
            raise TipValidationError("Amount must have at most 2 decimal places", field="amount")
        if not request.performance_id or not request.performer_id:
            raise TipValidationError(
                "Missing required fields: performanceId, performerId",
                field="performanceId" if not request.performance_id else "performerId",
            )
        if request.public_message and len(request.public_message) > PUBLIC_MESSAGE_MAX_LENGTH:
            raise TipValidationError(
                f"Public message must be at most {PUBLIC_MESSAGE_MAX_LENGTH} characters",
                field="publicMessage",
            )
        return amount


__all__ = ["PUBLIC_MESSAGE_MAX_LENGTH", "TipPaymentResult", "TipRequest", "TipService"]
