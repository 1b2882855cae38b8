"""Tip payment API routes."""
from __future__ import annotations

import logging
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from street_payments.api.auth import AuthenticatedUser, get_current_user, get_optional_user
from street_payments.api.deps import get_db_session, get_notification_publisher, get_payment_processor
from street_payments.core.config import get_settings
from street_payments.models import Transaction
from street_payments.schemas import (
    EarningsRead,
    EarningsResponse,
    PaymentConfigResponse,
    PerformanceSummaryRead,
    PerformanceSummaryResponse,
    RecentTipRead,
    TipCreateRequest,
    TipCreateResponse,
    TransactionRead,
    WebhookAck,
)
from street_payments.services.errors import (
    InvalidWebhookPayloadError,
    PaymentProviderError,
    SignatureVerificationError,
    TipValidationError,
    TransactionNotFoundError,
)
from street_payments.services.fees import from_minor_units
from street_payments.services.notifications import NotificationPublisher
from street_payments.services.processor import PaymentProcessor, payment_method_types
from street_payments.services.reconciliation import PaymentReconciler
from street_payments.services.reporting import ANONYMOUS_LABEL, TipReportingService
from street_payments.services.tips import TipRequest, TipService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payments")


def _transaction_read(transaction: Transaction) -> TransactionRead:
    return TransactionRead(
        id=transaction.id,
        payment_intent_id=transaction.payment_intent_id,
        payer_id=transaction.payer_id,
        performer_id=transaction.performer_id,
        performance_id=transaction.performance_id,
        performance_title=transaction.performance_title,
        amount=from_minor_units(transaction.amount),
        processing_fee=from_minor_units(transaction.processing_fee),
        net_amount=from_minor_units(transaction.net_amount),
        currency=transaction.currency,
        status=transaction.status,
        is_anonymous=transaction.is_anonymous,
        public_message=transaction.public_message,
        charge_id=transaction.charge_id,
        failure_reason=transaction.failure_reason,
        created_at=transaction.created_at,
        completed_at=transaction.completed_at,
    )


@router.post("/tip", response_model=TipCreateResponse, status_code=status.HTTP_201_CREATED)
def create_tip(
    payload: TipCreateRequest,
    session: Session = Depends(get_db_session),
    processor: PaymentProcessor = Depends(get_payment_processor),
    user: AuthenticatedUser | None = Depends(get_optional_user),
) -> TipCreateResponse:
    service = TipService(session, processor=processor)
    tip_request = TipRequest(
        amount=payload.amount,
        performance_id=payload.performance_id,
        performer_id=payload.performer_id,
        payer_id=user.user_id if user else None,
        is_anonymous=payload.is_anonymous,
        public_message=payload.public_message,
        performance_title=payload.performance_title,
        country=payload.country,
    )

    try:
        result = service.create_tip(tip_request)
    except TipValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except PaymentProviderError as exc:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Failed to create payment. Please try again.",
        ) from exc

    return TipCreateResponse(
        transaction_id=result.transaction_id,
        payment_intent_id=result.payment_intent_id,
        client_secret=result.client_secret,
        amount=from_minor_units(result.amount),
        processing_fee=from_minor_units(result.processing_fee),
        net_amount=from_minor_units(result.net_amount),
    )


@router.post("/webhooks/stripe", response_model=WebhookAck)
async def stripe_webhook(
    request: Request,
    session: Session = Depends(get_db_session),
    processor: PaymentProcessor = Depends(get_payment_processor),
    notifier: NotificationPublisher = Depends(get_notification_publisher),
) -> WebhookAck:
    payload = await request.body()
    signature = request.headers.get("stripe-signature")
    reconciler = PaymentReconciler(session, processor=processor, notifier=notifier)

    try:
        await run_in_threadpool(reconciler.handle_webhook, payload, signature)
    except SignatureVerificationError as exc:
        logger.warning("rejected webhook", extra={"reason": str(exc)})
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Webhook Error: {exc}") from exc
    except InvalidWebhookPayloadError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Webhook Error: {exc}") from exc
    return WebhookAck()


@router.get("/config", response_model=PaymentConfigResponse)
def payment_config(country: str | None = Query(default=None, min_length=2, max_length=2)) -> PaymentConfigResponse:
    settings = get_settings()
    return PaymentConfigResponse(
        currency=settings.currency,
        payment_methods=payment_method_types(country or settings.default_country),
        is_configured=settings.stripe_configured,
        min_amount=settings.tip_min_amount,
        max_amount=settings.tip_max_amount,
        suggested_amounts=list(settings.tip_suggested_amounts),
    )


@router.get("/transactions/{transaction_id}", response_model=TransactionRead)
def get_transaction(
    transaction_id: str,
    session: Session = Depends(get_db_session),
    processor: PaymentProcessor = Depends(get_payment_processor),
    user: AuthenticatedUser = Depends(get_current_user),
) -> TransactionRead:
    service = TipService(session, processor=processor)
    try:
        transaction = service.get_transaction(transaction_id)
    except TransactionNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Transaction not found") from exc

    if user.user_id not in {transaction.payer_id, transaction.performer_id}:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Unauthorized")
    return _transaction_read(transaction)


@router.get("/earnings", response_model=EarningsResponse)
def performer_earnings(
    start_date: datetime | None = Query(default=None, alias="startDate"),
    end_date: datetime | None = Query(default=None, alias="endDate"),
    session: Session = Depends(get_db_session),
    user: AuthenticatedUser = Depends(get_current_user),
) -> EarningsResponse:
    service = TipReportingService(session)
    totals = service.performer_earnings(user.user_id, start=start_date, end=end_date)
    transactions = service.performer_transactions(user.user_id, start=start_date, end=end_date)
    return EarningsResponse(
        earnings=EarningsRead(
            total_amount=totals.total_amount,
            total_net=totals.total_net,
            total_fees=totals.total_fees,
            transaction_count=totals.transaction_count,
            average_amount=totals.average_amount,
        ),
        transactions=[_transaction_read(transaction) for transaction in transactions],
    )


@router.get("/performance/{performance_id}/summary", response_model=PerformanceSummaryResponse)
def performance_summary(
    performance_id: str,
    session: Session = Depends(get_db_session),
) -> PerformanceSummaryResponse:
    service = TipReportingService(session)
    summary = service.performance_summary(performance_id)
    recent = service.recent_public_tips(performance_id)
    return PerformanceSummaryResponse(
        summary=PerformanceSummaryRead(
            total_amount=summary.total_amount,
            tip_count=summary.tip_count,
            average_tip=summary.average_tip,
        ),
        recent_tips=[
            RecentTipRead(
                amount=from_minor_units(tip.amount),
                from_user=tip.payer_id or ANONYMOUS_LABEL,
                message=tip.public_message,
                created_at=tip.created_at,
            )
            for tip in recent
        ],
    )


__all__ = ["router"]
