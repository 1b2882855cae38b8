"""Reconciliation of Transaction status with the payment processor.

Three paths move a Transaction out of ``pending``: processor webhooks, the
operator-run manual reconciliation, and the periodic sweep of stale pending
records. All of them go through :meth:`PaymentReconciler._transition`, a single
conditional UPDATE guarded by ``status = 'pending'``, so whichever path lands
first wins and every later attempt is a no-op.
"""
from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from street_payments.core.config import Settings, get_settings
from street_payments.models import AuditLog, Transaction, TransactionStatus
from street_payments.obs import (
    PENDING_TRANSACTIONS_GAUGE,
    RECONCILIATION_TRANSITION_COUNTER,
    WEBHOOK_EVENT_COUNTER,
)
from street_payments.schemas.webhook import (
    PaymentIntentCanceled,
    PaymentIntentPaymentFailed,
    PaymentIntentSucceeded,
    ProcessorEvent,
    decode_event,
)
from street_payments.services.errors import PaymentProviderError, TransactionNotFoundError
from street_payments.services.notifications import (
    KafkaNotificationPublisher,
    NotificationPublisher,
    build_tip_notifications,
)
from street_payments.services.processor import PaymentProcessor, StripePaymentProcessor

logger = logging.getLogger(__name__)

MANUAL_CHARGE_REFERENCE = "manual_update"
UNKNOWN_CHARGE_REFERENCE = "unknown"
DEFAULT_FAILURE_REASON = "Payment failed"
CANCELED_FAILURE_REASON = "Payment canceled"


class ReconciliationSource(str, enum.Enum):
    WEBHOOK = "webhook"
    MANUAL = "manual"
    SWEEP = "sweep"


@dataclass(slots=True, frozen=True)
class ReconciliationResult:
    """Outcome of one reconciliation attempt."""

    payment_intent_id: str
    status: TransactionStatus | None
    applied: bool
    message: str


@dataclass(slots=True)
class SweepReport:
    examined: int = 0
    completed: int = 0
    failed: int = 0
    errors: int = 0
    still_pending: list[str] = field(default_factory=list)


class PaymentReconciler:
    """Brings Transaction records in line with the processor's authoritative status."""

    def __init__(
        self,
        session: Session,
        *,
        settings: Settings | None = None,
        processor: PaymentProcessor | None = None,
        notifier: NotificationPublisher | None = None,
    ) -> None:
        self._session = session
        self._settings = settings or get_settings()
        self._processor = processor or StripePaymentProcessor.from_settings(self._settings)
        self._notifier = notifier or KafkaNotificationPublisher(settings=self._settings)

    def handle_webhook(self, payload: bytes, signature: str | None) -> ReconciliationResult | None:
        """Verify, decode and apply a processor webhook.

        Signature and decoding failures propagate. A webhook for an unknown
        intent is logged and acknowledged since retrying cannot create the record.
        """

        self._processor.verify_webhook(payload, signature)
        event = decode_event(payload)
        logger.info("processing payment webhook", extra={"event_id": event.id, "event_type": event.type})
        try:
            result = self.apply_event(event)
        except TransactionNotFoundError:
            WEBHOOK_EVENT_COUNTER.labels(event_type=event.type, outcome="unknown_intent").inc()
            logger.warning(
                "webhook references unknown payment intent",
                extra={"event_id": event.id, "event_type": event.type},
            )
            return None

        if result is None:
            outcome = "ignored"
        elif result.applied:
            outcome = "applied"
        else:
            outcome = "duplicate"
        WEBHOOK_EVENT_COUNTER.labels(event_type=event.type, outcome=outcome).inc()
        return result

    def apply_event(self, event: ProcessorEvent) -> ReconciliationResult | None:
        if isinstance(event, PaymentIntentSucceeded):
            return self._transition(
                event.intent.id,
                TransactionStatus.COMPLETED,
                source=ReconciliationSource.WEBHOOK,
                charge_id=event.intent.latest_charge or UNKNOWN_CHARGE_REFERENCE,
            )
        if isinstance(event, PaymentIntentPaymentFailed):
            error = event.intent.last_payment_error
            return self._transition(
                event.intent.id,
                TransactionStatus.FAILED,
                source=ReconciliationSource.WEBHOOK,
                failure_reason=(error.message if error and error.message else DEFAULT_FAILURE_REASON),
            )
        if isinstance(event, PaymentIntentCanceled):
            return self._transition(
                event.intent.id,
                TransactionStatus.FAILED,
                source=ReconciliationSource.WEBHOOK,
                failure_reason=CANCELED_FAILURE_REASON,
            )
        logger.info("ignoring unhandled webhook event", extra={"event_id": event.id, "event_type": event.type})
        return None

    def reconcile_intent(
        self,
        payment_intent_id: str,
        *,
        source: ReconciliationSource = ReconciliationSource.MANUAL,
    ) -> ReconciliationResult:
        """Query the processor directly and apply any terminal outcome it reports."""

        transaction = self._find(payment_intent_id)
        if transaction is None:
            raise TransactionNotFoundError(f"No transaction for payment intent '{payment_intent_id}'")
        if transaction.status.is_terminal:
            return self._already_terminal(payment_intent_id, transaction.status)

        snapshot = self._processor.retrieve_payment_intent(payment_intent_id)
        if snapshot.succeeded:
            return self._transition(
                payment_intent_id,
                TransactionStatus.COMPLETED,
                source=source,
                charge_id=snapshot.latest_charge or MANUAL_CHARGE_REFERENCE,
            )
        if snapshot.canceled:
            return self._transition(
                payment_intent_id,
                TransactionStatus.FAILED,
                source=source,
                failure_reason=CANCELED_FAILURE_REASON,
            )
        return ReconciliationResult(
            payment_intent_id=payment_intent_id,
            status=TransactionStatus.PENDING,
            applied=False,
            message=f"processor reports status: {snapshot.status}",
        )

    def sweep_pending(self, *, now: datetime | None = None) -> SweepReport:
        """Reconcile pending transactions older than the configured age."""

        current_time = now or datetime.now(timezone.utc)
        cutoff = current_time - timedelta(minutes=self._settings.reconciliation_pending_age_minutes)
        stale = (Transaction.status == TransactionStatus.PENDING, Transaction.created_at < cutoff)
        # Records never swept come first by age; swept ones queue behind by their last visit.
        intent_ids = self._session.scalars(
            select(Transaction.payment_intent_id)
            .where(*stale)
            .order_by(
                func.coalesce(Transaction.last_reconciled_at, Transaction.created_at),
                Transaction.created_at,
            )
            .limit(self._settings.reconciliation_batch_size)
        ).all()

        report = SweepReport(examined=len(intent_ids))
        revisit: list[str] = []
        for intent_id in intent_ids:
            try:
                result = self.reconcile_intent(intent_id, source=ReconciliationSource.SWEEP)
            except (PaymentProviderError, TransactionNotFoundError):
                logger.exception("pending sweep failed for payment intent", extra={"payment_intent_id": intent_id})
                report.errors += 1
                revisit.append(intent_id)
                continue
            if result.applied and result.status is TransactionStatus.COMPLETED:
                report.completed += 1
            elif result.applied and result.status is TransactionStatus.FAILED:
                report.failed += 1
            elif result.status is TransactionStatus.PENDING:
                report.still_pending.append(intent_id)
                revisit.append(intent_id)

        if revisit:
            self._session.execute(
                update(Transaction)
                .where(Transaction.payment_intent_id.in_(revisit), Transaction.status == TransactionStatus.PENDING)
                .values(last_reconciled_at=current_time)
                .execution_options(synchronize_session=False)
            )
            self._session.commit()

        remaining = self._session.scalar(select(func.count(Transaction.id)).where(*stale))
        PENDING_TRANSACTIONS_GAUGE.set(remaining or 0)
        return report

    def _transition(
        self,
        payment_intent_id: str,
        new_status: TransactionStatus,
        *,
        source: ReconciliationSource,
        charge_id: str | None = None,
        failure_reason: str | None = None,
    ) -> ReconciliationResult:
        values: dict[str, object] = {"status": new_status, "completed_at": datetime.now(timezone.utc)}
        if new_status is TransactionStatus.COMPLETED:
            values["charge_id"] = charge_id
        else:
            values["failure_reason"] = failure_reason

        outcome = self._session.execute(
            update(Transaction)
            .where(
                Transaction.payment_intent_id == payment_intent_id,
                Transaction.status == TransactionStatus.PENDING,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if not outcome.rowcount:
            self._session.rollback()
            transaction = self._find(payment_intent_id)
            if transaction is None:
                raise TransactionNotFoundError(f"No transaction for payment intent '{payment_intent_id}'")
            return self._already_terminal(payment_intent_id, transaction.status)

        transaction = self._find(payment_intent_id)
        if transaction is None:
            raise TransactionNotFoundError(f"No transaction for payment intent '{payment_intent_id}'")
        self._session.add(
            AuditLog(
                actor_id=None,
                action=f"tip.{new_status.value}",
                resource_type="Transaction",
                resource_id=transaction.id,
                payload={
                    "payment_intent_id": payment_intent_id,
                    "source": source.value,
                    "charge_id": transaction.charge_id,
                    "failure_reason": transaction.failure_reason,
                    "amount": transaction.amount,
                    "net_amount": transaction.net_amount,
                },
            )
        )
        self._session.commit()

        RECONCILIATION_TRANSITION_COUNTER.labels(source=source.value, status=new_status.value).inc()
        logger.info(
            "transaction reconciled",
            extra={
                "transaction_id": transaction.id,
                "payment_intent_id": payment_intent_id,
                "status": new_status.value,
                "source": source.value,
            },
        )
        self._notify(transaction)
        return ReconciliationResult(
            payment_intent_id=payment_intent_id,
            status=new_status,
            applied=True,
            message=f"marked as {new_status.value}",
        )

    def _notify(self, transaction: Transaction) -> None:
        # The status change is committed; delivery problems must not undo or repeat it.
        for notification in build_tip_notifications(transaction):
            try:
                self._notifier.publish(notification)
            except Exception:
                logger.exception(
                    "failed to publish tip notification",
                    extra={"transaction_id": transaction.id, "notification_type": notification.type},
                )

    def _find(self, payment_intent_id: str) -> Transaction | None:
        return self._session.scalars(
            select(Transaction)
            .where(Transaction.payment_intent_id == payment_intent_id)
            .execution_options(populate_existing=True)
        ).one_or_none()

    @staticmethod
    def _already_terminal(payment_intent_id: str, status: TransactionStatus) -> ReconciliationResult:
        return ReconciliationResult(
            payment_intent_id=payment_intent_id,
            status=status,
            applied=False,
            message=f"already has status: {status.value}",
        )


__all__ = [
    "PaymentReconciler",
    "ReconciliationResult",
    "ReconciliationSource",
    "SweepReport",
]
