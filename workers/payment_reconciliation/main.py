"""Periodic sweep reconciling stale pending tip transactions with the processor."""

from __future__ import annotations

import asyncio
import logging
from datetime import UTC, datetime

from street_payments.core.config import get_settings
from street_payments.db.session import get_session
from street_payments.services.reconciliation import PaymentReconciler, SweepReport
from street_payments.workers.observability import configure_worker, worker_span

LOGGER = logging.getLogger(__name__)


async def run_once(reconciler: PaymentReconciler) -> SweepReport:
    """Execute a single sweep cycle."""

    with worker_span("payment_reconciliation.cycle") as span:
        report = reconciler.sweep_pending(now=datetime.now(tz=UTC))
        span.set_attribute("transactions.examined", report.examined)
        LOGGER.info(
            "pending sweep complete",
            extra={
                "examined": report.examined,
                "completed": report.completed,
                "failed": report.failed,
                "errors": report.errors,
                "still_pending": len(report.still_pending),
            },
        )
    return report


async def run() -> None:
    """Continuously sweep pending transactions at the configured cadence."""

    settings = get_settings()
    configure_worker("payment-reconciliation-worker")
    interval = max(60, settings.reconciliation_interval_seconds)
    LOGGER.info("starting payment reconciliation worker", extra={"interval_seconds": interval})
    while True:
        with get_session() as session:
            reconciler = PaymentReconciler(session, settings=settings)
            await run_once(reconciler)
        await asyncio.sleep(interval)


def main() -> None:
    try:
        asyncio.run(run())
    except KeyboardInterrupt:  # pragma: no cover - manual shutdown
        LOGGER.info("payment reconciliation worker stopped")


if __name__ == "__main__":
    main()
