"""Operator tool to reconcile one payment intent directly against the processor.

Usage: ``python scripts/reconcile_payment.py <payment_intent_id>``
"""

from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Sequence
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from street_payments.core.logging import configure_logging
from street_payments.db.session import SessionLocal
from street_payments.services.errors import PaymentProviderError, TransactionNotFoundError
from street_payments.services.reconciliation import PaymentReconciler

LOGGER = logging.getLogger("street_payments.scripts.reconcile_payment")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Reconcile a tip transaction with the payment processor.")
    parser.add_argument("payment_intent_id", help="Processor payment intent id, e.g. pi_123")
    return parser


def main(argv: Sequence[str] | None = None, *, reconciler: PaymentReconciler | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging()

    session = None
    if reconciler is None:
        session = SessionLocal()
        reconciler = PaymentReconciler(session)
    try:
        result = reconciler.reconcile_intent(args.payment_intent_id)
    except (TransactionNotFoundError, PaymentProviderError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    finally:
        if session is not None:
            session.close()

    LOGGER.info(
        "manual reconciliation finished",
        extra={"payment_intent_id": result.payment_intent_id, "applied": result.applied},
    )
    print(f"Transaction {result.payment_intent_id} {result.message}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
