"""Read-side queries over completed tips."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from street_payments.models import Transaction, TransactionStatus
from street_payments.services.fees import CENT, from_minor_units

RECENT_TIPS_LIMIT = 5
ANONYMOUS_LABEL = "Anonymous"


@dataclass(slots=True, frozen=True)
class EarningsTotals:
    total_amount: Decimal
    total_net: Decimal
    total_fees: Decimal
    transaction_count: int
    average_amount: Decimal


@dataclass(slots=True, frozen=True)
class PerformanceSummary:
    total_amount: Decimal
    tip_count: int
    average_tip: Decimal


def _average(total_cents: int, count: int) -> Decimal:
    if not count:
        return Decimal("0.00")
    return (Decimal(total_cents) / count / 100).quantize(CENT, rounding=ROUND_HALF_UP)


class TipReportingService:
    """Aggregates completed Transactions per performer and per performance."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def performer_earnings(
        self,
        performer_id: str,
        *,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> EarningsTotals:
        statement = select(
            func.coalesce(func.sum(Transaction.amount), 0),
            func.coalesce(func.sum(Transaction.net_amount), 0),
            func.coalesce(func.sum(Transaction.processing_fee), 0),
            func.count(Transaction.id),
        ).where(*self._performer_filters(performer_id, start, end))
        gross, net, fees, count = self._session.execute(statement).one()
        return EarningsTotals(
            total_amount=from_minor_units(int(gross)),
            total_net=from_minor_units(int(net)),
            total_fees=from_minor_units(int(fees)),
            transaction_count=int(count),
            average_amount=_average(int(gross), int(count)),
        )

    def performer_transactions(
        self,
        performer_id: str,
        *,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[Transaction]:
        statement = (
            select(Transaction)
            .where(*self._performer_filters(performer_id, start, end))
            .order_by(Transaction.created_at.desc())
        )
        return list(self._session.scalars(statement))

    def performance_summary(self, performance_id: str) -> PerformanceSummary:
        statement = select(
            func.coalesce(func.sum(Transaction.amount), 0),
            func.count(Transaction.id),
        ).where(
            Transaction.performance_id == performance_id,
            Transaction.status == TransactionStatus.COMPLETED,
        )
        total, count = self._session.execute(statement).one()
        return PerformanceSummary(
            total_amount=from_minor_units(int(total)),
            tip_count=int(count),
            average_tip=_average(int(total), int(count)),
        )

    def recent_public_tips(self, performance_id: str, *, limit: int = RECENT_TIPS_LIMIT) -> list[Transaction]:
        """Latest completed, non-anonymous tips for a performance."""

        statement = (
            select(Transaction)
            .where(
                Transaction.performance_id == performance_id,
                Transaction.status == TransactionStatus.COMPLETED,
                Transaction.is_anonymous.is_(False),
            )
            .order_by(Transaction.created_at.desc())
            .limit(limit)
        )
        return list(self._session.scalars(statement))

    @staticmethod
    def _performer_filters(performer_id: str, start: datetime | None, end: datetime | None) -> list:
        filters = [
            Transaction.performer_id == performer_id,
            Transaction.status == TransactionStatus.COMPLETED,
        ]
        if start is not None:
            filters.append(Transaction.created_at >= start)
        if end is not None:
            filters.append(Transaction.created_at <= end)
        return filters


__all__ = [
    "ANONYMOUS_LABEL",
    "EarningsTotals",
    "PerformanceSummary",
    "RECENT_TIPS_LIMIT",
    "TipReportingService",
]
