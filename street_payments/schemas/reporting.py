"""Pydantic schemas for earnings and performance summaries."""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from street_payments.schemas.tip import CamelModel, TransactionRead


class EarningsRead(CamelModel):
    total_amount: Decimal
    total_net: Decimal
    total_fees: Decimal
    transaction_count: int
    average_amount: Decimal


class EarningsResponse(CamelModel):
    earnings: EarningsRead
    transactions: list[TransactionRead]


class PerformanceSummaryRead(CamelModel):
    total_amount: Decimal
    tip_count: int
    average_tip: Decimal


class RecentTipRead(CamelModel):
    amount: Decimal
    from_user: str
    message: str | None
    created_at: datetime


class PerformanceSummaryResponse(CamelModel):
    summary: PerformanceSummaryRead
    recent_tips: list[RecentTipRead]


__all__ = [
    "EarningsRead",
    "EarningsResponse",
    "PerformanceSummaryRead",
    "PerformanceSummaryResponse",
    "RecentTipRead",
]
