"""Pydantic schemas package."""

from .reporting import (
    EarningsRead,
    EarningsResponse,
    PerformanceSummaryRead,
    PerformanceSummaryResponse,
    RecentTipRead,
)
from .tip import PaymentConfigResponse, TipCreateRequest, TipCreateResponse, TransactionRead, WebhookAck

__all__ = [
    "EarningsRead",
    "EarningsResponse",
    "PaymentConfigResponse",
    "PerformanceSummaryRead",
    "PerformanceSummaryResponse",
    "RecentTipRead",
    "TipCreateRequest",
    "TipCreateResponse",
    "TransactionRead",
    "WebhookAck",
]
