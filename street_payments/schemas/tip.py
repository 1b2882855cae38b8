"""Pydantic schemas for tip payment resources."""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from street_payments.models import TransactionStatus


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TipCreateRequest(CamelModel):
    amount: Decimal
    performance_id: str = Field(..., min_length=1, max_length=64)
    performer_id: str = Field(..., min_length=1, max_length=64)
    is_anonymous: bool = False
    public_message: str | None = None
    performance_title: str | None = Field(default=None, max_length=255)
    country: str | None = Field(default=None, min_length=2, max_length=2)


class TipCreateResponse(CamelModel):
    transaction_id: str
    payment_intent_id: str
    client_secret: str
    amount: Decimal
    processing_fee: Decimal
    net_amount: Decimal


class TransactionRead(CamelModel):
    id: str
    payment_intent_id: str
    payer_id: str | None
    performer_id: str
    performance_id: str
    performance_title: str | None
    amount: Decimal
    processing_fee: Decimal
    net_amount: Decimal
    currency: str
    status: TransactionStatus
    is_anonymous: bool
    public_message: str | None
    charge_id: str | None
    failure_reason: str | None
    created_at: datetime
    completed_at: datetime | None


class PaymentConfigResponse(CamelModel):
    currency: str
    payment_methods: list[str]
    is_configured: bool
    min_amount: Decimal
    max_amount: Decimal
    suggested_amounts: list[int]


class WebhookAck(BaseModel):
    received: bool = True


__all__ = [
    "CamelModel",
    "PaymentConfigResponse",
    "TipCreateRequest",
    "TipCreateResponse",
    "TransactionRead",
    "WebhookAck",
]
