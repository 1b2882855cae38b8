"""Transaction ORM model."""
from __future__ import annotations

import enum
import uuid
from datetime import datetime

from sqlalchemy import Boolean, CheckConstraint, DateTime, Index, Integer, String
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column

from street_payments.models.base import Base, TimestampMixin


class TransactionStatus(str, enum.Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not TransactionStatus.PENDING


class Transaction(TimestampMixin, Base):
    """One tip attempt, its money breakdown and lifecycle status.

    Amounts are stored in minor currency units. ``processing_fee`` and
    ``net_amount`` are fixed when the record is created.
    """

    __tablename__ = "transactions"
    __table_args__ = (
        Index("ix_transactions_performer_status_created", "performer_id", "status", "created_at"),
        Index("ix_transactions_performance_status", "performance_id", "status"),
        Index("ix_transactions_payer_created", "payer_id", "created_at"),
        CheckConstraint("net_amount = amount - processing_fee", name="net_amount"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    payment_intent_id: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    payer_id: Mapped[str | None] = mapped_column(String(64))
    performer_id: Mapped[str] = mapped_column(String(64), nullable=False)
    performance_id: Mapped[str] = mapped_column(String(64), nullable=False)
    performance_title: Mapped[str | None] = mapped_column(String(255))
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    processing_fee: Mapped[int] = mapped_column(Integer, nullable=False)
    net_amount: Mapped[int] = mapped_column(Integer, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="EUR")
    status: Mapped[TransactionStatus] = mapped_column(
        SAEnum(
            TransactionStatus,
            name="transaction_status",
            values_callable=lambda members: [member.value for member in members],
        ),
        nullable=False,
        default=TransactionStatus.PENDING,
    )
    is_anonymous: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    public_message: Mapped[str | None] = mapped_column(String(200))
    charge_id: Mapped[str | None] = mapped_column(String(255))
    failure_reason: Mapped[str | None] = mapped_column(String(500))
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    last_reconciled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))


__all__ = ["Transaction", "TransactionStatus"]
