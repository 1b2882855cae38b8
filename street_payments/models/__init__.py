"""ORM models package."""
from .audit_log import AuditLog
from .base import Base, TimestampMixin
from .transaction import Transaction, TransactionStatus

__all__ = [
    "AuditLog",
    "Base",
    "TimestampMixin",
    "Transaction",
    "TransactionStatus",
]
