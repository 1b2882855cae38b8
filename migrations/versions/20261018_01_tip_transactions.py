"""Tip transactions and audit log tables."""
from __future__ import annotations

from collections.abc import Iterable

import sqlalchemy as sa
from alembic import op

revision = "20261018_01"
down_revision = None
branch_labels = None
depends_on: Iterable[str] | None = None


def _drop_enum(name: str) -> None:
    bind = op.get_bind()
    if bind.dialect.name == "postgresql":
        op.execute(sa.text(f"DROP TYPE IF EXISTS {name}"))


def upgrade() -> None:  # noqa: D401
    """Create the transactions and audit_logs tables."""

    transaction_status = sa.Enum("pending", "completed", "failed", name="transaction_status")
    transaction_status.create(op.get_bind(), checkfirst=True)

    op.create_table(
        "transactions",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("payment_intent_id", sa.String(length=255), nullable=False),
        sa.Column("payer_id", sa.String(length=64)),
        sa.Column("performer_id", sa.String(length=64), nullable=False),
        sa.Column("performance_id", sa.String(length=64), nullable=False),
        sa.Column("performance_title", sa.String(length=255)),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("processing_fee", sa.Integer(), nullable=False),
        sa.Column("net_amount", sa.Integer(), nullable=False),
        sa.Column("currency", sa.String(length=3), nullable=False, server_default="EUR"),
        sa.Column(
            "status",
            transaction_status,
            nullable=False,
            server_default="pending",
        ),
        sa.Column("is_anonymous", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("public_message", sa.String(length=200)),
        sa.Column("charge_id", sa.String(length=255)),
        sa.Column("failure_reason", sa.String(length=500)),
        sa.Column("completed_at", sa.DateTime(timezone=True)),
        sa.Column("last_reconciled_at", sa.DateTime(timezone=True)),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("payment_intent_id", name="uq_transactions_payment_intent_id"),
        sa.CheckConstraint("net_amount = amount - processing_fee", name="ck_transactions_net_amount"),
    )
    op.create_index(
        "ix_transactions_performer_status_created",
        "transactions",
        ["performer_id", "status", "created_at"],
    )
    op.create_index("ix_transactions_performance_status", "transactions", ["performance_id", "status"])
    op.create_index("ix_transactions_payer_created", "transactions", ["payer_id", "created_at"])

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("actor_id", sa.String(length=64)),
        sa.Column("action", sa.String(length=128), nullable=False),
        sa.Column("resource_type", sa.String(length=128), nullable=False),
        sa.Column("resource_id", sa.String(length=128)),
        sa.Column("payload", sa.JSON()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_audit_logs_resource", "audit_logs", ["resource_type", "resource_id"])


def downgrade() -> None:  # noqa: D401
    """Drop the tip tables."""

    op.drop_index("ix_audit_logs_resource", table_name="audit_logs")
    op.drop_table("audit_logs")

    op.drop_index("ix_transactions_payer_created", table_name="transactions")
    op.drop_index("ix_transactions_performance_status", table_name="transactions")
    op.drop_index("ix_transactions_performer_status_created", table_name="transactions")
    op.drop_table("transactions")

    _drop_enum("transaction_status")
