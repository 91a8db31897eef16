from __future__ import annotations

import sqlalchemy as sa

from backend.core.db import METADATA

CLIENTS_TABLE = sa.Table(
    "clients",
    METADATA,
    sa.Column("id", sa.String(36), primary_key=True),
    sa.Column("workspace_id", sa.String(36), nullable=False, index=True),
    sa.Column("name", sa.String(200), nullable=False),
    sa.Column("email", sa.String(320)),
    sa.Column("mobile", sa.String(32)),
    sa.Column("dob", sa.Date()),
    sa.Column("created_at", sa.DateTime(timezone=True)),
)

POLICIES_TABLE = sa.Table(
    "policies",
    METADATA,
    sa.Column("id", sa.String(36), primary_key=True),
    sa.Column("workspace_id", sa.String(36), nullable=False, index=True),
    sa.Column("client_id", sa.String(36), sa.ForeignKey("clients.id"), nullable=False),
    sa.Column("policy_number", sa.String(64), nullable=False),
    sa.Column("insurer", sa.String(200)),
    sa.Column("plan_name", sa.String(200)),
    sa.Column("premium_amount", sa.Numeric(12, 2), nullable=False),
    sa.Column("premium_mode", sa.String(16), nullable=False),
    sa.Column("next_due_date", sa.Date(), index=True),
    sa.Column("last_paid_date", sa.Date()),
    sa.Column("status", sa.String(16), nullable=False, server_default=sa.text("'ACTIVE'")),
    sa.Column("updated_at", sa.DateTime(timezone=True)),
)

PREMIUM_SCHEDULES_TABLE = sa.Table(
    "premium_schedules",
    METADATA,
    sa.Column("id", sa.String(36), primary_key=True),
    sa.Column("workspace_id", sa.String(36), nullable=False),
    sa.Column("policy_id", sa.String(36), sa.ForeignKey("policies.id"), nullable=False, index=True),
    sa.Column("installment_number", sa.Integer(), nullable=False),
    sa.Column("due_date", sa.Date(), nullable=False),
    sa.Column("grace_period_end", sa.Date(), nullable=False),
    sa.Column("premium_amount", sa.Numeric(12, 2), nullable=False),
    sa.Column("status", sa.String(16), nullable=False, server_default=sa.text("'PENDING'")),
    sa.Column("updated_at", sa.DateTime(timezone=True)),
    sa.UniqueConstraint("policy_id", "installment_number", name="uq_premium_schedules_installment"),
)

PREMIUM_PAYMENTS_TABLE = sa.Table(
    "premium_payments",
    METADATA,
    sa.Column("id", sa.String(36), primary_key=True),
    sa.Column("workspace_id", sa.String(36), nullable=False, index=True),
    sa.Column("policy_id", sa.String(36), sa.ForeignKey("policies.id"), nullable=False, index=True),
    sa.Column("schedule_id", sa.String(36), sa.ForeignKey("premium_schedules.id")),
    sa.Column("payment_date", sa.Date(), nullable=False),
    sa.Column("amount_paid", sa.Numeric(12, 2), nullable=False),
    sa.Column("late_fee", sa.Numeric(12, 2), nullable=False, server_default=sa.text("0")),
    sa.Column("discount", sa.Numeric(12, 2), nullable=False, server_default=sa.text("0")),
    sa.Column("payment_mode", sa.String(32), nullable=False),
    sa.Column("receipt_number", sa.String(64)),
    sa.Column("cheque_number", sa.String(64)),
    sa.Column("bank_name", sa.String(200)),
    sa.Column("transaction_id", sa.String(128)),
    sa.Column("remarks", sa.Text()),
    sa.Column("processed_by", sa.String(64)),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
)

PREMIUM_REMINDERS_TABLE = sa.Table(
    "premium_reminders",
    METADATA,
    sa.Column("id", sa.String(36), primary_key=True),
    sa.Column("workspace_id", sa.String(36), nullable=False),
    sa.Column("policy_id", sa.String(36), sa.ForeignKey("policies.id"), nullable=False, index=True),
    sa.Column("reminder_type", sa.String(16), nullable=False),
    sa.Column("scheduled_date", sa.Date(), nullable=False),
    sa.Column("status", sa.String(16), nullable=False, server_default=sa.text("'PENDING'")),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
)
