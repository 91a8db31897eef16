"""Create premium billing and reminder tables

Revision ID: 20250301_premium_billing
Revises:
Create Date: 2025-03-01 09:00:00
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "20250301_premium_billing"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "clients",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("workspace_id", sa.String(36), nullable=False),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("email", sa.String(320)),
        sa.Column("mobile", sa.String(32)),
        sa.Column("dob", sa.Date()),
        sa.Column("created_at", sa.DateTime(timezone=True)),
    )
    op.create_index("ix_clients_workspace_id", "clients", ["workspace_id"])

    op.create_table(
        "policies",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("workspace_id", sa.String(36), nullable=False),
        sa.Column("client_id", sa.String(36), sa.ForeignKey("clients.id"), nullable=False),
        sa.Column("policy_number", sa.String(64), nullable=False),
        sa.Column("insurer", sa.String(200)),
        sa.Column("plan_name", sa.String(200)),
        sa.Column("premium_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("premium_mode", sa.String(16), nullable=False),
        sa.Column("next_due_date", sa.Date()),
        sa.Column("last_paid_date", sa.Date()),
        sa.Column("status", sa.String(16), nullable=False, server_default=sa.text("'ACTIVE'")),
        sa.Column("updated_at", sa.DateTime(timezone=True)),
    )
    op.create_index("ix_policies_workspace_id", "policies", ["workspace_id"])
    op.create_index("ix_policies_next_due_date", "policies", ["next_due_date"])

    op.create_table(
        "premium_schedules",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("workspace_id", sa.String(36), nullable=False),
        sa.Column("policy_id", sa.String(36), sa.ForeignKey("policies.id"), nullable=False),
        sa.Column("installment_number", sa.Integer(), nullable=False),
        sa.Column("due_date", sa.Date(), nullable=False),
        sa.Column("grace_period_end", sa.Date(), nullable=False),
        sa.Column("premium_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("status", sa.String(16), nullable=False, server_default=sa.text("'PENDING'")),
        sa.Column("updated_at", sa.DateTime(timezone=True)),
        sa.UniqueConstraint(
            "policy_id", "installment_number", name="uq_premium_schedules_installment"
        ),
    )
    op.create_index("ix_premium_schedules_policy_id", "premium_schedules", ["policy_id"])

    op.create_table(
        "premium_payments",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("workspace_id", sa.String(36), nullable=False),
        sa.Column("policy_id", sa.String(36), sa.ForeignKey("policies.id"), nullable=False),
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
    op.create_index("ix_premium_payments_workspace_id", "premium_payments", ["workspace_id"])
    op.create_index("ix_premium_payments_policy_id", "premium_payments", ["policy_id"])

    op.create_table(
        "premium_reminders",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("workspace_id", sa.String(36), nullable=False),
        sa.Column("policy_id", sa.String(36), sa.ForeignKey("policies.id"), nullable=False),
        sa.Column("reminder_type", sa.String(16), nullable=False),
        sa.Column("scheduled_date", sa.Date(), nullable=False),
        sa.Column("status", sa.String(16), nullable=False, server_default=sa.text("'PENDING'")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_premium_reminders_policy_id", "premium_reminders", ["policy_id"])

    op.create_table(
        "reminder_templates",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("workspace_id", sa.String(36), nullable=False),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("channel", sa.String(16), nullable=False),
        sa.Column("subject", sa.String(300)),
        sa.Column("body", sa.Text(), nullable=False),
        sa.Column("variables", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_reminder_templates_workspace_id", "reminder_templates", ["workspace_id"])

    op.create_table(
        "reminder_logs",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("workspace_id", sa.String(36), nullable=False),
        sa.Column("template_id", sa.String(36), sa.ForeignKey("reminder_templates.id")),
        sa.Column("client_id", sa.String(36)),
        sa.Column("policy_id", sa.String(36)),
        sa.Column("channel", sa.String(16), nullable=False),
        sa.Column("to", sa.String(320), nullable=False),
        sa.Column("subject", sa.String(300)),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("error", sa.Text()),
        sa.Column("message_id", sa.String(128)),
        sa.Column("idempotency_key", sa.String(64)),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("idempotency_key", name="uq_reminder_logs_idempotency_key"),
    )
    op.create_index("ix_reminder_logs_workspace_id", "reminder_logs", ["workspace_id"])

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("workspace_id", sa.String(36), nullable=False),
        sa.Column("user_id", sa.String(64)),
        sa.Column("action", sa.String(64), nullable=False),
        sa.Column("entity", sa.String(64), nullable=False),
        sa.Column("entity_id", sa.String(36), nullable=False),
        sa.Column("diff_json", sa.JSON(), nullable=False),
        sa.Column("trace_id", sa.String(64)),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_audit_logs_workspace_id", "audit_logs", ["workspace_id"])


def downgrade() -> None:
    op.drop_index("ix_audit_logs_workspace_id", table_name="audit_logs")
    op.drop_table("audit_logs")
    op.drop_index("ix_reminder_logs_workspace_id", table_name="reminder_logs")
    op.drop_table("reminder_logs")
    op.drop_index("ix_reminder_templates_workspace_id", table_name="reminder_templates")
    op.drop_table("reminder_templates")
    op.drop_index("ix_premium_reminders_policy_id", table_name="premium_reminders")
    op.drop_table("premium_reminders")
    op.drop_index("ix_premium_payments_policy_id", table_name="premium_payments")
    op.drop_index("ix_premium_payments_workspace_id", table_name="premium_payments")
    op.drop_table("premium_payments")
    op.drop_index("ix_premium_schedules_policy_id", table_name="premium_schedules")
    op.drop_table("premium_schedules")
    op.drop_index("ix_policies_next_due_date", table_name="policies")
    op.drop_index("ix_policies_workspace_id", table_name="policies")
    op.drop_table("policies")
    op.drop_index("ix_clients_workspace_id", table_name="clients")
    op.drop_table("clients")
