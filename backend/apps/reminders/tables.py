from __future__ import annotations

import sqlalchemy as sa

from backend.core.db import METADATA

REMINDER_TEMPLATES_TABLE = sa.Table(
    "reminder_templates",
    METADATA,
    sa.Column("id", sa.String(36), primary_key=True),
    sa.Column("workspace_id", sa.String(36), nullable=False, index=True),
    sa.Column("name", sa.String(200), nullable=False),
    sa.Column("channel", sa.String(16), nullable=False),
    sa.Column("subject", sa.String(300)),
    sa.Column("body", sa.Text(), nullable=False),
    sa.Column("variables", sa.JSON(), nullable=False),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
)

REMINDER_LOGS_TABLE = sa.Table(
    "reminder_logs",
    METADATA,
    sa.Column("id", sa.String(36), primary_key=True),
    sa.Column("workspace_id", sa.String(36), nullable=False, index=True),
    sa.Column("template_id", sa.String(36), sa.ForeignKey("reminder_templates.id")),
    sa.Column("client_id", sa.String(36)),
    sa.Column("policy_id", sa.String(36)),
    sa.Column("channel", sa.String(16), nullable=False),
    sa.Column("to", sa.String(320), nullable=False),
    sa.Column("subject", sa.String(300)),
    sa.Column("status", sa.String(16), nullable=False),
    sa.Column("error", sa.Text()),
    sa.Column("message_id", sa.String(128)),
    # Set for automation sends only; one log per (recipient, template, channel, occurrence)
    sa.Column("idempotency_key", sa.String(64), unique=True),
    sa.Column("sent_at", sa.DateTime(timezone=True), nullable=False),
)
