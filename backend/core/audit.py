"""Append-only audit log.

Audit rows are written on the caller's connection so they commit or roll
back together with the change they describe.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from typing import Any

import sqlalchemy as sa
from sqlalchemy.engine import Connection

from backend.core.db import METADATA

AUDIT_LOG_TABLE = sa.Table(
    "audit_logs",
    METADATA,
    sa.Column("id", sa.String(36), primary_key=True),
    sa.Column("workspace_id", sa.String(36), nullable=False, index=True),
    sa.Column("user_id", sa.String(64)),
    sa.Column("action", sa.String(64), nullable=False),
    sa.Column("entity", sa.String(64), nullable=False),
    sa.Column("entity_id", sa.String(36), nullable=False),
    sa.Column("diff_json", sa.JSON(), nullable=False),
    sa.Column("trace_id", sa.String(64)),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
)


def log_audit_event(
    conn: Connection,
    *,
    workspace_id: str,
    action: str,
    entity: str,
    entity_id: str,
    before: dict[str, Any] | None = None,
    after: dict[str, Any] | None = None,
    user_id: str | None = None,
    trace_id: str | None = None,
) -> str:
    """Insert one audit row and return its id."""
    audit_id = str(uuid.uuid4())
    conn.execute(
        sa.insert(AUDIT_LOG_TABLE).values(
            id=audit_id,
            workspace_id=workspace_id,
            user_id=user_id,
            action=action,
            entity=entity,
            entity_id=entity_id,
            diff_json={"before": before, "after": after},
            trace_id=trace_id,
            created_at=datetime.now(UTC),
        )
    )
    return audit_id
