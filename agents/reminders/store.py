from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

import sqlalchemy as sa
from sqlalchemy.engine import Engine

from backend.apps.premiums.dto import ClientRecord, PolicyRecord
from backend.apps.premiums.tables import CLIENTS_TABLE, POLICIES_TABLE
from backend.apps.reminders.tables import REMINDER_LOGS_TABLE, REMINDER_TEMPLATES_TABLE
from backend.core.db import ensure_engine
from backend.core.errors import NotFoundError, ValidationError

from .dto import ReminderChannel, ReminderTemplate
from .templates import TOKEN_RE

MAX_LOG_PAGE_SIZE = 100


@dataclass(frozen=True)
class ReminderLogRow:
    id: str
    channel: str
    to: str
    status: str
    subject: str | None
    error: str | None
    template_id: str | None
    client_id: str | None
    policy_id: str | None
    sent_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "channel": self.channel,
            "to": self.to,
            "status": self.status,
            "subject": self.subject,
            "error": self.error,
            "template_id": self.template_id,
            "client_id": self.client_id,
            "policy_id": self.policy_id,
            "sent_at": self.sent_at.isoformat(),
        }


def template_tokens(*texts: str | None) -> list[str]:
    """Distinct placeholder names in order of first appearance."""
    seen: list[str] = []
    for text in texts:
        for name in TOKEN_RE.findall(text or ""):
            name = name.strip()
            if name not in seen:
                seen.append(name)
    return seen


def create_template(
    workspace_id: str,
    *,
    name: str,
    channel: ReminderChannel | str,
    body: str,
    subject: str | None = None,
    variables: list[str] | None = None,
    engine: Engine | None = None,
) -> ReminderTemplate:
    channel = ReminderChannel.parse(channel)
    missing = [field for field, value in (("name", name), ("body", body)) if not (value or "").strip()]
    if missing:
        raise ValidationError("Missing required fields: " + ", ".join(missing), fields=missing)
    if channel is ReminderChannel.WHATSAPP:
        subject = None

    template = ReminderTemplate(
        id=str(uuid.uuid4()),
        workspace_id=workspace_id,
        name=name.strip(),
        channel=channel,
        subject=subject,
        body=body,
        variables=list(variables) if variables is not None else template_tokens(subject, body),
        created_at=datetime.now(UTC),
    )
    with ensure_engine(engine).begin() as conn:
        conn.execute(
            sa.insert(REMINDER_TEMPLATES_TABLE).values(
                id=template.id,
                workspace_id=workspace_id,
                name=template.name,
                channel=channel.value,
                subject=template.subject,
                body=template.body,
                variables=template.variables,
                created_at=template.created_at,
            )
        )
    return template


def get_template(workspace_id: str, template_id: str, *, engine: Engine | None = None) -> ReminderTemplate:
    with ensure_engine(engine).connect() as conn:
        row = conn.execute(
            sa.select(REMINDER_TEMPLATES_TABLE)
            .where(REMINDER_TEMPLATES_TABLE.c.id == template_id)
            .where(REMINDER_TEMPLATES_TABLE.c.workspace_id == workspace_id)
        ).first()
    if row is None:
        raise NotFoundError(f"Template {template_id} not found", fields=["template_id"])
    return ReminderTemplate.from_row(row._mapping)


def list_templates(
    workspace_id: str,
    *,
    channel: ReminderChannel | str | None = None,
    engine: Engine | None = None,
) -> list[ReminderTemplate]:
    stmt = sa.select(REMINDER_TEMPLATES_TABLE).where(
        REMINDER_TEMPLATES_TABLE.c.workspace_id == workspace_id
    )
    if channel is not None:
        stmt = stmt.where(REMINDER_TEMPLATES_TABLE.c.channel == ReminderChannel.parse(channel).value)
    stmt = stmt.order_by(REMINDER_TEMPLATES_TABLE.c.created_at.desc(), REMINDER_TEMPLATES_TABLE.c.name)
    with ensure_engine(engine).connect() as conn:
        rows = conn.execute(stmt).all()
    return [ReminderTemplate.from_row(row._mapping) for row in rows]


def get_client(workspace_id: str, client_id: str, *, engine: Engine | None = None) -> ClientRecord:
    with ensure_engine(engine).connect() as conn:
        row = conn.execute(
            sa.select(CLIENTS_TABLE)
            .where(CLIENTS_TABLE.c.id == client_id)
            .where(CLIENTS_TABLE.c.workspace_id == workspace_id)
        ).first()
    if row is None:
        raise NotFoundError(f"Client {client_id} not found", fields=["client_id"])
    return ClientRecord.from_row(row._mapping)


def get_policy(workspace_id: str, policy_id: str, *, engine: Engine | None = None) -> PolicyRecord:
    with ensure_engine(engine).connect() as conn:
        row = conn.execute(
            sa.select(POLICIES_TABLE)
            .where(POLICIES_TABLE.c.id == policy_id)
            .where(POLICIES_TABLE.c.workspace_id == workspace_id)
        ).first()
    if row is None:
        raise NotFoundError(f"Policy {policy_id} not found", fields=["policy_id"])
    return PolicyRecord.from_row(row._mapping)


def list_reminder_logs(
    workspace_id: str,
    *,
    channel: ReminderChannel | str | None = None,
    page: int = 1,
    page_size: int = 20,
    engine: Engine | None = None,
) -> dict[str, Any]:
    """Most recent reminder logs first, paginated."""
    if page < 1:
        raise ValidationError("page must be >= 1", fields=["page"])
    if page_size < 1 or page_size > MAX_LOG_PAGE_SIZE:
        raise ValidationError(
            f"page_size must be between 1 and {MAX_LOG_PAGE_SIZE}", fields=["page_size"]
        )

    conditions = [REMINDER_LOGS_TABLE.c.workspace_id == workspace_id]
    if channel is not None:
        conditions.append(REMINDER_LOGS_TABLE.c.channel == ReminderChannel.parse(channel).value)

    with ensure_engine(engine).connect() as conn:
        total = conn.execute(
            sa.select(sa.func.count()).select_from(REMINDER_LOGS_TABLE).where(*conditions)
        ).scalar_one()
        rows = conn.execute(
            sa.select(REMINDER_LOGS_TABLE)
            .where(*conditions)
            .order_by(REMINDER_LOGS_TABLE.c.sent_at.desc(), REMINDER_LOGS_TABLE.c.id)
            .limit(page_size)
            .offset((page - 1) * page_size)
        ).all()

    items = [
        ReminderLogRow(
            id=row.id,
            channel=row.channel,
            to=row.to,
            status=row.status,
            subject=row.subject,
            error=row.error,
            template_id=row.template_id,
            client_id=row.client_id,
            policy_id=row.policy_id,
            sent_at=row.sent_at,
        )
        for row in rows
    ]
    return {
        "items": [item.to_dict() for item in items],
        "pagination": {
            "page": page,
            "page_size": page_size,
            "total": total,
            "total_pages": (total + page_size - 1) // page_size,
        },
    }
