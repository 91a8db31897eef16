"""Persisted installment schedules for a policy."""

from __future__ import annotations

import logging
import uuid
from datetime import UTC, date, datetime

import sqlalchemy as sa
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from backend.core.audit import log_audit_event
from backend.core.db import ensure_engine
from backend.core.errors import NotFoundError, TransactionFailure, ValidationError

from .due_dates import DEFAULT_GRACE_DAYS, generate_premium_schedule
from .dto import PolicyRecord, ScheduleInstallment, ScheduleStatus
from .tables import POLICIES_TABLE, PREMIUM_SCHEDULES_TABLE

logger = logging.getLogger(__name__)


def create_premium_schedule(
    workspace_id: str,
    policy_id: str,
    *,
    number_of_installments: int,
    today: date,
    start_date: date | None = None,
    grace_days: int = DEFAULT_GRACE_DAYS,
    engine: Engine | None = None,
    actor: str | None = None,
) -> list[ScheduleInstallment]:
    """Generate installments for a policy and store them as PENDING rows.

    ``start_date`` defaults to the policy's next due date. Installment numbers
    continue after any installments already stored for the policy.
    """
    engine = ensure_engine(engine)
    try:
        with engine.begin() as conn:
            row = conn.execute(
                sa.select(POLICIES_TABLE)
                .where(POLICIES_TABLE.c.id == policy_id)
                .where(POLICIES_TABLE.c.workspace_id == workspace_id)
            ).first()
            if row is None:
                raise NotFoundError(f"Policy {policy_id} not found", fields=["policy_id"])
            policy = PolicyRecord.from_row(row._mapping)

            anchor = start_date or policy.next_due_date
            if anchor is None:
                raise ValidationError(
                    "start_date is required when the policy has no due date",
                    fields=["start_date"],
                )

            installments = generate_premium_schedule(
                anchor,
                policy.premium_amount,
                policy.premium_mode,
                number_of_installments,
                grace_days,
                now=today,
            )

            offset = conn.execute(
                sa.select(sa.func.coalesce(sa.func.max(PREMIUM_SCHEDULES_TABLE.c.installment_number), 0))
                .where(PREMIUM_SCHEDULES_TABLE.c.policy_id == policy.id)
            ).scalar_one()

            stored: list[ScheduleInstallment] = []
            created_at = datetime.now(UTC)
            for item in installments:
                schedule_id = str(uuid.uuid4())
                number = item.installment_number + offset
                conn.execute(
                    sa.insert(PREMIUM_SCHEDULES_TABLE).values(
                        id=schedule_id,
                        workspace_id=workspace_id,
                        policy_id=policy.id,
                        installment_number=number,
                        due_date=item.due_date,
                        grace_period_end=item.grace_period_end,
                        premium_amount=item.premium_amount,
                        status=ScheduleStatus.PENDING.value,
                        updated_at=created_at,
                    )
                )
                stored.append(
                    ScheduleInstallment(
                        id=schedule_id,
                        installment_number=number,
                        due_date=item.due_date,
                        grace_period_end=item.grace_period_end,
                        premium_amount=item.premium_amount,
                        status=item.status,
                    )
                )

            log_audit_event(
                conn,
                workspace_id=workspace_id,
                action="PREMIUM_SCHEDULE_CREATED",
                entity="POLICY",
                entity_id=policy.id,
                after={
                    "installments": len(stored),
                    "first_due_date": stored[0].due_date.isoformat(),
                    "last_due_date": stored[-1].due_date.isoformat(),
                },
                user_id=actor,
            )
    except SQLAlchemyError as exc:
        logger.error("premium_schedule_failed", extra={"policy_id": policy_id, "error": str(exc)})
        raise TransactionFailure(f"Failed to create premium schedule: {exc}") from exc

    logger.info(
        "premium_schedule_created",
        extra={"policy_id": policy_id, "installments": len(stored)},
    )
    return stored
