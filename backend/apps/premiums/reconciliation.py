"""Payment reconciliation against a policy's due-date calendar.

``record_premium_payment`` is the only writer of ``policies.next_due_date``.
Everything it does (payment row, policy update, schedule update, audit rows
and the advance-reminder batch) happens inside one ``engine.begin()`` block,
so a failure anywhere leaves no trace.
"""

from __future__ import annotations

import logging
import time
import uuid
from datetime import UTC, date, datetime

import sqlalchemy as sa
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError

from backend.core.audit import log_audit_event
from backend.core.db import ensure_engine
from backend.core.errors import NotFoundError, TransactionFailure
from backend.core.observability.metrics import (
    increment_due_date_advances,
    increment_payments_recorded,
    increment_reconciliation_failures,
    record_reconciliation_duration,
)

from .due_dates import reminder_dates, update_policy_after_payment
from .dto import (
    DueDateTransition,
    PaymentInput,
    PolicyRecord,
    PremiumPaymentRecord,
    ReconciliationResult,
    ReminderRecord,
    ReminderStatus,
    ScheduleStatus,
)
from .tables import (
    POLICIES_TABLE,
    PREMIUM_PAYMENTS_TABLE,
    PREMIUM_REMINDERS_TABLE,
    PREMIUM_SCHEDULES_TABLE,
)
from .validators import validate_payment_input

logger = logging.getLogger(__name__)

AUDIT_PAYMENT_RECORDED = "PREMIUM_PAYMENT_RECORDED"
AUDIT_DUE_DATE_UPDATED = "POLICY_DUE_DATE_UPDATED"


def _load_policy_for_update(conn: Connection, workspace_id: str, policy_id: str) -> PolicyRecord:
    stmt = (
        sa.select(POLICIES_TABLE)
        .where(POLICIES_TABLE.c.id == policy_id)
        .where(POLICIES_TABLE.c.workspace_id == workspace_id)
        .with_for_update()
    )
    row = conn.execute(stmt).first()
    if row is None:
        raise NotFoundError(f"Policy {policy_id} not found", fields=["policy_id"])
    return PolicyRecord.from_row(row._mapping)


def _load_schedule(conn: Connection, policy: PolicyRecord, schedule_id: str):
    row = conn.execute(
        sa.select(PREMIUM_SCHEDULES_TABLE).where(PREMIUM_SCHEDULES_TABLE.c.id == schedule_id)
    ).first()
    if row is None or row.policy_id != policy.id:
        raise NotFoundError(
            f"Schedule {schedule_id} not found for policy {policy.id}", fields=["schedule_id"]
        )
    return row


def _insert_payment(conn: Connection, payment: PaymentInput, now: datetime) -> PremiumPaymentRecord:
    record = PremiumPaymentRecord(
        id=str(uuid.uuid4()),
        workspace_id=payment.workspace_id,
        policy_id=payment.policy_id,
        schedule_id=payment.schedule_id,
        payment_date=payment.payment_date,
        amount_paid=payment.amount_paid,
        late_fee=payment.late_fee,
        discount=payment.discount,
        payment_mode=payment.payment_mode,
        receipt_number=payment.receipt_number,
        cheque_number=payment.cheque_number,
        bank_name=payment.bank_name,
        transaction_id=payment.transaction_id,
        remarks=payment.remarks,
        processed_by=payment.processed_by,
    )
    conn.execute(
        sa.insert(PREMIUM_PAYMENTS_TABLE).values(
            id=record.id,
            workspace_id=record.workspace_id,
            policy_id=record.policy_id,
            schedule_id=record.schedule_id,
            payment_date=record.payment_date,
            amount_paid=record.amount_paid,
            late_fee=record.late_fee,
            discount=record.discount,
            payment_mode=record.payment_mode,
            receipt_number=record.receipt_number,
            cheque_number=record.cheque_number,
            bank_name=record.bank_name,
            transaction_id=record.transaction_id,
            remarks=record.remarks,
            processed_by=record.processed_by,
            created_at=now,
        )
    )
    return record


def _advance_policy(
    conn: Connection, policy: PolicyRecord, transition: DueDateTransition, now: datetime
) -> None:
    conn.execute(
        sa.update(POLICIES_TABLE)
        .where(POLICIES_TABLE.c.id == policy.id)
        .values(
            next_due_date=transition.next_due_date,
            last_paid_date=transition.last_paid_date,
            updated_at=now,
        )
    )


def _update_schedule(conn: Connection, schedule_id: str, status: ScheduleStatus, now: datetime) -> None:
    conn.execute(
        sa.update(PREMIUM_SCHEDULES_TABLE)
        .where(PREMIUM_SCHEDULES_TABLE.c.id == schedule_id)
        .values(status=status.value, updated_at=now)
    )


def _insert_reminders(
    conn: Connection, policy: PolicyRecord, next_due_date: date, now: datetime
) -> tuple[ReminderRecord, ...]:
    reminders = tuple(
        ReminderRecord(
            id=str(uuid.uuid4()),
            policy_id=policy.id,
            reminder_type=reminder_type,
            scheduled_date=scheduled,
            status=ReminderStatus.PENDING,
        )
        for reminder_type, scheduled in reminder_dates(next_due_date)
    )
    conn.execute(
        sa.insert(PREMIUM_REMINDERS_TABLE),
        [
            {
                "id": reminder.id,
                "workspace_id": policy.workspace_id,
                "policy_id": reminder.policy_id,
                "reminder_type": reminder.reminder_type.value,
                "scheduled_date": reminder.scheduled_date,
                "status": reminder.status.value,
                "created_at": now,
            }
            for reminder in reminders
        ],
    )
    return reminders


def _result_message(is_full_payment: bool, transition: DueDateTransition) -> str:
    if is_full_payment:
        return (
            "Premium payment recorded successfully. Next due date updated to "
            f"{transition.next_due_date.isoformat()}."
        )
    return "Partial premium payment recorded successfully. Due date remains unchanged."


def record_premium_payment(
    payment: PaymentInput,
    *,
    engine: Engine | None = None,
    trace_id: str | None = None,
) -> ReconciliationResult:
    """Record a payment and reconcile it against the policy's due date.

    A payment is full when ``amount_paid + late_fee - discount`` covers the
    policy premium. Full payments advance ``next_due_date`` by one billing
    period and schedule three reminders for the new date; partial payments
    leave the policy untouched.

    Raises:
        ValidationError: input is missing or malformed
        NotFoundError: policy (or referenced schedule) is not in the workspace
        InvalidPremiumModeError: the stored policy carries an unknown mode
        TransactionFailure: persistence failed; nothing was committed
    """
    payment = validate_payment_input(payment)
    engine = ensure_engine(engine)
    started = time.perf_counter()
    now = datetime.now(UTC)

    try:
        with engine.begin() as conn:
            policy = _load_policy_for_update(conn, payment.workspace_id, payment.policy_id)
            schedule = (
                _load_schedule(conn, policy, payment.schedule_id) if payment.schedule_id else None
            )

            total_paid = payment.total_paid
            is_full_payment = total_paid >= policy.premium_amount
            current_due_date = policy.next_due_date or payment.payment_date
            transition = update_policy_after_payment(
                current_due_date, policy.premium_mode, payment.payment_date, is_full_payment
            )

            record = _insert_payment(conn, payment, now)

            if is_full_payment:
                _advance_policy(conn, policy, transition, now)

            schedule_status = None
            if schedule is not None:
                schedule_status = ScheduleStatus.PAID if is_full_payment else ScheduleStatus.PARTIAL
                _update_schedule(conn, schedule.id, schedule_status, now)

            log_audit_event(
                conn,
                workspace_id=payment.workspace_id,
                action=AUDIT_PAYMENT_RECORDED,
                entity="PREMIUM_PAYMENT",
                entity_id=record.id,
                after={
                    "policy_id": policy.id,
                    "amount_paid": str(record.amount_paid),
                    "total_paid": str(total_paid),
                    "payment_mode": record.payment_mode,
                    "is_full_payment": is_full_payment,
                    "receipt_number": record.receipt_number,
                },
                user_id=payment.processed_by,
                trace_id=trace_id,
            )

            reminders: tuple[ReminderRecord, ...] = ()
            if is_full_payment:
                log_audit_event(
                    conn,
                    workspace_id=payment.workspace_id,
                    action=AUDIT_DUE_DATE_UPDATED,
                    entity="POLICY",
                    entity_id=policy.id,
                    before={
                        "next_due_date": transition.previous_due_date.isoformat(),
                        "last_paid_date": (
                            policy.last_paid_date.isoformat() if policy.last_paid_date else None
                        ),
                    },
                    after={
                        "next_due_date": transition.next_due_date.isoformat(),
                        "last_paid_date": transition.last_paid_date.isoformat(),
                    },
                    user_id=payment.processed_by,
                    trace_id=trace_id,
                )
                reminders = _insert_reminders(conn, policy, transition.next_due_date, now)
    except SQLAlchemyError as exc:
        increment_reconciliation_failures("database")
        logger.error(
            "premium_payment_failed",
            extra={"policy_id": payment.policy_id, "error": str(exc)},
        )
        raise TransactionFailure(f"Failed to record premium payment: {exc}") from exc

    increment_payments_recorded("full" if is_full_payment else "partial")
    if is_full_payment:
        increment_due_date_advances()
    record_reconciliation_duration((time.perf_counter() - started) * 1000)

    logger.info(
        "premium_payment_recorded",
        extra={
            "policy_id": policy.id,
            "payment_id": record.id,
            "is_full_payment": is_full_payment,
            "next_due_date": transition.next_due_date.isoformat(),
        },
    )

    return ReconciliationResult(
        payment=record,
        is_full_payment=is_full_payment,
        total_paid=total_paid,
        transition=transition,
        schedule_status=schedule_status,
        reminders=reminders,
        message=_result_message(is_full_payment, transition),
    )
