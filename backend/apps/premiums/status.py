"""Premium status list: classify active policies into time-relative buckets."""

from __future__ import annotations

import logging
import time
from datetime import date, timedelta
from decimal import Decimal
from typing import Any

import sqlalchemy as sa
from sqlalchemy.engine import Engine

from backend.core.config import settings
from backend.core.db import ensure_engine
from backend.core.errors import ValidationError
from backend.core.observability.metrics import record_status_query_duration

from .due_dates import calculate_grace_period_end, classify_due_date
from .dto import (
    PaymentStatus,
    PolicyStatus,
    PremiumStatusPage,
    PremiumStatusRow,
    StatusSummary,
    parse_premium_mode,
)
from .tables import CLIENTS_TABLE, POLICIES_TABLE, PREMIUM_PAYMENTS_TABLE

logger = logging.getLogger(__name__)


def _validate_pagination(page: int, limit: int) -> None:
    if page < 1:
        raise ValidationError("page must be >= 1", fields=["page"])
    if limit < 1 or limit > settings.READ_MAX_LIMIT:
        raise ValidationError(
            f"limit must be between 1 and {settings.READ_MAX_LIMIT}", fields=["limit"]
        )


def _parse_status(value: PaymentStatus | str | None) -> PaymentStatus | None:
    if value is None or isinstance(value, PaymentStatus):
        return value
    try:
        return PaymentStatus(value.strip().upper())
    except ValueError as exc:
        raise ValidationError(f"Unknown status filter: {value!r}", fields=["status"]) from exc


def _base_query() -> sa.Select:
    latest_payment = (
        sa.select(sa.func.max(PREMIUM_PAYMENTS_TABLE.c.payment_date))
        .where(PREMIUM_PAYMENTS_TABLE.c.policy_id == POLICIES_TABLE.c.id)
        .scalar_subquery()
        .label("latest_payment_date")
    )
    return (
        sa.select(
            POLICIES_TABLE.c.id,
            POLICIES_TABLE.c.policy_number,
            POLICIES_TABLE.c.client_id,
            POLICIES_TABLE.c.insurer,
            POLICIES_TABLE.c.plan_name,
            POLICIES_TABLE.c.premium_amount,
            POLICIES_TABLE.c.premium_mode,
            POLICIES_TABLE.c.next_due_date,
            POLICIES_TABLE.c.last_paid_date,
            CLIENTS_TABLE.c.name.label("client_name"),
            latest_payment,
        )
        .select_from(
            POLICIES_TABLE.join(CLIENTS_TABLE, CLIENTS_TABLE.c.id == POLICIES_TABLE.c.client_id)
        )
        .where(POLICIES_TABLE.c.status == PolicyStatus.ACTIVE.value)
        .where(POLICIES_TABLE.c.next_due_date.is_not(None))
    )


def _classify(
    row: Any, today: date, *, upcoming_window_days: int, grace_days: int
) -> PaymentStatus:
    due = row.next_due_date
    paid = row.latest_payment_date is not None and row.latest_payment_date >= due
    return classify_due_date(
        due,
        today,
        grace_period_end=calculate_grace_period_end(due, grace_days),
        upcoming_until=today + timedelta(days=upcoming_window_days),
        paid=paid,
    )


def _to_status_row(row: Any, status: PaymentStatus) -> PremiumStatusRow:
    return PremiumStatusRow(
        policy_id=row.id,
        policy_number=row.policy_number,
        client_id=row.client_id,
        client_name=row.client_name,
        insurer=row.insurer,
        plan_name=row.plan_name,
        premium_amount=Decimal(str(row.premium_amount)),
        premium_mode=parse_premium_mode(row.premium_mode),
        next_due_date=row.next_due_date,
        last_paid_date=row.last_paid_date,
        status=status,
    )


def _summarize(rows: list[Any], today: date, *, upcoming_window_days: int, grace_days: int) -> StatusSummary:
    counts = {bucket: 0 for bucket in PaymentStatus}
    total_amount = Decimal("0")
    for row in rows:
        bucket = _classify(
            row, today, upcoming_window_days=upcoming_window_days, grace_days=grace_days
        )
        counts[bucket] += 1
        total_amount += Decimal(str(row.premium_amount))
    return StatusSummary(
        total=len(rows),
        upcoming=counts[PaymentStatus.UPCOMING],
        overdue=counts[PaymentStatus.OVERDUE],
        paid=counts[PaymentStatus.PAID],
        unpaid=counts[PaymentStatus.UNPAID],
        total_amount=total_amount,
    )


def list_premium_statuses(
    workspace_id: str,
    *,
    today: date,
    search: str | None = None,
    status: PaymentStatus | str | None = None,
    due_from: date | None = None,
    due_to: date | None = None,
    page: int = 1,
    limit: int = 10,
    upcoming_window_days: int | None = None,
    grace_days: int | None = None,
    engine: Engine | None = None,
) -> PremiumStatusPage:
    """List active policies with a due date, classified relative to ``today``.

    Buckets: PAID when a payment on or after the due date exists, OVERDUE
    once past the grace window (default 0 days, i.e. due before today),
    UPCOMING when due within ``upcoming_window_days`` (default 30), else
    UNPAID. The summary always covers the whole workspace, independent of
    filters and pagination.
    """
    _validate_pagination(page, limit)
    bucket = _parse_status(status)
    if upcoming_window_days is None:
        upcoming_window_days = settings.STATUS_UPCOMING_WINDOW_DAYS
    if grace_days is None:
        grace_days = settings.STATUS_GRACE_DAYS
    engine = ensure_engine(engine)
    started = time.perf_counter()

    scoped = _base_query().where(POLICIES_TABLE.c.workspace_id == workspace_id)
    filtered = scoped
    term = (search or "").strip()
    if term:
        pattern = f"%{term.lower()}%"
        filtered = filtered.where(
            sa.or_(
                sa.func.lower(POLICIES_TABLE.c.policy_number).like(pattern),
                sa.func.lower(sa.func.coalesce(POLICIES_TABLE.c.insurer, "")).like(pattern),
                sa.func.lower(CLIENTS_TABLE.c.name).like(pattern),
            )
        )
    if due_from is not None:
        filtered = filtered.where(POLICIES_TABLE.c.next_due_date >= due_from)
    if due_to is not None:
        filtered = filtered.where(POLICIES_TABLE.c.next_due_date <= due_to)
    filtered = filtered.order_by(
        POLICIES_TABLE.c.next_due_date.asc(), POLICIES_TABLE.c.policy_number.asc()
    )

    with engine.connect() as conn:
        rows = conn.execute(filtered).all()
        all_rows = conn.execute(scoped).all()

    classified = [
        (row, _classify(row, today, upcoming_window_days=upcoming_window_days, grace_days=grace_days))
        for row in rows
    ]
    if bucket is not None:
        classified = [(row, row_status) for row, row_status in classified if row_status is bucket]

    offset = (page - 1) * limit
    items = [_to_status_row(row, row_status) for row, row_status in classified[offset : offset + limit]]
    summary = _summarize(
        all_rows, today, upcoming_window_days=upcoming_window_days, grace_days=grace_days
    )

    record_status_query_duration((time.perf_counter() - started) * 1000)
    logger.info(
        "premium_status_listed",
        extra={"count": len(items), "total": len(classified), "bucket": bucket.value if bucket else None},
    )
    return PremiumStatusPage(
        items=items, page=page, limit=limit, total=len(classified), summary=summary
    )
