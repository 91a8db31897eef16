"""Calendar matching for reminder automations.

Both matchers are read-only snapshot queries; ``today`` is always supplied
by the caller.
"""

from __future__ import annotations

import logging
from datetime import date, timedelta

import sqlalchemy as sa
from sqlalchemy.engine import Engine

from backend.apps.premiums.dto import ClientRecord, PolicyRecord
from backend.apps.premiums.tables import CLIENTS_TABLE, POLICIES_TABLE
from backend.core.db import ensure_engine
from backend.core.errors import ValidationError

from .dto import ReminderTarget

logger = logging.getLogger(__name__)


def _check_window(within_days: int) -> None:
    if within_days < 0:
        raise ValidationError("within_days must be >= 0", fields=["days"])


def birthday_window(today: date, within_days: int) -> dict[tuple[int, int], date]:
    """Map (month, day) to its calendar date for today .. today + within_days."""
    _check_window(within_days)
    window: dict[tuple[int, int], date] = {}
    for offset in range(within_days + 1):
        day = today + timedelta(days=offset)
        window.setdefault((day.month, day.day), day)
    return window


def find_upcoming_birthdays(
    workspace_id: str,
    within_days: int,
    *,
    today: date,
    engine: Engine | None = None,
) -> list[ReminderTarget]:
    """Clients whose birthday falls within the next ``within_days`` days.

    Matching compares month and day only, so the window wraps across the
    year boundary. A 29 February birthday matches only in leap years.
    """
    window = birthday_window(today, within_days)
    engine = ensure_engine(engine)

    stmt = (
        sa.select(CLIENTS_TABLE)
        .where(CLIENTS_TABLE.c.workspace_id == workspace_id)
        .where(CLIENTS_TABLE.c.dob.is_not(None))
    )
    with engine.connect() as conn:
        rows = conn.execute(stmt).all()

    targets = []
    for row in rows:
        client = ClientRecord.from_row(row._mapping)
        occurs_on = window.get((client.dob.month, client.dob.day))
        if occurs_on is not None:
            targets.append(ReminderTarget(client=client, anchor_date=occurs_on))

    targets.sort(key=lambda target: (target.anchor_date, target.client.name))
    logger.info(
        "birthdays_matched",
        extra={"within_days": within_days, "candidates": len(rows), "matched": len(targets)},
    )
    return targets


def find_upcoming_due_premiums(
    workspace_id: str,
    within_days: int,
    *,
    today: date,
    engine: Engine | None = None,
) -> list[ReminderTarget]:
    """Policies whose next due date lies in [today, today + within_days], earliest first."""
    _check_window(within_days)
    engine = ensure_engine(engine)
    until = today + timedelta(days=within_days)

    stmt = (
        sa.select(
            POLICIES_TABLE,
            CLIENTS_TABLE.c.name.label("client_name"),
            CLIENTS_TABLE.c.email.label("client_email"),
            CLIENTS_TABLE.c.mobile.label("client_mobile"),
            CLIENTS_TABLE.c.dob.label("client_dob"),
        )
        .select_from(
            POLICIES_TABLE.join(CLIENTS_TABLE, CLIENTS_TABLE.c.id == POLICIES_TABLE.c.client_id)
        )
        .where(POLICIES_TABLE.c.workspace_id == workspace_id)
        .where(POLICIES_TABLE.c.next_due_date.is_not(None))
        .where(POLICIES_TABLE.c.next_due_date >= today)
        .where(POLICIES_TABLE.c.next_due_date <= until)
        .order_by(POLICIES_TABLE.c.next_due_date.asc(), POLICIES_TABLE.c.policy_number.asc())
    )
    with engine.connect() as conn:
        rows = conn.execute(stmt).all()

    targets = []
    for row in rows:
        mapping = row._mapping
        policy = PolicyRecord.from_row(mapping)
        client = ClientRecord(
            id=policy.client_id,
            workspace_id=policy.workspace_id,
            name=mapping["client_name"],
            email=mapping["client_email"],
            mobile=mapping["client_mobile"],
            dob=mapping["client_dob"],
        )
        targets.append(ReminderTarget(client=client, anchor_date=policy.next_due_date, policy=policy))

    logger.info("due_premiums_matched", extra={"within_days": within_days, "matched": len(targets)})
    return targets
