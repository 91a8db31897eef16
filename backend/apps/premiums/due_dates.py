"""Calendar arithmetic for premium due dates.

Pure functions only: every function that depends on the current date takes
it as an argument. Month arithmetic uses ``dateutil.relativedelta`` so the
day of month is preserved and clipped to the end of shorter months
(2024-01-31 + 1 month -> 2024-02-29).
"""

from __future__ import annotations

from datetime import date, datetime, timedelta
from decimal import Decimal

from dateutil.relativedelta import relativedelta

from backend.core.errors import ValidationError

from .dto import (
    DueDateTransition,
    PaymentStatus,
    PremiumMode,
    ReminderType,
    ScheduleInstallment,
    parse_premium_mode,
)

DEFAULT_GRACE_DAYS = 30

__all__ = [
    "DEFAULT_GRACE_DAYS",
    "calculate_next_due_date",
    "calculate_grace_period_end",
    "classify_due_date",
    "determine_payment_status",
    "generate_premium_schedule",
    "parse_premium_mode",
    "reminder_dates",
    "update_policy_after_payment",
]


def _as_date(value: date | datetime) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def calculate_next_due_date(due_date: date, premium_mode: PremiumMode | str) -> date:
    """Advance ``due_date`` by one billing period of ``premium_mode``.

    Raises:
        InvalidPremiumModeError: mode is not a known billing frequency
    """
    mode = parse_premium_mode(premium_mode)
    return _as_date(due_date) + relativedelta(months=mode.months)


def calculate_grace_period_end(due_date: date, grace_days: int = DEFAULT_GRACE_DAYS) -> date:
    return _as_date(due_date) + timedelta(days=grace_days)


def classify_due_date(
    due_date: date,
    now: date | datetime,
    *,
    grace_period_end: date,
    upcoming_until: date | None = None,
    paid: bool = False,
) -> PaymentStatus:
    """Single classifier behind every status shown for a due date.

    Rules, first match wins:

    * ``paid`` -> PAID
    * ``now > grace_period_end`` -> OVERDUE
    * ``now < due_date`` -> UPCOMING, unless ``upcoming_until`` is given and the
      due date lies beyond it, in which case UNPAID
    * otherwise (due today or inside the grace window) -> UNPAID
    """
    today = _as_date(now)
    due = _as_date(due_date)
    if paid:
        return PaymentStatus.PAID
    if today > grace_period_end:
        return PaymentStatus.OVERDUE
    if today < due:
        if upcoming_until is None or due <= upcoming_until:
            return PaymentStatus.UPCOMING
        return PaymentStatus.UNPAID
    return PaymentStatus.UNPAID


def determine_payment_status(
    due_date: date, grace_period_end: date, now: date | datetime
) -> PaymentStatus:
    """UPCOMING before the due date, UNPAID through the grace window, OVERDUE after."""
    return classify_due_date(due_date, now, grace_period_end=_as_date(grace_period_end))


def update_policy_after_payment(
    current_due_date: date,
    premium_mode: PremiumMode | str,
    payment_date: date,
    is_full_payment: bool,
) -> DueDateTransition:
    """Compute the due-date movement for one payment.

    Only a full payment advances the due date. ``last_paid_date`` is the
    payment date in both cases; callers decide what to persist.
    """
    if is_full_payment:
        next_due = calculate_next_due_date(current_due_date, premium_mode)
    else:
        # validate the mode even when the date stays put
        parse_premium_mode(premium_mode)
        next_due = current_due_date
    return DueDateTransition(
        previous_due_date=current_due_date,
        next_due_date=next_due,
        last_paid_date=payment_date,
    )


def reminder_dates(next_due_date: date) -> list[tuple[ReminderType, date]]:
    """Reminder slots anchored at a due date: 30 days, 7 days and 0 days before."""
    return [
        (reminder_type, next_due_date - timedelta(days=reminder_type.days_before))
        for reminder_type in ReminderType
    ]


def generate_premium_schedule(
    start_date: date,
    premium_amount: Decimal,
    premium_mode: PremiumMode | str,
    number_of_installments: int,
    grace_days: int = DEFAULT_GRACE_DAYS,
    *,
    now: date | datetime,
) -> list[ScheduleInstallment]:
    """Build ``number_of_installments`` consecutive installments from ``start_date``.

    Each due date is offset from ``start_date`` directly, so a 31st-of-month
    start keeps returning to the 31st where the month allows it.
    """
    mode = parse_premium_mode(premium_mode)
    if number_of_installments < 1:
        raise ValidationError(
            "number_of_installments must be at least 1", fields=["number_of_installments"]
        )
    amount = Decimal(str(premium_amount))
    if amount <= 0:
        raise ValidationError("premium_amount must be positive", fields=["premium_amount"])

    installments: list[ScheduleInstallment] = []
    for index in range(number_of_installments):
        due = _as_date(start_date) + relativedelta(months=mode.months * index)
        grace_end = calculate_grace_period_end(due, grace_days)
        installments.append(
            ScheduleInstallment(
                installment_number=index + 1,
                due_date=due,
                grace_period_end=grace_end,
                premium_amount=amount,
                status=determine_payment_status(due, grace_end, now),
            )
        )
    return installments
