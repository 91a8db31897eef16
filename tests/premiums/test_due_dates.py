"""Tests for due-date calendar arithmetic."""

from datetime import date, timedelta
from decimal import Decimal

import pytest

from backend.apps.premiums.due_dates import (
    calculate_grace_period_end,
    calculate_next_due_date,
    classify_due_date,
    determine_payment_status,
    generate_premium_schedule,
    reminder_dates,
    update_policy_after_payment,
)
from backend.apps.premiums.dto import PaymentStatus, PremiumMode, ReminderType, parse_premium_mode
from backend.core.errors import InvalidPremiumModeError, ValidationError


class TestPremiumMode:
    """Test premium mode parsing."""

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("MONTHLY", PremiumMode.MONTHLY),
            ("quarterly", PremiumMode.QUARTERLY),
            ("half-yearly", PremiumMode.HALF_YEARLY),
            ("Half Yearly", PremiumMode.HALF_YEARLY),
            (" yearly ", PremiumMode.YEARLY),
            (PremiumMode.YEARLY, PremiumMode.YEARLY),
        ],
    )
    def test_parse_known_modes(self, raw, expected):
        assert parse_premium_mode(raw) is expected

    @pytest.mark.parametrize("raw", ["WEEKLY", "", None, 12])
    def test_parse_unknown_mode_raises(self, raw):
        with pytest.raises(InvalidPremiumModeError) as exc_info:
            parse_premium_mode(raw)
        assert exc_info.value.code == "invalid_premium_mode"

    def test_months_and_labels(self):
        assert [mode.months for mode in PremiumMode] == [1, 3, 6, 12]
        assert PremiumMode.HALF_YEARLY.label == "Half-Yearly"


class TestNextDueDate:
    """Test advancing a due date by one billing period."""

    def test_quarterly_preserves_day(self):
        assert calculate_next_due_date(date(2024, 3, 15), "QUARTERLY") == date(2024, 6, 15)

    def test_monthly_clips_to_leap_february(self):
        assert calculate_next_due_date(date(2024, 1, 31), PremiumMode.MONTHLY) == date(2024, 2, 29)

    def test_monthly_clips_to_non_leap_february(self):
        assert calculate_next_due_date(date(2023, 1, 31), PremiumMode.MONTHLY) == date(2023, 2, 28)

    def test_half_yearly_crosses_year(self):
        assert calculate_next_due_date(date(2024, 8, 31), "HALF_YEARLY") == date(2025, 2, 28)

    def test_yearly_from_leap_day(self):
        assert calculate_next_due_date(date(2024, 2, 29), "YEARLY") == date(2025, 2, 28)

    def test_invalid_mode(self):
        with pytest.raises(InvalidPremiumModeError):
            calculate_next_due_date(date(2024, 3, 15), "FORTNIGHTLY")


class TestPaymentStatus:
    """Test the time-relative status classifier."""

    due = date(2024, 3, 15)
    grace_end = date(2024, 4, 14)

    def test_grace_period_end_default(self):
        assert calculate_grace_period_end(self.due) == self.grace_end

    def test_grace_period_end_custom(self):
        assert calculate_grace_period_end(self.due, 0) == self.due

    @pytest.mark.parametrize(
        "today,expected",
        [
            (date(2024, 3, 10), PaymentStatus.UPCOMING),
            (date(2024, 3, 14), PaymentStatus.UPCOMING),
            (date(2024, 3, 15), PaymentStatus.UNPAID),
            (date(2024, 4, 1), PaymentStatus.UNPAID),
            (date(2024, 4, 14), PaymentStatus.UNPAID),
            (date(2024, 4, 15), PaymentStatus.OVERDUE),
        ],
    )
    def test_determine_payment_status(self, today, expected):
        assert determine_payment_status(self.due, self.grace_end, today) is expected

    def test_status_is_total(self):
        start = self.due - timedelta(days=60)
        for offset in range(150):
            today = start + timedelta(days=offset)
            status = determine_payment_status(self.due, self.grace_end, today)
            assert status in (PaymentStatus.UPCOMING, PaymentStatus.UNPAID, PaymentStatus.OVERDUE)

    def test_paid_wins_over_overdue(self):
        status = classify_due_date(
            self.due, date(2024, 6, 1), grace_period_end=self.grace_end, paid=True
        )
        assert status is PaymentStatus.PAID

    def test_due_beyond_upcoming_window_is_unpaid(self):
        status = classify_due_date(
            date(2024, 5, 1),
            date(2024, 3, 15),
            grace_period_end=date(2024, 5, 1),
            upcoming_until=date(2024, 4, 14),
        )
        assert status is PaymentStatus.UNPAID

    def test_due_inside_upcoming_window_is_upcoming(self):
        status = classify_due_date(
            date(2024, 4, 14),
            date(2024, 3, 15),
            grace_period_end=date(2024, 4, 14),
            upcoming_until=date(2024, 4, 14),
        )
        assert status is PaymentStatus.UPCOMING


class TestPolicyUpdate:
    """Test due-date movement after a payment."""

    def test_full_payment_advances(self):
        transition = update_policy_after_payment(
            date(2024, 3, 15), "QUARTERLY", date(2024, 3, 10), True
        )
        assert transition.next_due_date == date(2024, 6, 15)
        assert transition.last_paid_date == date(2024, 3, 10)
        assert transition.previous_due_date == date(2024, 3, 15)
        assert transition.advanced

    def test_partial_payment_keeps_due_date(self):
        transition = update_policy_after_payment(
            date(2024, 3, 15), "QUARTERLY", date(2024, 3, 10), False
        )
        assert transition.next_due_date == date(2024, 3, 15)
        assert not transition.advanced

    def test_partial_payment_still_validates_mode(self):
        with pytest.raises(InvalidPremiumModeError):
            update_policy_after_payment(date(2024, 3, 15), "DAILY", date(2024, 3, 10), False)

    def test_reminder_dates(self):
        slots = reminder_dates(date(2025, 3, 15))
        assert slots == [
            (ReminderType.ADVANCE_30, date(2025, 2, 13)),
            (ReminderType.ADVANCE_7, date(2025, 3, 8)),
            (ReminderType.DUE_DATE, date(2025, 3, 15)),
        ]


class TestGenerateSchedule:
    """Test installment schedule generation."""

    def test_monthly_from_month_end(self):
        schedule = generate_premium_schedule(
            date(2024, 1, 31), Decimal("1000"), "MONTHLY", 4, now=date(2024, 3, 1)
        )
        assert [item.installment_number for item in schedule] == [1, 2, 3, 4]
        assert [item.due_date for item in schedule] == [
            date(2024, 1, 31),
            date(2024, 2, 29),
            date(2024, 3, 31),
            date(2024, 4, 30),
        ]
        assert schedule[0].grace_period_end == date(2024, 3, 1)
        assert all(item.premium_amount == Decimal("1000") for item in schedule)

    def test_statuses_relative_to_now(self):
        schedule = generate_premium_schedule(
            date(2024, 1, 31), Decimal("1000"), "MONTHLY", 3, now=date(2024, 3, 1)
        )
        assert [item.status for item in schedule] == [
            PaymentStatus.UNPAID,
            PaymentStatus.UNPAID,
            PaymentStatus.UPCOMING,
        ]

    def test_yearly_with_custom_grace(self):
        schedule = generate_premium_schedule(
            date(2024, 3, 15), Decimal("12000"), "YEARLY", 2, grace_days=15, now=date(2024, 1, 1)
        )
        assert [item.due_date for item in schedule] == [date(2024, 3, 15), date(2025, 3, 15)]
        assert schedule[1].grace_period_end == date(2025, 3, 30)

    def test_rejects_zero_installments(self):
        with pytest.raises(ValidationError):
            generate_premium_schedule(
                date(2024, 3, 15), Decimal("100"), "YEARLY", 0, now=date(2024, 1, 1)
            )

    def test_rejects_non_positive_amount(self):
        with pytest.raises(ValidationError):
            generate_premium_schedule(
                date(2024, 3, 15), Decimal("0"), "YEARLY", 1, now=date(2024, 1, 1)
            )

    def test_rejects_invalid_mode(self):
        with pytest.raises(InvalidPremiumModeError):
            generate_premium_schedule(
                date(2024, 3, 15), Decimal("100"), "WEEKLY", 1, now=date(2024, 1, 1)
            )
