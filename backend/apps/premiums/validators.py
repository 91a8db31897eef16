from __future__ import annotations

from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from backend.core.errors import ValidationError

from .dto import PaymentInput

_MAX_TEXT = 500


def non_empty_str(value: Any) -> Optional[str]:
    if isinstance(value, str):
        candidate = value.strip()
        if candidate:
            return candidate
    return None


def to_decimal(value: Any) -> Optional[Decimal]:
    if value is None:
        return None
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None


def validate_payment_input(payment: PaymentInput) -> PaymentInput:
    """Check a submitted payment and return it with amounts normalized.

    Raises:
        ValidationError: listing every offending field
    """
    missing: list[str] = []
    invalid: list[str] = []

    policy_id = non_empty_str(payment.policy_id)
    if policy_id is None:
        missing.append("policy_id")

    if payment.payment_date is None:
        missing.append("payment_date")
    elif not isinstance(payment.payment_date, date):
        invalid.append("payment_date")

    payment_mode = non_empty_str(payment.payment_mode)
    if payment_mode is None:
        missing.append("payment_mode")

    amount_paid = to_decimal(payment.amount_paid)
    if payment.amount_paid is None:
        missing.append("amount_paid")
    elif amount_paid is None or not amount_paid.is_finite() or amount_paid <= 0:
        invalid.append("amount_paid")

    late_fee = to_decimal(payment.late_fee if payment.late_fee is not None else 0)
    if late_fee is None or not late_fee.is_finite() or late_fee < 0:
        invalid.append("late_fee")

    discount = to_decimal(payment.discount if payment.discount is not None else 0)
    if discount is None or not discount.is_finite() or discount < 0:
        invalid.append("discount")

    if payment.remarks is not None and len(payment.remarks) > _MAX_TEXT:
        invalid.append("remarks")

    if missing:
        raise ValidationError(
            "Missing required fields: " + ", ".join(missing), fields=missing + invalid
        )
    if invalid:
        raise ValidationError("Invalid fields: " + ", ".join(invalid), fields=invalid)

    payment.policy_id = policy_id
    payment.payment_mode = payment_mode
    payment.amount_paid = amount_paid
    payment.late_fee = late_fee
    payment.discount = discount
    payment.schedule_id = non_empty_str(payment.schedule_id)
    return payment
