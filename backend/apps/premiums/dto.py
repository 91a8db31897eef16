"""Data Transfer Objects for premium billing.

Closed enumerations for billing frequencies and statuses, plus frozen row
records that the reconciliation and status modules hand back to callers.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any, Mapping

from backend.core.errors import InvalidPremiumModeError


class PremiumMode(Enum):
    """Billing frequency of a policy."""

    MONTHLY = "MONTHLY"
    QUARTERLY = "QUARTERLY"
    HALF_YEARLY = "HALF_YEARLY"
    YEARLY = "YEARLY"

    @property
    def months(self) -> int:
        return _MODE_MONTHS[self]

    @property
    def label(self) -> str:
        return _MODE_LABELS[self]


_MODE_MONTHS = {
    PremiumMode.MONTHLY: 1,
    PremiumMode.QUARTERLY: 3,
    PremiumMode.HALF_YEARLY: 6,
    PremiumMode.YEARLY: 12,
}

_MODE_LABELS = {
    PremiumMode.MONTHLY: "Monthly",
    PremiumMode.QUARTERLY: "Quarterly",
    PremiumMode.HALF_YEARLY: "Half-Yearly",
    PremiumMode.YEARLY: "Yearly",
}


def parse_premium_mode(value: Any) -> PremiumMode:
    """Parse a stored or submitted premium mode.

    Accepts the enum itself or its name in any case, with ``-`` or space as
    separator (``half-yearly`` -> HALF_YEARLY).
    """
    if isinstance(value, PremiumMode):
        return value
    if isinstance(value, str):
        candidate = value.strip().upper().replace("-", "_").replace(" ", "_")
        try:
            return PremiumMode(candidate)
        except ValueError:
            pass
    raise InvalidPremiumModeError(f"Invalid premium mode: {value!r}", fields=["premium_mode"])


class PolicyStatus(Enum):
    ACTIVE = "ACTIVE"
    LAPSED = "LAPSED"
    MATURED = "MATURED"
    SURRENDERED = "SURRENDERED"


class ScheduleStatus(Enum):
    PENDING = "PENDING"
    PARTIAL = "PARTIAL"
    PAID = "PAID"


class ReminderType(Enum):
    """Advance reminders created after a full payment, keyed by offset."""

    ADVANCE_30 = "ADVANCE_30"
    ADVANCE_7 = "ADVANCE_7"
    DUE_DATE = "DUE_DATE"

    @property
    def days_before(self) -> int:
        return _REMINDER_OFFSETS[self]


_REMINDER_OFFSETS = {
    ReminderType.ADVANCE_30: 30,
    ReminderType.ADVANCE_7: 7,
    ReminderType.DUE_DATE: 0,
}


class ReminderStatus(Enum):
    PENDING = "PENDING"
    SENT = "SENT"
    QUEUED = "QUEUED"


class PaymentStatus(Enum):
    """Time-relative bucket of a policy's current premium."""

    UPCOMING = "UPCOMING"
    UNPAID = "UNPAID"
    OVERDUE = "OVERDUE"
    PAID = "PAID"


def _money(value: Any) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def _iso(value: date | None) -> str | None:
    return value.isoformat() if value else None


@dataclass(frozen=True)
class ClientRecord:
    id: str
    workspace_id: str
    name: str
    email: str | None = None
    mobile: str | None = None
    dob: date | None = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "ClientRecord":
        return cls(
            id=row["id"],
            workspace_id=row["workspace_id"],
            name=row["name"],
            email=row.get("email"),
            mobile=row.get("mobile"),
            dob=row.get("dob"),
        )


@dataclass(frozen=True)
class PolicyRecord:
    id: str
    workspace_id: str
    client_id: str
    policy_number: str
    premium_amount: Decimal
    premium_mode: PremiumMode
    status: PolicyStatus = PolicyStatus.ACTIVE
    insurer: str | None = None
    plan_name: str | None = None
    next_due_date: date | None = None
    last_paid_date: date | None = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "PolicyRecord":
        return cls(
            id=row["id"],
            workspace_id=row["workspace_id"],
            client_id=row["client_id"],
            policy_number=row["policy_number"],
            premium_amount=_money(row["premium_amount"]),
            premium_mode=parse_premium_mode(row["premium_mode"]),
            status=PolicyStatus(row["status"]),
            insurer=row.get("insurer"),
            plan_name=row.get("plan_name"),
            next_due_date=row.get("next_due_date"),
            last_paid_date=row.get("last_paid_date"),
        )


@dataclass
class PaymentInput:
    """Payment as submitted by the caller, before validation."""

    workspace_id: str
    policy_id: str | None
    payment_date: date | None
    amount_paid: Decimal | None
    payment_mode: str | None
    schedule_id: str | None = None
    late_fee: Decimal | None = None
    discount: Decimal | None = None
    remarks: str | None = None
    receipt_number: str | None = None
    cheque_number: str | None = None
    bank_name: str | None = None
    transaction_id: str | None = None
    processed_by: str | None = None

    @property
    def total_paid(self) -> Decimal:
        """amount_paid + late_fee - discount."""
        return (
            _money(self.amount_paid or 0)
            + _money(self.late_fee or 0)
            - _money(self.discount or 0)
        )


@dataclass(frozen=True)
class PremiumPaymentRecord:
    id: str
    workspace_id: str
    policy_id: str
    payment_date: date
    amount_paid: Decimal
    late_fee: Decimal
    discount: Decimal
    payment_mode: str
    schedule_id: str | None = None
    receipt_number: str | None = None
    cheque_number: str | None = None
    bank_name: str | None = None
    transaction_id: str | None = None
    remarks: str | None = None
    processed_by: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "workspace_id": self.workspace_id,
            "policy_id": self.policy_id,
            "schedule_id": self.schedule_id,
            "payment_date": self.payment_date.isoformat(),
            "amount_paid": float(self.amount_paid),
            "late_fee": float(self.late_fee),
            "discount": float(self.discount),
            "payment_mode": self.payment_mode,
            "receipt_number": self.receipt_number,
            "cheque_number": self.cheque_number,
            "bank_name": self.bank_name,
            "transaction_id": self.transaction_id,
            "remarks": self.remarks,
            "processed_by": self.processed_by,
        }


@dataclass(frozen=True)
class DueDateTransition:
    """Due-date movement caused by one payment."""

    previous_due_date: date
    next_due_date: date
    last_paid_date: date

    @property
    def advanced(self) -> bool:
        return self.next_due_date != self.previous_due_date


@dataclass(frozen=True)
class ReminderRecord:
    id: str
    policy_id: str
    reminder_type: ReminderType
    scheduled_date: date
    status: ReminderStatus = ReminderStatus.PENDING

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "policy_id": self.policy_id,
            "reminder_type": self.reminder_type.value,
            "scheduled_date": self.scheduled_date.isoformat(),
            "status": self.status.value,
        }


@dataclass(frozen=True)
class ReconciliationResult:
    payment: PremiumPaymentRecord
    is_full_payment: bool
    total_paid: Decimal
    transition: DueDateTransition
    schedule_status: ScheduleStatus | None = None
    reminders: tuple[ReminderRecord, ...] = ()
    message: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "payment": self.payment.to_dict(),
            "is_full_payment": self.is_full_payment,
            "total_paid": float(self.total_paid),
            "previous_due_date": self.transition.previous_due_date.isoformat(),
            "next_due_date": self.transition.next_due_date.isoformat(),
            "last_paid_date": self.transition.last_paid_date.isoformat(),
            "schedule_status": self.schedule_status.value if self.schedule_status else None,
            "reminders": [reminder.to_dict() for reminder in self.reminders],
            "message": self.message,
        }


@dataclass(frozen=True)
class ScheduleInstallment:
    installment_number: int
    due_date: date
    grace_period_end: date
    premium_amount: Decimal
    status: PaymentStatus
    id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "installment_number": self.installment_number,
            "due_date": self.due_date.isoformat(),
            "grace_period_end": self.grace_period_end.isoformat(),
            "premium_amount": float(self.premium_amount),
            "status": self.status.value,
        }


@dataclass(frozen=True)
class PremiumStatusRow:
    """One policy as shown in the premium status list."""

    policy_id: str
    policy_number: str
    client_id: str
    client_name: str
    insurer: str | None
    plan_name: str | None
    premium_amount: Decimal
    premium_mode: PremiumMode
    next_due_date: date
    last_paid_date: date | None
    status: PaymentStatus

    def to_dict(self) -> dict[str, Any]:
        return {
            "policy_id": self.policy_id,
            "policy_number": self.policy_number,
            "client_id": self.client_id,
            "client_name": self.client_name,
            "insurer": self.insurer,
            "plan_name": self.plan_name,
            "premium_amount": float(self.premium_amount),
            "premium_mode": self.premium_mode.value,
            "premium_mode_label": self.premium_mode.label,
            "next_due_date": self.next_due_date.isoformat(),
            "last_paid_date": _iso(self.last_paid_date),
            "status": self.status.value,
        }


@dataclass(frozen=True)
class StatusSummary:
    total: int = 0
    upcoming: int = 0
    overdue: int = 0
    paid: int = 0
    unpaid: int = 0
    total_amount: Decimal = Decimal("0")

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "upcoming": self.upcoming,
            "overdue": self.overdue,
            "paid": self.paid,
            "unpaid": self.unpaid,
            "total_amount": float(self.total_amount),
        }


@dataclass(frozen=True)
class PremiumStatusPage:
    items: list[PremiumStatusRow]
    page: int
    limit: int
    total: int
    summary: StatusSummary = field(default_factory=StatusSummary)

    @property
    def total_pages(self) -> int:
        if self.limit <= 0:
            return 0
        return (self.total + self.limit - 1) // self.limit

    def to_dict(self) -> dict[str, Any]:
        return {
            "premiums": [item.to_dict() for item in self.items],
            "pagination": {
                "page": self.page,
                "limit": self.limit,
                "total": self.total,
                "total_pages": self.total_pages,
            },
            "summary": self.summary.to_dict(),
        }
