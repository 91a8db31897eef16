"""Data Transfer Objects for the reminder agent.

Provides type-safe structures for matched recipients, rendered messages
and dispatch outcomes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from backend.apps.premiums.dto import ClientRecord, PolicyRecord
from backend.core.errors import ValidationError


class ReminderChannel(Enum):
    """Outbound channel enumeration."""

    EMAIL = "email"
    WHATSAPP = "whatsapp"

    @classmethod
    def parse(cls, value: Any) -> "ReminderChannel":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError as exc:
            raise ValidationError(
                f"Unknown channel: {value!r} (expected email or whatsapp)", fields=["channel"]
            ) from exc


class AutomationType(Enum):
    """Which calendar an automation run matches against."""

    BIRTHDAYS = "birthdays"
    DUE = "due"

    @classmethod
    def parse(cls, value: Any) -> "AutomationType":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError as exc:
            raise ValidationError(
                f"Unknown automation type: {value!r} (expected birthdays or due)", fields=["type"]
            ) from exc


class ReminderLogStatus(Enum):
    PENDING = "PENDING"
    SENT = "SENT"
    QUEUED = "QUEUED"
    FAILED = "FAILED"


@dataclass(frozen=True)
class ReminderTemplate:
    id: str
    workspace_id: str
    name: str
    channel: ReminderChannel
    body: str
    subject: Optional[str] = None
    variables: List[str] = field(default_factory=list)
    created_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "ReminderTemplate":
        return cls(
            id=row["id"],
            workspace_id=row["workspace_id"],
            name=row["name"],
            channel=ReminderChannel.parse(row["channel"]),
            body=row["body"],
            subject=row.get("subject"),
            variables=list(row.get("variables") or []),
            created_at=row.get("created_at"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "channel": self.channel.value,
            "subject": self.subject,
            "body": self.body,
            "variables": list(self.variables),
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


@dataclass(frozen=True)
class ReminderTarget:
    """A recipient matched by an automation.

    ``anchor_date`` is the occurrence the reminder is about: the birthday in
    the matched window, or the policy's next due date.
    """

    client: ClientRecord
    anchor_date: Optional[date] = None
    policy: Optional[PolicyRecord] = None

    @property
    def policy_id(self) -> Optional[str]:
        return self.policy.id if self.policy else None


@dataclass(frozen=True)
class RenderedMessage:
    client_id: str
    policy_id: Optional[str]
    subject: Optional[str]
    body: str
    to: Optional[str]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "client_id": self.client_id,
            "policy_id": self.policy_id,
            "subject": self.subject,
            "body": self.body,
            "to": self.to,
        }


@dataclass(frozen=True)
class SendInstruction:
    """What the mail transport is asked to deliver."""

    to: str
    subject: str
    text: str
    html: str


@dataclass(frozen=True)
class DispatchResult:
    log_id: Optional[str]
    channel: ReminderChannel
    to: str
    status: ReminderLogStatus
    client_id: Optional[str] = None
    policy_id: Optional[str] = None
    whatsapp_link: Optional[str] = None
    message_id: Optional[str] = None
    error: Optional[str] = None
    duplicate: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "log_id": self.log_id,
            "channel": self.channel.value,
            "to": self.to,
            "status": self.status.value,
            "client_id": self.client_id,
            "policy_id": self.policy_id,
            "whatsapp_link": self.whatsapp_link,
            "message_id": self.message_id,
            "error": self.error,
            "duplicate": self.duplicate,
        }


@dataclass
class AutomationResult:
    """Outcome of one automation run."""

    automation: AutomationType
    channel: ReminderChannel
    days: int
    matched: int = 0
    sent: int = 0
    queued: int = 0
    failed: int = 0
    skipped_no_destination: int = 0
    duplicates: int = 0
    results: List[DispatchResult] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.automation.value,
            "channel": self.channel.value,
            "days": self.days,
            "matched": self.matched,
            "sent": self.sent,
            "queued": self.queued,
            "failed": self.failed,
            "skipped_no_destination": self.skipped_no_destination,
            "duplicates": self.duplicates,
            "results": [result.to_dict() for result in self.results],
        }
