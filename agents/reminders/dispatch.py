"""Reminder dispatch over e-mail and WhatsApp.

E-mail claims its log row as PENDING, goes out through the transactional
mail client, and the row then becomes SENT (or FAILED when the transport
refuses it). WhatsApp messages are not sent from here: the dispatcher
builds a ``wa.me`` deep link for the caller and logs the reminder as QUEUED.
"""

from __future__ import annotations

import hashlib
import logging
import re
import uuid
from datetime import UTC, date, datetime
from typing import Optional, Protocol
from urllib.parse import quote

import sqlalchemy as sa
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from backend.apps.premiums.dto import ClientRecord, PolicyRecord
from backend.apps.reminders.tables import REMINDER_LOGS_TABLE
from backend.core.db import ensure_engine
from backend.core.errors import DispatchError, ValidationError
from backend.core.observability.metrics import increment_reminders_dispatched
from backend.integrations.brevo_client import BrevoClient, BrevoResponse

from .config import ReminderConfig
from .dto import DispatchResult, ReminderChannel, ReminderLogStatus, SendInstruction
from .templates import EmailHtmlRenderer

logger = logging.getLogger(__name__)

_NON_DIGITS = re.compile(r"\D+")


class MailTransport(Protocol):
    def send_transactional(
        self,
        to: str,
        subject: str,
        html: str,
        workspace_id: str,
        text: str | None = None,
        dry_run: bool = False,
        reference: str | None = None,
    ) -> BrevoResponse: ...


def compute_idempotency_key(
    workspace_id: str,
    client_id: str,
    policy_id: str | None,
    template_id: str | None,
    channel: ReminderChannel,
    anchor_date: date,
) -> str:
    """Stable key for one reminder occurrence to one recipient."""
    canonical = "|".join(
        [
            workspace_id.strip().lower(),
            client_id.strip().lower(),
            (policy_id or "-").strip().lower(),
            (template_id or "-").strip().lower(),
            channel.value,
            anchor_date.isoformat(),
        ]
    )
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def whatsapp_digits(number: str | None) -> str:
    return _NON_DIGITS.sub("", number or "")


def build_whatsapp_link(number: str, body: str, base_url: str = "https://wa.me") -> str:
    """``<base>/<digits>?text=<url-encoded body>``."""
    encoded = quote(body, safe="!~*'()")
    return f"{base_url.rstrip('/')}/{whatsapp_digits(number)}?text={encoded}"


def resolve_destination(
    channel: ReminderChannel, client: ClientRecord, override: str | None = None
) -> Optional[str]:
    candidate = override if override and override.strip() else None
    if candidate is None:
        candidate = client.email if channel is ReminderChannel.EMAIL else client.mobile
    if candidate is None:
        return None
    candidate = candidate.strip()
    if channel is ReminderChannel.WHATSAPP and not whatsapp_digits(candidate):
        return None
    return candidate or None


class ReminderDispatcher:
    """Sends or queues one rendered reminder and appends its log row."""

    def __init__(
        self,
        config: ReminderConfig,
        *,
        engine: Engine | None = None,
        mail_client: MailTransport | None = None,
        html_renderer: EmailHtmlRenderer | None = None,
    ):
        self.config = config
        self.engine = ensure_engine(engine)
        self._mail_client = mail_client
        self._owns_mail_client = mail_client is None
        self.html_renderer = html_renderer or EmailHtmlRenderer(config.workspace_id)

    @property
    def mail_client(self) -> MailTransport:
        if self._mail_client is None:
            self._mail_client = BrevoClient()
        return self._mail_client

    def close(self) -> None:
        if self._owns_mail_client and isinstance(self._mail_client, BrevoClient):
            self._mail_client.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def already_dispatched(self, idempotency_key: str) -> Optional[sa.Row]:
        with self.engine.connect() as conn:
            return conn.execute(
                sa.select(REMINDER_LOGS_TABLE.c.id, REMINDER_LOGS_TABLE.c.status)
                .where(REMINDER_LOGS_TABLE.c.idempotency_key == idempotency_key)
            ).first()

    def dispatch(
        self,
        *,
        channel: ReminderChannel,
        body: str,
        client: ClientRecord,
        subject: str | None = None,
        policy: PolicyRecord | None = None,
        template_id: str | None = None,
        to: str | None = None,
        idempotency_key: str | None = None,
    ) -> DispatchResult:
        """Deliver one reminder.

        Raises:
            ValidationError: no destination for the channel
            DispatchError: the mail transport rejected the e-mail (logged FAILED)
        """
        destination = resolve_destination(channel, client, to)
        if destination is None:
            raise ValidationError(
                f"No {channel.value} destination for client {client.id}", fields=["to"]
            )

        if idempotency_key:
            existing = self.already_dispatched(idempotency_key)
            if existing is not None:
                return self._duplicate(existing, channel, destination, client, policy)

        if channel is ReminderChannel.EMAIL:
            return self._send_email(
                destination, subject, body, client, policy, template_id, idempotency_key
            )
        return self._queue_whatsapp(destination, body, client, policy, template_id, idempotency_key)

    def _send_email(
        self,
        destination: str,
        subject: str | None,
        body: str,
        client: ClientRecord,
        policy: PolicyRecord | None,
        template_id: str | None,
        idempotency_key: str | None,
    ) -> DispatchResult:
        instruction = SendInstruction(
            to=destination,
            subject=subject or self.config.default_subject,
            text=body,
            html=self.html_renderer.render(body, subject=subject or self.config.default_subject),
        )

        # the keyed row is claimed before the transport is called
        log_id = self._append_log(
            channel=ReminderChannel.EMAIL,
            to=destination,
            subject=instruction.subject,
            status=ReminderLogStatus.PENDING,
            client=client,
            policy=policy,
            template_id=template_id,
            idempotency_key=idempotency_key,
        )
        if log_id is None:
            existing = self.already_dispatched(idempotency_key)
            return self._duplicate(existing, ReminderChannel.EMAIL, destination, client, policy)

        try:
            response = self.mail_client.send_transactional(
                to=instruction.to,
                subject=instruction.subject,
                html=instruction.html,
                workspace_id=self.config.workspace_id,
                text=instruction.text,
                dry_run=self.config.email_dry_run,
                reference=idempotency_key or (policy.policy_number if policy else client.id),
            )
        except Exception as exc:
            self._mark_failed(log_id, f"{type(exc).__name__}: {exc}")
            increment_reminders_dispatched(ReminderChannel.EMAIL.value, ReminderLogStatus.FAILED.value)
            raise

        if not response.success:
            self._mark_failed(log_id, response.error, message_id=response.message_id)
            increment_reminders_dispatched(ReminderChannel.EMAIL.value, ReminderLogStatus.FAILED.value)
            logger.error(
                "reminder_email_failed",
                extra={"log_id": log_id, "client_id": client.id, "error": response.error},
            )
            raise DispatchError(f"Failed to send reminder e-mail: {response.error}")

        self._update_log(
            log_id,
            status=ReminderLogStatus.SENT.value,
            message_id=response.message_id,
            sent_at=datetime.now(UTC),
        )
        increment_reminders_dispatched(ReminderChannel.EMAIL.value, ReminderLogStatus.SENT.value)
        return DispatchResult(
            log_id=log_id,
            channel=ReminderChannel.EMAIL,
            to=destination,
            status=ReminderLogStatus.SENT,
            client_id=client.id,
            policy_id=policy.id if policy else None,
            message_id=response.message_id,
        )

    def _queue_whatsapp(
        self,
        destination: str,
        body: str,
        client: ClientRecord,
        policy: PolicyRecord | None,
        template_id: str | None,
        idempotency_key: str | None,
    ) -> DispatchResult:
        digits = whatsapp_digits(destination)
        link = build_whatsapp_link(digits, body, self.config.whatsapp_base_url)
        log_id = self._append_log(
            channel=ReminderChannel.WHATSAPP,
            to=digits,
            subject=None,
            status=ReminderLogStatus.QUEUED,
            client=client,
            policy=policy,
            template_id=template_id,
            idempotency_key=idempotency_key,
        )
        if log_id is None:
            return self._duplicate(None, ReminderChannel.WHATSAPP, digits, client, policy)
        increment_reminders_dispatched(
            ReminderChannel.WHATSAPP.value, ReminderLogStatus.QUEUED.value
        )
        return DispatchResult(
            log_id=log_id,
            channel=ReminderChannel.WHATSAPP,
            to=digits,
            status=ReminderLogStatus.QUEUED,
            client_id=client.id,
            policy_id=policy.id if policy else None,
            whatsapp_link=link,
        )

    def _duplicate(
        self,
        existing: Optional[sa.Row],
        channel: ReminderChannel,
        destination: str,
        client: ClientRecord,
        policy: PolicyRecord | None,
    ) -> DispatchResult:
        if existing is not None:
            status = ReminderLogStatus(existing.status)
        elif channel is ReminderChannel.EMAIL:
            status = ReminderLogStatus.SENT
        else:
            status = ReminderLogStatus.QUEUED
        logger.info("reminder_duplicate_skipped", extra={"client_id": client.id})
        return DispatchResult(
            log_id=existing.id if existing is not None else None,
            channel=channel,
            to=destination,
            status=status,
            client_id=client.id,
            policy_id=policy.id if policy else None,
            duplicate=True,
        )

    def _append_log(
        self,
        *,
        channel: ReminderChannel,
        to: str,
        subject: str | None,
        status: ReminderLogStatus,
        client: ClientRecord,
        policy: PolicyRecord | None,
        template_id: str | None,
        error: str | None = None,
        message_id: str | None = None,
        idempotency_key: str | None = None,
    ) -> Optional[str]:
        """Insert a log row; returns None when the idempotency key is already taken."""
        log_id = str(uuid.uuid4())
        try:
            with self.engine.begin() as conn:
                conn.execute(
                    sa.insert(REMINDER_LOGS_TABLE).values(
                        id=log_id,
                        workspace_id=self.config.workspace_id,
                        template_id=template_id,
                        client_id=client.id,
                        policy_id=policy.id if policy else None,
                        channel=channel.value,
                        to=to,
                        subject=subject,
                        status=status.value,
                        error=error,
                        message_id=message_id,
                        idempotency_key=idempotency_key,
                        sent_at=datetime.now(UTC),
                    )
                )
        except IntegrityError:
            if idempotency_key is None:
                raise
            return None
        return log_id

    def _update_log(self, log_id: str, **values) -> None:
        with self.engine.begin() as conn:
            conn.execute(
                sa.update(REMINDER_LOGS_TABLE)
                .where(REMINDER_LOGS_TABLE.c.id == log_id)
                .values(**values)
            )

    def _mark_failed(self, log_id: str, error: str | None, message_id: str | None = None) -> None:
        # releasing the key lets a later run retry the reminder
        self._update_log(
            log_id,
            status=ReminderLogStatus.FAILED.value,
            error=error,
            message_id=message_id,
            idempotency_key=None,
        )
