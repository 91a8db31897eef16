"""Reminder automation playbooks.

A playbook run matches recipients (birthdays or upcoming due premiums),
renders the chosen template for each of them and hands the result to the
dispatcher. ``preview`` performs the same matching and rendering without
writing anything.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import date
from typing import Optional

from sqlalchemy.engine import Engine

from backend.core.db import ensure_engine
from backend.core.errors import DispatchError, ValidationError
from backend.core.observability.metrics import (
    increment_automation_runs,
    increment_reminders_skipped,
)

from .config import ReminderConfig
from .dispatch import ReminderDispatcher, compute_idempotency_key, resolve_destination
from .dto import (
    AutomationResult,
    AutomationType,
    DispatchResult,
    ReminderChannel,
    ReminderLogStatus,
    ReminderTarget,
    ReminderTemplate,
    RenderedMessage,
)
from .matcher import find_upcoming_birthdays, find_upcoming_due_premiums
from .store import get_client, get_policy, get_template
from .templates import render_reminder, template_variables

logger = logging.getLogger(__name__)


@dataclass
class AutomationRequest:
    """Parameters of one automation preview or run."""

    automation: AutomationType
    template_id: str
    today: date
    channel: ReminderChannel = ReminderChannel.WHATSAPP
    days: Optional[int] = None
    correlation_id: str = field(default_factory=lambda: str(uuid.uuid4()))


class AutomationPlaybook:
    """Matches, renders and dispatches reminders for one workspace."""

    def __init__(
        self,
        config: ReminderConfig,
        *,
        engine: Engine | None = None,
        dispatcher: ReminderDispatcher | None = None,
    ):
        self.config = config
        self.engine = ensure_engine(engine)
        self.dispatcher = dispatcher or ReminderDispatcher(config, engine=self.engine)

    def _window(self, days: Optional[int]) -> int:
        window = self.config.default_days if days is None else days
        if window < 1 or window > self.config.max_days:
            raise ValidationError(
                f"days must be between 1 and {self.config.max_days}", fields=["days"]
            )
        return window

    def match(self, automation: AutomationType, days: int, today: date) -> list[ReminderTarget]:
        if automation is AutomationType.BIRTHDAYS:
            return find_upcoming_birthdays(
                self.config.workspace_id, days, today=today, engine=self.engine
            )
        return find_upcoming_due_premiums(
            self.config.workspace_id, days, today=today, engine=self.engine
        )

    def _render(
        self, template: ReminderTemplate, target: ReminderTarget, channel: ReminderChannel
    ) -> RenderedMessage:
        variables = template_variables(
            target.client, target.policy, date_format=self.config.date_format
        )
        subject, body = render_reminder(
            template, variables, channel=channel, default_subject=self.config.default_subject
        )
        return RenderedMessage(
            client_id=target.client.id,
            policy_id=target.policy_id,
            subject=subject,
            body=body,
            to=resolve_destination(channel, target.client),
        )

    def preview(self, request: AutomationRequest) -> list[RenderedMessage]:
        """Render every matched recipient without dispatching or logging."""
        days = self._window(request.days)
        template = get_template(self.config.workspace_id, request.template_id, engine=self.engine)
        targets = self.match(request.automation, days, request.today)
        return [self._render(template, target, request.channel) for target in targets]

    def run(self, request: AutomationRequest) -> AutomationResult:
        """Dispatch the automation to every matched recipient.

        Recipients without a destination for the channel are skipped, as are
        recipients already reminded for the same occurrence. A transport
        failure for one recipient is counted and does not stop the run.
        """
        days = self._window(request.days)
        template = get_template(self.config.workspace_id, request.template_id, engine=self.engine)
        targets = self.match(request.automation, days, request.today)
        result = AutomationResult(
            automation=request.automation,
            channel=request.channel,
            days=days,
            matched=len(targets),
        )

        for target in targets:
            message = self._render(template, target, request.channel)
            if message.to is None:
                result.skipped_no_destination += 1
                increment_reminders_skipped("no_destination")
                continue

            key = compute_idempotency_key(
                self.config.workspace_id,
                target.client.id,
                target.policy_id,
                template.id,
                request.channel,
                target.anchor_date,
            )
            try:
                outcome = self.dispatcher.dispatch(
                    channel=request.channel,
                    body=message.body,
                    subject=message.subject,
                    client=target.client,
                    policy=target.policy,
                    template_id=template.id,
                    idempotency_key=key,
                )
            except DispatchError as exc:
                result.failed += 1
                result.results.append(
                    DispatchResult(
                        log_id=None,
                        channel=request.channel,
                        to=message.to,
                        status=ReminderLogStatus.FAILED,
                        client_id=target.client.id,
                        policy_id=target.policy_id,
                        error=exc.message,
                    )
                )
                continue

            if outcome.duplicate:
                result.duplicates += 1
                increment_reminders_skipped("duplicate")
            elif outcome.status is ReminderLogStatus.SENT:
                result.sent += 1
            else:
                result.queued += 1
            result.results.append(outcome)

        increment_automation_runs(request.automation.value)
        logger.info(
            "reminder_automation_completed",
            extra={
                "correlation_id": request.correlation_id,
                "automation": request.automation.value,
                "channel": request.channel.value,
                "matched": result.matched,
                "sent": result.sent,
                "queued": result.queued,
                "failed": result.failed,
                "skipped_no_destination": result.skipped_no_destination,
                "duplicates": result.duplicates,
            },
        )
        return result

    def send_reminder(
        self,
        *,
        template_id: str,
        client_id: str | None = None,
        policy_id: str | None = None,
        channel: ReminderChannel | None = None,
        to: str | None = None,
    ) -> tuple[RenderedMessage, DispatchResult]:
        """Render one template for a client or policy and dispatch it immediately.

        Raises:
            ValidationError: neither client nor policy given, or no destination
            NotFoundError: template, client or policy not in the workspace
            DispatchError: mail transport failure
        """
        if not client_id and not policy_id:
            raise ValidationError(
                "client_id or policy_id is required", fields=["client_id", "policy_id"]
            )
        workspace_id = self.config.workspace_id
        template = get_template(workspace_id, template_id, engine=self.engine)
        policy = get_policy(workspace_id, policy_id, engine=self.engine) if policy_id else None
        client = get_client(
            workspace_id, client_id or policy.client_id, engine=self.engine
        )
        if policy is not None and policy.client_id != client.id:
            raise ValidationError(
                "policy does not belong to client", fields=["client_id", "policy_id"]
            )

        channel = channel or template.channel
        target = ReminderTarget(client=client, policy=policy)
        message = self._render(template, target, channel)
        outcome = self.dispatcher.dispatch(
            channel=channel,
            body=message.body,
            subject=message.subject,
            client=client,
            policy=policy,
            template_id=template.id,
            to=to,
        )
        if to:
            message = RenderedMessage(
                client_id=message.client_id,
                policy_id=message.policy_id,
                subject=message.subject,
                body=message.body,
                to=outcome.to,
            )
        return message, outcome
