"""Placeholder rendering for reminder templates.

Reminder bodies are user-authored text with ``{{ variable }}`` tokens.
They are rendered by plain token substitution (unknown tokens become empty
strings, everything else is kept verbatim), never by Jinja2, so stored
templates cannot execute template logic. Jinja2 is used only for the
package-owned HTML e-mail wrapper.
"""

from __future__ import annotations

import logging
import re
from decimal import Decimal
from pathlib import Path
from typing import Any, Mapping, Optional

from jinja2 import Environment, FileSystemLoader, StrictUndefined, select_autoescape

from backend.apps.premiums.dto import ClientRecord, PolicyRecord
from backend.core.config import settings

from .dto import ReminderChannel, ReminderTemplate

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).parent / "templates"

TOKEN_RE = re.compile(r"\{\{\s*([^{}]+?)\s*\}\}")

TEMPLATE_VARIABLES = (
    "client_name",
    "client_mobile",
    "client_email",
    "policy_no",
    "premium_amount",
    "due_date",
    "insurer",
    "plan_name",
)


def render_template(text: str, variables: Mapping[str, Any]) -> str:
    """Replace ``{{ name }}`` tokens with values from ``variables``.

    Missing or ``None`` values render as the empty string. Rendering is
    deterministic and idempotent for inputs whose values contain no tokens.
    """

    def _substitute(match: re.Match) -> str:
        value = variables.get(match.group(1).strip())
        return "" if value is None else str(value)

    return TOKEN_RE.sub(_substitute, text or "")


def _format_amount(amount: Decimal | None) -> str | None:
    if amount is None:
        return None
    return f"{amount:.2f}"


def template_variables(
    client: ClientRecord,
    policy: Optional[PolicyRecord] = None,
    *,
    date_format: str = settings.REMINDER_DATE_FORMAT,
) -> dict[str, Optional[str]]:
    """Variable map for a client and, when given, one of their policies."""
    due_date = policy.next_due_date if policy else None
    return {
        "client_name": client.name,
        "client_mobile": client.mobile,
        "client_email": client.email,
        "policy_no": policy.policy_number if policy else None,
        "premium_amount": _format_amount(policy.premium_amount) if policy else None,
        "due_date": due_date.strftime(date_format) if due_date else None,
        "insurer": policy.insurer if policy else None,
        "plan_name": policy.plan_name if policy else None,
    }


def render_reminder(
    template: ReminderTemplate,
    variables: Mapping[str, Any],
    *,
    channel: Optional[ReminderChannel] = None,
    default_subject: str = settings.REMINDER_DEFAULT_SUBJECT,
) -> tuple[Optional[str], str]:
    """Return ``(subject, body)`` for ``channel`` (default: the template's).

    Subject is None for WhatsApp; e-mail falls back to ``default_subject``.
    """
    body = render_template(template.body, variables)
    if (channel or template.channel) is not ReminderChannel.EMAIL:
        return None, body
    subject = render_template(template.subject or "", variables).strip()
    return subject or default_subject, body


class EmailHtmlRenderer:
    """Jinja2 renderer for the HTML part of reminder e-mails."""

    def __init__(self, workspace_id: str | None = None, template_dir: Path = TEMPLATE_DIR):
        search_path = []
        if workspace_id:
            search_path.append(str(template_dir / workspace_id))
        search_path.append(str(template_dir / "default"))
        self.env = Environment(
            loader=FileSystemLoader(search_path),
            undefined=StrictUndefined,
            autoescape=select_autoescape(["html", "jinja"]),
            trim_blocks=True,
            lstrip_blocks=True,
        )

    def render(self, body: str, *, subject: str) -> str:
        template = self.env.get_template("email.html.jinja")
        return template.render(lines=body.split("\n"), subject=subject)
