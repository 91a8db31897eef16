"""Reminders Agent - calendar-driven client reminders.

Finds clients with upcoming birthdays and policies with upcoming premium
due dates, renders workspace templates for them and dispatches the result
over e-mail (transactional mail) or WhatsApp (deep links).

Key Components:
- Config: Workspace-specific settings with environment overrides
- Matcher: Birthday and due-date calendar matching
- Templates: ``{{ variable }}`` rendering and the HTML e-mail wrapper
- Dispatch: Channel delivery with append-only reminder logs
- Playbooks: Preview, run and quick-send orchestration
"""

__version__ = "0.3.0"

from .config import ReminderConfig
from .dispatch import ReminderDispatcher
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
from .playbooks import AutomationPlaybook, AutomationRequest
from .templates import render_template

__all__ = [
    "ReminderConfig",
    "ReminderDispatcher",
    "AutomationPlaybook",
    "AutomationRequest",
    "AutomationResult",
    "AutomationType",
    "DispatchResult",
    "ReminderChannel",
    "ReminderLogStatus",
    "ReminderTarget",
    "ReminderTemplate",
    "RenderedMessage",
    "render_template",
]
