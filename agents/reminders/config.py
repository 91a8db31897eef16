"""Configuration management for the reminder agent.

Provides workspace-specific settings with defaults from the global
settings and environment-based overrides.
"""

import os
from dataclasses import dataclass
from typing import Any, Dict

from backend.core.config import settings


@dataclass
class ReminderConfig:
    """Configuration for reminder matching, rendering and dispatch.

    Supports workspace-specific overrides via environment variables
    with pattern: REMINDERS_<WORKSPACE_ID>_<SETTING>
    """

    workspace_id: str

    # Automation window (days ahead of today, inclusive)
    default_days: int = settings.AUTOMATION_DEFAULT_DAYS
    max_days: int = settings.AUTOMATION_MAX_DAYS

    # Rendering
    date_format: str = settings.REMINDER_DATE_FORMAT
    default_subject: str = settings.REMINDER_DEFAULT_SUBJECT

    # Dispatch
    whatsapp_base_url: str = settings.WHATSAPP_BASE_URL
    email_dry_run: bool = False

    @classmethod
    def from_workspace(cls, workspace_id: str) -> "ReminderConfig":
        """Create configuration for a specific workspace.

        Args:
            workspace_id: UUID of the workspace

        Returns:
            Configured instance with workspace-specific overrides
        """
        config = cls(workspace_id=workspace_id)

        prefix = f"REMINDERS_{workspace_id.upper().replace('-', '_')}"

        config.default_days = int(os.getenv(f"{prefix}_DEFAULT_DAYS", config.default_days))
        config.max_days = int(os.getenv(f"{prefix}_MAX_DAYS", config.max_days))
        config.date_format = os.getenv(f"{prefix}_DATE_FORMAT", config.date_format)
        config.default_subject = os.getenv(f"{prefix}_DEFAULT_SUBJECT", config.default_subject)
        config.whatsapp_base_url = os.getenv(
            f"{prefix}_WHATSAPP_BASE_URL", config.whatsapp_base_url
        )
        config.email_dry_run = os.getenv(
            f"{prefix}_EMAIL_DRY_RUN", str(config.email_dry_run)
        ).lower() in ("1", "true", "yes")

        return config

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return {
            "workspace_id": self.workspace_id,
            "default_days": self.default_days,
            "max_days": self.max_days,
            "date_format": self.date_format,
            "default_subject": self.default_subject,
            "whatsapp_base_url": self.whatsapp_base_url,
            "email_dry_run": self.email_dry_run,
        }
