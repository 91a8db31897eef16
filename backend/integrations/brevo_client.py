"""Brevo (Sendinblue) transactional email client for reminder e-mails.

This module provides a client for sending transactional emails via Brevo API.
Supports dry-run mode for testing and development; without an API key every
send is a dry run.
"""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime

import httpx

from agents.comm.outbound_tags import generate_message_id
from backend.core.config import settings


@dataclass
class BrevoResponse:
    """Response from Brevo API."""

    success: bool
    message_id: str | None = None
    provider_message_id: str | None = None
    error: str | None = None
    dry_run: bool = False


class BrevoClient:
    """Brevo API client for transactional emails."""

    def __init__(
        self,
        api_key: str | None = None,
        sender_email: str | None = None,
        sender_name: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
    ):
        """Initialize Brevo client; unset arguments fall back to settings."""
        self.logger = logging.getLogger(__name__)

        self.api_key = api_key if api_key is not None else (settings.BREVO_API_KEY or None)
        self.sender_email = sender_email or settings.BREVO_SENDER_EMAIL
        self.sender_name = sender_name or settings.BREVO_SENDER_NAME
        self.base_url = base_url or settings.BREVO_BASE_URL

        # Hard-bounce tracking (process-local)
        self._hard_bounces: set[str] = set()

        if not self.api_key:
            self.logger.warning("BREVO_API_KEY not set - only dry-run mode available")

        self._client = httpx.Client(
            base_url=self.base_url,
            headers={
                "api-key": self.api_key or "dry-run",
                "Content-Type": "application/json",
                "Accept": "application/json",
            },
            timeout=timeout or settings.BREVO_TIMEOUT_S,
        )

    def send_transactional(
        self,
        to: str,
        subject: str,
        html: str,
        workspace_id: str,
        text: str | None = None,
        dry_run: bool = False,
        reference: str | None = None,
    ) -> BrevoResponse:
        """Send transactional email via Brevo API.

        Args:
            to: Recipient email address
            subject: Email subject
            html: HTML content
            workspace_id: Workspace identifier for tracking
            text: Optional plain-text alternative
            dry_run: If True, simulate sending without actual API call
            reference: Optional business reference for the deterministic message ID

        Returns:
            BrevoResponse with success status and details
        """
        if to and self.is_hard_bounced(to):
            self.logger.warning(
                "Skipping email to hard-bounced address",
                extra={"workspace_id": workspace_id, "to": to},
            )
            return BrevoResponse(success=False, error="Email address is on hard-bounce list")

        message_id = generate_message_id(
            workspace_id=workspace_id, reference=reference, ts=datetime.now(UTC)
        )

        if dry_run or not self.api_key:
            return self._handle_dry_run(to, subject, workspace_id, message_id)

        email_data = {
            "sender": {"name": self.sender_name, "email": self.sender_email},
            "to": [{"email": to}],
            "subject": subject,
            "htmlContent": html,
            "headers": {
                "X-Workspace-ID": workspace_id,
                "X-Message-ID": message_id,
            },
        }
        if text:
            email_data["textContent"] = text

        try:
            response = self._client.post("/smtp/email", json=email_data)
        except httpx.HTTPError as e:
            error_msg = f"Network error sending email: {e}"
            self.logger.error(
                "brevo_network_error",
                extra={"workspace_id": workspace_id, "to": to, "error": str(e)},
            )
            return BrevoResponse(success=False, message_id=message_id, error=error_msg)

        if response.status_code in (200, 201, 202):
            try:
                provider_id = response.json().get("messageId")
            except ValueError:
                provider_id = None
            self.logger.info(
                "Email sent successfully via Brevo",
                extra={
                    "workspace_id": workspace_id,
                    "to": to,
                    "message_id": message_id,
                    "subject": subject[:50] + "..." if len(subject) > 50 else subject,
                },
            )
            return BrevoResponse(
                success=True, message_id=message_id, provider_message_id=provider_id
            )

        error_msg = f"Brevo API error: {response.status_code} - {response.text}"
        if response.status_code == 400 and "invalid" in response.text.lower():
            self.logger.error(
                "Hard bounce detected - adding to blocklist",
                extra={"workspace_id": workspace_id, "to": to, "status_code": 400},
            )
            self.add_hard_bounce(to)

        self.logger.error(
            "brevo_send_failed",
            extra={"workspace_id": workspace_id, "to": to, "status_code": response.status_code},
        )
        return BrevoResponse(success=False, message_id=message_id, error=error_msg)

    def _handle_dry_run(
        self, to: str, subject: str, workspace_id: str, message_id: str
    ) -> BrevoResponse:
        """Simulate email sending without API call."""
        self.logger.info(
            "DRY-RUN: Would send email via Brevo",
            extra={
                "workspace_id": workspace_id,
                "to": to,
                "subject": subject[:50] + "..." if len(subject) > 50 else subject,
                "dry_run": True,
            },
        )
        return BrevoResponse(success=True, message_id=message_id, dry_run=True)

    def close(self):
        """Close HTTP client connection."""
        if hasattr(self, "_client"):
            self._client.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def is_hard_bounced(self, email: str) -> bool:
        return email.lower() in self._hard_bounces

    def add_hard_bounce(self, email: str) -> None:
        self._hard_bounces.add(email.lower())
        self.logger.info("Added email to hard-bounce list", extra={"to": email})
