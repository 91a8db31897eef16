#!/usr/bin/env python3
"""Reminder automation runner.

Command-line trigger for birthday and due-premium reminder automations.
Intended for cron or an operator shell; supports preview mode.
"""

import argparse
import json
import logging
import sys
import uuid
from datetime import date

from agents.reminders import (
    AutomationPlaybook,
    AutomationRequest,
    AutomationType,
    ReminderChannel,
    ReminderConfig,
)
from backend.core.clock import business_today
from backend.core.errors import BillingError
from backend.core.observability import set_trace_id
from backend.core.observability.logging import init_logging, set_workspace_id


def setup_logging(verbose: bool = False) -> None:
    """JSON logging; DEBUG level when verbose."""
    init_logging()
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Reminder automation runner",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Preview birthday wishes for the coming week
  premium-reminders --workspace 00000000-0000-0000-0000-000000000001 \\
      --type birthdays --template <template-id> --preview

  # Queue WhatsApp reminders for premiums due in the next 15 days
  premium-reminders --workspace 00000000-0000-0000-0000-000000000001 \\
      --type due --template <template-id> --days 15
        """,
    )
    parser.add_argument("--workspace", required=True, help="Workspace ID (UUID)")
    parser.add_argument(
        "--type",
        required=True,
        choices=[item.value for item in AutomationType],
        help="Which calendar to match",
    )
    parser.add_argument("--template", required=True, help="Reminder template ID")
    parser.add_argument(
        "--channel",
        default=ReminderChannel.WHATSAPP.value,
        choices=[item.value for item in ReminderChannel],
        help="Delivery channel (default: whatsapp)",
    )
    parser.add_argument("--days", type=int, help="Days ahead to match (default from config)")
    parser.add_argument(
        "--today",
        type=date.fromisoformat,
        help="Override today's date (YYYY-MM-DD); defaults to the business calendar",
    )
    parser.add_argument("--preview", action="store_true", help="Render only, send nothing")
    parser.add_argument("--verbose", action="store_true", help="Enable verbose logging")
    return parser.parse_args(argv)


def validate_workspace_id(workspace_id: str) -> str:
    """Return the normalized workspace UUID or raise ValueError."""
    return str(uuid.UUID(workspace_id))


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = parse_args(argv)
    setup_logging(args.verbose)

    try:
        workspace_id = validate_workspace_id(args.workspace)
    except ValueError:
        print(f"Invalid workspace ID: {args.workspace}", file=sys.stderr)
        return 2

    correlation_id = set_trace_id()
    set_workspace_id(workspace_id)

    request = AutomationRequest(
        automation=AutomationType(args.type),
        template_id=args.template,
        channel=ReminderChannel(args.channel),
        days=args.days,
        today=args.today or business_today(),
        correlation_id=correlation_id,
    )
    config = ReminderConfig.from_workspace(workspace_id)

    try:
        playbook = AutomationPlaybook(config)
        if args.preview:
            items = playbook.preview(request)
            output = {"preview": True, "count": len(items), "items": [i.to_dict() for i in items]}
        else:
            with playbook.dispatcher:
                output = playbook.run(request).to_dict()
    except BillingError as exc:
        print(json.dumps({"error": exc.code, "detail": exc.message}), file=sys.stderr)
        return 1

    print(json.dumps(output, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
