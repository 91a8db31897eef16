"""JSON structured logging with mandatory fields and PII redaction."""
import json
import logging
import re
import sys
import threading
from datetime import UTC, datetime
from backend.core.config import settings

# Thread-local storage for context
_context = threading.local()

_RESERVED_ATTRS = frozenset(
    (
        'name', 'msg', 'args', 'levelname', 'levelno', 'pathname', 'filename',
        'module', 'exc_info', 'exc_text', 'stack_info', 'lineno', 'funcName',
        'created', 'msecs', 'relativeCreated', 'thread', 'threadName',
        'processName', 'process', 'message', 'taskName',
    )
)


class JSONFormatter(logging.Formatter):
    """JSON formatter with mandatory fields and PII redaction."""

    def __init__(self):
        super().__init__()
        # PII patterns: PAN card numbers, e-mail addresses, phone numbers
        self.pan_pattern = re.compile(r'\b([A-Z]{5}\d{4}[A-Z])\b')
        self.email_pattern = re.compile(r'(\b\S+@\S+\.\S+\b)')
        self.phone_pattern = re.compile(r'(\+\d[\d \-]{7,}\d|\b\d{10,12}\b)')

    def _redact_pii(self, text: str) -> str:
        """Redact PII from text."""
        if not isinstance(text, str):
            return text

        text = self.pan_pattern.sub(self._mask_pan, text)
        text = self.email_pattern.sub(self._mask_email, text)
        text = self.phone_pattern.sub(self._mask_phone, text)

        return text

    def _mask_pan(self, match) -> str:
        """Mask PAN: keep the last character only."""
        pan = match.group(1)
        return "*" * (len(pan) - 1) + pan[-1]

    def _mask_email(self, match) -> str:
        """Mask email: show first char of user, keep domain."""
        email = match.group(1)
        if "@" not in email:
            return email
        user, domain = email.split("@", 1)
        if len(user) <= 1:
            masked_user = "*"
        else:
            masked_user = user[0] + "*" * (len(user) - 1)
        return f"{masked_user}@{domain}"

    def _mask_phone(self, match) -> str:
        """Mask phone: show first 3 chars, mask the rest."""
        phone = match.group(1)
        if len(phone) <= 3:
            return "*" * len(phone)
        return phone[:3] + "*" * (len(phone) - 3)

    def format(self, record):
        """Format log record as JSON with mandatory fields and PII redaction."""
        trace_id = getattr(_context, 'trace_id', None) or 'unknown'
        workspace_id = getattr(_context, 'workspace_id', 'unknown')

        message = record.getMessage()
        redacted_message = self._redact_pii(message)

        log_entry = {
            'trace_id': trace_id,
            'workspace_id': workspace_id,
            'level': record.levelname.lower(),
            'logger': record.name,
            'msg': redacted_message,
            'ts_utc': datetime.now(UTC).isoformat().replace('+00:00', 'Z'),
        }

        if record.exc_info:
            log_entry['exc_info'] = self.formatException(record.exc_info)

        # Extra fields passed via ``extra=`` (with PII redaction)
        for key, value in record.__dict__.items():
            if key in _RESERVED_ATTRS:
                continue
            if isinstance(value, str):
                value = self._redact_pii(value)
            log_entry[key] = value

        return json.dumps(log_entry, default=str)


def set_trace_id(trace_id: str) -> None:
    """Set trace ID for current thread context."""
    _context.trace_id = trace_id


def set_workspace_id(workspace_id: str) -> None:
    """Set workspace ID for current thread context."""
    _context.workspace_id = workspace_id


def init_logging() -> None:
    """Initialize JSON logging with mandatory fields."""
    logger = logging.getLogger()
    logger.setLevel(getattr(logging, settings.log_level.upper(), logging.INFO))

    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter())
    logger.addHandler(handler)


def get_logger(name: str) -> logging.Logger:
    """Get logger with JSON formatting."""
    return logging.getLogger(name)


# Convenience logger
logger = get_logger(__name__)
