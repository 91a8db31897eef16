"""Error taxonomy shared by billing, reconciliation and reminder code.

Domain code raises these; the HTTP layer converts them with
``to_http_exception`` into the ``{"error": code, "detail": ...}`` shape used
by every router.
"""

from __future__ import annotations

from fastapi import HTTPException, status

from backend.core.config import settings


class BillingError(Exception):
    """Base class for expected, caller-visible failures."""

    code = "billing_error"
    http_status = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, *, fields: list[str] | None = None):
        super().__init__(message)
        self.message = message
        self.fields = list(fields or [])


class ValidationError(BillingError):
    """Missing or malformed input."""

    code = "validation_error"
    http_status = status.HTTP_400_BAD_REQUEST


class InvalidPremiumModeError(ValidationError):
    """Premium mode string is not one of the known billing frequencies."""

    code = "invalid_premium_mode"
    http_status = 422


class NotFoundError(BillingError):
    """Referenced policy, schedule, client or template does not exist in the workspace."""

    code = "not_found"
    http_status = status.HTTP_404_NOT_FOUND


class DispatchError(BillingError):
    """Mail transport refused or failed to deliver a reminder."""

    code = "dispatch_failed"
    http_status = status.HTTP_502_BAD_GATEWAY


class TransactionFailure(BillingError):
    """Persistence failed inside a unit of work; nothing was committed."""

    code = "transaction_failed"
    http_status = status.HTTP_500_INTERNAL_SERVER_ERROR
    public_message = "The operation could not be completed"


def to_http_exception(exc: BillingError) -> HTTPException:
    detail = exc.message
    if isinstance(exc, TransactionFailure) and settings.app_env != "development":
        detail = exc.public_message
    body: dict = {"error": exc.code, "detail": detail}
    if exc.fields:
        body["fields"] = exc.fields
    return HTTPException(status_code=exc.http_status, detail=body)
