from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from typing import Any

from fastapi import APIRouter, Depends, Header, Query, status
from pydantic import BaseModel, Field
from sqlalchemy.engine import Engine

from backend.core.clock import business_today
from backend.core.config import settings
from backend.core.db import get_engine
from backend.core.errors import BillingError, to_http_exception
from backend.core.observability import set_trace_id
from backend.core.workspace.context import optional_actor, require_workspace

from .dto import PaymentInput
from .reconciliation import record_premium_payment
from .schedules import create_premium_schedule
from .status import list_premium_statuses

logger = logging.getLogger("premiums.api")

router = APIRouter(prefix="/api/v1/premiums", tags=["premiums"])


class PaymentRequest(BaseModel):
    # Required fields are checked by the reconciliation validator so that
    # missing values surface as validation_error like other domain errors.
    policy_id: str | None = None
    payment_date: date | None = None
    amount_paid: Decimal | None = None
    payment_mode: str | None = None
    schedule_id: str | None = None
    late_fee: Decimal | None = None
    discount: Decimal | None = None
    remarks: str | None = None
    receipt_number: str | None = None
    cheque_number: str | None = None
    bank_name: str | None = None
    transaction_id: str | None = None


class ScheduleRequest(BaseModel):
    number_of_installments: int = Field(..., ge=1, le=120)
    start_date: date | None = None
    grace_days: int = Field(default_factory=lambda: settings.PREMIUM_GRACE_DAYS, ge=0, le=365)


@router.post("/payments", status_code=status.HTTP_201_CREATED)
def create_payment(
    body: PaymentRequest,
    workspace_id: str = Depends(require_workspace),
    actor: str | None = Depends(optional_actor),
    engine: Engine = Depends(get_engine),
    trace_id: str | None = Header(None, alias="X-Trace-ID"),
) -> dict[str, Any]:
    trace_id = set_trace_id(trace_id)
    payment = PaymentInput(workspace_id=workspace_id, processed_by=actor, **body.model_dump())
    try:
        result = record_premium_payment(payment, engine=engine, trace_id=trace_id)
    except BillingError as exc:
        logger.warning("premium_payment_rejected", extra={"error": exc.code, "detail": exc.message})
        raise to_http_exception(exc) from exc
    return result.to_dict()


@router.get("")
def list_premiums(
    workspace_id: str = Depends(require_workspace),
    engine: Engine = Depends(get_engine),
    search: str | None = Query(None, max_length=100),
    status_filter: str | None = Query(None, alias="status"),
    due_from: date | None = Query(None),
    due_to: date | None = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(settings.READ_DEFAULT_LIMIT, ge=1, le=settings.READ_MAX_LIMIT),
) -> dict[str, Any]:
    try:
        result = list_premium_statuses(
            workspace_id,
            today=business_today(),
            search=search,
            status=status_filter,
            due_from=due_from,
            due_to=due_to,
            page=page,
            limit=limit,
            engine=engine,
        )
    except BillingError as exc:
        raise to_http_exception(exc) from exc
    return result.to_dict()


@router.post("/{policy_id}/schedule", status_code=status.HTTP_201_CREATED)
def create_schedule(
    policy_id: str,
    body: ScheduleRequest,
    workspace_id: str = Depends(require_workspace),
    actor: str | None = Depends(optional_actor),
    engine: Engine = Depends(get_engine),
) -> dict[str, Any]:
    try:
        installments = create_premium_schedule(
            workspace_id,
            policy_id,
            number_of_installments=body.number_of_installments,
            start_date=body.start_date,
            grace_days=body.grace_days,
            today=business_today(),
            engine=engine,
            actor=actor,
        )
    except BillingError as exc:
        raise to_http_exception(exc) from exc
    return {"policy_id": policy_id, "installments": [item.to_dict() for item in installments]}
