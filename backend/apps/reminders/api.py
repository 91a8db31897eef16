from __future__ import annotations

import logging
from typing import Any, Iterator

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field
from sqlalchemy.engine import Engine

from agents.reminders import (
    AutomationPlaybook,
    AutomationRequest,
    AutomationType,
    ReminderChannel,
    ReminderConfig,
    ReminderDispatcher,
)
from agents.reminders.dispatch import MailTransport
from agents.reminders.store import create_template, list_reminder_logs, list_templates
from backend.core.clock import business_today
from backend.core.config import settings
from backend.core.db import get_engine
from backend.core.errors import BillingError, to_http_exception
from backend.core.workspace.context import require_workspace
from backend.integrations.brevo_client import BrevoClient

logger = logging.getLogger("reminders.api")

router = APIRouter(prefix="/api/v1/reminders", tags=["reminders"])


def get_mail_client() -> Iterator[MailTransport]:
    with BrevoClient() as client:
        yield client


class AutomationBody(BaseModel):
    type: str
    template_id: str
    days: int = Field(default=settings.AUTOMATION_DEFAULT_DAYS, ge=1, le=settings.AUTOMATION_MAX_DAYS)
    channel: str = ReminderChannel.WHATSAPP.value


class SendBody(BaseModel):
    template_id: str
    client_id: str | None = None
    policy_id: str | None = None
    channel: str | None = None
    to: str | None = Field(default=None, max_length=320)


class TemplateBody(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    channel: str
    body: str = Field(..., min_length=1)
    subject: str | None = Field(default=None, max_length=300)
    variables: list[str] | None = None


def _playbook(workspace_id: str, engine: Engine, mail_client: MailTransport) -> AutomationPlaybook:
    config = ReminderConfig.from_workspace(workspace_id)
    dispatcher = ReminderDispatcher(config, engine=engine, mail_client=mail_client)
    return AutomationPlaybook(config, engine=engine, dispatcher=dispatcher)


def _automation_request(body: AutomationBody) -> AutomationRequest:
    return AutomationRequest(
        automation=AutomationType.parse(body.type),
        template_id=body.template_id,
        channel=ReminderChannel.parse(body.channel),
        days=body.days,
        today=business_today(),
    )


@router.post("/automations/preview")
def preview_automation(
    body: AutomationBody,
    workspace_id: str = Depends(require_workspace),
    engine: Engine = Depends(get_engine),
) -> dict[str, Any]:
    try:
        request = _automation_request(body)
        config = ReminderConfig.from_workspace(workspace_id)
        items = AutomationPlaybook(config, engine=engine).preview(request)
    except BillingError as exc:
        raise to_http_exception(exc) from exc
    return {
        "type": request.automation.value,
        "channel": request.channel.value,
        "days": body.days,
        "count": len(items),
        "items": [item.to_dict() for item in items],
    }


@router.post("/automations/run")
def run_automation(
    body: AutomationBody,
    workspace_id: str = Depends(require_workspace),
    engine: Engine = Depends(get_engine),
    mail_client: MailTransport = Depends(get_mail_client),
) -> dict[str, Any]:
    try:
        request = _automation_request(body)
        result = _playbook(workspace_id, engine, mail_client).run(request)
    except BillingError as exc:
        raise to_http_exception(exc) from exc
    return result.to_dict()


@router.post("/send")
def send_reminder(
    body: SendBody,
    workspace_id: str = Depends(require_workspace),
    engine: Engine = Depends(get_engine),
    mail_client: MailTransport = Depends(get_mail_client),
) -> dict[str, Any]:
    try:
        message, outcome = _playbook(workspace_id, engine, mail_client).send_reminder(
            template_id=body.template_id,
            client_id=body.client_id,
            policy_id=body.policy_id,
            channel=ReminderChannel.parse(body.channel) if body.channel else None,
            to=body.to,
        )
    except BillingError as exc:
        logger.warning("reminder_send_rejected", extra={"error": exc.code, "detail": exc.message})
        raise to_http_exception(exc) from exc
    return {"message": message.to_dict(), "result": outcome.to_dict()}


@router.get("/logs")
def list_logs(
    workspace_id: str = Depends(require_workspace),
    engine: Engine = Depends(get_engine),
    channel: str | None = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
) -> dict[str, Any]:
    try:
        return list_reminder_logs(
            workspace_id, channel=channel, page=page, page_size=page_size, engine=engine
        )
    except BillingError as exc:
        raise to_http_exception(exc) from exc


@router.get("/templates")
def get_templates(
    workspace_id: str = Depends(require_workspace),
    engine: Engine = Depends(get_engine),
    channel: str | None = Query(None),
) -> dict[str, Any]:
    try:
        templates = list_templates(workspace_id, channel=channel, engine=engine)
    except BillingError as exc:
        raise to_http_exception(exc) from exc
    return {"items": [template.to_dict() for template in templates], "total": len(templates)}


@router.post("/templates", status_code=status.HTTP_201_CREATED)
def post_template(
    body: TemplateBody,
    workspace_id: str = Depends(require_workspace),
    engine: Engine = Depends(get_engine),
) -> dict[str, Any]:
    try:
        template = create_template(
            workspace_id,
            name=body.name,
            channel=body.channel,
            body=body.body,
            subject=body.subject,
            variables=body.variables,
            engine=engine,
        )
    except BillingError as exc:
        raise to_http_exception(exc) from exc
    return template.to_dict()
