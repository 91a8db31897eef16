"""HTTP tests for the reminders router."""

from datetime import date
from unittest.mock import Mock

import pytest
from fastapi.testclient import TestClient

from backend.app import create_app
from backend.apps.reminders import api as reminders_api
from backend.core.db import get_engine
from backend.integrations.brevo_client import BrevoResponse


@pytest.fixture
def mail_client():
    mock = Mock()
    mock.send_transactional.return_value = BrevoResponse(success=True, message_id="msg-1")
    return mock


@pytest.fixture
def client(engine, mail_client, monkeypatch):
    monkeypatch.setattr(reminders_api, "business_today", lambda: date(2024, 6, 1))
    app = create_app()
    app.dependency_overrides[get_engine] = lambda: engine
    app.dependency_overrides[reminders_api.get_mail_client] = lambda: mail_client
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def headers(workspace_id):
    return {"X-Workspace-ID": workspace_id}


@pytest.fixture
def template_id(client, headers):
    response = client.post(
        "/api/v1/reminders/templates",
        headers=headers,
        json={"name": "Birthday", "channel": "whatsapp", "body": "Happy birthday {{ client_name }}!"},
    )
    assert response.status_code == 201
    return response.json()["id"]


class TestTemplatesEndpoint:
    def test_create_and_list(self, client, headers):
        created = client.post(
            "/api/v1/reminders/templates",
            headers=headers,
            json={
                "name": "Due",
                "channel": "email",
                "subject": "Due {{ due_date }}",
                "body": "Dear {{ client_name }}",
            },
        )
        assert created.status_code == 201
        assert created.json()["variables"] == ["due_date", "client_name"]

        listed = client.get("/api/v1/reminders/templates", headers=headers)
        assert listed.status_code == 200
        assert listed.json()["total"] == 1
        assert listed.json()["items"][0]["name"] == "Due"

    def test_whatsapp_template_drops_subject(self, client, headers):
        response = client.post(
            "/api/v1/reminders/templates",
            headers=headers,
            json={"name": "WA", "channel": "whatsapp", "subject": "ignored", "body": "Hi"},
        )
        assert response.json()["subject"] is None

    def test_unknown_channel(self, client, headers):
        response = client.post(
            "/api/v1/reminders/templates",
            headers=headers,
            json={"name": "SMS", "channel": "sms", "body": "Hi"},
        )
        assert response.status_code == 400
        assert response.json()["detail"]["error"] == "validation_error"

    def test_templates_are_workspace_scoped(self, client, headers, template_id, other_workspace_id):
        response = client.get(
            "/api/v1/reminders/templates", headers={"X-Workspace-ID": other_workspace_id}
        )
        assert response.json()["total"] == 0


class TestAutomationEndpoints:
    """Test preview and run."""

    @pytest.fixture(autouse=True)
    def birthdays(self, seed_client):
        seed_client("Asha", mobile="+91 98765 43210", dob=date(1990, 6, 3))
        seed_client("Ravi", mobile=None, dob=date(1988, 6, 5))

    def test_preview(self, client, headers, template_id, mail_client):
        response = client.post(
            "/api/v1/reminders/automations/preview",
            headers=headers,
            json={"type": "birthdays", "template_id": template_id, "days": 7},
        )
        assert response.status_code == 200
        body = response.json()
        assert body["count"] == 2
        assert body["channel"] == "whatsapp"
        assert body["items"][0]["body"] == "Happy birthday Asha!"
        mail_client.send_transactional.assert_not_called()

    def test_run_then_logs(self, client, headers, template_id):
        response = client.post(
            "/api/v1/reminders/automations/run",
            headers=headers,
            json={"type": "birthdays", "template_id": template_id},
        )
        assert response.status_code == 200
        body = response.json()
        assert body["matched"] == 2
        assert body["queued"] == 1
        assert body["skipped_no_destination"] == 1
        assert body["results"][0]["whatsapp_link"].startswith("https://wa.me/919876543210")

        logs = client.get("/api/v1/reminders/logs", headers=headers)
        assert logs.status_code == 200
        assert logs.json()["pagination"]["total"] == 1
        assert logs.json()["items"][0]["status"] == "QUEUED"

    def test_unknown_type(self, client, headers, template_id):
        response = client.post(
            "/api/v1/reminders/automations/run",
            headers=headers,
            json={"type": "anniversaries", "template_id": template_id},
        )
        assert response.status_code == 400

    def test_days_out_of_range(self, client, headers, template_id):
        response = client.post(
            "/api/v1/reminders/automations/preview",
            headers=headers,
            json={"type": "birthdays", "template_id": template_id, "days": 61},
        )
        assert response.status_code == 422

    def test_unknown_template(self, client, headers):
        response = client.post(
            "/api/v1/reminders/automations/run",
            headers=headers,
            json={"type": "birthdays", "template_id": "missing"},
        )
        assert response.status_code == 404


class TestSendEndpoint:
    """Test quick sends."""

    def test_send_email(self, client, headers, seed_client, mail_client):
        template = client.post(
            "/api/v1/reminders/templates",
            headers=headers,
            json={"name": "Note", "channel": "email", "body": "Hello {{ client_name }}"},
        ).json()
        client_id = seed_client("Asha", email="asha@example.com")

        response = client.post(
            "/api/v1/reminders/send",
            headers=headers,
            json={"template_id": template["id"], "client_id": client_id},
        )
        assert response.status_code == 200
        body = response.json()
        assert body["message"]["body"] == "Hello Asha"
        assert body["result"]["status"] == "SENT"
        mail_client.send_transactional.assert_called_once()

    def test_send_transport_failure(self, client, headers, seed_client, mail_client):
        mail_client.send_transactional.return_value = BrevoResponse(success=False, error="down")
        template = client.post(
            "/api/v1/reminders/templates",
            headers=headers,
            json={"name": "Note", "channel": "email", "body": "Hello"},
        ).json()
        client_id = seed_client("Asha", email="asha@example.com")

        response = client.post(
            "/api/v1/reminders/send",
            headers=headers,
            json={"template_id": template["id"], "client_id": client_id},
        )
        assert response.status_code == 502
        assert response.json()["detail"]["error"] == "dispatch_failed"

    def test_send_requires_target(self, client, headers, template_id):
        response = client.post(
            "/api/v1/reminders/send", headers=headers, json={"template_id": template_id}
        )
        assert response.status_code == 400


class TestLogsEndpoint:
    def test_page_size_bounds(self, client, headers):
        response = client.get("/api/v1/reminders/logs", headers=headers, params={"page_size": 101})
        assert response.status_code == 422

    def test_empty(self, client, headers):
        body = client.get("/api/v1/reminders/logs", headers=headers).json()
        assert body["items"] == []
        assert body["pagination"] == {"page": 1, "page_size": 20, "total": 0, "total_pages": 0}
