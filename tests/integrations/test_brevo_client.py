"""Tests for the Brevo transactional mail client."""

from datetime import UTC, datetime
from unittest.mock import Mock, patch
from uuid import UUID

import httpx

from agents.comm.outbound_tags import generate_message_id
from backend.integrations.brevo_client import BrevoClient

WORKSPACE = "00000000-0000-0000-0000-000000000001"


class TestBrevoClient:
    """Test Brevo client behaviour."""

    @patch("backend.integrations.brevo_client.httpx.Client")
    def test_initialization_from_arguments(self, mock_httpx):
        client = BrevoClient(api_key="test-key", sender_email="a@b.in", sender_name="Agency")

        assert client.api_key == "test-key"
        assert client.sender_email == "a@b.in"
        assert client.sender_name == "Agency"
        headers = mock_httpx.call_args[1]["headers"]
        assert headers["api-key"] == "test-key"

    @patch("backend.integrations.brevo_client.httpx.Client")
    def test_empty_key_means_dry_run(self, mock_httpx):
        client = BrevoClient(api_key="")
        assert client.api_key == ""

        response = client.send_transactional(
            to="asha@example.com", subject="S", html="<p>x</p>", workspace_id=WORKSPACE
        )

        assert response.success
        assert response.dry_run
        UUID(response.message_id)
        mock_httpx.return_value.post.assert_not_called()

    @patch("backend.integrations.brevo_client.httpx.Client")
    def test_explicit_dry_run(self, mock_httpx):
        client = BrevoClient(api_key="test-key")
        response = client.send_transactional(
            to="asha@example.com", subject="S", html="<p>x</p>", workspace_id=WORKSPACE, dry_run=True
        )
        assert response.dry_run
        mock_httpx.return_value.post.assert_not_called()

    @patch("backend.integrations.brevo_client.httpx.Client")
    def test_send_success(self, mock_httpx):
        mock_response = Mock()
        mock_response.status_code = 201
        mock_response.json.return_value = {"messageId": "<brevo-123@smtp>"}
        mock_httpx.return_value.post.return_value = mock_response

        client = BrevoClient(api_key="test-key", sender_email="a@b.in", sender_name="Agency")
        response = client.send_transactional(
            to="asha@example.com",
            subject="Premium due",
            html="<p>Dear Asha</p>",
            workspace_id=WORKSPACE,
            text="Dear Asha",
            reference="LIC-1001",
        )

        assert response.success
        assert not response.dry_run
        assert response.provider_message_id == "<brevo-123@smtp>"

        args, kwargs = mock_httpx.return_value.post.call_args
        assert args[0] == "/smtp/email"
        payload = kwargs["json"]
        assert payload["sender"] == {"name": "Agency", "email": "a@b.in"}
        assert payload["to"] == [{"email": "asha@example.com"}]
        assert payload["htmlContent"] == "<p>Dear Asha</p>"
        assert payload["textContent"] == "Dear Asha"
        assert payload["headers"]["X-Workspace-ID"] == WORKSPACE
        assert payload["headers"]["X-Message-ID"] == response.message_id

    @patch("backend.integrations.brevo_client.httpx.Client")
    def test_text_content_omitted_when_absent(self, mock_httpx):
        mock_httpx.return_value.post.return_value = Mock(status_code=202, json=Mock(return_value={}))
        BrevoClient(api_key="k").send_transactional(
            to="a@b.in", subject="S", html="<p/>", workspace_id=WORKSPACE
        )
        assert "textContent" not in mock_httpx.return_value.post.call_args[1]["json"]

    @patch("backend.integrations.brevo_client.httpx.Client")
    def test_server_error(self, mock_httpx):
        mock_httpx.return_value.post.return_value = Mock(status_code=500, text="Internal error")

        response = BrevoClient(api_key="k").send_transactional(
            to="a@b.in", subject="S", html="<p/>", workspace_id=WORKSPACE
        )

        assert not response.success
        assert response.error == "Brevo API error: 500 - Internal error"

    @patch("backend.integrations.brevo_client.httpx.Client")
    def test_network_error(self, mock_httpx):
        mock_httpx.return_value.post.side_effect = httpx.ConnectError("connection refused")

        response = BrevoClient(api_key="k").send_transactional(
            to="a@b.in", subject="S", html="<p/>", workspace_id=WORKSPACE
        )

        assert not response.success
        assert response.error.startswith("Network error sending email")

    @patch("backend.integrations.brevo_client.httpx.Client")
    def test_invalid_address_is_hard_bounced(self, mock_httpx):
        mock_httpx.return_value.post.return_value = Mock(
            status_code=400, text='{"code":"invalid_parameter","message":"email is invalid"}'
        )
        client = BrevoClient(api_key="k")

        client.send_transactional(to="Bad@Example.com", subject="S", html="<p/>", workspace_id=WORKSPACE)
        assert client.is_hard_bounced("bad@example.com")

        second = client.send_transactional(
            to="bad@example.com", subject="S", html="<p/>", workspace_id=WORKSPACE
        )
        assert not second.success
        assert second.error == "Email address is on hard-bounce list"
        assert mock_httpx.return_value.post.call_count == 1

    @patch("backend.integrations.brevo_client.httpx.Client")
    def test_context_manager_closes(self, mock_httpx):
        with BrevoClient(api_key="k"):
            pass
        mock_httpx.return_value.close.assert_called_once()


class TestOutboundTags:
    """Test deterministic message ids."""

    def test_deterministic(self):
        ts = datetime(2025, 1, 15, 10, 30, 0, tzinfo=UTC)
        assert generate_message_id(WORKSPACE, "LIC-1001", ts) == generate_message_id(
            WORKSPACE, "LIC-1001", ts
        )
        UUID(generate_message_id(WORKSPACE, "LIC-1001", ts))

    def test_reference_changes_id(self):
        ts = datetime(2025, 1, 15, 10, 30, 0, tzinfo=UTC)
        assert generate_message_id(WORKSPACE, "LIC-1001", ts) != generate_message_id(
            WORKSPACE, "LIC-1002", ts
        )

    def test_without_reference(self):
        ts = datetime(2025, 1, 15, 10, 30, 0, tzinfo=UTC)
        assert generate_message_id(WORKSPACE, None, ts) != generate_message_id(WORKSPACE, "x", ts)
