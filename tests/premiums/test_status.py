"""Tests for the premium status list."""

import uuid
from datetime import UTC, date, datetime
from decimal import Decimal

import pytest
import sqlalchemy as sa

from backend.apps.premiums.dto import PaymentStatus
from backend.apps.premiums.status import list_premium_statuses
from backend.apps.premiums.tables import PREMIUM_PAYMENTS_TABLE
from backend.core.errors import ValidationError

TODAY = date(2024, 3, 15)


@pytest.fixture
def portfolio(engine, workspace_id, other_workspace_id, seed_client, seed_policy):
    """Five listed policies plus three that must never appear."""
    asha = seed_client("Asha Verma")
    ravi = seed_client("Ravi Kumar")

    ids = {
        "upcoming": seed_policy(asha, policy_number="P-A", next_due_date=date(2024, 3, 20)),
        "overdue": seed_policy(asha, policy_number="P-B", next_due_date=date(2024, 3, 10)),
        "due_today": seed_policy(ravi, policy_number="P-C", next_due_date=date(2024, 3, 15)),
        "far": seed_policy(
            ravi,
            policy_number="HD-9",
            insurer="HDFC Life",
            premium_mode="HALF_YEARLY",
            premium_amount=Decimal("8000.00"),
            next_due_date=date(2024, 5, 1),
        ),
        "paid": seed_policy(ravi, policy_number="P-E", next_due_date=date(2024, 3, 1)),
    }
    seed_policy(asha, policy_number="P-LAPSED", status="LAPSED", next_due_date=date(2024, 3, 20))
    seed_policy(asha, policy_number="P-NODUE", next_due_date=None)
    seed_policy(
        seed_client("Other Workspace", workspace=other_workspace_id),
        policy_number="P-OTHER",
        next_due_date=date(2024, 3, 20),
        workspace=other_workspace_id,
    )

    with engine.begin() as conn:
        conn.execute(
            sa.insert(PREMIUM_PAYMENTS_TABLE).values(
                id=str(uuid.uuid4()),
                workspace_id=workspace_id,
                policy_id=ids["paid"],
                payment_date=date(2024, 3, 1),
                amount_paid=Decimal("12000.00"),
                late_fee=Decimal("0"),
                discount=Decimal("0"),
                payment_mode="UPI",
                created_at=datetime(2024, 3, 1, 10, 0, tzinfo=UTC),
            )
        )
    return ids


class TestListPremiumStatuses:
    """Test classification, filters, pagination and summary."""

    def test_classifies_every_bucket(self, engine, workspace_id, portfolio):
        page = list_premium_statuses(workspace_id, today=TODAY, engine=engine)

        statuses = {row.policy_id: row.status for row in page.items}
        assert statuses == {
            portfolio["paid"]: PaymentStatus.PAID,
            portfolio["overdue"]: PaymentStatus.OVERDUE,
            portfolio["due_today"]: PaymentStatus.UNPAID,
            portfolio["upcoming"]: PaymentStatus.UPCOMING,
            portfolio["far"]: PaymentStatus.UNPAID,
        }

    def test_ordered_by_due_date(self, engine, workspace_id, portfolio):
        page = list_premium_statuses(workspace_id, today=TODAY, engine=engine)
        assert [row.policy_number for row in page.items] == ["P-E", "P-B", "P-C", "P-A", "HD-9"]

    def test_summary_covers_workspace(self, engine, workspace_id, portfolio):
        page = list_premium_statuses(workspace_id, today=TODAY, engine=engine)
        summary = page.summary
        assert summary.total == 5
        assert summary.upcoming == 1
        assert summary.overdue == 1
        assert summary.unpaid == 2
        assert summary.paid == 1
        assert summary.total_amount == Decimal("56000.00")

    def test_status_filter_keeps_full_summary(self, engine, workspace_id, portfolio):
        page = list_premium_statuses(workspace_id, today=TODAY, status="unpaid", engine=engine)
        assert [row.policy_number for row in page.items] == ["P-C", "HD-9"]
        assert page.total == 2
        assert page.summary.total == 5

    def test_search_is_case_insensitive(self, engine, workspace_id, portfolio):
        by_insurer = list_premium_statuses(workspace_id, today=TODAY, search="hdfc", engine=engine)
        assert [row.policy_number for row in by_insurer.items] == ["HD-9"]

        by_client = list_premium_statuses(workspace_id, today=TODAY, search="RAVI", engine=engine)
        assert {row.policy_number for row in by_client.items} == {"P-C", "HD-9", "P-E"}

        by_number = list_premium_statuses(workspace_id, today=TODAY, search="p-a", engine=engine)
        assert [row.policy_number for row in by_number.items] == ["P-A"]

    def test_due_date_range(self, engine, workspace_id, portfolio):
        page = list_premium_statuses(
            workspace_id,
            today=TODAY,
            due_from=date(2024, 3, 10),
            due_to=date(2024, 3, 20),
            engine=engine,
        )
        assert [row.policy_number for row in page.items] == ["P-B", "P-C", "P-A"]

    def test_pagination(self, engine, workspace_id, portfolio):
        page = list_premium_statuses(workspace_id, today=TODAY, page=2, limit=2, engine=engine)
        assert [row.policy_number for row in page.items] == ["P-C", "P-A"]
        assert page.total == 5
        assert page.total_pages == 3

        payload = page.to_dict()
        assert payload["pagination"] == {"page": 2, "limit": 2, "total": 5, "total_pages": 3}
        assert payload["summary"]["total"] == 5

    def test_page_past_end_is_empty(self, engine, workspace_id, portfolio):
        page = list_premium_statuses(workspace_id, today=TODAY, page=9, limit=10, engine=engine)
        assert page.items == []
        assert page.total == 5

    def test_row_serialization(self, engine, workspace_id, portfolio):
        page = list_premium_statuses(workspace_id, today=TODAY, search="HD-9", engine=engine)
        row = page.to_dict()["premiums"][0]
        assert row["premium_mode"] == "HALF_YEARLY"
        assert row["premium_mode_label"] == "Half-Yearly"
        assert row["premium_amount"] == 8000.0
        assert row["next_due_date"] == "2024-05-01"
        assert row["client_name"] == "Ravi Kumar"
        assert row["status"] == "UNPAID"

    def test_custom_upcoming_window(self, engine, workspace_id, portfolio):
        page = list_premium_statuses(
            workspace_id, today=TODAY, upcoming_window_days=60, engine=engine
        )
        statuses = {row.policy_number: row.status for row in page.items}
        assert statuses["HD-9"] is PaymentStatus.UPCOMING

    def test_empty_workspace(self, engine):
        page = list_premium_statuses(
            "00000000-0000-0000-0000-00000000dead", today=TODAY, engine=engine
        )
        assert page.items == []
        assert page.summary.total == 0
        assert page.total_pages == 0

    @pytest.mark.parametrize(
        "kwargs",
        [{"page": 0}, {"limit": 0}, {"limit": 101}, {"status": "LATE"}],
    )
    def test_invalid_arguments(self, engine, workspace_id, kwargs):
        with pytest.raises(ValidationError):
            list_premium_statuses(workspace_id, today=TODAY, engine=engine, **kwargs)
