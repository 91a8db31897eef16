import socket
import uuid
from datetime import date
from decimal import Decimal

import pytest
import sqlalchemy as sa
from sqlalchemy.pool import StaticPool

import backend.apps.premiums.tables  # noqa: F401
import backend.apps.reminders.tables  # noqa: F401
import backend.core.audit  # noqa: F401
from backend.apps.premiums.tables import CLIENTS_TABLE, POLICIES_TABLE
from backend.core.db import METADATA
from backend.core.observability.metrics import reset_metrics


@pytest.fixture(autouse=True, scope="session")
def egress_guard():
    """Block outbound network access for the whole test session."""
    real_getaddrinfo = socket.getaddrinfo
    real_create_connection = socket.create_connection

    def guard_getaddrinfo(host, *args, **kwargs):
        if host in ("localhost", "127.0.0.1", "testserver"):
            return real_getaddrinfo(host, *args, **kwargs)
        raise RuntimeError(f"Egress blocked: getaddrinfo({host!r}) disallowed")

    def guard_create_connection(address, *args, **kwargs):
        raise RuntimeError(f"Egress blocked: create_connection({address!r}) disallowed")

    socket.getaddrinfo = guard_getaddrinfo  # type: ignore[assignment]
    socket.create_connection = guard_create_connection  # type: ignore[assignment]

    yield

    socket.getaddrinfo = real_getaddrinfo  # type: ignore[assignment]
    socket.create_connection = real_create_connection  # type: ignore[assignment]


@pytest.fixture(autouse=True)
def clean_metrics():
    reset_metrics()
    yield
    reset_metrics()


@pytest.fixture
def engine():
    """In-memory SQLite database with the full schema."""
    eng = sa.create_engine(
        "sqlite+pysqlite:///:memory:",
        future=True,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    METADATA.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def workspace_id():
    return "00000000-0000-0000-0000-000000000001"


@pytest.fixture
def other_workspace_id():
    return "00000000-0000-0000-0000-000000000002"


@pytest.fixture
def seed_client(engine, workspace_id):
    """Insert a client row and return its id."""

    def _seed(
        name="Asha Verma",
        *,
        email="asha@example.com",
        mobile="+91 98765 43210",
        dob=None,
        workspace=None,
    ):
        client_id = str(uuid.uuid4())
        with engine.begin() as conn:
            conn.execute(
                sa.insert(CLIENTS_TABLE).values(
                    id=client_id,
                    workspace_id=workspace or workspace_id,
                    name=name,
                    email=email,
                    mobile=mobile,
                    dob=dob,
                )
            )
        return client_id

    return _seed


@pytest.fixture
def seed_policy(engine, workspace_id):
    """Insert a policy row and return its id."""

    def _seed(
        client_id,
        *,
        policy_number="LIC-1001",
        premium_amount=Decimal("12000.00"),
        premium_mode="YEARLY",
        next_due_date=date(2024, 3, 15),
        last_paid_date=None,
        status="ACTIVE",
        insurer="LIC",
        plan_name="Jeevan Anand",
        workspace=None,
    ):
        policy_id = str(uuid.uuid4())
        with engine.begin() as conn:
            conn.execute(
                sa.insert(POLICIES_TABLE).values(
                    id=policy_id,
                    workspace_id=workspace or workspace_id,
                    client_id=client_id,
                    policy_number=policy_number,
                    insurer=insurer,
                    plan_name=plan_name,
                    premium_amount=premium_amount,
                    premium_mode=premium_mode,
                    next_due_date=next_due_date,
                    last_paid_date=last_paid_date,
                    status=status,
                )
            )
        return policy_id

    return _seed
