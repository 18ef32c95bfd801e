# talentmatch/conftest.py
import logging
from datetime import datetime, timezone
from typing import Optional

import pytest
from fastapi.testclient import TestClient

from talentmatch.core.metrics import METRICS
from talentmatch.core.services import AppServices
from talentmatch.features.storage.memory import build_memory_stores
from talentmatch.features.usage.locks import UserLockRegistry
from talentmatch.models.analysis import AnalysisRequest
from talentmatch.tests.mocks import FakeScoringEngine, build_test_settings


@pytest.fixture(autouse=True)
def reset_metrics():
    METRICS.reset()
    yield


@pytest.fixture(autouse=True)
def quiet_logging(monkeypatch):
    # log_event configures a stdout handler when none is attached
    monkeypatch.setattr(logging.getLogger("talentmatch"), "handlers", [logging.NullHandler()])
    yield


@pytest.fixture
def app_settings():
    return build_test_settings()


@pytest.fixture
def stores():
    return build_memory_stores()


@pytest.fixture
def locks():
    return UserLockRegistry()


@pytest.fixture
def engine():
    return FakeScoringEngine()


@pytest.fixture
def make_user(stores):
    """Create a user, then force plan/usage fields directly through the store."""
    counter = {"n": 0}

    def _make(
        plan: str = "free",
        usage_count: int = 0,
        usage_reset_date: Optional[datetime] = None,
        email: Optional[str] = None,
        stripe_customer_id: Optional[str] = None,
        subscription_status: str = "inactive",
    ):
        counter["n"] += 1
        now = datetime.now(timezone.utc)
        user = stores.users.create_user(
            email=email or f"user{counter['n']}@example.com",
            password_hash="not-a-real-hash",
            first_name="Test",
            last_name=f"User{counter['n']}",
            now=now,
        )
        fields = {
            "plan": plan,
            "usage_count": usage_count,
            "usage_reset_date": usage_reset_date or now,
            "subscription_status": subscription_status,
        }
        if stripe_customer_id:
            fields["stripe_customer_id"] = stripe_customer_id
        return stores.users.update_user(user.user_id, **fields)

    return _make


@pytest.fixture
def analysis_request():
    return AnalysisRequest(
        company_name="Acme",
        job_title="Backend Engineer",
        job_description="We need a Python engineer with SQL experience.",
        resume_text="Five years of Python, SQL and API design.",
        outreach_tone="professional",
        candidate_name="Sam",
        candidate_email="sam@example.com",
    )


@pytest.fixture
def services(app_settings, stores, locks, engine):
    return AppServices(settings=app_settings, stores=stores, engine=engine, billing=None, locks=locks)


@pytest.fixture
def client(services):
    from talentmatch.main import create_app

    app = create_app(services=services)
    with TestClient(app) as c:
        yield c


@pytest.fixture
def auth_headers(client):
    """Register a fresh user over the API and return (user_id, headers)."""
    resp = client.post(
        "/api/auth/register",
        json={"email": "owner@example.com", "password": "secret123", "firstName": "Olive", "lastName": "Owner"},
    )
    assert resp.status_code == 200, resp.text
    body = resp.json()
    return body["user"]["id"], {"Authorization": f"Bearer {body['token']}"}
