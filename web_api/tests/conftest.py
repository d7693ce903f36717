# web_api/tests/conftest.py
"""Pytest fixtures for web API tests.

Every test gets a signed session cookie for a fixed profile, a private
impersonation state directory and an empty query cache, so no test
needs a database or leaks state into the next one.
"""

from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient

from console_core.enums import Role
from console_core.identity import Identity
from console_core.query_cache import QueryCache, set_query_cache

PROFILE_ID = "5b6c1f0e-2f7d-4a8e-9c31-0d2b8e4f7a10"


@pytest.fixture(autouse=True)
def _jwt_secret():
    """Ensure JWT_SECRET is set so sessions can be signed and verified."""
    with patch("web_api.auth.JWT_SECRET", "test-secret"):
        yield


@pytest.fixture(autouse=True)
def _isolated_state(tmp_path, monkeypatch):
    monkeypatch.setenv("IMPERSONATION_STATE_DIR", str(tmp_path / "impersonation"))
    set_query_cache(QueryCache())
    yield
    set_query_cache(None)


@pytest.fixture
def app():
    from main import app

    yield app
    app.dependency_overrides.clear()


@pytest.fixture
def client(app):
    """Test client carrying a valid session cookie for PROFILE_ID."""
    from web_api.auth import create_jwt

    client = TestClient(app)
    client.cookies.set("session", create_jwt(PROFILE_ID))
    return client


@pytest.fixture
def as_identity(app):
    """Call with an Identity to make it the caller's resolved identity."""
    from web_api.auth import get_current_identity

    def _set(identity: Identity) -> Identity:
        app.dependency_overrides[get_current_identity] = lambda: identity
        return identity

    return _set


@pytest.fixture
def profile_id():
    return PROFILE_ID


@pytest.fixture
def staff_identity():
    return Identity(user_id=PROFILE_ID, role=Role.admin)


@pytest.fixture
def manager_identity():
    return Identity(
        user_id=PROFILE_ID,
        role=Role.manager,
        organization_ids=frozenset({"org-a"}),
        team_organization_ids=frozenset({"org-b"}),
    )


@pytest.fixture
def mock_fetch():
    """Patch the database-backed event fetch; set .return_value per test."""
    with patch(
        "console_core.event_loader.fetch_training_events", new_callable=AsyncMock
    ) as fetch:
        fetch.return_value = []
        yield fetch
