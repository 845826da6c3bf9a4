"""
Integration test fixtures — a full app (runtime, SQLite, uploads dir)
driven through FastAPI's TestClient.

Mark with @pytest.mark.integration to skip in unit-only runs.

Run: pytest tests/integration/ -v -m integration
"""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

ADMIN_CODE = "ADMIN-2025"


def pytest_configure(config):
    config.addinivalue_line("markers", "integration: full HTTP app against a throwaway SQLite DB")


@pytest.fixture
def app(config):
    from docmgr.api.app import create_app

    return create_app(config)


@pytest.fixture
def client(app):
    """Anonymous client. Entering the context runs the app lifespan."""
    with TestClient(app) as c:
        yield c


def login(client: TestClient, code: str) -> dict:
    response = client.post("/api/login", json={"loginCode": code})
    assert response.status_code == 200, response.text
    return response.json()


@pytest.fixture
def admin_client(client):
    """Client holding a super admin session (the seeded account)."""
    login(client, ADMIN_CODE)
    return client


@pytest.fixture
def user_client(app, admin_client):
    """
    A second client with its own cookie jar, logged in as a regular user
    registered by the admin.
    """
    created = admin_client.post("/api/register", json={"name": "Regular User"})
    assert created.status_code == 201, created.text
    other = TestClient(app)
    other.user = login(other, created.json()["loginCode"])
    return other
