"""Shared fixtures: an app on a private in-memory SQLite database per test."""
from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from launchtracker.app import create_app
from launchtracker.config import Settings

PLAN_START = "2026-02-01"
PLAN_END = "2026-02-14"


@pytest.fixture()
def settings() -> Settings:
    return Settings(
        _env_file=None,
        database_url="sqlite://",
        jwt_secret="test-secret",
        cors_origins=["http://testserver"],
    )


@pytest.fixture()
def app(settings):
    return create_app(settings)


@pytest.fixture()
def client(app):
    """TestClient with the lifespan running (schema created on startup)."""
    with TestClient(app, raise_server_exceptions=True) as c:
        yield c


@pytest.fixture()
def register(client):
    """Register a user and return Bearer headers for them."""

    def _register(email: str = "owner@example.com", password: str = "secret123", name: str = "Owner") -> dict:
        resp = client.post("/api/auth/register", json={"email": email, "password": password, "name": name})
        assert resp.status_code == 201, resp.text
        return {"Authorization": f"Bearer {resp.json()['data']['token']}"}

    return _register


@pytest.fixture()
def auth(register) -> dict:
    return register()


@pytest.fixture()
def plan_id(client, auth) -> int:
    resp = client.post(
        "/api/plans",
        json={"name": "Spring Launch", "startDate": PLAN_START, "endDate": PLAN_END},
        headers=auth,
    )
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]["id"]


@pytest.fixture()
def template_plan_id(client, auth) -> int:
    resp = client.post(
        "/api/plans",
        json={
            "name": "Feb Launch", "startDate": PLAN_START, "endDate": PLAN_END,
            "templateId": "feb-2026-launch",
        },
        headers=auth,
    )
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]["id"]


@pytest.fixture()
def make_task(client, auth, plan_id):
    def _make(**fields) -> dict:
        body = {"title": "Task", "dueDate": PLAN_START}
        body.update(fields)
        resp = client.post(f"/api/plans/{plan_id}/tasks", json=body, headers=auth)
        assert resp.status_code == 201, resp.text
        return resp.json()["data"]

    return _make


@pytest.fixture()
def make_kpi(client, auth, plan_id):
    def _make(**fields) -> dict:
        body = {
            "name": "Open Rate", "category": "email_deliverability", "unit": "percent",
            "targetType": "minimum", "targetValue": 25,
        }
        body.update(fields)
        resp = client.post(f"/api/plans/{plan_id}/kpis", json=body, headers=auth)
        assert resp.status_code == 201, resp.text
        return resp.json()["data"]

    return _make
