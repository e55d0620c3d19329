"""
tests/test_health.py -- Integration tests for GET /health and GET /status.

Covers:
  - 200 with status/database/timestamp when the store answers
  - 503 with database "disconnected" when the store ping fails
  - No authentication required
  - Security headers present on every response
  - /status reports session counts and whether the caller is logged in,
    without renewing the session or setting a cookie
"""

from __future__ import annotations

from datetime import timedelta
from unittest.mock import patch

from fastapi.testclient import TestClient


def test_health_returns_200_when_database_connected(api_client: TestClient) -> None:
    resp = api_client.get("/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "healthy"
    assert data["database"] == "connected"
    assert data["timestamp"]


def test_health_returns_503_when_database_unreachable(api_client: TestClient) -> None:
    """A failed ping must surface as 503 without leaking the driver error."""
    with patch.object(api_client.app.state.store, "ping", return_value=False):
        resp = api_client.get("/health")
    assert resp.status_code == 503
    data = resp.json()
    assert data["status"] == "unhealthy"
    assert data["database"] == "disconnected"
    assert "error" not in data


def test_health_no_auth_required(api_client: TestClient) -> None:
    resp = api_client.get("/health", headers={})
    assert resp.status_code == 200


def test_security_headers_on_every_response(api_client: TestClient) -> None:
    for resp in (api_client.get("/health"), api_client.get("/no/such/path")):
        assert resp.headers["X-Content-Type-Options"] == "nosniff"
        assert resp.headers["X-Frame-Options"] == "DENY"
        assert resp.headers["X-XSS-Protection"] == "1; mode=block"


def test_unknown_path_uses_error_envelope(api_client: TestClient) -> None:
    resp = api_client.get("/no/such/path")
    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == "not_found"


def test_status_reports_sessions_and_authentication(api_client: TestClient) -> None:
    anonymous = api_client.get("/status").json()
    assert anonymous["status"] == "running"
    assert anonymous["authenticated"] is False
    assert anonymous["active_sessions"] == 0

    api_client.post(
        "/api/register",
        json={"username": "statususer", "email": "status@example.com", "password": "secret1"},
    )
    logged_in = api_client.get("/status").json()
    assert logged_in["authenticated"] is True
    assert logged_in["active_sessions"] == 1


def test_status_does_not_renew_session(api_client: TestClient, clock) -> None:
    """Polling /status must not push the session expiry forward."""
    resp = api_client.post(
        "/api/register",
        json={"username": "pollster", "email": "poll@example.com", "password": "secret1"},
    )
    token = resp.cookies.get("loginSid")
    sessions = api_client.app.state.sessions
    issued_at = clock.now

    clock.advance(hours=23)
    status = api_client.get("/status")
    assert status.json()["authenticated"] is True
    assert "set-cookie" not in status.headers

    clock.advance(hours=2)
    assert sessions.resolve(token) is None
    assert clock.now - issued_at > timedelta(hours=24)
