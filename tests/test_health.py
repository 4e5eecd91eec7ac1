"""
tests/test_health.py -- Integration tests for GET /api/v1/health.

Covers:
  - 200 response with status, version, and components fields
  - components.database key present and reports 'ok'
  - No authentication required
  - Database failure reports 'degraded' instead of raising
"""

from __future__ import annotations

from unittest.mock import patch

from api.main import VERSION
from auth.errors import StorageError


def test_health_returns_200_with_components(api_env):
    """Health endpoint returns 200 with status, version, and components."""
    resp = api_env.client.get("/api/v1/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "healthy"
    assert data["version"] == VERSION
    assert data["components"]["app"] == "ok"
    assert data["components"]["database"] == "ok"


def test_health_no_auth_required(api_env):
    """Health endpoint is accessible without any authentication headers."""
    resp = api_env.client.get("/api/v1/health", headers={})
    assert resp.status_code == 200
    assert resp.json()["status"] == "healthy"


def test_health_reports_degraded_when_database_fails(api_env):
    store = api_env.client.app.state.user_store
    with patch.object(store, "ping", side_effect=StorageError("ping", "OperationalError")):
        resp = api_env.client.get("/api/v1/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "degraded"
    assert data["components"]["database"] == "error"
