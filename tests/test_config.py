"""Unit tests for core/config.py and the app factory's startup validation."""

import pytest
from fastapi.testclient import TestClient
from pydantic import ValidationError

from api.main import create_app
from auth.errors import ConfigInvalid
from conftest import TEST_SECRET, make_settings
from core.config import Settings


def test_debug_generates_secret(monkeypatch):
    monkeypatch.delenv("JWT_SECRET", raising=False)
    settings = Settings(debug=True, _env_file=None)
    assert len(settings.jwt_secret) >= 32


def test_production_requires_secret(monkeypatch):
    monkeypatch.delenv("JWT_SECRET", raising=False)
    with pytest.raises(ValidationError, match="JWT_SECRET is required"):
        Settings(debug=False, _env_file=None)


def test_short_secret_rejected():
    with pytest.raises(ValidationError, match="at least 32"):
        Settings(jwt_secret="short", _env_file=None)


def test_settings_read_from_environment(monkeypatch):
    monkeypatch.setenv("JWT_SECRET", TEST_SECRET)
    monkeypatch.setenv("TOKEN_TTL_SECONDS", "60")
    monkeypatch.setenv("ARGON_PROFILE", "production")
    monkeypatch.setenv("HASH_WORKERS", "4")
    settings = Settings(_env_file=None)
    assert settings.token_ttl_seconds == 60
    assert settings.argon_profile == "production"
    assert settings.hash_workers == 4


def test_unknown_profile_rejected():
    with pytest.raises(ValidationError):
        make_settings(argon_profile="paranoid")


def test_negative_ttl_rejected():
    with pytest.raises(ValidationError):
        make_settings(token_ttl_seconds=-1)


def test_create_app_rejects_invalid_hash_policy():
    with pytest.raises(ConfigInvalid):
        create_app(make_settings(argon_iterations=0))


def test_bootstrap_admin_created_on_empty_database():
    settings = make_settings(bootstrap_admin_password="bootstrap-pass-1")
    with TestClient(create_app(settings)) as client:
        resp = client.post(
            "/api/v1/auth/login",
            json={"username": "admin", "password": "bootstrap-pass-1"},
        )
        assert resp.status_code == 200, resp.text


def test_no_bootstrap_without_password():
    with TestClient(create_app(make_settings())) as client:
        assert client.app.state.user_store.has_users() is False
