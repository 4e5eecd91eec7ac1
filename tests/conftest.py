"""
tests/conftest.py -- Shared test fixtures for BookApp unit and integration tests.

This module provides:
  - make_settings(): explicit Settings for tests (never read from the env)
  - hash_now(): hash a password synchronously for seeding rows
  - engine: isolated in-memory Engine with both tables created
  - pool / hasher: a one-worker HashingPool and a cheap PasswordHasher
  - api_env: TestClient over the real app factory plus seeding helpers

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs route handlers and dependencies in a thread pool.
Plain :memory: DBs are per-connection and would present a blank schema to
each worker thread. The named URI format
(file:name?mode=memory&cache=shared&uri=true) shares one in-memory instance
across all connections in the same process. Every fixture gets a fresh name
so tests never see each other's rows.

Argon2 costs in tests are kept at the bottom of the allowed range; the
hashing logic is identical at any cost.
"""

from __future__ import annotations

import asyncio
import uuid
from collections.abc import Generator
from typing import Any

import pytest
from fastapi.testclient import TestClient
from httpx import Response
from sqlalchemy.engine import Engine

from api.main import create_app
from auth.models import User
from auth.passwords import PasswordHasher
from auth.policy import HashPolicy
from auth.schema import create_db_engine
from auth.store import UserStore
from auth.workers import HashingPool
from core.config import Settings

TEST_SECRET = "test-signing-secret-0123456789abcdef"
ADMIN_PASSWORD = "adminpass123"
FAST_POLICY: dict[str, Any] = {"memory_cost_kb": 1024, "iterations": 1, "parallelism": 1}


def memory_db_url(name: str) -> str:
    return f"sqlite:///file:{name}_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true"


def make_settings(**overrides: Any) -> Settings:
    """Settings for tests. Keyword arguments override the defaults below."""
    values: dict[str, Any] = {
        "debug": True,
        "jwt_secret": TEST_SECRET,
        "database_url": memory_db_url("api"),
        "allowed_hosts": ["testserver"],
        "argon_profile": "development",
        "hash_workers": 1,
    }
    values.update(overrides)
    return Settings(**values)


def hash_now(password: str, policy: HashPolicy | None = None) -> str:
    """Hash password outside any running event loop (fixture setup only)."""
    pool = HashingPool(1)
    try:
        hasher = PasswordHasher(policy or HashPolicy.create(**FAST_POLICY), pool)
        return asyncio.run(hasher.hash(password))
    finally:
        pool.shutdown()


def bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


# ---------------------------------------------------------------------------
# Unit fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def engine() -> Generator[Engine, None, None]:
    """Fresh in-memory database with users and user_login created."""
    eng = create_db_engine(memory_db_url("unit"))
    yield eng
    eng.dispose()


@pytest.fixture
def pool() -> Generator[HashingPool, None, None]:
    p = HashingPool(1)
    yield p
    p.shutdown()


@pytest.fixture
def fast_policy() -> HashPolicy:
    return HashPolicy.create(**FAST_POLICY)


@pytest.fixture
def hasher(fast_policy: HashPolicy, pool: HashingPool) -> PasswordHasher:
    return PasswordHasher(fast_policy, pool)


# ---------------------------------------------------------------------------
# Integration fixture
# ---------------------------------------------------------------------------


class ApiEnv:
    """A running app plus helpers to seed users and log in.

    Seeding goes straight through a UserStore on a second Engine bound to
    the same shared-memory database; that Engine's open connection is also
    what keeps the in-memory database alive for the test's duration.
    """

    def __init__(self, client: TestClient, users: UserStore, policy: HashPolicy) -> None:
        self.client = client
        self.users = users
        self.policy = policy

    def add_user(
        self,
        username: str,
        password: str = "password123",
        *,
        pwd: str | None = None,
        active: bool = True,
    ) -> int:
        """Insert a user. pwd, when given, is stored as-is instead of hashing password."""
        return self.users.create_user(
            User(
                username=username,
                name=username.capitalize(),
                surname="Tester",
                phone=f"555-{uuid.uuid4().hex[:8]}",
                email=f"{username}@example.com",
                pwd=pwd if pwd is not None else hash_now(password, self.policy),
                created_by="fixture",
                active=active,
            )
        )

    def login(self, username: str, password: str) -> Response:
        return self.client.post("/api/v1/auth/login", json={"username": username, "password": password})

    def token_for(self, username: str, password: str) -> str:
        resp = self.login(username, password)
        assert resp.status_code == 200, f"login failed for {username}: {resp.status_code} {resp.text}"
        return resp.json()["token"]

    def admin_headers(self) -> dict[str, str]:
        return bearer(self.token_for("admin", ADMIN_PASSWORD))


@pytest.fixture
def api_env() -> Generator[ApiEnv, None, None]:
    """Yield an ApiEnv over a freshly built app with an "admin" user seeded.

    The TestClient uses the real create_app() factory and lifespan, so tests
    exercise the real hasher, codec, stores and gate.
    """
    settings = make_settings()
    seed_engine = create_db_engine(settings.database_url)
    policy = HashPolicy.from_settings(settings)
    app = create_app(settings)

    with TestClient(app, raise_server_exceptions=True) as client:
        env = ApiEnv(client, UserStore(seed_engine), policy)
        env.add_user("admin", ADMIN_PASSWORD)
        yield env

    seed_engine.dispose()
