"""Unit tests for auth/gate.py -- AuthGate admission decisions.

A real TokenCodec and SessionStore are used except where a collaborator must
be observed (codec never called for a non-Bearer header) or forced to fail
(storage error).
"""

from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from auth.errors import StorageError
from auth.gate import AuthGate, GateOutcome
from auth.sessions import SessionStore
from auth.tokens import TokenCodec

SECRET = "gate-test-secret-with-enough-entropy"


@pytest.fixture
def codec():
    return TokenCodec(SECRET, ttl_seconds=3600)


@pytest.fixture
def sessions(engine):
    return SessionStore(engine)


@pytest.fixture
def gate(codec, sessions):
    return AuthGate(codec, sessions)


def _login(codec: TokenCodec, sessions: SessionStore, subject: str) -> str:
    claims = codec.new_claims(subject)
    token = codec.encode(claims)
    sessions.upsert(
        subject,
        token,
        datetime.fromtimestamp(claims.issued_at, tz=timezone.utc),
        datetime.fromtimestamp(claims.expires_at, tz=timezone.utc),
    )
    return token


def test_admits_live_session(gate, codec, sessions):
    token = _login(codec, sessions, "alice")
    decision = gate.evaluate(f"Bearer {token}")
    assert decision.admitted
    assert decision.subject == "alice"
    assert decision.reason == "ok"


@pytest.mark.parametrize("header", [None, ""])
def test_missing_header(gate, header):
    decision = gate.evaluate(header)
    assert decision.outcome is GateOutcome.UNAUTHORIZED
    assert decision.reason == "missing_header"


@pytest.mark.parametrize("header", ["Token abc", "Basic YWxpY2U6cHc=", "bearer abc", "Bearerabc"])
def test_non_bearer_header_never_reaches_codec(header):
    codec = MagicMock(spec=TokenCodec)
    sessions = MagicMock(spec=SessionStore)
    decision = AuthGate(codec, sessions).evaluate(header)
    assert decision.outcome is GateOutcome.UNAUTHORIZED
    assert decision.reason == "not_bearer"
    codec.verify.assert_not_called()
    sessions.status.assert_not_called()


def test_malformed_token(gate):
    decision = gate.evaluate("Bearer not-a-token")
    assert decision.outcome is GateOutcome.UNAUTHORIZED
    assert decision.reason == "malformed"


def test_foreign_signature(gate):
    token = TokenCodec("some-other-secret-with-enough-entropy").issue("alice")
    assert gate.evaluate(f"Bearer {token}").reason == "bad_signature"


def test_expired_token(sessions):
    codec = TokenCodec(SECRET, ttl_seconds=0)
    token = _login(codec, sessions, "alice")
    decision = AuthGate(codec, sessions).evaluate(f"Bearer {token}")
    assert decision.outcome is GateOutcome.UNAUTHORIZED
    assert decision.reason == "expired"


def test_valid_token_without_session(gate, codec):
    decision = gate.evaluate(f"Bearer {codec.issue('alice')}")
    assert decision.outcome is GateOutcome.UNAUTHORIZED
    assert decision.reason == "session_not_found"
    assert decision.subject == "alice"


def test_superseded_token_is_revoked(gate, codec, sessions):
    first = _login(codec, sessions, "alice")
    second = _login(codec, sessions, "alice")
    assert gate.evaluate(f"Bearer {first}").reason == "session_revoked"
    assert gate.evaluate(f"Bearer {second}").admitted


def test_logout_revokes(gate, codec, sessions):
    token = _login(codec, sessions, "alice")
    sessions.revoke("alice")
    assert gate.evaluate(f"Bearer {token}").reason == "session_not_found"


def test_storage_error_is_internal_error(codec):
    sessions = MagicMock(spec=SessionStore)
    sessions.status.side_effect = StorageError("session_get", "OperationalError")
    decision = AuthGate(codec, sessions).evaluate(f"Bearer {codec.issue('alice')}")
    assert decision.outcome is GateOutcome.INTERNAL_ERROR
    assert not decision.admitted
