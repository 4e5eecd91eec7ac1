"""
auth/gate.py -- Request-time admission check for protected endpoints.

AuthGate.evaluate() walks one Authorization header through these states:

  no header                       -> UNAUTHORIZED (missing_header)
  header without "Bearer " prefix -> UNAUTHORIZED (not_bearer)
  TokenCodec.verify fails         -> UNAUTHORIZED (malformed / bad_signature / expired)
  SessionStore status != ACTIVE   -> UNAUTHORIZED (session_not_found / _revoked / _expired)
  SessionStore raises             -> INTERNAL_ERROR
  otherwise                       -> ADMIT, with the verified subject

The gate is framework-free; auth/dependencies.py adapts it to FastAPI.
Rejection reasons are for logs only -- the HTTP response is always the same
generic 401.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from auth.errors import StorageError, TokenInvalid
from auth.sessions import SessionStatus, SessionStore
from auth.tokens import TokenCodec

logger = logging.getLogger("bookapp.auth")

BEARER_PREFIX = "Bearer "


class GateOutcome(str, Enum):
    ADMIT = "admit"
    UNAUTHORIZED = "unauthorized"
    INTERNAL_ERROR = "internal_error"


@dataclass(frozen=True)
class GateDecision:
    outcome: GateOutcome
    reason: str
    subject: str | None = None

    @property
    def admitted(self) -> bool:
        return self.outcome is GateOutcome.ADMIT


class AuthGate:
    def __init__(self, codec: TokenCodec, sessions: SessionStore) -> None:
        self._codec = codec
        self._sessions = sessions

    def evaluate(self, authorization: str | None) -> GateDecision:
        if not authorization:
            return _reject("missing_header")
        if not authorization.startswith(BEARER_PREFIX):
            return _reject("not_bearer")
        token = authorization[len(BEARER_PREFIX) :]

        try:
            claims = self._codec.verify(token)
        except TokenInvalid as exc:
            return _reject(exc.reason.value)

        try:
            status = self._sessions.status(claims.subject, token)
        except StorageError as exc:
            logger.error("Session lookup failed for %s: %s", claims.subject, exc)
            return GateDecision(GateOutcome.INTERNAL_ERROR, "storage_error", claims.subject)

        if status is not SessionStatus.ACTIVE:
            return _reject(status.value, claims.subject)
        return GateDecision(GateOutcome.ADMIT, "ok", claims.subject)


def _reject(reason: str, subject: str | None = None) -> GateDecision:
    logger.info("Request rejected by auth gate: %s%s", reason, f" (subject={subject})" if subject else "")
    return GateDecision(GateOutcome.UNAUTHORIZED, reason, subject)
