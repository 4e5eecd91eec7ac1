"""
auth/login.py -- Login orchestration: credentials in, session token out.

  1. Fetch the user by username.
  2. Unknown or inactive user: run a dummy verification (same cost as a real
     one) and return UNAUTHORIZED.
  3. Verify the password on the hashing pool. A stored hash that cannot be
     parsed is logged and treated exactly like a wrong password.
  4. Issue a token and register it as the user's only session. Any token
     issued earlier for this user stops passing the gate.
  5. If the stored hash was made under weaker parameters, rehash it under the
     current policy. A failure here is logged; the login still succeeds.

The caller gets a LoginResult; only the HTTP layer decides what status code
an outcome becomes. UNAUTHORIZED carries no detail on purpose -- the route
must answer unknown-user and wrong-password identically.

Store calls are synchronous SQLAlchemy; they run on Starlette's threadpool so
the event loop stays free. Hashing runs on the separate HashingPool.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum

from starlette.concurrency import run_in_threadpool

from auth.errors import AuthError, HashMalformed
from auth.models import Claims, User
from auth.passwords import PasswordHasher
from auth.sessions import SessionStore
from auth.store import UserStore
from auth.tokens import TokenCodec

logger = logging.getLogger("bookapp.auth")


class LoginOutcome(str, Enum):
    SUCCESS = "success"
    UNAUTHORIZED = "unauthorized"


@dataclass(frozen=True)
class LoginResult:
    outcome: LoginOutcome
    token: str | None = None
    claims: Claims | None = None
    user: User | None = None


_UNAUTHORIZED = LoginResult(LoginOutcome.UNAUTHORIZED)


class LoginService:
    """Composes UserStore, PasswordHasher, TokenCodec and SessionStore.

    Raises AuthError subclasses (HashingFailed, InternalError, StorageError)
    for failures that are not the caller's fault; the HTTP layer maps those to
    a generic 500.
    """

    def __init__(
        self,
        users: UserStore,
        hasher: PasswordHasher,
        codec: TokenCodec,
        sessions: SessionStore,
    ) -> None:
        self.users = users
        self.hasher = hasher
        self.codec = codec
        self.sessions = sessions

    async def login(self, username: str, password: str) -> LoginResult:
        user = await run_in_threadpool(self.users.get_by_username, username)
        if user is None or not user.active:
            await self.hasher.verify_dummy(password)
            logger.warning("LOGIN: unknown or inactive user")
            return _UNAUTHORIZED

        try:
            verified = await self.hasher.verify(password, user.pwd)
        except HashMalformed:
            logger.error("LOGIN: stored password hash for %s is malformed", user.username)
            return _UNAUTHORIZED
        if not verified:
            logger.warning("LOGIN: invalid password for %s", user.username)
            return _UNAUTHORIZED

        claims = self.codec.new_claims(user.username)
        token = self.codec.encode(claims)
        await run_in_threadpool(
            self.sessions.upsert,
            user.username,
            token,
            _from_epoch(claims.issued_at),
            _from_epoch(claims.expires_at),
        )
        await self._upgrade_hash(user, password)

        logger.info("LOGIN: %s logged in successfully", user.username)
        return LoginResult(LoginOutcome.SUCCESS, token=token, claims=claims, user=user)

    async def logout(self, subject: str) -> bool:
        return await run_in_threadpool(self.sessions.revoke, subject)

    async def _upgrade_hash(self, user: User, password: str) -> None:
        try:
            if not self.hasher.needs_rehash(user.pwd):
                return
            new_hash = await self.hasher.hash(password)
            await run_in_threadpool(self.users.update_password, user.id, new_hash, user.username)
        except AuthError as exc:
            logger.warning("LOGIN: could not upgrade password hash for %s: %s", user.username, exc)
            return
        logger.info("LOGIN: password hash for %s upgraded to current policy", user.username)


def _from_epoch(seconds: int) -> datetime:
    return datetime.fromtimestamp(seconds, tz=timezone.utc)
